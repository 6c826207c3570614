"""
Domain models for parcels, zones, sampling points and campaigns.

These models represent the core domain entities and should be independent
of any infrastructure concerns (API clients, databases, etc.). The
persistence layer stores them verbatim.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4
from pydantic import BaseModel, Field, field_validator

from soil_sampling.domain.exceptions import CampaignStateError, PointNotFoundError


Coordinate = tuple[float, float]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid4().hex}"


class GrowthStage(str, Enum):
    PREPARATION = "preparation"
    PRODUCTION = "production"


class PointStatus(str, Enum):
    PENDING = "pending"
    SAMPLED = "sampled"


class CampaignStatus(str, Enum):
    PLANNING = "planning"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


_STATUS_ORDER = {
    CampaignStatus.PLANNING: 0,
    CampaignStatus.IN_PROGRESS: 1,
    CampaignStatus.COMPLETED: 2,
}


class Parcel(BaseModel):
    """A user-drawn field."""
    id: str = Field(default_factory=lambda: new_id("parcel"))
    name: str
    crop: str
    stage: Optional[GrowthStage] = None
    area_hectares: float = Field(default=0.0, description="Derived from the boundary")
    boundary: List[Coordinate] = Field(
        description="Ordered (lat, lon) ring, implicitly closed"
    )
    centroid: Coordinate = Field(default=(0.0, 0.0), description="Vertex centroid")
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("boundary")
    @classmethod
    def normalize_ring(cls, value: List[Coordinate]) -> List[Coordinate]:
        if len(value) > 1 and tuple(value[0]) == tuple(value[-1]):
            value = value[:-1]
        if len(value) < 3:
            raise ValueError("boundary needs at least 3 vertices")
        return value


class Zone(BaseModel):
    """A vigor/characteristic cluster within one parcel."""
    id: str
    parcel_id: str
    name: str
    characteristics: str
    color: str = Field(description="Hex color for map display")
    recommended_points: int = Field(ge=1)


class SamplingPoint(BaseModel):
    """One physical location to be photographed."""
    id: str
    zone_id: str
    parcel_id: str
    lat: float
    lon: float
    label: str = Field(examples=["P-01"])
    status: PointStatus = PointStatus.PENDING
    analysis_result_id: Optional[str] = None
    position_validated: bool = Field(
        default=True,
        description="False after a manual move that was not re-validated"
    )

    @property
    def coordinate(self) -> Coordinate:
        return (self.lat, self.lon)


class FieldCampaign(BaseModel):
    """One sampling/analysis cycle over a parcel."""
    id: str = Field(default_factory=lambda: new_id("camp"))
    parcel_id: str
    parcel: Parcel
    zones: List[Zone] = Field(default_factory=list)
    points: List[SamplingPoint] = Field(default_factory=list)
    status: CampaignStatus = CampaignStatus.PLANNING
    created_at: datetime = Field(default_factory=utc_now)
    last_updated: datetime = Field(default_factory=utc_now)
    global_analysis: Optional[Dict[str, Any]] = None

    @property
    def sampled_points(self) -> List[SamplingPoint]:
        return [p for p in self.points if p.status == PointStatus.SAMPLED]

    @property
    def pending_points(self) -> List[SamplingPoint]:
        return [p for p in self.points if p.status == PointStatus.PENDING]

    def touch(self) -> None:
        self.last_updated = utc_now()

    def transition_to(self, status: CampaignStatus) -> None:
        """
        Move the campaign forward in its lifecycle.

        Args:
            status: Target status

        Raises:
            CampaignStateError: If the transition would move backwards
        """
        if _STATUS_ORDER[status] < _STATUS_ORDER[self.status]:
            raise CampaignStateError(
                f"Campaign {self.id} cannot go from {self.status.value} to {status.value}"
            )
        if status != self.status:
            self.status = status
            self.touch()

    def get_point(self, point_id: str) -> SamplingPoint:
        for point in self.points:
            if point.id == point_id:
                return point
        raise PointNotFoundError(f"Point {point_id} not found in campaign {self.id}")

    def mark_point_sampled(self, point_id: str) -> SamplingPoint:
        if self.status == CampaignStatus.COMPLETED:
            raise CampaignStateError(f"Campaign {self.id} is already completed")
        point = self.get_point(point_id)
        point.status = PointStatus.SAMPLED
        self.transition_to(CampaignStatus.IN_PROGRESS)
        self.touch()
        return point

    def relocate_point(self, point_id: str, lat: float, lon: float, validated: bool) -> SamplingPoint:
        point = self.get_point(point_id)
        point.lat = lat
        point.lon = lon
        point.position_validated = validated
        self.touch()
        return point

    def attach_analysis(self, point_id: str, analysis_id: str) -> SamplingPoint:
        point = self.get_point(point_id)
        point.analysis_result_id = analysis_id
        self.touch()
        return point
