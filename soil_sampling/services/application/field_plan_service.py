"""
Application service: Sampling plan creation for parcels.
"""
from typing import Optional, Sequence
import logging

from soil_sampling.config import settings
from soil_sampling.domain.exceptions import (
    CampaignStateError,
    InvalidBoundaryError,
    InvalidPointPositionError,
)
from soil_sampling.domain.models import (
    CampaignStatus,
    Coordinate,
    FieldCampaign,
    GrowthStage,
    Parcel,
    SamplingPoint,
)
from soil_sampling.services.domain.sampling_point_generator import (
    PointPositionCheck,
    SamplingPointGenerator,
)
from soil_sampling.services.domain.zone_delineator import ZoneDelineator
from soil_sampling.utils.spatial_helpers import (
    is_simple_polygon,
    polygon_area_hectares,
    polygon_centroid,
    strip_closing_vertex,
)

logger = logging.getLogger(__name__)


class FieldPlanService:
    """
    Application service for parcel plans.

    Orchestrates boundary checks, zone delineation and point generation,
    and wraps the result in a new campaign. Persisting the campaign is
    left to the caller.
    """

    def __init__(
        self,
        delineator: ZoneDelineator,
        generator: SamplingPointGenerator,
        validate_simple_polygon: Optional[bool] = None,
        validate_manual_moves: Optional[bool] = None,
        max_field_hectares: Optional[float] = None,
        max_grid_candidates: Optional[int] = None,
    ):
        """
        Initialize the service with dependencies.

        Args:
            delineator: Zone delineator
            generator: Sampling point generator
            validate_simple_polygon: Reject self-intersecting boundaries
                (defaults to settings)
            validate_manual_moves: Reject manual point moves that break the
                placement rules (defaults to settings)
            max_field_hectares: Largest accepted field area (defaults to settings)
            max_grid_candidates: Largest accepted candidate grid (defaults to settings)
        """
        self.delineator = delineator
        self.generator = generator
        self.validate_simple_polygon = (
            settings.validate_simple_polygon if validate_simple_polygon is None else validate_simple_polygon
        )
        self.validate_manual_moves = (
            settings.validate_manual_moves if validate_manual_moves is None else validate_manual_moves
        )
        self.max_field_hectares = max_field_hectares or settings.max_field_hectares
        self.max_grid_candidates = max_grid_candidates or settings.max_grid_candidates

    def build_parcel(
        self,
        name: str,
        crop: str,
        boundary: Sequence[Coordinate],
        stage: Optional[GrowthStage] = None,
        parcel_id: Optional[str] = None,
    ) -> Parcel:
        """
        Create a Parcel with its derived area and centroid.

        Raises:
            InvalidBoundaryError: If the boundary has fewer than 3 distinct
                vertices, self-intersects while validation is enabled,
                or is too large to plan
        """
        ring = self._checked_ring(boundary)
        area = polygon_area_hectares(ring)
        if area > self.max_field_hectares:
            raise InvalidBoundaryError(
                f"Field area {area:.1f} ha exceeds the {self.max_field_hectares:.0f} ha limit"
            )
        fields = {"id": parcel_id} if parcel_id else {}
        return Parcel(
            name=name,
            crop=crop,
            stage=stage,
            boundary=ring,
            area_hectares=area,
            centroid=polygon_centroid(ring),
            **fields,
        )

    def create_plan(
        self,
        name: str,
        crop: str,
        boundary: Sequence[Coordinate],
        stage: Optional[GrowthStage] = None,
    ) -> FieldCampaign:
        """
        Create a parcel from a finished boundary and plan its first campaign.

        Args:
            name: Parcel display name
            crop: Crop label
            boundary: Ordered (lat, lon) ring
            stage: Growth stage

        Returns:
            FieldCampaign in ``planning`` status
        """
        parcel = self.build_parcel(name, crop, boundary, stage)
        return self._plan(parcel)

    def regenerate_plan(self, parcel: Parcel) -> FieldCampaign:
        """
        Start a new campaign for an existing parcel.

        The parcel id is kept; area and centroid are derived again from the
        (possibly edited) boundary. Zones and points are new.
        """
        refreshed = self.build_parcel(
            parcel.name, parcel.crop, parcel.boundary, parcel.stage, parcel_id=parcel.id
        )
        refreshed.created_at = parcel.created_at
        return self._plan(refreshed)

    def check_point(self, parcel: Parcel, lat: float, lon: float) -> PointPositionCheck:
        return self.generator.check_position(parcel.boundary, lat, lon)

    def move_point(self, campaign: FieldCampaign, point_id: str, lat: float, lon: float) -> SamplingPoint:
        """
        Apply a manual drag of a sampling point.

        With validation enabled the move must satisfy the generation rules;
        otherwise the point moves and is flagged as not validated.

        Raises:
            InvalidPointPositionError: If validation is enabled and rejects the move
            CampaignStateError: If the campaign is completed
        """
        if campaign.status == CampaignStatus.COMPLETED:
            raise CampaignStateError(f"Campaign {campaign.id} is completed; points are fixed")

        if not self.validate_manual_moves:
            logger.debug(f"Point {point_id} moved without validation")
            return campaign.relocate_point(point_id, lat, lon, validated=False)

        check = self.check_point(campaign.parcel, lat, lon)
        if not check.valid:
            raise InvalidPointPositionError(
                f"Position ({lat:.6f}, {lon:.6f}) is outside the field or within "
                f"{self.generator.config.edge_buffer_m:.0f}m of its boundary"
            )
        return campaign.relocate_point(point_id, lat, lon, validated=True)

    def _plan(self, parcel: Parcel) -> FieldCampaign:
        zones = self.delineator.delineate(parcel)
        points = self.generator.generate(parcel, zones)

        quota = sum(z.recommended_points for z in zones)
        if len(points) < quota:
            logger.warning(f"Parcel {parcel.id}: only {len(points)} of {quota} sampling points could be placed")

        return FieldCampaign(
            parcel_id=parcel.id,
            parcel=parcel,
            zones=zones,
            points=points,
        )

    def _checked_ring(self, boundary: Sequence[Coordinate]) -> list[Coordinate]:
        ring = strip_closing_vertex(boundary)
        if len(set(ring)) < 3:
            raise InvalidBoundaryError("Boundary needs at least 3 distinct vertices")
        if self.validate_simple_polygon and not is_simple_polygon(ring):
            raise InvalidBoundaryError("Boundary must not intersect itself")
        if self.generator.grid_size(ring) > self.max_grid_candidates:
            raise InvalidBoundaryError("Boundary extent is too large to plan")
        return ring
