"""
API response models using Pydantic.
"""
from typing import Optional
from pydantic import BaseModel, Field

from soil_sampling.domain.models import FieldCampaign


class PlanResponse(BaseModel):
    """Response model for plan endpoints."""
    campaign: FieldCampaign
    zone_count: int = Field(description="Number of zones delineated")
    requested_points: int = Field(description="Sum of the zone point quotas")
    total_points: int = Field(
        description="Points actually placed (can be lower than requested on small or narrow fields)"
    )

    @classmethod
    def from_campaign(cls, campaign: FieldCampaign) -> "PlanResponse":
        return cls(
            campaign=campaign,
            zone_count=len(campaign.zones),
            requested_points=sum(z.recommended_points for z in campaign.zones),
            total_points=len(campaign.points),
        )


class PointCheckResponse(BaseModel):
    """Response model for the point position check."""
    inside: bool = Field(description="Point lies inside the parcel boundary")
    min_vertex_distance_m: float = Field(description="Distance to the closest boundary vertex")
    min_edge_distance_m: Optional[float] = Field(
        default=None,
        description="Distance to the closest boundary edge"
    )
    valid: bool = Field(description="Point satisfies the placement rules")

    class Config:
        json_schema_extra = {
            "example": {
                "inside": True,
                "min_vertex_distance_m": 48.2,
                "min_edge_distance_m": 21.7,
                "valid": True,
            }
        }
