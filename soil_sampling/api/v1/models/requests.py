"""
API request models using Pydantic.
"""
from typing import List, Optional
from pydantic import BaseModel, Field

from soil_sampling.domain.models import Coordinate, GrowthStage, Parcel


class PlanRequest(BaseModel):
    """Request model for creating a sampling plan from a drawn boundary."""
    name: str = Field(min_length=1, description="Parcel display name")
    crop: str = Field(min_length=1, description="Crop label")
    stage: Optional[GrowthStage] = Field(default=None, description="Growth stage")
    boundary: List[Coordinate] = Field(
        min_length=3,
        description="Ordered [latitude, longitude] vertices, implicitly closed"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "name": "North block",
                "crop": "maize",
                "stage": "production",
                "boundary": [
                    [-32.3290, 18.8250],
                    [-32.3290, 18.8270],
                    [-32.3275, 18.8270],
                    [-32.3275, 18.8250],
                ]
            }
        }


class PointCheckRequest(BaseModel):
    """Request model for checking a (dragged) point position."""
    parcel: Parcel
    lat: float = Field(ge=-90, le=90, description="Latitude in degrees")
    lon: float = Field(ge=-180, le=180, description="Longitude in degrees")
