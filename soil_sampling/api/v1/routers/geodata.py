"""
API router for geodata endpoints.
"""
from typing import Annotated
from fastapi import APIRouter, Query, Request

from soil_sampling.api.dependencies import GeoDataAggregatorDep
from soil_sampling.api.rate_limit import EXTERNAL_RATE_LIMIT, limiter
from soil_sampling.domain.geodata import GeoDataContext


router = APIRouter(
    prefix="/geodata",
    tags=["geodata"],
)


@router.get(
    "",
    response_model=GeoDataContext,
    summary="Get the geodata context of a point",
    description="""
    Fetch soil composition, trailing weather, elevation and NDVI for one
    coordinate, normalized into a single context object.

    A source that cannot be reached never fails the request: its section is
    filled with placeholder values and its `source` field says why. The
    `ndvi.status` field tells real data (`available`) from missing data
    (`no_data_available`) and a simulated stand-in (`simulated_fallback`).
    """,
    responses={
        429: {
            "description": "Rate limit exceeded",
        },
    },
)
@limiter.limit(EXTERNAL_RATE_LIMIT)
async def get_geodata(
    request: Request,
    lat: Annotated[float, Query(ge=-90, le=90, description="Latitude in degrees")],
    lon: Annotated[float, Query(ge=-180, le=180, description="Longitude in degrees")],
    aggregator: GeoDataAggregatorDep,
    crop: Annotated[str, Query(description="Crop hint")] = "",
) -> GeoDataContext:
    """
    Get the geodata context of a point.

    Args:
        request: Incoming request (used by the rate limiter)
        lat: Latitude in degrees
        lon: Longitude in degrees
        aggregator: Geodata aggregator (injected dependency)
        crop: Crop hint passed through to the analysis

    Returns:
        GeoDataContext with all four sections
    """
    return await aggregator.fetch(lat, lon, crop)
