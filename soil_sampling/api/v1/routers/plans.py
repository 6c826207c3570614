"""
API router for sampling plan endpoints.
"""
from fastapi import APIRouter, HTTPException

from soil_sampling.api.dependencies import FieldPlanServiceDep
from soil_sampling.api.v1.models.requests import PlanRequest, PointCheckRequest
from soil_sampling.api.v1.models.responses import PlanResponse, PointCheckResponse
from soil_sampling.domain.exceptions import InvalidBoundaryError
from soil_sampling.domain.models import Parcel


router = APIRouter(
    prefix="/plans",
    tags=["plans"],
)


@router.post(
    "",
    response_model=PlanResponse,
    summary="Create a sampling plan",
    description="""
    Create a parcel from a drawn boundary and plan its first sampling campaign.

    This endpoint:
    1. Derives the parcel area (hectares) and centroid from the boundary
    2. Delineates 2 zones (3 above 5 ha) with a point quota each
    3. Places sampling points on a ~30m grid inside the field, away from its edge
    4. Returns the campaign in `planning` status, ready to be stored
    """,
    responses={
        400: {"description": "Boundary cannot describe a field"},
    },
)
async def create_plan(
    request: PlanRequest,
    plan_service: FieldPlanServiceDep,
) -> PlanResponse:
    try:
        campaign = plan_service.create_plan(
            name=request.name,
            crop=request.crop,
            boundary=request.boundary,
            stage=request.stage,
        )
    except InvalidBoundaryError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return PlanResponse.from_campaign(campaign)


@router.post(
    "/regenerate",
    response_model=PlanResponse,
    summary="Plan a new campaign for an existing parcel",
    description="""
    Start a new campaign over an existing (possibly edited) parcel. The parcel
    id is kept; zones and sampling points are generated again.
    """,
    responses={
        400: {"description": "Boundary cannot describe a field"},
    },
)
async def regenerate_plan(
    parcel: Parcel,
    plan_service: FieldPlanServiceDep,
) -> PlanResponse:
    try:
        campaign = plan_service.regenerate_plan(parcel)
    except InvalidBoundaryError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return PlanResponse.from_campaign(campaign)


@router.post(
    "/check-point",
    response_model=PointCheckResponse,
    summary="Check a sampling point position",
    description="""
    Check whether a coordinate (for example a manually dragged point) lies
    inside the parcel and outside the edge buffer.
    """,
)
async def check_point(
    request: PointCheckRequest,
    plan_service: FieldPlanServiceDep,
) -> PointCheckResponse:
    check = plan_service.check_point(request.parcel, request.lat, request.lon)
    return PointCheckResponse(
        inside=check.inside,
        min_vertex_distance_m=check.min_vertex_distance_m,
        min_edge_distance_m=check.min_edge_distance_m,
        valid=check.valid,
    )
