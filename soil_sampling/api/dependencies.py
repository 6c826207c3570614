"""
Dependency injection for FastAPI.
"""
from typing import Annotated
from fastapi import Depends

from soil_sampling.infrastructure.external_api_client import (
    AgroMonitoringClient,
    OpenMeteoClient,
    SoilGridsClient,
    get_agromonitoring_client,
    get_open_meteo_client,
    get_soilgrids_client,
)
from soil_sampling.services.application.field_plan_service import FieldPlanService
from soil_sampling.services.application.geodata_aggregator import GeoDataAggregator
from soil_sampling.services.domain.sampling_point_generator import SamplingPointGenerator
from soil_sampling.services.domain.zone_delineator import ZoneDelineator


def get_zone_delineator() -> ZoneDelineator:
    """
    Dependency factory for ZoneDelineator.

    Returns:
        ZoneDelineator using the fixed archetype strategy
    """
    return ZoneDelineator()


def get_sampling_point_generator() -> SamplingPointGenerator:
    """
    Dependency factory for SamplingPointGenerator.

    Returns:
        SamplingPointGenerator configured from settings
    """
    return SamplingPointGenerator()


def get_field_plan_service(
    delineator: Annotated[ZoneDelineator, Depends(get_zone_delineator)],
    generator: Annotated[SamplingPointGenerator, Depends(get_sampling_point_generator)],
) -> FieldPlanService:
    """
    Dependency factory for FieldPlanService.

    Args:
        delineator: Zone delineator (injected)
        generator: Sampling point generator (injected)

    Returns:
        FieldPlanService instance
    """
    return FieldPlanService(delineator=delineator, generator=generator)


def get_geodata_aggregator(
    soilgrids: Annotated[SoilGridsClient, Depends(get_soilgrids_client)],
    open_meteo: Annotated[OpenMeteoClient, Depends(get_open_meteo_client)],
    agromonitoring: Annotated[AgroMonitoringClient, Depends(get_agromonitoring_client)],
) -> GeoDataAggregator:
    """
    Dependency factory for GeoDataAggregator.

    Args:
        soilgrids: SoilGrids client (injected)
        open_meteo: Open-Meteo client (injected)
        agromonitoring: AgroMonitoring client (injected)

    Returns:
        GeoDataAggregator instance
    """
    return GeoDataAggregator(
        soilgrids=soilgrids,
        open_meteo=open_meteo,
        agromonitoring=agromonitoring,
    )


# Type aliases for cleaner route signatures
FieldPlanServiceDep = Annotated[FieldPlanService, Depends(get_field_plan_service)]
GeoDataAggregatorDep = Annotated[GeoDataAggregator, Depends(get_geodata_aggregator)]
