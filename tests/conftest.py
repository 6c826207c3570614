"""
Shared pytest fixtures for all tests.

This module provides common fixtures including:
- Field boundaries and parcels of known size
- Sample external service payloads
- Mock geodata clients
- FastAPI test client
"""
import math
import pytest
import numpy as np
from datetime import date, datetime, timedelta, timezone
from typing import Callable
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient

from soil_sampling.main import app
from soil_sampling.domain.geodata import (
    ElevationSummary,
    GeoDataContext,
    NdviStatus,
    NdviSummary,
    PrecipitationSummary,
    SoilSummary,
    TextureClass,
)
from soil_sampling.domain.models import Parcel
from soil_sampling.infrastructure.external_api_client import (
    AgroMonitoringClient,
    OpenMeteoClient,
    SoilGridsClient,
)
from soil_sampling.services.application.field_plan_service import FieldPlanService
from soil_sampling.services.domain.sampling_point_generator import (
    SamplingConfig,
    SamplingPointGenerator,
)
from soil_sampling.services.domain.zone_delineator import ZoneDelineator
from soil_sampling.utils.spatial_helpers import (
    METERS_PER_DEGREE,
    polygon_area_hectares,
    polygon_centroid,
)


FIELD_CENTER = (-32.328, 18.826)
TODAY = date(2026, 10, 17)


def rectangle_ring(
    height_m: float,
    width_m: float,
    center: tuple[float, float] = FIELD_CENTER,
) -> list[tuple[float, float]]:
    """Axis-aligned (lat, lon) rectangle of the given size in meters."""
    half_lat = height_m / METERS_PER_DEGREE / 2
    half_lon = width_m / (METERS_PER_DEGREE * math.cos(math.radians(center[0]))) / 2
    lat, lon = center
    return [
        (lat - half_lat, lon - half_lon),
        (lat - half_lat, lon + half_lon),
        (lat + half_lat, lon + half_lon),
        (lat + half_lat, lon - half_lon),
    ]


def make_parcel(boundary: list[tuple[float, float]], name: str = "Test field") -> Parcel:
    return Parcel(
        name=name,
        crop="maize",
        boundary=boundary,
        area_hectares=polygon_area_hectares(boundary),
        centroid=polygon_centroid(boundary),
    )


# ============================================================
# Boundary and Parcel Fixtures
# ============================================================

@pytest.fixture
def rectangle() -> Callable[..., list[tuple[float, float]]]:
    """Factory for rectangular boundaries sized in meters."""
    return rectangle_ring


@pytest.fixture
def small_boundary() -> list[tuple[float, float]]:
    """Square boundary of about 2 ha."""
    side = math.sqrt(20_000)
    return rectangle_ring(side, side)


@pytest.fixture
def large_boundary() -> list[tuple[float, float]]:
    """Square boundary of about 9 ha."""
    return rectangle_ring(300, 300)


@pytest.fixture
def small_parcel(small_boundary) -> Parcel:
    return make_parcel(small_boundary, name="Small block")


@pytest.fixture
def large_parcel(large_boundary) -> Parcel:
    return make_parcel(large_boundary, name="Large block")


# ============================================================
# Service Fixtures
# ============================================================

@pytest.fixture
def sampling_config() -> SamplingConfig:
    return SamplingConfig(grid_step_deg=0.00027, edge_buffer_m=15.0, buffer_mode="vertex")


@pytest.fixture
def generator(sampling_config) -> SamplingPointGenerator:
    return SamplingPointGenerator(sampling_config)


@pytest.fixture
def plan_service(generator) -> FieldPlanService:
    """Plan service with every optional validation disabled."""
    return FieldPlanService(
        delineator=ZoneDelineator(),
        generator=generator,
        validate_simple_polygon=False,
        validate_manual_moves=False,
    )


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(42)


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: datetime(TODAY.year, TODAY.month, TODAY.day, 12, 0, tzinfo=timezone.utc)


# ============================================================
# Sample Payload Fixtures
# ============================================================

def soil_layer(name: str, means: list) -> dict:
    return {
        "name": name,
        "depths": [
            {"label": label, "values": {"mean": mean}}
            for label, mean in zip(("0-5cm", "5-15cm", "15-30cm"), means)
        ],
    }


@pytest.fixture
def soilgrids_payload() -> dict:
    """SoilGrids query for a clay-loam topsoil (raw values scaled by 10)."""
    return {
        "type": "Feature",
        "properties": {
            "layers": [
                soil_layer("clay", [250, 270, 300]),
                soil_layer("sand", [400, 380, 350]),
                soil_layer("silt", [350, 350, 350]),
                soil_layer("soc", [123, 90, 60]),
                soil_layer("bdod", [135, 140, 145]),
                soil_layer("phh2o", [65, 66, 68]),
            ]
        },
    }


@pytest.fixture
def weather_daily() -> dict:
    """
    Open-Meteo daily block from 30 days ago up to tomorrow.

    1 mm of rain on each past day and today, 100 mm on the forecast day,
    and a constant 20 degree daily mean temperature.
    """
    days = [TODAY - timedelta(days=offset) for offset in range(30, -2, -1)]
    return {
        "time": [d.isoformat() for d in days],
        "precipitation_sum": [100.0 if d > TODAY else 1.0 for d in days],
        "temperature_2m_max": [30.0] * len(days),
        "temperature_2m_min": [10.0] * len(days),
    }


@pytest.fixture
def ndvi_history() -> list[dict]:
    """AgroMonitoring NDVI history, deliberately unordered."""
    return [
        {"dt": 1_760_000_000, "source": "s2", "data": {"mean": 0.5}},
        {"dt": 1_760_400_000, "source": "s2", "data": {"mean": 0.6}},
        {"dt": 1_759_600_000, "source": "s2", "data": {"mean": 0.4}},
    ]


@pytest.fixture
def sample_geodata() -> GeoDataContext:
    return GeoDataContext(
        lat=FIELD_CENTER[0],
        lon=FIELD_CENTER[1],
        soilgrids=SoilSummary(
            texture_class=TextureClass.LOAM,
            organic_carbon_g_kg=12.3,
            bulk_density_kg_m3=1350.0,
            ph=6.5,
            available=True,
            source="SoilGrids v2.0",
        ),
        precipitation=PrecipitationSummary(
            sum_3d_mm=3.0, sum_7d_mm=8.0, sum_30d_mm=31.0, available=True
        ),
        ndvi=NdviSummary(
            current=0.6,
            historical_mean=0.5,
            anomaly=0.1,
            status=NdviStatus.AVAILABLE,
            source="AgroMonitoring Sentinel-2",
        ),
        dem=ElevationSummary(elevation=124.0, slope_pct=3.2, aspect="North", available=True),
        crop_hint="maize",
    )


# ============================================================
# Mock API Client Fixtures
# ============================================================

@pytest.fixture
def mock_soilgrids(soilgrids_payload):
    mock_client = AsyncMock(spec=SoilGridsClient)
    mock_client.get_properties.return_value = soilgrids_payload
    return mock_client


@pytest.fixture
def mock_open_meteo(weather_daily):
    mock_client = AsyncMock(spec=OpenMeteoClient)
    mock_client.get_daily_weather.return_value = weather_daily
    mock_client.get_elevation.return_value = {"elevation": [123.6]}
    return mock_client


@pytest.fixture
def mock_agromonitoring(ndvi_history):
    mock_client = AsyncMock(spec=AgroMonitoringClient)
    mock_client.is_configured = True
    mock_client.register_polygon.return_value = "poly-123"
    mock_client.get_ndvi_history.return_value = ndvi_history
    return mock_client


# ============================================================
# FastAPI Test Client Fixtures
# ============================================================

@pytest.fixture
def test_client() -> TestClient:
    """Create a synchronous test client for FastAPI."""
    return TestClient(app)
