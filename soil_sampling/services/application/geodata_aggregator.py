"""
Application service: Geodata aggregation for a single coordinate.

Fetches soil, weather, elevation and NDVI concurrently. Each source is
isolated: when one fails, only its sub-object falls back to placeholder
values and the others are returned as fetched.

NDVI has two distinct fallbacks that are kept apart on purpose:
- NO_DATA_AVAILABLE (explicit nulls): API key missing, or the service has
  no imagery for the window
- SIMULATED_FALLBACK (random plausible value): the registration or history
  request itself failed
Consumers read ``ndvi.status`` to disclose which one occurred.
"""
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
import asyncio
import logging
import numpy as np

from soil_sampling.config import settings
from soil_sampling.domain.geodata import (
    ElevationSummary,
    GeoDataContext,
    NdviSummary,
    PrecipitationSummary,
    SoilSummary,
)
from soil_sampling.infrastructure.external_api_client import (
    AgroMonitoringClient,
    OpenMeteoClient,
    SoilGridsClient,
)
from soil_sampling.services.domain.geodata_normalizer import (
    default_precipitation,
    no_ndvi,
    simulated_ndvi,
    summarize_elevation,
    summarize_ndvi_history,
    summarize_soil,
    summarize_weather,
    unavailable_elevation,
    unavailable_soil,
)

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class GeoDataAggregator:
    """
    Application service building the GeoDataContext of a sampling point.

    Never raises for a single source failure; the returned context always
    carries all four sub-objects.
    """

    def __init__(
        self,
        soilgrids: SoilGridsClient,
        open_meteo: OpenMeteoClient,
        agromonitoring: AgroMonitoringClient,
        rng: Optional[np.random.Generator] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        """
        Initialize the aggregator with its data sources.

        Args:
            soilgrids: Soil properties client
            open_meteo: Weather history and elevation client
            agromonitoring: Vegetation index client
            rng: Random generator for simulated values
            clock: Returns the current UTC time
        """
        self.soilgrids = soilgrids
        self.open_meteo = open_meteo
        self.agromonitoring = agromonitoring
        self.rng = rng or np.random.default_rng()
        self.clock = clock

    async def fetch(self, lat: float, lon: float, crop: str = "") -> GeoDataContext:
        """
        Fetch and normalize every source for one coordinate.

        Args:
            lat: Latitude in degrees
            lon: Longitude in degrees
            crop: Crop hint passed through to the analysis

        Returns:
            GeoDataContext
        """
        soil, precipitation, ndvi, dem = await asyncio.gather(
            self._fetch_soil(lat, lon),
            self._fetch_weather(lat, lon),
            self._fetch_ndvi(lat, lon),
            self._fetch_elevation(lat, lon),
        )

        context = GeoDataContext(
            lat=lat,
            lon=lon,
            soilgrids=soil,
            precipitation=precipitation,
            ndvi=ndvi,
            dem=dem,
            crop_hint=crop,
        )
        logger.info(f"Geodata for ({lat:.5f}, {lon:.5f}): sources={context.geodata_used()}, ndvi={ndvi.status.value}")
        return context

    async def _fetch_soil(self, lat: float, lon: float) -> SoilSummary:
        try:
            payload = await self.soilgrids.get_properties(lat, lon)
            return summarize_soil(payload)
        except Exception as e:
            logger.warning(f"SoilGrids unavailable for ({lat:.5f}, {lon:.5f}): {e}")
            return unavailable_soil("service unavailable")

    async def _fetch_weather(self, lat: float, lon: float) -> PrecipitationSummary:
        try:
            daily = await self.open_meteo.get_daily_weather(
                lat, lon, past_days=settings.weather_window_days
            )
            return summarize_weather(daily, self.clock().date(), self.rng)
        except Exception as e:
            logger.warning(f"Open-Meteo weather unavailable for ({lat:.5f}, {lon:.5f}): {e}")
            return default_precipitation("service unavailable")

    async def _fetch_elevation(self, lat: float, lon: float) -> ElevationSummary:
        try:
            payload = await self.open_meteo.get_elevation(lat, lon)
            return summarize_elevation(payload, self.rng)
        except Exception as e:
            logger.warning(f"Open-Meteo elevation unavailable for ({lat:.5f}, {lon:.5f}): {e}")
            return unavailable_elevation("service unavailable")

    async def _fetch_ndvi(self, lat: float, lon: float) -> NdviSummary:
        if not self.agromonitoring.is_configured:
            logger.warning("AgroMonitoring API key is not configured; NDVI unavailable")
            return no_ndvi("API key missing")

        try:
            polygon_id = await self.agromonitoring.register_polygon(
                lat, lon, size_m=settings.ndvi_polygon_size_m
            )
            end = self.clock()
            start = end - timedelta(days=settings.ndvi_window_days)
            samples = await self.agromonitoring.get_ndvi_history(
                polygon_id, int(start.timestamp()), int(end.timestamp())
            )
            return summarize_ndvi_history(samples)
        except Exception as e:
            logger.warning(f"NDVI pipeline failed for ({lat:.5f}, {lon:.5f}), using simulated value: {e}")
            return simulated_ndvi(self.rng)
