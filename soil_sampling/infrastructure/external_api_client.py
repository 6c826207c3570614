"""
Infrastructure layer: External geodata service clients with retry logic.
"""
from typing import Any, Dict, List, Optional, Sequence
import logging
import math
import re
import httpx
from shapely.geometry import box, mapping
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from soil_sampling.config import settings
from soil_sampling.infrastructure.api_constants import (
    AgroMonitoringEndpoints,
    APIConstants,
    OpenMeteoEndpoints,
    SoilGridsEndpoints,
)

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6371000.0


class ExternalAPIError(Exception):
    """Custom exception for external API errors."""

    def __init__(self, message: str, status_code: int = 502):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ExternalAPIClient:
    """
    Base client for the external geodata services.
    Implements retry logic with exponential backoff.
    """

    def __init__(self, base_url: str, headers: Optional[Dict[str, str]] = None):
        """
        Initialize the API client.

        Args:
            base_url: Service base URL
            headers: Extra headers sent with every request
        """
        self.base_url = base_url
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"accept": APIConstants.CONTENT_TYPE_JSON, **(headers or {})},
            timeout=settings.external_api_timeout,
        )

    async def __aenter__(self) -> "ExternalAPIClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    @retry(
        stop=stop_after_attempt(settings.max_retry_attempts),
        wait=wait_exponential(
            multiplier=settings.retry_backoff_multiplier,
            min=settings.retry_min_wait,
            max=settings.retry_max_wait,
        ),
        retry=retry_if_exception_type((httpx.HTTPStatusError, httpx.TransportError)),
        reraise=True,
    )
    async def _send(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        response = await self.client.request(method, endpoint, **kwargs)
        # Retry on server errors (5xx) only
        if response.status_code >= 500:
            response.raise_for_status()
        return response

    async def _request(
        self,
        method: str,
        endpoint: str,
        allowed_statuses: Sequence[int] = (),
        **kwargs,
    ) -> httpx.Response:
        """
        Make an HTTP request with retry logic.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path
            allowed_statuses: Non-2xx status codes returned to the caller
                instead of raising
            **kwargs: Additional arguments for the request

        Returns:
            httpx.Response

        Raises:
            ExternalAPIError: If the request fails after retries
        """
        try:
            response = await self._send(method, endpoint, **kwargs)
        except httpx.HTTPStatusError as e:
            raise ExternalAPIError(
                f"API request failed: {e.response.status_code} - {e.response.text}",
                status_code=e.response.status_code,
            )
        except httpx.RequestError as e:
            raise ExternalAPIError(f"API request error: {str(e)}", status_code=503)

        if response.is_success or response.status_code in allowed_statuses:
            return response

        # Don't retry on client errors (4xx)
        raise ExternalAPIError(
            f"API request failed: {response.status_code} - {response.text}",
            status_code=response.status_code,
        )

    async def _make_request(self, method: str, endpoint: str, **kwargs) -> Any:
        """
        Make an HTTP request and decode the JSON body.

        Raises:
            ExternalAPIError: If the request fails or the body is not JSON
        """
        response = await self._request(method, endpoint, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise ExternalAPIError(f"Invalid JSON from {endpoint}: {str(e)}")


class SoilGridsClient(ExternalAPIClient):
    """Client for the ISRIC SoilGrids properties service."""

    def __init__(self, base_url: Optional[str] = None):
        super().__init__(base_url or settings.soilgrids_base_url)

    async def get_properties(self, lat: float, lon: float) -> Dict[str, Any]:
        """
        Fetch soil properties at a coordinate for the top three depth bands.

        Args:
            lat: Latitude in degrees
            lon: Longitude in degrees

        Returns:
            Raw SoilGrids JSON (values are scaled by 10)
        """
        return await self._make_request(
            "GET",
            SoilGridsEndpoints.PROPERTIES_QUERY,
            params={
                "lat": lat,
                "lon": lon,
                "property": SoilGridsEndpoints.PROPERTIES,
                "depth": SoilGridsEndpoints.DEPTHS,
                "value": SoilGridsEndpoints.VALUES,
            },
        )


class OpenMeteoClient(ExternalAPIClient):
    """Client for the Open-Meteo weather history and elevation services."""

    def __init__(self, base_url: Optional[str] = None):
        super().__init__(base_url or settings.open_meteo_base_url)

    async def get_daily_weather(
        self,
        lat: float,
        lon: float,
        past_days: int = 30,
    ) -> Dict[str, List[Any]]:
        """
        Fetch daily precipitation and min/max temperature for the trailing window.

        Args:
            lat: Latitude in degrees
            lon: Longitude in degrees
            past_days: Number of past days to include

        Returns:
            The ``daily`` block of the response

        Raises:
            ExternalAPIError: If the request fails or has no daily block
        """
        data = await self._make_request(
            "GET",
            OpenMeteoEndpoints.FORECAST,
            params={
                "latitude": lat,
                "longitude": lon,
                "daily": OpenMeteoEndpoints.DAILY_VARIABLES,
                "timezone": OpenMeteoEndpoints.TIMEZONE,
                "past_days": past_days,
                "forecast_days": 1,
            },
        )
        if not isinstance(data, dict) or "daily" not in data:
            raise ExternalAPIError("Open-Meteo response has no daily data")
        return data["daily"]

    async def get_elevation(self, lat: float, lon: float) -> Dict[str, Any]:
        """
        Fetch the elevation of a single point.

        Returns:
            Raw JSON, ``{"elevation": [meters]}``
        """
        return await self._make_request(
            "GET",
            OpenMeteoEndpoints.ELEVATION,
            params={"latitude": lat, "longitude": lon},
        )


def square_polygon(lat: float, lon: float, size_m: float = 100.0) -> Dict[str, Any]:
    """
    GeoJSON square of side ``size_m`` centered on a point.

    Args:
        lat: Latitude in degrees
        lon: Longitude in degrees
        size_m: Side length in meters

    Returns:
        GeoJSON Polygon geometry with [lon, lat] coordinates
    """
    d_lat = math.degrees(size_m / EARTH_RADIUS_M)
    d_lon = math.degrees(size_m / (EARTH_RADIUS_M * math.cos(math.radians(lat))))
    square = box(lon - d_lon / 2, lat - d_lat / 2, lon + d_lon / 2, lat + d_lat / 2)
    geometry = mapping(square)
    return {
        "type": geometry["type"],
        "coordinates": [[list(xy) for xy in ring] for ring in geometry["coordinates"]],
    }


def polygon_external_id(lat: float, lon: float) -> str:
    return f"point_analysis_{lat:.6f}_{lon:.6f}".replace(".", "_").replace("-", "m")


class AgroMonitoringClient(ExternalAPIClient):
    """
    Client for the AgroMonitoring vegetation index service.

    NDVI is requested per registered polygon, so every point is wrapped in
    a small square that is registered once and reused afterwards.
    """

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None):
        super().__init__(base_url or settings.agromonitoring_base_url)
        self.api_key = api_key if api_key is not None else settings.agromonitoring_api_key

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def register_polygon(self, lat: float, lon: float, size_m: float = 100.0) -> str:
        """
        Register (or reuse) the square polygon around a point.

        Args:
            lat: Latitude in degrees
            lon: Longitude in degrees
            size_m: Side length of the square in meters

        Returns:
            AgroMonitoring polygon id

        Raises:
            ExternalAPIError: If the polygon cannot be registered
        """
        body = {
            "name": f"Polygon for {lat:.4f},{lon:.4f}",
            "external_id": polygon_external_id(lat, lon),
            "geo_json": {
                "type": "Feature",
                "properties": {},
                "geometry": square_polygon(lat, lon, size_m),
            },
        }
        response = await self._request(
            "POST",
            AgroMonitoringEndpoints.POLYGONS,
            allowed_statuses=(422,),
            params={"appid": self.api_key, "duplicated": "true"},
            json=body,
        )
        payload = response.json()

        if response.status_code == 422:
            message = str(payload.get("message", ""))
            match = re.search(r"'([^']+)'", message)
            if AgroMonitoringEndpoints.DUPLICATE_POLYGON_MARKER in message and match:
                logger.debug(f"Reusing existing AgroMonitoring polygon {match.group(1)}")
                return match.group(1)
            raise ExternalAPIError(f"Polygon registration rejected: {message}", status_code=422)

        return payload["id"]

    async def get_ndvi_history(self, polygon_id: str, start: int, end: int) -> List[Dict[str, Any]]:
        """
        Fetch the NDVI time series of a polygon.

        Args:
            polygon_id: Registered polygon id
            start: Window start, unix seconds
            end: Window end, unix seconds

        Returns:
            List of samples; empty when the service has no imagery for the window
        """
        response = await self._request(
            "GET",
            AgroMonitoringEndpoints.NDVI_HISTORY,
            allowed_statuses=(404,),
            params={"polyid": polygon_id, "start": start, "end": end, "appid": self.api_key},
        )
        if response.status_code == 404:
            logger.warning(f"No NDVI data for polygon {polygon_id} in the requested window")
            return []
        data = response.json()
        if not isinstance(data, list):
            raise ExternalAPIError("Unexpected NDVI history payload")
        return data


# Singleton instances
_soilgrids_client: Optional[SoilGridsClient] = None
_open_meteo_client: Optional[OpenMeteoClient] = None
_agromonitoring_client: Optional[AgroMonitoringClient] = None


def get_soilgrids_client() -> SoilGridsClient:
    """Get or create the singleton SoilGrids client."""
    global _soilgrids_client
    if _soilgrids_client is None:
        _soilgrids_client = SoilGridsClient()
    return _soilgrids_client


def get_open_meteo_client() -> OpenMeteoClient:
    """Get or create the singleton Open-Meteo client."""
    global _open_meteo_client
    if _open_meteo_client is None:
        _open_meteo_client = OpenMeteoClient()
    return _open_meteo_client


def get_agromonitoring_client() -> AgroMonitoringClient:
    """Get or create the singleton AgroMonitoring client."""
    global _agromonitoring_client
    if _agromonitoring_client is None:
        _agromonitoring_client = AgroMonitoringClient()
    return _agromonitoring_client


async def close_clients() -> None:
    """Close every client that has been created."""
    global _soilgrids_client, _open_meteo_client, _agromonitoring_client
    for client in (_soilgrids_client, _open_meteo_client, _agromonitoring_client):
        if client is not None:
            await client.close()
    _soilgrids_client = _open_meteo_client = _agromonitoring_client = None
