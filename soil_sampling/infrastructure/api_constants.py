"""
API endpoint constants and configuration.

This module contains all external API endpoint paths and related constants.
Centralizing these values makes it easy to swap out endpoints or update API versions.
"""


# SoilGrids API Endpoints
class SoilGridsEndpoints:
    """ISRIC SoilGrids endpoint paths and query constants."""

    PROPERTIES_QUERY = "/soilgrids/v2.0/properties/query"

    PROPERTIES = ["clay", "sand", "silt", "soc", "bdod", "phh2o"]
    DEPTHS = ["0-5cm", "5-15cm", "15-30cm"]
    VALUES = ["mean"]


# Open-Meteo API Endpoints
class OpenMeteoEndpoints:
    """Open-Meteo endpoint paths and query constants."""

    FORECAST = "/v1/forecast"
    ELEVATION = "/v1/elevation"

    DAILY_VARIABLES = "precipitation_sum,temperature_2m_max,temperature_2m_min"
    # Daily buckets must share the UTC calendar of the service clock
    TIMEZONE = "UTC"


# AgroMonitoring API Endpoints
class AgroMonitoringEndpoints:
    """AgroMonitoring endpoint paths."""

    BASE = "/agro/1.0"

    POLYGONS = f"{BASE}/polygons"
    NDVI_HISTORY = f"{BASE}/ndvi/history"

    # Returned with HTTP 422 when a polygon with the same geometry exists
    DUPLICATE_POLYGON_MARKER = "already existed polygon"


# API Configuration Constants
class APIConstants:
    """General API configuration constants."""

    # HTTP Headers
    CONTENT_TYPE_JSON = "application/json"
