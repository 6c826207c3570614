"""
Application configuration using Pydantic settings.
"""
from typing import Literal, Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # External Services
    soilgrids_base_url: str = Field(
        default="https://rest.isric.org",
        description="Base URL for the SoilGrids properties service"
    )
    open_meteo_base_url: str = Field(
        default="https://api.open-meteo.com",
        description="Base URL for the Open-Meteo weather and elevation service"
    )
    agromonitoring_base_url: str = Field(
        default="https://api.agromonitoring.com",
        description="Base URL for the AgroMonitoring vegetation index service"
    )
    agromonitoring_api_key: Optional[str] = Field(
        default=None,
        description="AgroMonitoring API key (NDVI is reported as unavailable without it)"
    )
    external_api_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for external service calls"
    )

    # Retry Configuration
    max_retry_attempts: int = Field(
        default=3,
        description="Maximum number of retry attempts for API calls"
    )
    retry_backoff_multiplier: int = Field(
        default=1,
        description="Multiplier for exponential backoff"
    )
    retry_min_wait: int = Field(
        default=1,
        description="Minimum wait time in seconds between retries"
    )
    retry_max_wait: int = Field(
        default=10,
        description="Maximum wait time in seconds between retries"
    )

    # Sampling Plan Parameters
    grid_step_deg: float = Field(
        default=0.00027,
        description="Candidate grid step in degrees (~30m in both axes)"
    )
    edge_buffer_m: float = Field(
        default=15.0,
        description="Minimum distance in meters between a sampling point and the field boundary"
    )
    buffer_mode: Literal["vertex", "edge"] = Field(
        default="vertex",
        description="Measure the edge buffer against boundary vertices or boundary edges"
    )
    validate_manual_moves: bool = Field(
        default=False,
        description="Reject manual point moves that leave the polygon or enter the edge buffer"
    )
    max_field_hectares: float = Field(
        default=5000.0,
        gt=0,
        description="Largest field area accepted for planning"
    )
    max_grid_candidates: int = Field(
        default=1_000_000,
        gt=0,
        description="Largest candidate grid (bounding box cells) accepted for planning"
    )
    validate_simple_polygon: bool = Field(
        default=False,
        description="Reject self-intersecting field boundaries"
    )

    # Geodata Parameters
    weather_window_days: int = Field(
        default=30,
        description="Trailing window of daily weather history in days"
    )
    ndvi_window_days: int = Field(
        default=30,
        description="Trailing window of NDVI history in days"
    )
    ndvi_polygon_size_m: float = Field(
        default=100.0,
        description="Side of the square polygon registered around a point for NDVI"
    )

    # Batch Analysis
    analysis_concurrency: int = Field(
        default=1,
        ge=1,
        description="Number of sampling points analyzed at once (1 = strictly sequential)"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    # CORS Configuration
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins (use specific origins in production)"
    )

    # Rate Limiting
    rate_limit_requests: int = Field(
        default=100,
        description="Maximum requests per minute per client"
    )

    # Application Settings
    app_name: str = Field(
        default="Soil Sampling API",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    debug: bool = Field(
        default=False,
        description="Debug mode"
    )

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
