"""
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from soil_sampling.config import settings
from soil_sampling.api.rate_limit import limiter
from soil_sampling.middleware.error_handler import ErrorHandlerMiddleware
from soil_sampling.api.v1.routers import geodata, plans

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Handles startup and shutdown events using the modern FastAPI pattern.
    """
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Log level: {settings.log_level}")
    logger.info(f"Sampling config: grid_step={settings.grid_step_deg}deg, "
                f"edge_buffer={settings.edge_buffer_m}m ({settings.buffer_mode}), "
                f"validate_manual_moves={settings.validate_manual_moves}")
    if not settings.agromonitoring_api_key:
        logger.warning("AGROMONITORING_API_KEY is not set; NDVI will be reported as unavailable")
    logger.info(f"Rate limit: {settings.rate_limit_requests} requests/minute")

    yield

    # Shutdown
    from soil_sampling.infrastructure.external_api_client import close_clients
    logger.info("Shutting down application...")
    await close_clients()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Precision-Agriculture Soil Sampling API

    This API plans soil sampling campaigns over user-drawn fields and gathers
    the environmental context used to analyze each sampling point.

    ## Features

    - **Sampling Plans**: Partition a field into vigor zones and place sampling
      points on a regular grid, away from the field edge
    - **Geodata Context**: Soil composition (SoilGrids), trailing weather and
      elevation (Open-Meteo) and NDVI (AgroMonitoring) for any point
    - **Graceful Degradation**: A failing data source degrades only its own
      section, with a provenance note; requests never fail because of it
    - **Robust External Calls**: Automatic retries with exponential backoff
    - **Rate Limiting**: Protects the external data sources from abuse

    ## Sampling Algorithm

    1. Derive the field area (hectares) and centroid from the boundary
    2. Delineate 2 zones (3 above 5 ha), each with a point quota
    3. Lay a ~30m candidate grid over the field's bounding box
    4. Keep candidates inside the field and at least 15m from its vertices
    5. Order candidates north to south and split them among the zones
    6. Stride-sample each zone's candidates down to its quota
    7. Label points P-01, P-02, ... across zones
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Add rate limiter to app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware with configurable origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add global error handling middleware
app.add_middleware(ErrorHandlerMiddleware)

# Include routers
app.include_router(plans.router, prefix="/api/v1")
app.include_router(geodata.router, prefix="/api/v1")


@app.get("/", tags=["health"])
async def root():
    """
    Root endpoint for health check.

    Returns:
        Status message
    """
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
    }


@app.get("/health", tags=["health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        Health status
    """
    return {
        "status": "healthy",
        "service": settings.app_name,
    }
