"""
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from canopy_cover.config import settings
from canopy_cover.middleware.error_handler import ErrorHandlerMiddleware
from canopy_cover.api.v1.routers import plots
from canopy_cover.services.domain.plot_layout import get_plot_layout

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# Rate limiter
limiter = Limiter(key_func=get_remote_address)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Handles startup and shutdown events using the modern FastAPI pattern.
    """
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Log level: {settings.log_level}")
    layout = get_plot_layout()
    logger.info(f"Plot design: {len(layout.subplot_centers)} subplots, "
                f"radius={layout.subplot_radius}, sampled_area={layout.sampled_area:.2f}")
    logger.info(f"Geometry: crown_quad_segments={settings.crown_quad_segments}, "
                f"sliver_area_tolerance={settings.sliver_area_tolerance}")
    logger.info(f"Rate limit: {settings.rate_limit_requests} requests/minute")

    yield

    # Shutdown
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Canopy Cover API for Forest Inventory Plots

    This API estimates percent canopy cover for inventory plots from
    stem-mapped tree data.

    ## Features

    - **Overlap-Corrected Cover**: Crowns are dissolved so ground covered by
      several crowns is counted once
    - **Boundary Clipping**: Crowns are clipped to the sampled area so cover
      outside the plot is not counted
    - **Batch Processing**: Many plots per request, each computed independently
    - **Rate Limiting**: Protects the API from abuse

    ## Cover Algorithm

    1. Drops dead and undersized trees, imputes missing crown widths
    2. Places trees from subplot, distance and azimuth
    3. Builds a crown disk (radius = crown width / 2) for every tree
    4. Clips each disk to the union of the four subplot disks
    5. Dissolves the clipped crowns and divides by the sampled area
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
app.include_router(plots.router, prefix="/api/v1")


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
