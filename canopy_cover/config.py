"""
Application configuration using Pydantic settings.
"""
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Plot Design
    subplot_radius: float = Field(
        default=24.0,
        description="Radius of each subplot disk (feet)"
    )
    subplot_distance: float = Field(
        default=120.0,
        description="Distance from plot center to the outer subplot centers (feet)"
    )
    subplot_azimuths: list[float] = Field(
        default=[0.0, 120.0, 240.0],
        description="Azimuths (degrees clockwise from north) of subplots 2, 3 and 4"
    )

    # Geometry
    crown_quad_segments: int = Field(
        default=64,
        description="Segments per quarter circle when buffering a crown disk"
    )
    subplot_quad_segments: int = Field(
        default=64,
        description="Segments per quarter circle when buffering a subplot disk"
    )
    sliver_area_tolerance: float = Field(
        default=1e-9,
        description="Clipped footprints smaller than this area count as empty"
    )

    # Tree Preparation
    live_status_code: int = Field(
        default=1,
        description="STATUSCD value for live trees"
    )
    min_diameter: float = Field(
        default=5.0,
        description="Minimum diameter (inches) for a tree to be included"
    )
    diameter_class_width: float = Field(
        default=2.0,
        description="Width of the diameter classes used to impute crown width"
    )

    # Batch Processing
    batch_workers: int = Field(
        default=1,
        description="Worker processes for batch cover computation (1 = sequential)"
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
    max_trees_per_request: int = Field(
        default=50000,
        description="Maximum number of tree records accepted in one request"
    )

    # Application Settings
    app_name: str = Field(
        default="Plot Canopy Cover Service",
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
