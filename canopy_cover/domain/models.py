"""
Domain models for inventory trees and plot cover statistics.

These models represent the core domain entities and should be independent
of any infrastructure concerns (data providers, HTTP, storage, etc.).
Field aliases follow inventory column names (PLT_CN, SUBP, DIST, ...).
"""
from typing import Optional
from pydantic import BaseModel, Field


class TreeRecord(BaseModel):
    """Individual stem-mapped tree from an inventory plot."""
    plt_cn: str = Field(alias="PLT_CN", description="Plot key")
    subp: int = Field(alias="SUBP", description="Subplot number (1-4)")
    dist: float = Field(alias="DIST", description="Distance from subplot center (feet)")
    azimuth: float = Field(
        alias="AZIMUTH",
        description="Azimuth from subplot center, degrees clockwise from north"
    )
    dia: float = Field(alias="DIA", description="Diameter (inches)")
    spcd: Optional[int] = Field(default=None, alias="SPCD", description="Species code")
    ht: Optional[float] = Field(default=None, alias="HT", description="Total height (feet)")
    statuscd: int = Field(default=1, alias="STATUSCD", description="Status code (1 = live)")
    tpa_unadj: float = Field(
        default=0.0,
        alias="TPA_UNADJ",
        description="Trees-per-acre expansion factor"
    )
    crown_width: Optional[float] = Field(
        default=None,
        alias="CROWN_WIDTH",
        description="Predicted crown width (feet)"
    )

    class Config:
        populate_by_name = True


class TreeDiagnostic(BaseModel):
    """Reason a tree was excluded from a plot's cover computation."""
    plot_key: str
    subplot: Optional[int] = None
    reason: str


class CoverStatistics(BaseModel):
    """Plot-level crown cover statistics."""
    plot_key: str
    total_crown_area: float = Field(
        description="Sum of clipped crown areas, overlaps counted repeatedly"
    )
    area_covered: float = Field(
        description="Area of the dissolved (merged) clipped crowns"
    )
    overlap_prop: Optional[float] = Field(
        description="Share of total crown area that is overlap; None when there is no crown area"
    )
    crown_cover_prop_no_overlap: float = Field(
        description="area_covered / sampled area"
    )
    crown_cover_prop_with_overlap: float = Field(
        description="total_crown_area / sampled area"
    )
    tree_count: int = 0
    excluded_tree_count: int = Field(
        default=0,
        description="Trees of the plot left out of the computation, including those dropped in preparation"
    )
    trees_per_acre: float = 0.0
    basal_area_per_acre: float = 0.0

    class Config:
        frozen = True

    @property
    def is_degenerate(self) -> bool:
        return self.overlap_prop is None


class PlotFailure(BaseModel):
    """A plot whose cover computation failed in a batch."""
    plot_key: str
    error_type: str
    message: str
