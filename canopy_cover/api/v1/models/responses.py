"""
API response models using Pydantic.
"""
from typing import List
from pydantic import BaseModel, Field

from canopy_cover.domain.models import CoverStatistics, PlotFailure, TreeDiagnostic


class SubplotCenter(BaseModel):
    """Plot-local center of one subplot."""
    subplot: int = Field(description="Subplot number", examples=[2])
    x: float = Field(description="Easting offset from plot center (feet)", examples=[0.0])
    y: float = Field(description="Northing offset from plot center (feet)", examples=[120.0])


class PlotLayoutResponse(BaseModel):
    """Response model for the plot layout endpoint."""
    subplot_radius: float = Field(description="Radius of each subplot (feet)")
    sampled_area: float = Field(description="Sampled area of the plot (square feet)")
    subplots: List[SubplotCenter] = Field(description="Subplot centers")
    boundary: dict = Field(description="Sampled-area boundary as a GeoJSON geometry")


class PlotCoverResponse(BaseModel):
    """Response model for the single-plot cover endpoint."""
    statistics: CoverStatistics = Field(
        description="Crown cover statistics of the plot"
    )
    diagnostics: List[TreeDiagnostic] = Field(
        description="Trees excluded from the computation and why"
    )


class BatchCoverResponse(BaseModel):
    """Response model for the batch cover endpoint."""
    plot_count: int = Field(
        description="Number of plots with computed statistics"
    )
    excluded_tree_count: int = Field(
        description="Number of trees excluded across all plots"
    )
    results: List[CoverStatistics] = Field(
        description="One row of cover statistics per plot, sorted by plot key"
    )
    failures: List[PlotFailure] = Field(
        description="Plots whose computation failed"
    )
    diagnostics: List[TreeDiagnostic] = Field(
        description="Trees excluded from the computation and why"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "plot_count": 1,
                "excluded_tree_count": 0,
                "results": [
                    {
                        "plot_key": "247123",
                        "total_crown_area": 314.16,
                        "area_covered": 314.16,
                        "overlap_prop": 0.0,
                        "crown_cover_prop_no_overlap": 0.0434,
                        "crown_cover_prop_with_overlap": 0.0434,
                        "tree_count": 1,
                        "excluded_tree_count": 0,
                        "trees_per_acre": 6.018,
                        "basal_area_per_acre": 5.05,
                    }
                ],
                "failures": [],
                "diagnostics": [],
            }
        }
