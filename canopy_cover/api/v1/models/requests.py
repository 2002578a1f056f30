"""
API request models using Pydantic.
"""
from typing import List, Optional
from pydantic import BaseModel, Field

from canopy_cover.domain.models import TreeRecord


class PlotTreeInput(BaseModel):
    """Tree of a single plot; the plot key comes from the URL."""
    subp: int = Field(alias="SUBP", description="Subplot number (1-4)", examples=[1])
    dist: float = Field(alias="DIST", description="Distance from subplot center (feet)", examples=[10.2])
    azimuth: float = Field(alias="AZIMUTH", description="Degrees clockwise from north", examples=[45])
    dia: float = Field(alias="DIA", description="Diameter (inches)", examples=[12.4])
    spcd: Optional[int] = Field(default=None, alias="SPCD", description="Species code")
    ht: Optional[float] = Field(default=None, alias="HT", description="Total height (feet)")
    statuscd: int = Field(default=1, alias="STATUSCD", description="Status code (1 = live)")
    tpa_unadj: float = Field(default=0.0, alias="TPA_UNADJ", description="Trees-per-acre expansion factor")
    crown_width: Optional[float] = Field(
        default=None,
        alias="CROWN_WIDTH",
        description="Predicted crown width (feet); missing values are imputed by diameter class",
        examples=[18.5],
    )

    class Config:
        populate_by_name = True

    def to_record(self, plot_key: str) -> TreeRecord:
        return TreeRecord(plt_cn=plot_key, **self.model_dump())


class PlotCoverRequest(BaseModel):
    """Request body for a single plot."""
    trees: List[PlotTreeInput] = Field(
        description="Stem-mapped trees of the plot"
    )


class BatchCoverRequest(BaseModel):
    """Request body for a batch of plots."""
    trees: List[TreeRecord] = Field(
        description="Stem-mapped trees of any number of plots, keyed by PLT_CN"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "trees": [
                    {"PLT_CN": "247123", "SUBP": 1, "DIST": 10.2, "AZIMUTH": 45,
                     "DIA": 12.4, "SPCD": 202, "STATUSCD": 1, "TPA_UNADJ": 6.018,
                     "CROWN_WIDTH": 18.5},
                    {"PLT_CN": "247124", "SUBP": 3, "DIST": 4.0, "AZIMUTH": 270,
                     "DIA": 8.1, "SPCD": 122, "STATUSCD": 1, "TPA_UNADJ": 6.018,
                     "CROWN_WIDTH": 12.0},
                ]
            }
        }
