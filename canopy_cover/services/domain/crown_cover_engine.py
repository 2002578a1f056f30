"""
Domain service: Overlap-corrected crown cover for a single inventory plot.

Each tree crown is rendered as a disk of radius crown_width / 2 at the
tree's plot-local position, clipped to the sampled area (the union of the
four subplot disks) and dissolved with the other crowns. The dissolved
area over the sampled area is the percent cover estimate; the naive sum of
clipped crowns is kept for comparison.
"""
from dataclasses import dataclass, field
from typing import Optional
import logging
import math

from shapely.errors import GEOSException
from shapely.geometry.base import BaseGeometry

from canopy_cover.config import settings
from canopy_cover.domain.exceptions import CoverComputationError
from canopy_cover.domain.models import CoverStatistics, TreeDiagnostic, TreeRecord
from canopy_cover.services.domain.plot_layout import PlotLayout, get_plot_layout
from canopy_cover.services.domain.tree_placement import PlacedTree, place_trees
from canopy_cover.utils.geometry import (
    area_of,
    clip_to_boundary,
    dissolve,
    make_disk,
)

logger = logging.getLogger(__name__)

# Square feet of basal area per square inch of diameter, pi / (4 * 144)
BASAL_AREA_FACTOR = math.pi / 576.0


@dataclass
class CoverConfig:
    """Configuration for the crown cover computation."""

    crown_quad_segments: int = 64
    """Segments per quarter circle used to approximate a crown disk"""

    sliver_area_tolerance: float = 1e-9
    """Clipped footprints at or below this area count as empty"""

    include_geometry: bool = False
    """Whether to return the merged canopy and clipped footprints"""


@dataclass
class PlotCoverResult:
    """Cover statistics of one plot plus optional geometry for display."""
    statistics: CoverStatistics
    diagnostics: list[TreeDiagnostic] = field(default_factory=list)
    canopy: Optional[BaseGeometry] = None
    footprints: Optional[list[BaseGeometry]] = None


def summarize_cover(
    plot_key: str,
    total_crown_area: float,
    area_covered: float,
    sampled_area: float,
    **extra,
) -> CoverStatistics:
    """
    Derive the cover proportions from crown areas.

    overlap_prop is None when there is no crown area at all; such plots
    carry no information about overlap.

    Args:
        plot_key: Plot identifier
        total_crown_area: Sum of clipped crown areas
        area_covered: Area of the dissolved crowns
        sampled_area: Sampled area of the plot
        **extra: Additional CoverStatistics fields

    Returns:
        CoverStatistics instance
    """
    if sampled_area <= 0:
        raise ValueError(f"Sampled area must be positive, got {sampled_area}")

    # Dissolving never adds area; clamp float noise from the union
    area_covered = min(area_covered, total_crown_area)

    if total_crown_area > 0:
        overlap_prop = (total_crown_area - area_covered) / total_crown_area
    else:
        overlap_prop = None

    return CoverStatistics(
        plot_key=plot_key,
        total_crown_area=total_crown_area,
        area_covered=area_covered,
        overlap_prop=overlap_prop,
        crown_cover_prop_no_overlap=area_covered / sampled_area,
        crown_cover_prop_with_overlap=total_crown_area / sampled_area,
        **extra,
    )


class CrownCoverEngine:
    """
    Domain service computing per-plot crown cover.

    Holds no per-plot state: one engine can serve any number of plots,
    and computations for different plots are independent.
    """

    def __init__(
        self,
        config: Optional[CoverConfig] = None,
        layout: Optional[PlotLayout] = None,
    ):
        """
        Initialize the engine.

        Args:
            config: Cover configuration (defaults from settings)
            layout: Plot layout (defaults to the configured plot design)
        """
        self.config = config or CoverConfig(
            crown_quad_segments=settings.crown_quad_segments,
            sliver_area_tolerance=settings.sliver_area_tolerance,
        )
        self.layout = layout or get_plot_layout()

    def compute_plot_cover(
        self,
        plot_key: str,
        trees: list[TreeRecord],
        include_geometry: Optional[bool] = None,
    ) -> PlotCoverResult:
        """
        Compute crown cover statistics for one plot.

        Args:
            plot_key: Plot identifier
            trees: Trees of the plot, crown widths already predicted
            include_geometry: Override config.include_geometry

        Returns:
            PlotCoverResult

        Raises:
            CoverComputationError: If a geometry operation fails irrecoverably
        """
        if include_geometry is None:
            include_geometry = self.config.include_geometry

        # Step 1: Place trees in the plot-local frame
        placed, diagnostics = place_trees(trees, self.layout.subplot_centers)

        # Step 2: Keep trees with a usable crown width
        crowned = self._filter_crown_widths(plot_key, placed, diagnostics)

        # Step 3: Build and clip crown footprints
        try:
            footprints = self._clipped_footprints(crowned)
            areas = [area_of(f, self.config.sliver_area_tolerance) for f in footprints]

            # Step 4: Dissolve overlapping footprints
            canopy = dissolve(f for f, a in zip(footprints, areas) if a > 0)
            area_covered = area_of(canopy, self.config.sliver_area_tolerance)
        except GEOSException as e:
            raise CoverComputationError(plot_key, str(e)) from e

        # Step 5: Derive statistics
        statistics = summarize_cover(
            plot_key=plot_key,
            total_crown_area=float(sum(areas)),
            area_covered=area_covered,
            sampled_area=self.layout.sampled_area,
            tree_count=len(crowned),
            excluded_tree_count=len(diagnostics),
            trees_per_acre=float(sum(p.tree.tpa_unadj for p in crowned)),
            basal_area_per_acre=float(sum(
                BASAL_AREA_FACTOR * p.tree.dia ** 2 * p.tree.tpa_unadj for p in crowned
            )),
        )

        logger.debug(f"Plot {plot_key}: {len(crowned)} trees, "
                     f"covered={statistics.area_covered:.2f}, total={statistics.total_crown_area:.2f}, "
                     f"cover={statistics.crown_cover_prop_no_overlap:.4f}")

        if not include_geometry:
            return PlotCoverResult(statistics=statistics, diagnostics=diagnostics)

        return PlotCoverResult(
            statistics=statistics,
            diagnostics=diagnostics,
            canopy=canopy,
            footprints=footprints,
        )

    def _filter_crown_widths(
        self,
        plot_key: str,
        placed: list[PlacedTree],
        diagnostics: list[TreeDiagnostic],
    ) -> list[PlacedTree]:
        """
        Drop trees whose crown width is missing, non-finite or not positive.

        Appends a diagnostic for each dropped tree.
        """
        crowned = []

        for p in placed:
            width = p.tree.crown_width
            if width is None or not math.isfinite(width) or width <= 0:
                logger.debug(f"Plot {plot_key}: excluding tree with crown width {width}")
                diagnostics.append(TreeDiagnostic(
                    plot_key=plot_key,
                    subplot=p.tree.subp,
                    reason=f"crown width {width} is not a positive finite value",
                ))
                continue
            crowned.append(p)

        return crowned

    def _clipped_footprints(self, crowned: list[PlacedTree]) -> list[BaseGeometry]:
        """
        Build each tree's crown disk clipped to the sampled boundary.

        Args:
            crowned: Placed trees with valid crown widths

        Returns:
            Clipped footprints in tree order (empty polygons for crowns
            lying wholly outside the boundary)
        """
        boundary = self.layout.boundary
        return [
            clip_to_boundary(
                make_disk(p.coordinates, p.crown_radius, self.config.crown_quad_segments),
                boundary,
            )
            for p in crowned
        ]
