"""
Domain service: Place stem-mapped trees in the plot-local frame.

A tree's position is recorded as (subplot, distance, azimuth) relative to
its subplot center; placement adds that polar offset to the center.
"""
from dataclasses import dataclass
from typing import Mapping
import logging
import math

from canopy_cover.domain.exceptions import TreePlacementError
from canopy_cover.domain.models import TreeDiagnostic, TreeRecord
from canopy_cover.utils.polar import offset_from

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlacedTree:
    """A tree with its absolute plot-local coordinate."""
    tree: TreeRecord
    x: float
    y: float

    @property
    def coordinates(self) -> tuple[float, float]:
        return (self.x, self.y)

    @property
    def crown_radius(self) -> float:
        return (self.tree.crown_width or 0.0) / 2


def place_tree(
    tree: TreeRecord,
    centers: Mapping[int, tuple[float, float]],
) -> PlacedTree:
    """
    Compute a tree's absolute coordinate from its subplot center.

    Args:
        tree: Tree record with subplot, distance and azimuth
        centers: Mapping of subplot id to (x, y) center

    Returns:
        PlacedTree

    Raises:
        TreePlacementError: If the subplot is unknown, the distance is negative
            or non-finite, or the azimuth is outside [0, 360)
    """
    center = centers.get(tree.subp)
    if center is None:
        raise TreePlacementError(f"unknown subplot id {tree.subp}", tree.plt_cn, tree.subp)
    if not math.isfinite(tree.dist) or tree.dist < 0:
        raise TreePlacementError(f"invalid distance {tree.dist}", tree.plt_cn, tree.subp)
    if not math.isfinite(tree.azimuth) or not 0 <= tree.azimuth < 360:
        raise TreePlacementError(f"azimuth {tree.azimuth} outside [0, 360)", tree.plt_cn, tree.subp)

    x, y = offset_from(center, tree.dist, tree.azimuth)
    return PlacedTree(tree=tree, x=x, y=y)


def place_trees(
    trees: list[TreeRecord],
    centers: Mapping[int, tuple[float, float]],
) -> tuple[list[PlacedTree], list[TreeDiagnostic]]:
    """
    Place every tree, excluding the ones that cannot be resolved.

    Args:
        trees: Tree records of one plot
        centers: Mapping of subplot id to (x, y) center

    Returns:
        Tuple of:
            - Placed trees, in input order
            - Diagnostics for excluded trees
    """
    placed = []
    diagnostics = []

    for tree in trees:
        try:
            placed.append(place_tree(tree, centers))
        except TreePlacementError as e:
            logger.debug(f"Excluding tree: {e}")
            diagnostics.append(TreeDiagnostic(
                plot_key=tree.plt_cn,
                subplot=tree.subp,
                reason=e.reason,
            ))

    return placed, diagnostics
