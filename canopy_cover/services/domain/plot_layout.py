"""
Domain service: Fixed four-subplot inventory plot layout.

Every plot shares the same design: subplot 1 at the plot center and
subplots 2-4 at a fixed distance along azimuths 0, 120 and 240 degrees.
The sampled area is the union of the four subplot disks. All coordinates
are plot-local, so the plot's georeference never enters the computation.
"""
from dataclasses import dataclass
from functools import lru_cache
from itertools import combinations
from types import MappingProxyType
from typing import Mapping, Optional, Sequence
import logging
import math

from shapely.geometry import mapping
from shapely.geometry.base import BaseGeometry

from canopy_cover.config import settings
from canopy_cover.utils.geometry import area_of, dissolve, make_disk
from canopy_cover.utils.polar import polar_to_offsets

logger = logging.getLogger(__name__)

CENTER_SUBPLOT = 1


@dataclass(frozen=True)
class PlotLayout:
    """Subplot centers and sampled-area boundary of the plot design."""
    centers: tuple[tuple[int, tuple[float, float]], ...]
    subplot_radius: float
    boundary: BaseGeometry
    sampled_area: float

    @property
    def subplot_centers(self) -> Mapping[int, tuple[float, float]]:
        """Read-only mapping of subplot id to (x, y) center."""
        return MappingProxyType(dict(self.centers))

    @property
    def subplot_ids(self) -> tuple[int, ...]:
        return tuple(subplot for subplot, _ in self.centers)

    def to_geojson(self) -> dict:
        """Boundary polygon as a GeoJSON geometry dict."""
        return mapping(self.boundary)


def subplot_centers(
    distance: float,
    azimuths: Sequence[float],
) -> dict[int, tuple[float, float]]:
    """
    Calculate subplot center coordinates in the plot-local frame.

    Args:
        distance: Distance of the outer subplots from the plot center
        azimuths: Azimuths of the outer subplots, in subplot order

    Returns:
        Mapping of subplot id to (x, y) center
    """
    distances = [0.0] + [distance] * len(azimuths)
    offsets = polar_to_offsets(distances, [0.0] + list(azimuths))
    return {
        CENTER_SUBPLOT + i: (float(x), float(y))
        for i, (x, y) in enumerate(offsets)
    }


def lobes_are_disjoint(centers: dict[int, tuple[float, float]], radius: float) -> bool:
    """True when no two subplot disks overlap."""
    for (x1, y1), (x2, y2) in combinations(centers.values(), 2):
        if math.hypot(x2 - x1, y2 - y1) < 2 * radius:
            return False
    return True


@lru_cache(maxsize=8)
def build_plot_layout(
    subplot_radius: float = 24.0,
    subplot_distance: float = 120.0,
    subplot_azimuths: tuple[float, ...] = (0.0, 120.0, 240.0),
    quad_segments: int = 64,
) -> PlotLayout:
    """
    Build the plot layout: subplot centers and the sampled-area boundary.

    The result is cached; identical arguments return the identical layout.

    Args:
        subplot_radius: Radius of each subplot disk
        subplot_distance: Distance of subplots 2-4 from the plot center
        subplot_azimuths: Azimuths of subplots 2-4 (degrees clockwise from north)
        quad_segments: Segments per quarter circle for the subplot disks

    Returns:
        PlotLayout instance
    """
    centers = subplot_centers(subplot_distance, subplot_azimuths)
    boundary = dissolve(
        make_disk(center, subplot_radius, quad_segments) for center in centers.values()
    )

    if lobes_are_disjoint(centers, subplot_radius):
        sampled_area = len(centers) * math.pi * subplot_radius ** 2
    else:
        logger.warning("Subplot disks overlap; using the boundary polygon area as sampled area")
        sampled_area = area_of(boundary)

    logger.debug(f"Built plot layout: {len(centers)} subplots, radius={subplot_radius}, "
                 f"sampled_area={sampled_area:.2f}")

    return PlotLayout(
        centers=tuple(sorted(centers.items())),
        subplot_radius=subplot_radius,
        boundary=boundary,
        sampled_area=sampled_area,
    )


def get_plot_layout(quad_segments: Optional[int] = None) -> PlotLayout:
    """
    Plot layout for the configured design.

    Args:
        quad_segments: Override for settings.subplot_quad_segments

    Returns:
        Cached PlotLayout instance
    """
    return build_plot_layout(
        subplot_radius=settings.subplot_radius,
        subplot_distance=settings.subplot_distance,
        subplot_azimuths=tuple(settings.subplot_azimuths),
        quad_segments=quad_segments or settings.subplot_quad_segments,
    )
