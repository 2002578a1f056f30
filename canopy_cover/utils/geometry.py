"""
Planar geometry helper functions.

Provides utilities for:
- Disk generation around a point (buffering)
- Clipping a footprint to a boundary
- Dissolving footprints into one polygon
- Area computation with sliver tolerance
"""
from contextlib import contextmanager
from typing import Iterable, Iterator
import warnings
import logging

import numpy as np
from shapely.errors import GEOSException
from shapely.geometry import Point, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union
from shapely.validation import make_valid

logger = logging.getLogger(__name__)

POLYGONAL_TYPES = ("Polygon", "MultiPolygon")


@contextmanager
def suppress_geometry_warnings() -> Iterator[None]:
    """
    Silence floating point warnings raised by GEOS/numpy on degenerate input.

    Near-zero-width slivers produced by clipping emit RuntimeWarnings
    ("invalid value encountered in intersection") that are not failures.
    """
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        with np.errstate(invalid="ignore", divide="ignore"):
            yield


def empty_polygon() -> Polygon:
    """Return an empty polygon."""
    return Polygon()


def make_disk(
    center: tuple[float, float],
    radius: float,
    quad_segments: int = 64,
) -> Polygon:
    """
    Build a polygonal disk around a point.

    Args:
        center: (x, y) coordinate tuple
        radius: Disk radius, same units as the coordinates
        quad_segments: Number of segments used per quarter circle

    Returns:
        Polygon approximating the disk (empty when radius <= 0)
    """
    if not np.isfinite(radius) or radius <= 0:
        return empty_polygon()
    return Point(center).buffer(radius, quad_segs=quad_segments)


def polygonal_part(geometry: BaseGeometry) -> BaseGeometry:
    """
    Drop points and lines left over from a Boolean operation.

    Intersections of polygons that merely touch yield LineStrings or Points
    (possibly inside a GeometryCollection); those carry no area.

    Args:
        geometry: Any shapely geometry

    Returns:
        Polygon or MultiPolygon (empty polygon when nothing remains)
    """
    if geometry.is_empty:
        return empty_polygon()
    if geometry.geom_type in POLYGONAL_TYPES:
        return geometry
    if geometry.geom_type == "GeometryCollection":
        parts = [g for g in geometry.geoms if g.geom_type in POLYGONAL_TYPES and not g.is_empty]
        if not parts:
            return empty_polygon()
        return unary_union(parts)
    return empty_polygon()


def safe_intersection(geometry: BaseGeometry, other: BaseGeometry) -> BaseGeometry:
    """
    Intersect two geometries, repairing invalid input once on failure.

    Args:
        geometry: First geometry
        other: Second geometry

    Returns:
        Polygonal intersection

    Raises:
        GEOSException: If the intersection fails even on repaired input
    """
    with suppress_geometry_warnings():
        try:
            result = geometry.intersection(other)
        except GEOSException as e:
            logger.debug(f"Intersection failed ({e}), retrying on repaired geometry")
            result = make_valid(geometry).intersection(make_valid(other))
    return polygonal_part(result)


def clip_to_boundary(footprint: BaseGeometry, boundary: BaseGeometry) -> BaseGeometry:
    """
    Clip a footprint to a boundary polygon.

    Footprints whose bounding boxes miss the boundary short-circuit to empty.

    Args:
        footprint: Footprint polygon (e.g. a crown disk)
        boundary: Clipping polygon (e.g. the sampled plot area)

    Returns:
        Clipped polygon, possibly empty
    """
    if footprint.is_empty or boundary.is_empty:
        return empty_polygon()
    if not footprint.intersects(boundary):
        return empty_polygon()
    if boundary.contains(footprint):
        return footprint
    return safe_intersection(footprint, boundary)


def dissolve(geometries: Iterable[BaseGeometry]) -> BaseGeometry:
    """
    Union (dissolve) geometries into a single polygonal geometry.

    Args:
        geometries: Iterable of shapely geometries

    Returns:
        Polygon or MultiPolygon covering every input (empty when no input has area)
    """
    parts = [g for g in geometries if not g.is_empty]
    if not parts:
        return empty_polygon()

    with suppress_geometry_warnings():
        try:
            merged = unary_union(parts)
        except GEOSException as e:
            logger.debug(f"Union of {len(parts)} parts failed ({e}), retrying on repaired geometry")
            merged = unary_union([make_valid(g) for g in parts])
    return polygonal_part(merged)


def area_of(geometry: BaseGeometry, tolerance: float = 0.0) -> float:
    """
    Calculate the area of a geometry, treating slivers as zero.

    Args:
        geometry: Any shapely geometry
        tolerance: Areas at or below this value are reported as 0.0

    Returns:
        Area in squared coordinate units
    """
    if geometry.is_empty:
        return 0.0
    area = float(geometry.area)
    if not np.isfinite(area) or area <= tolerance:
        return 0.0
    return area
