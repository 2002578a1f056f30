"""
Polar coordinate utilities for plot-local transformations.

Inventory trees and subplots are located by distance and azimuth, with the
azimuth measured in degrees clockwise from north (the +y axis).
"""
from typing import Sequence, Tuple
import numpy as np


def polar_to_offset(distance: float, azimuth: float) -> Tuple[float, float]:
    """
    Convert a distance/azimuth pair to a Cartesian (x, y) offset.

    Args:
        distance: Distance from the origin
        azimuth: Degrees clockwise from north

    Returns:
        (x, y) offset, x towards east and y towards north
    """
    theta = np.deg2rad(azimuth)
    return (float(distance * np.sin(theta)), float(distance * np.cos(theta)))


def polar_to_offsets(
    distances: Sequence[float],
    azimuths: Sequence[float],
) -> np.ndarray:
    """
    Vectorized version of polar_to_offset.

    Args:
        distances: Distances from the origin
        azimuths: Degrees clockwise from north, same length as distances

    Returns:
        Array of shape (n, 2) holding (x, y) offsets
    """
    d = np.asarray(distances, dtype=float)
    theta = np.deg2rad(np.asarray(azimuths, dtype=float))
    return np.column_stack((d * np.sin(theta), d * np.cos(theta)))


def offset_from(
    origin: Tuple[float, float],
    distance: float,
    azimuth: float,
) -> Tuple[float, float]:
    """
    Locate a point by distance and azimuth from an origin.

    Args:
        origin: (x, y) origin coordinate
        distance: Distance from the origin
        azimuth: Degrees clockwise from north

    Returns:
        Absolute (x, y) coordinate
    """
    dx, dy = polar_to_offset(distance, azimuth)
    return (origin[0] + dx, origin[1] + dy)
