"""
Domain exceptions for canopy cover computation.
"""
from typing import Optional


class CanopyCoverError(Exception):
    """Base exception for all canopy cover errors."""
    pass


class TreeValidationError(CanopyCoverError):
    """Raised when a single tree cannot enter the cover computation."""

    def __init__(self, reason: str, plot_key: Optional[str] = None, subplot: Optional[int] = None):
        self.reason = reason
        self.plot_key = plot_key
        self.subplot = subplot
        message = reason
        if plot_key is not None:
            message = f"Plot '{plot_key}' subplot {subplot}: {reason}"
        super().__init__(message)


class TreePlacementError(TreeValidationError):
    """Raised when a tree's subplot, distance or azimuth cannot be resolved."""
    pass


class CoverComputationError(CanopyCoverError):
    """Raised when the geometry engine fails for a whole plot."""

    def __init__(self, plot_key: str, message: str):
        self.plot_key = plot_key
        self.message = message
        super().__init__(f"Cover computation failed for plot '{plot_key}': {message}")
