"""
Domain service: Prepare raw inventory trees for the cover computation.

Preparation applies the upstream inclusion rules and fills in crown widths:
- Live trees only
- Trees at or above the minimum diameter
- Crown width predicted by an external model where not already present
- Missing predictions imputed from the mean of their diameter class
- Trees still lacking a positive crown width are dropped
"""
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Sequence
import logging
import math

import numpy as np
import pandas as pd

from canopy_cover.config import settings
from canopy_cover.domain.models import TreeDiagnostic, TreeRecord

logger = logging.getLogger(__name__)

CrownWidthModel = Callable[[Optional[int], float], Optional[float]]
"""External crown width predictor: (species code, diameter) -> width, None or NA"""


@dataclass
class PreparationConfig:
    """Configuration for tree preparation."""

    live_status_code: int = 1
    """STATUSCD value identifying live trees"""

    min_diameter: float = 5.0
    """Minimum diameter (inches) for inclusion"""

    diameter_class_width: float = 2.0
    """Width of the diameter classes used for crown width imputation"""


@dataclass
class PreparedTrees:
    """Trees ready for the cover engine plus what was dropped on the way."""
    trees: list[TreeRecord] = field(default_factory=list)
    diagnostics: list[TreeDiagnostic] = field(default_factory=list)
    imputed_count: int = 0


def is_valid_width(width: Optional[float]) -> bool:
    """True for a positive, finite crown width."""
    return width is not None and math.isfinite(width) and width > 0


def diameter_class(dia: float, class_width: float) -> int:
    """Index of the diameter class containing dia."""
    return int(math.floor(dia / class_width))


def default_config() -> PreparationConfig:
    return PreparationConfig(
        live_status_code=settings.live_status_code,
        min_diameter=settings.min_diameter,
        diameter_class_width=settings.diameter_class_width,
    )


def group_trees_by_plot(records: Iterable[TreeRecord]) -> dict[str, list[TreeRecord]]:
    """
    Partition tree records by plot key, preserving record order.

    Args:
        records: Tree records from any number of plots

    Returns:
        Mapping of plot key to that plot's trees
    """
    groups: dict[str, list[TreeRecord]] = {}
    for record in records:
        groups.setdefault(record.plt_cn, []).append(record)
    return groups


def _predict_width(
    tree: TreeRecord,
    crown_width_model: Optional[CrownWidthModel],
) -> Optional[float]:
    """Crown width already on the record, or the model's prediction."""
    if is_valid_width(tree.crown_width):
        return tree.crown_width
    if crown_width_model is None:
        return None

    try:
        width = crown_width_model(tree.spcd, tree.dia)
        if width is None or pd.isna(width):
            return None
        width = float(width)
    except (ValueError, KeyError, TypeError, ArithmeticError) as e:
        logger.debug(f"Crown width model failed for species {tree.spcd}, dia {tree.dia}: {e}")
        return None

    return width if is_valid_width(width) else None


def impute_crown_widths(
    trees: Sequence[TreeRecord],
    widths: Sequence[Optional[float]],
    class_width: float,
) -> tuple[list[Optional[float]], int]:
    """
    Fill missing crown widths with the mean width of their diameter class.

    First pass computes the mean valid width per diameter class, second
    pass fills the gaps. Trees in classes with no valid width stay missing.

    Args:
        trees: Tree records
        widths: Predicted widths aligned with trees (None where missing)
        class_width: Diameter class width (inches)

    Returns:
        Tuple of:
            - Widths with imputed values filled in
            - Number of imputed values
    """
    classes = np.array([diameter_class(t.dia, class_width) for t in trees], dtype=int)
    values = np.array([w if w is not None else np.nan for w in widths], dtype=float)
    valid = np.isfinite(values)

    # First pass: class means over valid predictions
    class_means = {
        int(c): float(np.mean(values[valid & (classes == c)]))
        for c in np.unique(classes[valid])
    }

    # Second pass: fill
    filled: list[Optional[float]] = []
    imputed = 0
    for c, w, ok in zip(classes, values, valid):
        if ok:
            filled.append(float(w))
        elif int(c) in class_means:
            filled.append(class_means[int(c)])
            imputed += 1
        else:
            filled.append(None)

    return filled, imputed


def prepare_trees(
    records: Iterable[TreeRecord],
    crown_width_model: Optional[CrownWidthModel] = None,
    config: Optional[PreparationConfig] = None,
) -> PreparedTrees:
    """
    Filter raw tree records and give every kept tree a crown width.

    Args:
        records: Raw tree records (any number of plots)
        crown_width_model: Predictor used where a record has no crown width
        config: Preparation configuration (defaults from settings)

    Returns:
        PreparedTrees with kept trees, diagnostics and the imputation count
    """
    config = config or default_config()
    result = PreparedTrees()
    candidates = []

    def exclude(tree: TreeRecord, reason: str) -> None:
        result.diagnostics.append(TreeDiagnostic(
            plot_key=tree.plt_cn, subplot=tree.subp, reason=reason,
        ))

    for tree in records:
        if tree.statuscd != config.live_status_code:
            exclude(tree, f"status {tree.statuscd} is not live")
        elif not math.isfinite(tree.dia) or tree.dia <= 0:
            exclude(tree, f"invalid diameter {tree.dia}")
        elif tree.dia < config.min_diameter:
            exclude(tree, f"diameter {tree.dia} below minimum {config.min_diameter}")
        else:
            candidates.append(tree)

    widths = [_predict_width(t, crown_width_model) for t in candidates]
    widths, result.imputed_count = impute_crown_widths(
        candidates, widths, config.diameter_class_width
    )

    for tree, width in zip(candidates, widths):
        if not is_valid_width(width):
            exclude(tree, "no crown width after imputation")
            continue
        result.trees.append(tree.model_copy(update={"crown_width": width}))

    logger.info(f"Prepared {len(result.trees)} trees "
                f"({len(result.diagnostics)} excluded, {result.imputed_count} crown widths imputed)")
    return result
