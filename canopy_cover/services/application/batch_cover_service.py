"""
Application service: Batch crown cover computation across plots.
"""
from collections import Counter
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional, Sequence
import logging

import numpy as np
import pandas as pd

from canopy_cover.config import settings
from canopy_cover.domain.exceptions import CoverComputationError
from canopy_cover.domain.models import (
    CoverStatistics,
    PlotFailure,
    TreeDiagnostic,
    TreeRecord,
)
from canopy_cover.services.domain.crown_cover_engine import (
    CrownCoverEngine,
    PlotCoverResult,
)
from canopy_cover.services.domain.tree_preparation import (
    CrownWidthModel,
    PreparationConfig,
    group_trees_by_plot,
    prepare_trees,
)

logger = logging.getLogger(__name__)

# Handoff columns for the modeling stage, in order
COVER_COLUMNS = [
    "plot_key",
    "total_crown_area",
    "area_covered",
    "overlap_prop",
    "crown_cover_prop_no_overlap",
    "crown_cover_prop_with_overlap",
]
STAND_COLUMNS = [
    "tree_count",
    "excluded_tree_count",
    "trees_per_acre",
    "basal_area_per_acre",
]


@dataclass
class BatchCoverResult:
    """Cover statistics for a batch of plots, with what was left out."""
    statistics: list[CoverStatistics] = field(default_factory=list)
    failures: list[PlotFailure] = field(default_factory=list)
    diagnostics: list[TreeDiagnostic] = field(default_factory=list)

    @property
    def excluded_tree_count(self) -> int:
        return len(self.diagnostics)

    @property
    def failed_plot_count(self) -> int:
        return len(self.failures)

    def to_dataframe(self) -> pd.DataFrame:
        """
        Results table with one row per successfully computed plot.

        Returns:
            DataFrame with the cover columns followed by the stand columns
        """
        columns = COVER_COLUMNS + STAND_COLUMNS
        if not self.statistics:
            return pd.DataFrame(columns=columns)
        rows = [s.model_dump() for s in self.statistics]
        df = pd.DataFrame(rows, columns=columns)
        df["overlap_prop"] = pd.to_numeric(df["overlap_prop"], errors="coerce")
        return df

    def modeling_table(self) -> pd.DataFrame:
        """
        Results table without plots that have no crown area.

        Those plots have no defined overlap proportion and are left out of
        downstream statistics.
        """
        df = self.to_dataframe()
        return df[df["overlap_prop"].notna()].reset_index(drop=True)


def _compute_plot(
    engine: CrownCoverEngine,
    plot_key: str,
    trees: list[TreeRecord],
) -> tuple[str, Optional[PlotCoverResult], Optional[PlotFailure]]:
    """
    Run the engine for one plot, converting any failure into a PlotFailure.

    Module level so it can be shipped to worker processes.
    """
    try:
        result = engine.compute_plot_cover(plot_key, trees, include_geometry=False)
        return plot_key, result, None
    except CoverComputationError as e:
        logger.error(str(e))
        return plot_key, None, PlotFailure(
            plot_key=plot_key,
            error_type=type(e).__name__,
            message=e.message,
        )
    except Exception as e:
        logger.exception(f"Cover computation failed for plot {plot_key}: {e}")
        return plot_key, None, PlotFailure(
            plot_key=plot_key,
            error_type=type(e).__name__,
            message=str(e),
        )


class BatchCoverService:
    """
    Application service for batch cover computation.

    Orchestrates tree preparation and the per-plot engine. Plots are
    independent, so they may run in a process pool; a failing plot is
    recorded and excluded without aborting the batch.
    """

    def __init__(
        self,
        engine: Optional[CrownCoverEngine] = None,
        workers: Optional[int] = None,
    ):
        """
        Initialize the service with dependencies.

        Args:
            engine: Crown cover engine shared by all plots
            workers: Worker processes (1 = sequential, default from settings)
        """
        self.engine = engine or CrownCoverEngine()
        self.workers = max(1, workers or settings.batch_workers)

    def compute(self, trees_by_plot: Mapping[str, list[TreeRecord]]) -> BatchCoverResult:
        """
        Compute cover statistics for every plot.

        Args:
            trees_by_plot: Mapping of plot key to its prepared trees

        Returns:
            BatchCoverResult with statistics sorted by plot key
        """
        logger.info(f"Computing crown cover for {len(trees_by_plot)} plots "
                    f"with {self.workers} worker(s)")

        if self.workers == 1 or len(trees_by_plot) <= 1:
            outcomes = [
                _compute_plot(self.engine, plot_key, list(trees))
                for plot_key, trees in trees_by_plot.items()
            ]
        else:
            outcomes = self._compute_parallel(trees_by_plot)

        result = BatchCoverResult()
        for plot_key, plot_result, failure in sorted(outcomes, key=lambda o: o[0]):
            if failure is not None:
                result.failures.append(failure)
                continue
            result.statistics.append(plot_result.statistics)
            result.diagnostics.extend(plot_result.diagnostics)

        logger.info(f"Computed {len(result.statistics)} plots, "
                    f"{result.failed_plot_count} failed, "
                    f"{result.excluded_tree_count} trees excluded")
        return result

    def _compute_parallel(
        self,
        trees_by_plot: Mapping[str, list[TreeRecord]],
    ) -> list[tuple[str, Optional[PlotCoverResult], Optional[PlotFailure]]]:
        """Run plots in a process pool; pending plots are cancelled on interrupt."""
        outcomes = []

        with ProcessPoolExecutor(max_workers=self.workers) as executor:
            futures = {
                executor.submit(_compute_plot, self.engine, plot_key, list(trees)): plot_key
                for plot_key, trees in trees_by_plot.items()
            }
            try:
                for future in as_completed(futures):
                    plot_key = futures[future]
                    try:
                        outcomes.append(future.result())
                    except Exception as e:
                        logger.error(f"Worker failed for plot {plot_key}: {e}")
                        outcomes.append((plot_key, None, PlotFailure(
                            plot_key=plot_key,
                            error_type=type(e).__name__,
                            message=str(e),
                        )))
            except KeyboardInterrupt:
                logger.warning("Batch interrupted, cancelling pending plots")
                executor.shutdown(wait=False, cancel_futures=True)
                raise

        return outcomes

    def run_pipeline(
        self,
        records: Iterable[TreeRecord],
        crown_width_model: Optional[CrownWidthModel] = None,
        preparation_config: Optional[PreparationConfig] = None,
    ) -> BatchCoverResult:
        """
        Prepare raw tree records and compute cover for every plot.

        Plots whose trees are all dropped during preparation still get a
        zero-cover row. Each row's excluded_tree_count includes the trees
        dropped during preparation.

        Args:
            records: Raw tree records from any number of plots
            crown_width_model: Crown width predictor for records without a width
            preparation_config: Tree preparation configuration

        Returns:
            BatchCoverResult including preparation diagnostics
        """
        records = list(records)
        plot_keys = list(group_trees_by_plot(records))

        prepared = prepare_trees(records, crown_width_model, preparation_config)
        grouped = group_trees_by_plot(prepared.trees)
        trees_by_plot = {key: grouped.get(key, []) for key in plot_keys}

        result = self.compute(trees_by_plot)

        # Rows count every tree dropped for the plot, preparation included
        dropped = Counter(d.plot_key for d in prepared.diagnostics)
        result.statistics = [
            s.model_copy(update={
                "excluded_tree_count": s.excluded_tree_count + dropped[s.plot_key],
            })
            for s in result.statistics
        ]
        result.diagnostics = prepared.diagnostics + result.diagnostics
        return result


def split_plot_keys(
    plot_keys: Sequence[str],
    validation_fraction: float = 0.2,
    seed: Optional[int] = None,
) -> tuple[list[str], list[str]]:
    """
    Randomly partition plot keys into training and validation sets.

    Args:
        plot_keys: Plot keys (duplicates are ignored)
        validation_fraction: Share of plots held out, in [0, 1)
        seed: Random seed; the same seed gives the same partition

    Returns:
        Tuple of (training keys, validation keys), each sorted
    """
    if not 0 <= validation_fraction < 1:
        raise ValueError(f"validation_fraction must be in [0, 1), got {validation_fraction}")

    keys = sorted(set(plot_keys))
    rng = np.random.default_rng(seed)
    order = rng.permutation(len(keys))
    n_validation = int(round(len(keys) * validation_fraction))

    validation = sorted(keys[i] for i in order[:n_validation])
    training = sorted(keys[i] for i in order[n_validation:])
    return training, validation
