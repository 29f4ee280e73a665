"""
Render-budget voxel selection orchestrator.

``VoxelSelector`` validates input, computes the TopN force set, dispatches to
the configured strategy and falls back to density selection when the strategy
fails on bad data. The statistics of the latest call are returned and also kept
in a single slot (last write wins) for ``get_last_selection_stats``.
"""

from __future__ import annotations

import logging
import math
import numbers
from typing import Any, Dict, List, Mapping, Optional, Sequence

from voxel_selection.contracts import (
    Grid,
    SelectionResult,
    SelectionStatistics,
    StrategyName,
    Voxel,
    VoxelSelection,
    VoxelSelectorConfig,
)
from voxel_selection.coverage import COVERAGE_STRATEGY
from voxel_selection.density import DENSITY_STRATEGY, top_n_keys
from voxel_selection.hybrid import HYBRID_STRATEGY
from voxel_selection.strategy import SelectionStrategy

logger = logging.getLogger(__name__)

STRATEGIES: Dict[str, SelectionStrategy] = {
    strategy.name: strategy
    for strategy in (DENSITY_STRATEGY, COVERAGE_STRATEGY, HYBRID_STRATEGY)
}

NO_SELECTION = "none"
FAILED_SELECTION = "error"


def get_strategy(name: str) -> SelectionStrategy:
    """Look up a strategy by name; raises ``ValueError`` for unknown names."""
    try:
        return STRATEGIES[StrategyName(name).value]
    except ValueError:
        raise ValueError(
            f"Unknown selection strategy '{name}'. Expected one of {sorted(STRATEGIES)}.",
        ) from None


def _is_positive_budget(max_count: Any) -> bool:
    if isinstance(max_count, bool) or not isinstance(max_count, numbers.Real):
        return False
    return not math.isnan(max_count) and max_count > 0


def _stats_coverage_ratio(result: SelectionResult) -> Optional[float]:
    strategy = result.strategy
    if strategy == StrategyName.HYBRID.value:
        return float(result.metadata.get("coverage_ratio", 0.0))
    if strategy == StrategyName.COVERAGE.value:
        return float(result.metadata.get("selection_ratio", 0.0))
    return None


class VoxelSelector:
    """Chooses which populated voxels to draw when there are too many."""

    def __init__(self, config: Optional[VoxelSelectorConfig] = None):
        if config is None:
            config = VoxelSelectorConfig()
        self.config = config
        self.strategy = get_strategy(config.render_limit_strategy)
        self._last_stats: Optional[SelectionStatistics] = None

    def get_last_selection_stats(self) -> Optional[SelectionStatistics]:
        return self._last_stats

    def select_voxels(
        self,
        all_voxels: Optional[Sequence[Any]],
        max_count: float,
        context: Optional[Mapping[str, Any]] = None,
    ) -> VoxelSelection:
        """Select at most ``max_count`` voxels for rendering.

        Args:
            all_voxels: Populated voxels (``Voxel`` or ``{"key", "info"}`` mappings).
            max_count: Render budget.
            context: Optional ``{"grid": ...}``; other keys are ignored.

        Returns:
            VoxelSelection. Never raises for bad data: strategy failures fall
            back to density selection and are recorded in ``stats.error``.
        """
        context = context or {}
        total = len(all_voxels) if all_voxels else 0

        if total == 0 or not _is_positive_budget(max_count):
            logger.debug("Skipping selection: voxels=%d max_count=%r", total, max_count)
            return self._finish([], NO_SELECTION, total, None)

        try:
            candidates = [Voxel.coerce(v) for v in all_voxels]
        except (KeyError, TypeError) as exc:
            logger.warning("Malformed voxel input, nothing selected: %s", exc)
            return self._finish([], FAILED_SELECTION, total, None, error=_describe(exc))

        grid = Grid.from_value(context.get("grid"))
        options = self.config.strategy_options()
        if not self.strategy.validate_options(options):
            logger.warning("Invalid options for %s strategy: %r", self.strategy.name, options)

        try:
            result = self._run(self.strategy, candidates, max_count, grid, options)
        except Exception as exc:
            logger.warning(
                "%s selection failed (%s); falling back to density",
                self.strategy.name, exc, exc_info=True,
            )
            error = _describe(exc)
            try:
                result = self._run(DENSITY_STRATEGY, candidates, max_count, grid, options)
            except Exception as fallback_exc:
                logger.error("Density fallback failed, nothing selected: %s", fallback_exc)
                return self._finish(
                    [], FAILED_SELECTION, total, None,
                    error=f"{error}; fallback: {_describe(fallback_exc)}",
                    fallback_from=self.strategy.name,
                )
            return self._finish(
                result.selected, result.strategy, total, _stats_coverage_ratio(result),
                metadata=result.metadata, error=error, fallback_from=self.strategy.name,
            )

        return self._finish(
            result.selected, result.strategy, total, _stats_coverage_ratio(result),
            metadata=result.metadata,
        )

    def _run(
        self,
        strategy: SelectionStrategy,
        candidates: List[Voxel],
        max_count: float,
        grid: Grid,
        options: Mapping[str, Any],
    ) -> SelectionResult:
        force_include = top_n_keys(candidates, self.config.highlight_top_n)
        return strategy.select(candidates, max_count, grid, force_include, options)

    def _finish(
        self,
        selected: List[Voxel],
        strategy: str,
        total: int,
        coverage_ratio: Optional[float],
        metadata: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
        fallback_from: Optional[str] = None,
    ) -> VoxelSelection:
        stats = SelectionStatistics(
            strategy=strategy,
            selected_count=len(selected),
            total_count=total,
            clipped_non_empty=max(0, total - len(selected)),
            coverage_ratio=coverage_ratio,
            error=error,
            fallback_from=fallback_from,
        )
        self._last_stats = stats

        if strategy not in (NO_SELECTION, FAILED_SELECTION):
            logger.info(
                "Selection complete: strategy=%s selected=%d total=%d clipped=%d%s",
                strategy, stats.selected_count, total, stats.clipped_non_empty,
                f" fallback_from={fallback_from}" if fallback_from else "",
            )

        metadata = dict(metadata or {"strategy": strategy})
        if error is not None:
            metadata["error"] = error
        return VoxelSelection(
            selected_voxels=list(selected),
            strategy=strategy,
            clipped_non_empty=stats.clipped_non_empty,
            coverage_ratio=coverage_ratio,
            stats=stats,
            metadata=metadata,
        )


def _describe(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}"
