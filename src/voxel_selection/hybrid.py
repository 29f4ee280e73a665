"""
Hybrid voxel selection: a coverage share of the budget, the rest by density.

Both phases run on the voxels still unselected at that point, so nothing is
counted twice and the density phase picks up whatever the coverage phase
could not fill.
"""

from __future__ import annotations

import logging
import math
import numbers
from typing import AbstractSet, Any, List, Mapping, Optional, Sequence

from voxel_selection.contracts import BinSelectionMode, Grid, SelectionResult, StrategyName, Voxel
from voxel_selection.coverage import COVERAGE_STRATEGY
from voxel_selection.density import DENSITY_STRATEGY
from voxel_selection.strategy import (
    NO_FORCED_KEYS,
    SelectionStrategy,
    add_force_included,
    budget_limit,
    merge_unique,
    unselected,
)

logger = logging.getLogger(__name__)

DEFAULT_COVERAGE_RATIO = 0.3


def _ratio_value(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def determine_coverage_ratio(options: Mapping[str, Any]) -> float:
    """``min_coverage_ratio``, else ``coverage_ratio``, else 0.3; clamped to [0, 1]."""
    for name in ("min_coverage_ratio", "coverage_ratio"):
        if options.get(name) is None:
            continue
        ratio = _ratio_value(options[name])
        if ratio is None:
            logger.warning("Ignoring non-numeric %s=%r", name, options[name])
            continue
        return max(0.0, min(1.0, ratio))
    return DEFAULT_COVERAGE_RATIO


def _run_phase(
    strategy: SelectionStrategy,
    voxels: List[Voxel],
    count: int,
    grid: Optional[Grid],
    selected: List[Voxel],
    included: set,
    limit: int,
    options: Mapping[str, Any],
) -> int:
    pool = unselected(voxels, included)
    if count <= 0 or not pool:
        return 0
    result = strategy.select(pool, count, grid, NO_FORCED_KEYS, options)
    return merge_unique(result.selected, selected, included, limit)


def _hybrid_result(
    selected: List[Voxel],
    target_ratio: float,
    coverage_selected: int,
    density_selected: int,
) -> SelectionResult:
    total = len(selected)
    metadata = {
        "strategy": StrategyName.HYBRID.value,
        "total_selected": total,
        "coverage_selected": coverage_selected,
        "density_selected": density_selected,
        "coverage_ratio": coverage_selected / total if total else 0.0,
        "target_coverage_ratio": target_ratio,
        "selection_ratio": 1.0 if total else 0.0,
    }
    return SelectionResult(selected=selected, metadata=metadata)


def select_hybrid(
    all_voxels: Sequence[Voxel],
    max_count: float,
    grid: Optional[Grid] = None,
    force_include: AbstractSet[str] = NO_FORCED_KEYS,
    options: Optional[Mapping[str, Any]] = None,
) -> SelectionResult:
    """Split the budget between the coverage and density strategies."""
    options = options or {}
    voxels = list(all_voxels or ())
    limit = budget_limit(max_count, len(voxels))
    target_ratio = determine_coverage_ratio(options)
    logger.debug("Hybrid selection: %d candidates, max %s", len(voxels), max_count)

    selected: List[Voxel] = []
    included: set = set()
    add_force_included(voxels, selected, included, force_include or NO_FORCED_KEYS, limit)
    if len(selected) >= limit:
        return _hybrid_result(selected, target_ratio, 0, 0)

    remaining = limit - len(selected)
    coverage_count = math.floor(remaining * target_ratio)
    density_count = remaining - coverage_count
    logger.debug("Hybrid split: %d coverage, %d density", coverage_count, density_count)

    coverage_options = dict(options)
    coverage_options["bin_selection_mode"] = (
        options.get("hybrid_coverage_mode") or BinSelectionMode.HIGHEST.value
    )
    coverage_added = _run_phase(
        COVERAGE_STRATEGY, voxels, coverage_count, grid,
        selected, included, limit, coverage_options,
    )

    density_count += coverage_count - coverage_added
    density_added = _run_phase(
        DENSITY_STRATEGY, voxels, density_count, grid,
        selected, included, limit, options,
    )

    logger.debug(
        "Hybrid selection completed: %d total (%d coverage, %d density)",
        len(selected), coverage_added, density_added,
    )
    return _hybrid_result(selected, target_ratio, coverage_added, density_added)


def validate_hybrid_options(options: Mapping[str, Any]) -> bool:
    for name in ("min_coverage_ratio", "coverage_ratio"):
        if options.get(name) is not None and _ratio_value(options[name]) is None:
            return False
    mode = options.get("hybrid_coverage_mode")
    return mode is None or mode in {m.value for m in BinSelectionMode}


HYBRID_STRATEGY = SelectionStrategy(
    name=StrategyName.HYBRID.value,
    select_fn=select_hybrid,
    options_validator=validate_hybrid_options,
)
