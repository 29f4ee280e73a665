"""
Coverage-first voxel selection by stratified spatial sampling.

The XY footprint of the grid is split into ``bins_xy x bins_xy`` bins and the
budget is spent round-robin across the non-empty bins, one voxel per visit.
Sparse regions therefore keep a representative even when denser regions
would win a pure density ranking.
"""

from __future__ import annotations

import logging
import math
from typing import AbstractSet, Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from voxel_selection.contracts import BinSelectionMode, Grid, SelectionResult, StrategyName, Voxel
from voxel_selection.strategy import (
    NO_FORCED_KEYS,
    SelectionStrategy,
    add_force_included,
    budget_limit,
    unselected,
)

logger = logging.getLogger(__name__)

TARGET_VOXELS_PER_BIN = 4
MIN_AUTO_BINS_XY = 2
MAX_AUTO_BINS_XY = 20

BinKey = Tuple[int, int]


def _fixed_bin_count(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        bins = int(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return bins if bins >= 1 else None


def optimal_bin_count(target_count: float, options: Mapping[str, Any]) -> int:
    """Bins per axis: a caller-fixed positive count, or sized for ~4 voxels per bin."""
    fixed = options.get("coverage_bins_xy")
    if fixed is not None and fixed != "auto":
        bins = _fixed_bin_count(fixed)
        if bins is not None:
            return bins
        logger.warning("Ignoring invalid coverage_bins_xy=%r, using auto", fixed)

    bins = math.ceil(math.sqrt(max(0, target_count) / TARGET_VOXELS_PER_BIN))
    return max(MIN_AUTO_BINS_XY, min(MAX_AUTO_BINS_XY, bins))


def build_spatial_bins(
    voxels: Sequence[Voxel],
    grid: Grid,
    bins_xy: int,
) -> Dict[BinKey, List[Voxel]]:
    """Group voxels by XY bin, keeping first-seen bin order and input order within a bin."""
    if not voxels:
        return {}

    coords = np.array([(v.info.x, v.info.y) for v in voxels], dtype=float)
    if not np.isfinite(coords).all():
        bad = int((~np.isfinite(coords)).any(axis=1).sum())
        raise ValueError(f"{bad} voxel(s) have non-finite x/y coordinates")

    extent = np.array(
        [max(1, grid.num_voxels_x), max(1, grid.num_voxels_y)],
        dtype=float,
    )
    indices = np.clip(np.floor(coords / extent * bins_xy), 0, bins_xy - 1).astype(int)

    bins: Dict[BinKey, List[Voxel]] = {}
    for voxel, (bin_x, bin_y) in zip(voxels, indices.tolist()):
        bins.setdefault((bin_x, bin_y), []).append(voxel)
    return bins


def _pick_index(members: List[Voxel], mode: str, rng: Optional[np.random.Generator]) -> int:
    if len(members) == 1:
        return 0
    order = sorted(range(len(members)), key=lambda i: members[i].info.count, reverse=True)
    if mode == BinSelectionMode.MEDIAN.value:
        return order[len(order) // 2]
    if mode == BinSelectionMode.RANDOM.value and rng is not None:
        return order[int(rng.integers(len(order)))]
    return order[0]


def _draw_round_robin(
    bins: Dict[BinKey, List[Voxel]],
    selected: List[Voxel],
    included: set,
    limit: int,
    mode: str,
    rng: Optional[np.random.Generator],
) -> None:
    bin_keys = list(bins)
    # Every visit removes one voxel, so the candidate count bounds the loop.
    visits_left = sum(len(members) for members in bins.values())
    cursor = 0

    while len(selected) < limit and bin_keys and visits_left > 0:
        cursor %= len(bin_keys)
        bin_key = bin_keys[cursor]
        members = bins[bin_key]
        voxel = members.pop(_pick_index(members, mode, rng))
        visits_left -= 1

        if voxel.key not in included:
            selected.append(voxel)
            included.add(voxel.key)

        if members:
            cursor += 1
        else:
            del bins[bin_key]
            bin_keys.pop(cursor)


def _coverage_result(selected: List[Voxel], **extra: Any) -> SelectionResult:
    metadata = {
        "strategy": StrategyName.COVERAGE.value,
        "total_selected": len(selected),
        "selection_ratio": 1.0 if selected else 0.0,
    }
    metadata.update(extra)
    return SelectionResult(selected=selected, metadata=metadata)


def select_by_coverage(
    all_voxels: Sequence[Voxel],
    max_count: float,
    grid: Optional[Grid] = None,
    force_include: AbstractSet[str] = NO_FORCED_KEYS,
    options: Optional[Mapping[str, Any]] = None,
) -> SelectionResult:
    """Spread the budget across spatial bins.

    Degenerate grids and empty inputs are clamped rather than rejected.
    Non-finite coordinates raise ``ValueError``.
    """
    options = options or {}
    voxels = list(all_voxels or ())
    limit = budget_limit(max_count, len(voxels))
    logger.debug("Coverage selection: %d candidates, max %s", len(voxels), max_count)

    selected: List[Voxel] = []
    included: set = set()
    add_force_included(voxels, selected, included, force_include or NO_FORCED_KEYS, limit)
    if len(selected) >= limit:
        return _coverage_result(selected)

    remaining = unselected(voxels, included)
    # Auto bins are sized from the requested budget, not the population-capped limit.
    budget = max_count if math.isfinite(max_count) else limit
    bins_xy = optimal_bin_count(budget - len(selected), options)
    bins = build_spatial_bins(remaining, Grid.from_value(grid), bins_xy)
    total_bins = len(bins)

    mode = options.get("bin_selection_mode") or BinSelectionMode.HIGHEST.value
    rng = None
    if mode == BinSelectionMode.RANDOM.value:
        rng = np.random.default_rng(options.get("random_seed"))

    _draw_round_robin(bins, selected, included, limit, mode, rng)

    logger.debug(
        "Coverage selection completed: %d voxels from %d bins (%dx%d)",
        len(selected), total_bins, bins_xy, bins_xy,
    )
    return _coverage_result(selected, bins_xy=bins_xy, total_bins=total_bins)


def validate_coverage_options(options: Mapping[str, Any]) -> bool:
    mode = options.get("bin_selection_mode")
    if mode is not None and mode not in {m.value for m in BinSelectionMode}:
        return False
    bins = options.get("coverage_bins_xy")
    if bins is None or bins == "auto":
        return True
    return _fixed_bin_count(bins) is not None


COVERAGE_STRATEGY = SelectionStrategy(
    name=StrategyName.COVERAGE.value,
    select_fn=select_by_coverage,
    options_validator=validate_coverage_options,
)
