"""
Density-first voxel selection.

Voxels are ranked by occupancy count (highest first). Forced voxels are placed
ahead of the ranking so a low-ranked forced voxel is never dropped in favour
of a denser one.
"""

from __future__ import annotations

import logging
import math
import numbers
from collections.abc import Set as AbstractSetABC
from typing import AbstractSet, Any, FrozenSet, List, Mapping, Optional, Sequence

from voxel_selection.contracts import Grid, SelectionContractError, SelectionResult, StrategyName, Voxel
from voxel_selection.strategy import NO_FORCED_KEYS, SelectionStrategy, budget_limit, merge_unique

logger = logging.getLogger(__name__)


def rank_by_density(voxels: Sequence[Voxel]) -> List[Voxel]:
    """Copy of ``voxels`` sorted by descending count; ties keep input order."""
    return sorted(voxels, key=lambda voxel: voxel.info.count, reverse=True)


def top_n_keys(voxels: Sequence[Voxel], n: int) -> FrozenSet[str]:
    """Keys of the ``n`` densest voxels."""
    if n <= 0 or not voxels:
        return frozenset()
    return frozenset(voxel.key for voxel in rank_by_density(voxels)[:n])


def _check_contract(all_voxels: Any, max_count: Any, force_include: Any) -> None:
    if not isinstance(all_voxels, (list, tuple)):
        raise SelectionContractError(
            f"all_voxels must be a list of voxels, got {type(all_voxels).__name__}",
        )
    if (
        isinstance(max_count, bool)
        or not isinstance(max_count, numbers.Real)
        or math.isnan(max_count)
        or max_count < 0
    ):
        raise SelectionContractError(
            f"max_count must be a non-negative number, got {max_count!r}",
        )
    if not isinstance(force_include, AbstractSetABC):
        raise SelectionContractError(
            f"force_include must be a set of voxel keys, got {type(force_include).__name__}",
        )


def select_by_density(
    all_voxels: Sequence[Voxel],
    max_count: float,
    grid: Optional[Grid] = None,
    force_include: AbstractSet[str] = NO_FORCED_KEYS,
    options: Optional[Mapping[str, Any]] = None,
) -> SelectionResult:
    """Select the densest voxels, forced voxels first.

    Args:
        all_voxels: Candidate voxels (not mutated).
        max_count: Render budget.
        grid: Unused; accepted for a uniform strategy signature.
        force_include: Keys that must be kept while the budget allows.
        options: Unused.

    Returns:
        SelectionResult whose non-forced tail is in descending count order.

    Raises:
        SelectionContractError: on a wrongly typed argument.
    """
    _check_contract(all_voxels, max_count, force_include)

    ranked = rank_by_density(all_voxels)
    limit = budget_limit(max_count, len(ranked))
    selected: List[Voxel] = []
    included = set()

    merge_unique((v for v in ranked if v.key in force_include), selected, included, limit)
    forced_count = len(selected)
    merge_unique(ranked, selected, included, limit)

    total = len(all_voxels)
    counts = [voxel.info.count for voxel in selected]
    metadata = {
        "strategy": StrategyName.DENSITY.value,
        "total_voxels": total,
        "selected_count": len(selected),
        "clipped_count": max(0, total - len(selected)),
        "force_included_count": forced_count,
        "density_range": {
            "max": max(counts) if counts else 0,
            "min": min(counts) if counts else 0,
        },
    }
    logger.debug(
        "Density selection: %d of %d voxels (forced=%d)",
        len(selected), total, forced_count,
    )
    return SelectionResult(selected=selected, metadata=metadata)


DENSITY_STRATEGY = SelectionStrategy(
    name=StrategyName.DENSITY.value,
    select_fn=select_by_density,
)
