"""
Selection strategy contract shared by the density, coverage and hybrid variants.

A strategy is a named select function plus an options validator. The set of
variants is closed (see ``StrategyName``) and they are looked up by name in
``selector.STRATEGIES`` rather than subclassed.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass
from typing import AbstractSet, Any, Callable, Iterable, List, Mapping, Optional, Set

from voxel_selection.contracts import Grid, SelectionResult, Voxel

SelectFn = Callable[..., SelectionResult]
OptionsValidator = Callable[[Mapping[str, Any]], bool]

NO_FORCED_KEYS: AbstractSet[str] = frozenset()


def accept_any_options(options: Mapping[str, Any]) -> bool:
    return True


@dataclass(frozen=True)
class SelectionStrategy:
    """A pluggable voxel selection algorithm."""

    name: str
    select_fn: SelectFn
    options_validator: OptionsValidator = accept_any_options

    def select(
        self,
        all_voxels: List[Voxel],
        max_count: float,
        grid: Optional[Grid] = None,
        force_include: AbstractSet[str] = NO_FORCED_KEYS,
        options: Optional[Mapping[str, Any]] = None,
    ) -> SelectionResult:
        """Pick at most ``max_count`` voxels; ``all_voxels`` is never mutated."""
        return self.select_fn(all_voxels, max_count, grid, force_include, options)

    def get_strategy_name(self) -> str:
        return self.name

    def validate_options(self, options: Optional[Mapping[str, Any]]) -> bool:
        return bool(self.options_validator(options or {}))


def budget_limit(max_count: Any, available: int) -> int:
    """Number of slots actually usable: ``floor(max_count)`` capped by ``available``."""
    if isinstance(max_count, bool) or not isinstance(max_count, numbers.Real):
        return 0
    if math.isnan(max_count) or max_count <= 0:
        return 0
    if math.isinf(max_count):
        return available
    return min(available, math.floor(max_count))


def add_force_included(
    voxels: Iterable[Voxel],
    selected: List[Voxel],
    included: Set[str],
    force_include: AbstractSet[str],
    limit: int,
) -> None:
    """Append forced voxels in iteration order until ``limit`` is reached."""
    if not force_include:
        return
    for voxel in voxels:
        if len(selected) >= limit:
            break
        if voxel.key in force_include and voxel.key not in included:
            selected.append(voxel)
            included.add(voxel.key)


def merge_unique(
    candidates: Iterable[Voxel],
    selected: List[Voxel],
    included: Set[str],
    limit: int,
) -> int:
    """Append candidates not yet included; returns how many were added."""
    added = 0
    for voxel in candidates:
        if len(selected) >= limit:
            break
        if voxel.key in included:
            continue
        selected.append(voxel)
        included.add(voxel.key)
        added += 1
    return added


def unselected(voxels: Iterable[Voxel], included: AbstractSet[str]) -> List[Voxel]:
    return [voxel for voxel in voxels if voxel.key not in included]
