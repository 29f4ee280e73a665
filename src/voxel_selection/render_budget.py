"""Glue between the voxel binning output and the selector, for a renderer."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, FrozenSet, List, Mapping, Optional, Sequence, Union

from voxel_selection.contracts import Grid, SelectionStatistics, Voxel, VoxelInfo
from voxel_selection.density import top_n_keys
from voxel_selection.selector import NO_SELECTION, VoxelSelector

logger = logging.getLogger(__name__)

VoxelSource = Union[Mapping[str, Any], Sequence[Any]]


@dataclass
class RenderBudgetResult:
    """Voxels to draw plus the keys to highlight among them."""

    display_voxels: List[Voxel]
    highlight_keys: FrozenSet[str] = frozenset()
    strategy: str = NO_SELECTION
    clipped_non_empty: int = 0
    stats: Optional[SelectionStatistics] = None
    notes: List[str] = field(default_factory=list)


def voxels_from_data(voxel_data: Mapping[str, Any]) -> List[Voxel]:
    """Turn a ``{key: info}`` occupancy map into candidates, dropping empty cells."""
    voxels: List[Voxel] = []
    for key, info in voxel_data.items():
        voxel_info = VoxelInfo.from_value(info)
        if not voxel_info.count or voxel_info.count <= 0:
            continue
        voxels.append(Voxel(key=str(key), info=voxel_info))
    return voxels


def apply_render_budget(
    voxels: VoxelSource,
    max_render_voxels: Optional[int],
    grid: Union[Grid, Mapping[str, Any], None] = None,
    selector: Optional[VoxelSelector] = None,
    highlight_top_n: Optional[int] = None,
) -> RenderBudgetResult:
    """Select voxels only when the populated count exceeds ``max_render_voxels``.

    The TopN highlight set is computed over the voxels that end up displayed.
    ``highlight_top_n`` defaults to the selector's configured value.
    """
    if selector is None:
        selector = VoxelSelector()
    if isinstance(voxels, Mapping):
        candidates = voxels_from_data(voxels)
    else:
        candidates = [Voxel.coerce(v) for v in voxels]

    result = RenderBudgetResult(display_voxels=candidates)
    if max_render_voxels and len(candidates) > max_render_voxels:
        selection = selector.select_voxels(candidates, max_render_voxels, {"grid": grid})
        result.display_voxels = selection.selected_voxels
        result.strategy = selection.strategy
        result.clipped_non_empty = selection.clipped_non_empty
        result.stats = selection.stats
        if selection.stats.degraded:
            result.notes.append(f"degraded selection: {selection.stats.error}")
        logger.debug(
            "Applied %s strategy: %d voxels selected, %d clipped",
            selection.strategy, len(result.display_voxels), result.clipped_non_empty,
        )

    if highlight_top_n is None:
        highlight_top_n = selector.config.highlight_top_n
    result.highlight_keys = top_n_keys(result.display_voxels, highlight_top_n)
    if result.highlight_keys:
        logger.debug("TopN highlight: %d voxels", len(result.highlight_keys))
    return result


def format_selection_summary(stats: Optional[SelectionStatistics]) -> str:
    """One-line diagnostic such as ``"12,000 of 45,000 non-empty voxels shown (hybrid, coverage 30.0%)"``."""
    if stats is None:
        return "no voxel selection performed"

    details = [stats.strategy]
    if stats.coverage_ratio is not None:
        details.append(f"coverage {stats.coverage_ratio:.1%}")
    if stats.fallback_from:
        details.append(f"fell back from {stats.fallback_from}")
    return (
        f"{stats.selected_count:,} of {stats.total_count:,} non-empty voxels shown "
        f"({', '.join(details)})"
    )
