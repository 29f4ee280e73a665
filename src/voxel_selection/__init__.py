"""Public API for render-budget voxel selection."""

from voxel_selection.contracts import (
    BinSelectionMode,
    Grid,
    SelectionContractError,
    SelectionResult,
    SelectionStatistics,
    StrategyName,
    Voxel,
    VoxelInfo,
    VoxelSelection,
    VoxelSelectorConfig,
)
from voxel_selection.coverage import COVERAGE_STRATEGY, select_by_coverage
from voxel_selection.density import DENSITY_STRATEGY, select_by_density, top_n_keys
from voxel_selection.hybrid import HYBRID_STRATEGY, select_hybrid
from voxel_selection.render_budget import (
    RenderBudgetResult,
    apply_render_budget,
    format_selection_summary,
    voxels_from_data,
)
from voxel_selection.selector import STRATEGIES, VoxelSelector, get_strategy
from voxel_selection.strategy import SelectionStrategy

__all__ = [
    "BinSelectionMode",
    "COVERAGE_STRATEGY",
    "DENSITY_STRATEGY",
    "Grid",
    "HYBRID_STRATEGY",
    "RenderBudgetResult",
    "STRATEGIES",
    "SelectionContractError",
    "SelectionResult",
    "SelectionStatistics",
    "SelectionStrategy",
    "StrategyName",
    "Voxel",
    "VoxelInfo",
    "VoxelSelection",
    "VoxelSelector",
    "VoxelSelectorConfig",
    "apply_render_budget",
    "format_selection_summary",
    "get_strategy",
    "select_by_coverage",
    "select_by_density",
    "select_hybrid",
    "top_n_keys",
    "voxels_from_data",
]
