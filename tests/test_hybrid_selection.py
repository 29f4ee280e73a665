"""Tests for hybrid.py: coverage share plus density remainder."""
import time

import pytest

from voxel_selection.contracts import Voxel, VoxelInfo
from voxel_selection.coverage import COVERAGE_STRATEGY
from voxel_selection.hybrid import (
    DEFAULT_COVERAGE_RATIO,
    HYBRID_STRATEGY,
    determine_coverage_ratio,
    select_hybrid,
)


def _voxel(key, count, x, y):
    return Voxel(key=key, info=VoxelInfo(x=x, y=y, count=count))


@pytest.fixture
def ten_voxels():
    return [_voxel(f"h{i}", 10 * (i + 1), x=i, y=(i * 3) % 10) for i in range(10)]


class TestHybridSelection:
    def test_basic_selection(self, ten_voxels, grid):
        """Hybrid fills the budget with distinct voxels."""
        result = select_hybrid(ten_voxels, 6, grid)
        assert result.metadata["strategy"] == "hybrid"
        assert len(result.selected) == 6
        assert len({v.key for v in result.selected}) == 6

    def test_phase_counts_add_up(self, ten_voxels, grid):
        """A 0.5 ratio splits six slots three and three."""
        meta = select_hybrid(ten_voxels, 6, grid, options={"coverage_ratio": 0.5}).metadata
        assert meta["coverage_selected"] + meta["density_selected"] == meta["total_selected"]
        assert meta["coverage_selected"] == 3
        assert meta["density_selected"] == 3

    def test_actual_ratio_matches_counts(self, voxel_factory, grid):
        """Reported coverage_ratio is coverage_selected / total_selected."""
        meta = select_hybrid(voxel_factory(40), 11, grid, options={"coverage_ratio": 0.4}).metadata
        expected = meta["coverage_selected"] / meta["total_selected"]
        assert abs(meta["coverage_ratio"] - expected) < 1e-9

    def test_density_phase_takes_densest_unselected(self, ten_voxels, grid):
        """With no coverage share, hybrid is a density ranking."""
        result = select_hybrid(ten_voxels, 4, grid, options={"coverage_ratio": 0.0})
        assert [v.key for v in result.selected] == ["h9", "h8", "h7", "h6"]

    def test_does_not_mutate_input(self, ten_voxels, grid):
        """The caller's list is left untouched."""
        before = list(ten_voxels)
        select_hybrid(ten_voxels, 5, grid)
        assert ten_voxels == before

    def test_large_budget_returns_everything(self, ten_voxels, grid):
        """A budget above the population returns all voxels."""
        result = select_hybrid(ten_voxels, 100, grid)
        assert len(result.selected) == 10


class TestCoverageRatio:
    def test_default_ratio(self):
        """No ratio options means 0.3."""
        assert determine_coverage_ratio({}) == DEFAULT_COVERAGE_RATIO

    def test_min_coverage_ratio_wins(self):
        """min_coverage_ratio takes precedence over coverage_ratio."""
        assert determine_coverage_ratio({"min_coverage_ratio": 0.6, "coverage_ratio": 0.1}) == 0.6

    def test_ratio_is_clamped(self):
        """Ratios outside [0, 1] are clamped."""
        assert determine_coverage_ratio({"coverage_ratio": 1.7}) == 1.0
        assert determine_coverage_ratio({"coverage_ratio": -0.2}) == 0.0

    def test_non_numeric_ratio_ignored(self):
        """A non-numeric ratio is skipped for the next candidate."""
        assert determine_coverage_ratio({"min_coverage_ratio": "lots", "coverage_ratio": 0.4}) == 0.4

    @pytest.mark.parametrize("ratio", [0.0, 0.25, 0.5, 0.75, 1.0])
    def test_target_ratio_reported(self, ten_voxels, grid, ratio):
        """The requested ratio is echoed and the budget still filled."""
        result = select_hybrid(ten_voxels, 6, grid, options={"coverage_ratio": ratio})
        assert result.metadata["target_coverage_ratio"] == ratio
        assert len(result.selected) == 6
        assert 0.0 <= result.metadata["coverage_ratio"] <= 1.0

    def test_density_only(self, ten_voxels, grid):
        """Ratio 0 skips the coverage phase."""
        meta = select_hybrid(ten_voxels, 4, grid, options={"coverage_ratio": 0}).metadata
        assert meta["coverage_selected"] == 0
        assert meta["density_selected"] > 0

    def test_coverage_only(self, ten_voxels, grid):
        """Ratio 1 skips the density phase."""
        meta = select_hybrid(ten_voxels, 4, grid, options={"coverage_ratio": 1.0}).metadata
        assert meta["density_selected"] == 0
        assert meta["coverage_selected"] > 0

    def test_validate_options(self):
        """Non-numeric ratios and unknown coverage modes fail validation."""
        assert HYBRID_STRATEGY.validate_options({"coverage_ratio": 0.3}) is True
        assert HYBRID_STRATEGY.validate_options({"coverage_ratio": "high"}) is False
        assert HYBRID_STRATEGY.validate_options({"hybrid_coverage_mode": "median"}) is True
        assert HYBRID_STRATEGY.validate_options({"hybrid_coverage_mode": "best"}) is False


class TestHybridForceInclude:
    def test_forced_voxels_included(self, ten_voxels, grid):
        """Forced keys are kept and the budget still filled."""
        result = select_hybrid(ten_voxels, 4, grid, force_include={"h1", "h4"})
        keys = {v.key for v in result.selected}
        assert {"h1", "h4"} <= keys
        assert len(result.selected) == 4

    def test_force_include_exceeds_budget(self, ten_voxels, grid):
        """When forced keys fill the budget neither phase runs."""
        result = select_hybrid(ten_voxels, 3, grid, force_include={"h0", "h1", "h2", "h3"})
        assert len(result.selected) == 3
        assert result.metadata["coverage_selected"] == 0
        assert result.metadata["density_selected"] == 0


class TestHybridEdgeCases:
    def test_empty_input(self, grid):
        """Empty input gives an empty hybrid result."""
        result = select_hybrid([], 5, grid)
        assert result.selected == []
        assert result.metadata["strategy"] == "hybrid"

    def test_zero_budget(self, ten_voxels, grid):
        """A zero budget reports zero for every phase."""
        meta = select_hybrid(ten_voxels, 0, grid).metadata
        assert meta["total_selected"] == 0
        assert meta["coverage_selected"] == 0
        assert meta["density_selected"] == 0

    def test_single_slot(self, ten_voxels, grid):
        """One slot still yields one voxel."""
        result = select_hybrid(ten_voxels, 1, grid)
        assert len(result.selected) == 1
        assert result.metadata["total_selected"] == 1

    def test_composes_existing_strategies(self, ten_voxels, grid):
        """Both phases go through the shared strategy objects."""
        options = {"coverage_ratio": 0.5, "hybrid_coverage_mode": "highest"}
        hybrid = select_hybrid(ten_voxels, 4, grid, options=options)
        coverage_keys = {
            v.key for v in COVERAGE_STRATEGY.select(
                ten_voxels, 2, grid, options={"bin_selection_mode": "highest"},
            ).selected
        }
        assert coverage_keys <= {v.key for v in hybrid.selected}


class TestHybridPerformance:
    def test_thousand_voxels_under_two_seconds(self, many_voxels, grid):
        """1000 candidates should select in well under two seconds."""
        start = time.perf_counter()
        result = select_hybrid(many_voxels, 50, grid, options={"coverage_ratio": 0.3})
        assert time.perf_counter() - start < 2.0
        assert len(result.selected) == 50
