"""
Shared test fixtures for voxel selection tests.
"""
import sys
from pathlib import Path

import numpy as np
import pytest

# Add src/ to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from voxel_selection.contracts import Grid, Voxel, VoxelInfo


def _make_voxel(key, count, x=0, y=0, z=0):
    return Voxel(key=key, info=VoxelInfo(x=x, y=y, z=z, count=count))


def _random_voxels(n, seed=0, count_range=(1, 100), extent=(10, 10, 5)):
    """``n`` voxels with reproducible random counts and positions."""
    rng = np.random.default_rng(seed)
    counts = rng.integers(count_range[0], count_range[1], size=n)
    xs = rng.integers(0, extent[0], size=n)
    ys = rng.integers(0, extent[1], size=n)
    zs = rng.integers(0, extent[2], size=n)
    return [
        _make_voxel(f"voxel_{i}", int(c), int(x), int(y), int(z))
        for i, (c, x, y, z) in enumerate(zip(counts, xs, ys, zs))
    ]


@pytest.fixture
def grid():
    """A 10x10x5 voxel grid."""
    return Grid(num_voxels_x=10, num_voxels_y=10, num_voxels_z=5)


@pytest.fixture
def sample_voxels():
    """Five voxels with counts 10, 5, 15, 8, 12 spread over the grid."""
    return [
        _make_voxel("v1", 10, x=0, y=0),
        _make_voxel("v2", 5, x=2, y=7),
        _make_voxel("v3", 15, x=5, y=5),
        _make_voxel("v4", 8, x=9, y=1),
        _make_voxel("v5", 12, x=8, y=9),
    ]


@pytest.fixture
def corner_voxels():
    """Dense cluster at (0, 0) and a sparser one at (3, 3) on a 4x4 grid."""
    return [
        _make_voxel("near_a", 100, x=0, y=0),
        _make_voxel("near_b", 90, x=0, y=0, z=1),
        _make_voxel("near_c", 80, x=0, y=0, z=2),
        _make_voxel("far_a", 10, x=3, y=3),
        _make_voxel("far_b", 5, x=3, y=3, z=1),
    ]


@pytest.fixture
def small_grid():
    return Grid(num_voxels_x=4, num_voxels_y=4, num_voxels_z=3)


@pytest.fixture
def many_voxels():
    """1000 reproducible random voxels on the 10x10x5 grid."""
    return _random_voxels(1000, seed=42)


@pytest.fixture
def voxel_factory():
    """Factory for reproducible random voxel populations."""
    return _random_voxels
