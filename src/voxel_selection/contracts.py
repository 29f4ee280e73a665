"""Contracts for voxel selection under a render budget."""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union


class StrategyName(str, Enum):
    DENSITY = "density"
    COVERAGE = "coverage"
    HYBRID = "hybrid"


class BinSelectionMode(str, Enum):
    """How the coverage strategy picks a voxel out of a spatial bin."""

    HIGHEST = "highest"
    MEDIAN = "median"
    RANDOM = "random"


class SelectionContractError(TypeError, ValueError):
    """Raised when a caller passes arguments of the wrong shape to a strategy."""


def _as_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, numbers.Real) and math.isfinite(value):
        return int(value)
    return default


@dataclass(frozen=True)
class VoxelInfo:
    """Grid index and occupancy of one populated voxel."""

    x: float
    y: float
    z: float = 0
    count: float = 0
    entities: Tuple[Any, ...] = ()

    @classmethod
    def from_value(cls, value: Union["VoxelInfo", Mapping[str, Any]]) -> "VoxelInfo":
        if isinstance(value, VoxelInfo):
            return value
        if not isinstance(value, Mapping):
            raise TypeError(f"voxel info must be a mapping, got {type(value).__name__}")
        return cls(
            x=value.get("x", 0),
            y=value.get("y", 0),
            z=value.get("z", 0),
            count=value.get("count", 0),
            entities=tuple(value.get("entities") or ()),
        )


@dataclass(frozen=True)
class Voxel:
    """A populated voxel; ``key`` is unique and stable, canonically ``"x,y,z"``."""

    key: str
    info: VoxelInfo

    @classmethod
    def from_index(cls, x: int, y: int, z: int, count: float) -> "Voxel":
        return cls(key=f"{x},{y},{z}", info=VoxelInfo(x=x, y=y, z=z, count=count))

    @classmethod
    def from_mapping(cls, record: Mapping[str, Any]) -> "Voxel":
        """Build a voxel from ``{"key": ..., "info": {...}}``; extra keys are ignored."""
        info = VoxelInfo.from_value(record["info"])
        key = record.get("key")
        if key is None:
            key = f"{info.x},{info.y},{info.z}"
        return cls(key=str(key), info=info)

    @classmethod
    def coerce(cls, value: Union["Voxel", Mapping[str, Any]]) -> "Voxel":
        if isinstance(value, Voxel):
            return value
        if isinstance(value, Mapping):
            return cls.from_mapping(value)
        raise TypeError(f"cannot interpret {type(value).__name__} as a voxel")


@dataclass(frozen=True)
class Grid:
    """Extent of the voxel index space along each axis."""

    num_voxels_x: int = 0
    num_voxels_y: int = 0
    num_voxels_z: int = 0

    @classmethod
    def from_value(cls, value: Union["Grid", Mapping[str, Any], None]) -> "Grid":
        """Tolerant constructor: missing or invalid dimensions become 0."""
        if isinstance(value, Grid):
            value = {
                "num_voxels_x": value.num_voxels_x,
                "num_voxels_y": value.num_voxels_y,
                "num_voxels_z": value.num_voxels_z,
            }
        if not isinstance(value, Mapping):
            return cls()

        def dim(snake: str, camel: str) -> int:
            raw = value.get(snake, value.get(camel))
            return max(0, _as_int(raw))

        return cls(
            num_voxels_x=dim("num_voxels_x", "numVoxelsX"),
            num_voxels_y=dim("num_voxels_y", "numVoxelsY"),
            num_voxels_z=dim("num_voxels_z", "numVoxelsZ"),
        )


@dataclass
class SelectionResult:
    """Output of a single strategy run."""

    selected: List[Voxel]
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def strategy(self) -> str:
        return str(self.metadata.get("strategy", ""))


@dataclass(frozen=True)
class SelectionStatistics:
    """Snapshot of the most recent ``VoxelSelector.select_voxels`` call."""

    strategy: str
    selected_count: int
    total_count: int
    clipped_non_empty: int
    coverage_ratio: Optional[float] = None
    error: Optional[str] = None
    fallback_from: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.error is not None


@dataclass
class VoxelSelection:
    """What ``VoxelSelector.select_voxels`` hands back to the renderer."""

    selected_voxels: List[Voxel]
    strategy: str
    clipped_non_empty: int
    coverage_ratio: Optional[float]
    stats: SelectionStatistics
    metadata: Dict[str, Any] = field(default_factory=dict)


_CAMEL_CASE_OPTIONS = {
    "renderLimitStrategy": "render_limit_strategy",
    "highlightTopN": "highlight_top_n",
    "coverageBinsXY": "coverage_bins_xy",
    "minCoverageRatio": "min_coverage_ratio",
    "binSelectionMode": "bin_selection_mode",
    "randomSeed": "random_seed",
}


@dataclass
class VoxelSelectorConfig:
    """Configuration for render-budget voxel selection."""

    render_limit_strategy: str = "density"  # "density" | "coverage" | "hybrid"
    highlight_top_n: int = 0
    coverage_bins_xy: Union[str, int] = "auto"
    min_coverage_ratio: float = 0.2
    bin_selection_mode: str = "highest"
    random_seed: Optional[int] = None

    def __post_init__(self):
        try:
            self.render_limit_strategy = StrategyName(self.render_limit_strategy).value
        except ValueError:
            raise ValueError(
                f"Unknown render_limit_strategy '{self.render_limit_strategy}'. "
                f"Expected one of {[s.value for s in StrategyName]}.",
            ) from None

        try:
            self.bin_selection_mode = BinSelectionMode(self.bin_selection_mode).value
        except ValueError:
            raise ValueError(
                f"Unknown bin_selection_mode '{self.bin_selection_mode}'. "
                f"Expected one of {[m.value for m in BinSelectionMode]}.",
            ) from None

        if isinstance(self.highlight_top_n, bool) or not isinstance(self.highlight_top_n, int):
            raise ValueError(f"highlight_top_n must be an int, got {self.highlight_top_n!r}")
        if self.highlight_top_n < 0:
            raise ValueError(f"highlight_top_n must be >= 0, got {self.highlight_top_n}")

        if self.coverage_bins_xy != "auto":
            bins = self.coverage_bins_xy
            if isinstance(bins, bool) or not isinstance(bins, int) or bins < 1:
                raise ValueError(
                    f"coverage_bins_xy must be 'auto' or a positive int, got {bins!r}",
                )

        ratio = self.min_coverage_ratio
        if isinstance(ratio, bool) or not isinstance(ratio, numbers.Real):
            raise ValueError(f"min_coverage_ratio must be a number, got {ratio!r}")
        if not 0.0 <= ratio <= 1.0:
            raise ValueError(f"min_coverage_ratio must be within [0, 1], got {ratio}")
        self.min_coverage_ratio = float(ratio)

    @classmethod
    def from_options(cls, options: Optional[Mapping[str, Any]] = None) -> "VoxelSelectorConfig":
        """Build a config from a flat options mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for name, value in (options or {}).items():
            name = _CAMEL_CASE_OPTIONS.get(name, name)
            if name in known and value is not None:
                kwargs[name] = value
        return cls(**kwargs)

    def strategy_options(self) -> Dict[str, Any]:
        """Flat per-call options handed to the strategies."""
        return {
            "coverage_bins_xy": self.coverage_bins_xy,
            "min_coverage_ratio": self.min_coverage_ratio,
            "bin_selection_mode": self.bin_selection_mode,
            "hybrid_coverage_mode": self.bin_selection_mode,
            "random_seed": self.random_seed,
        }
