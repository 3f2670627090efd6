"""Scaling thresholds and their TOML-based configuration.

Loads ~/.vmscaler/defaults.toml (global) and vmscaler.toml (project),
merges them, and resolves the ``[scaling]`` section into a ScalingConfig.

Example ``vmscaler.toml``::

    [scaling]
    idle_grace_ticks = 30
    destroy_utilization_threshold = 0.2
    tick_interval = 120.0

    [[scaling.bands]]
    lower = 0.6
    upper = 0.69
    factor = 1.2
"""

from __future__ import annotations

import math
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from vmscaler.core.exceptions import ConfigurationError

type RawConfig = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / ".vmscaler" / "defaults.toml"
PROJECT_CONFIG_NAME = "vmscaler.toml"


@dataclass(frozen=True, slots=True)
class GrowthBand:
    """Average-utilization band mapped to a pool growth factor.

    Both bounds are exclusive. ``upper=None`` leaves the band open-ended.
    """

    lower: float
    upper: float | None
    factor: float

    def matches(self, average: float) -> bool:
        if self.upper is None:
            return average > self.lower
        return self.lower < average < self.upper


DEFAULT_GROWTH_BANDS: tuple[GrowthBand, ...] = (
    GrowthBand(0.60, 0.69, 1.20),
    GrowthBand(0.70, 0.79, 1.40),
    GrowthBand(0.80, 0.90, 1.60),
    GrowthBand(0.90, None, 1.80),
)


@dataclass(frozen=True, slots=True)
class ScalingConfig:
    """Tunables of the scaling decision engine.

    Attributes:
        idle_grace_ticks: Consecutive idle ticks a sole instance survives
            before it is destroyed.
        destroy_utilization_threshold: Hourly utilization under which an idle
            member of a multi-instance pool is destroyed.
        growth_bands: Bands checked in order; the first match wins.
        tick_interval: Seconds between ticks. With the defaults, 30 ticks of
            120s give one hour of grace.
    """

    idle_grace_ticks: int = 30
    destroy_utilization_threshold: float = 0.20
    growth_bands: tuple[GrowthBand, ...] = field(default=DEFAULT_GROWTH_BANDS)
    tick_interval: float = 120.0

    def __post_init__(self) -> None:
        if self.idle_grace_ticks < 1:
            raise ConfigurationError(
                f"idle_grace_ticks must be >= 1, got {self.idle_grace_ticks}"
            )
        if not 0.0 <= self.destroy_utilization_threshold <= 1.0:
            raise ConfigurationError(
                "destroy_utilization_threshold must be within [0, 1], "
                f"got {self.destroy_utilization_threshold}"
            )
        if not self.tick_interval > 0:
            raise ConfigurationError(f"tick_interval must be > 0, got {self.tick_interval}")
        if not self.growth_bands:
            raise ConfigurationError("growth_bands must not be empty")
        for band in self.growth_bands:
            if band.factor <= 1.0 or math.isnan(band.factor):
                raise ConfigurationError(f"Growth factor must be > 1, got {band.factor}")
            if band.upper is not None and band.upper <= band.lower:
                raise ConfigurationError(
                    f"Band upper bound {band.upper} must exceed lower bound {band.lower}"
                )

    @property
    def idle_grace_seconds(self) -> float:
        return self.idle_grace_ticks * self.tick_interval

    def growth_factor(self, average: float) -> float:
        for band in self.growth_bands:
            if band.matches(average):
                return band.factor
        return 0.0

    @classmethod
    def from_dict(cls, raw: RawConfig) -> ScalingConfig:
        raw = dict(raw)
        raw_bands = raw.pop("bands", None)
        unknown = set(raw) - {"idle_grace_ticks", "destroy_utilization_threshold", "tick_interval"}
        if unknown:
            raise ConfigurationError(f"Unknown scaling options: {', '.join(sorted(unknown))}")

        if raw_bands is not None:
            try:
                raw["growth_bands"] = tuple(
                    GrowthBand(
                        lower=float(b["lower"]),
                        upper=float(b["upper"]) if b.get("upper") is not None else None,
                        factor=float(b["factor"]),
                    )
                    for b in raw_bands
                )
            except KeyError as e:
                raise ConfigurationError(f"Growth band missing field {e}") from e
        return cls(**raw)


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    with path.open("rb") as f:
        return tomllib.load(f)


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME
    project_cfg = _read_toml(project_path)

    merged = _deep_merge(global_cfg, project_cfg)
    merged.setdefault("scaling", {})
    return merged


def resolve_scaling_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> ScalingConfig:
    config = load_config(project_dir=project_dir, global_path=global_path)
    return ScalingConfig.from_dict(config["scaling"])
