"""
Experiment configuration.

All tunables of the tracking core live here as dataclasses whose defaults are
the deployed values. A JSON file can override any of them:

```json
{
    "filter": {"type": "kalman", "process_noise": 0.01, "measurement_noise": 0.1},
    "timing": {"interval_ms": 300000, "ramp_ms": 8000, "pause_ms": 2000, "max_angle": 60},
    "weights": {"pitch_per_ty": 0.2},
    "clamp_deg": 60,
    "log_period_ms": 250
}
```

Lookup order for the file: explicit path, then the ``HEADTILT_CONFIG``
environment variable, then built-in defaults.
"""
from __future__ import annotations

import json
import math
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Optional, Tuple

import numpy as np

from pose_filters import FILTER_TYPES

CONFIG_ENV_VAR = "HEADTILT_CONFIG"


class ConfigError(ValueError):
    """Raised for unknown keys or invalid values in a configuration file."""


def _require_finite(config, *names):
    for name in names:
        value = getattr(config, name)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise ConfigError(f"{name} must be a finite number, got {value!r}")


@dataclass(frozen=True)
class FilterConfig:
    type: str = "kalman"
    process_noise: float = 0.01
    measurement_noise: float = 0.1

    def __post_init__(self):
        if not isinstance(self.type, str) or self.type.lower() not in FILTER_TYPES:
            raise ConfigError(f"Unknown filter type: {self.type}")
        _require_finite(self, "process_noise", "measurement_noise")
        if self.process_noise < 0 or self.measurement_noise <= 0:
            raise ConfigError("Filter noise values must be positive")


@dataclass(frozen=True)
class PhaseTiming:
    """Non-coupled rotation timing, milliseconds and degrees."""
    interval_ms: float = 5 * 60 * 1000
    ramp_ms: float = 8000.0
    pause_ms: float = 2000.0
    max_angle: float = 60.0

    def __post_init__(self):
        _require_finite(self, "interval_ms", "ramp_ms", "pause_ms", "max_angle")
        if self.ramp_ms <= 0:
            raise ConfigError("ramp_ms must be positive")
        if self.interval_ms < 0 or self.pause_ms < 0:
            raise ConfigError("interval_ms and pause_ms must not be negative")


# Empirically tuned sensitivity constants. Rotation gains map a head rotation
# delta onto the same screen axis; the translation terms add cross-axis
# contributions in degrees per translation unit.
HEAD_PITCH_GAIN = 1.0
HEAD_YAW_GAIN = 1.0
HEAD_ROLL_GAIN = 1.0
YAW_PER_PITCH = 0.0
PITCH_PER_TY = 0.2
PITCH_PER_TZ = 0.1
YAW_PER_TX = 0.2
ROLL_PER_TX = 0.1


@dataclass(frozen=True)
class CouplingWeights:
    head_pitch_gain: float = HEAD_PITCH_GAIN
    head_yaw_gain: float = HEAD_YAW_GAIN
    head_roll_gain: float = HEAD_ROLL_GAIN
    yaw_per_pitch: float = YAW_PER_PITCH
    pitch_per_ty: float = PITCH_PER_TY
    pitch_per_tz: float = PITCH_PER_TZ
    yaw_per_tx: float = YAW_PER_TX
    roll_per_tx: float = ROLL_PER_TX

    def __post_init__(self):
        _require_finite(self, *(f.name for f in fields(self)))

    def rotation_matrix(self) -> np.ndarray:
        """Rows are screen (pitch, yaw, roll), columns head (pitch, yaw, roll)."""
        return np.array([
            [self.head_pitch_gain, 0.0, 0.0],
            [self.yaw_per_pitch, self.head_yaw_gain, 0.0],
            [0.0, 0.0, self.head_roll_gain],
        ])

    def translation_matrix(self) -> np.ndarray:
        """Rows are screen (pitch, yaw, roll), columns (tx, ty, tz)."""
        return np.array([
            [0.0, self.pitch_per_ty, self.pitch_per_tz],
            [self.yaw_per_tx, 0.0, 0.0],
            [self.roll_per_tx, 0.0, 0.0],
        ])


@dataclass(frozen=True)
class ExperimentConfig:
    filter: FilterConfig = field(default_factory=FilterConfig)
    timing: PhaseTiming = field(default_factory=PhaseTiming)
    weights: CouplingWeights = field(default_factory=CouplingWeights)
    clamp_deg: float = 60.0
    log_period_ms: float = 250.0
    frame_interval_ms: float = 1000.0 / 60.0
    frame_size: Tuple[int, int] = (640, 480)

    def __post_init__(self):
        _require_finite(self, "clamp_deg", "log_period_ms", "frame_interval_ms")
        if self.clamp_deg <= 0:
            raise ConfigError("clamp_deg must be positive")
        if self.log_period_ms <= 0:
            raise ConfigError("log_period_ms must be positive")
        if self.frame_interval_ms < 0:
            raise ConfigError("frame_interval_ms must not be negative")
        width, height = self.frame_size
        if width <= 0 or height <= 0:
            raise ConfigError("frame_size must be positive")


_SECTIONS = {"filter": FilterConfig, "timing": PhaseTiming, "weights": CouplingWeights}


def _build(cls, data, section):
    if not isinstance(data, dict):
        raise ConfigError(f"Section '{section}' must be an object")
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"Unknown keys in '{section}': {sorted(unknown)}")
    try:
        return cls(**data)
    except ConfigError:
        raise
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value in '{section}': {e}") from e


def _scalar(key, value):
    try:
        if key == "frame_size":
            width, height = (int(v) for v in value)
            return (width, height)
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for '{key}': {value!r}") from e


def config_from_dict(data: dict) -> ExperimentConfig:
    """Build a configuration from a parsed JSON object."""
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a JSON object")
    top_level = {f.name for f in fields(ExperimentConfig)}
    unknown = set(data) - top_level
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {sorted(unknown)}")

    kwargs = {}
    for key, value in data.items():
        if key in _SECTIONS:
            kwargs[key] = _build(_SECTIONS[key], value, key)
        else:
            kwargs[key] = _scalar(key, value)
    return ExperimentConfig(**kwargs)


def load_config(config_path: Optional[str] = None) -> ExperimentConfig:
    """Load configuration from JSON, falling back to defaults."""
    if config_path is None:
        config_path = os.getenv(CONFIG_ENV_VAR)
    if not config_path:
        return ExperimentConfig()

    path = Path(config_path)
    try:
        with path.open("r", encoding="utf-8") as fp:
            data = json.load(fp)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e
    return config_from_dict(data)


def with_filter_type(config: ExperimentConfig, filter_type: str) -> ExperimentConfig:
    """Return a copy of *config* using another smoothing filter."""
    return replace(config, filter=replace(config.filter, type=filter_type))
