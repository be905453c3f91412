from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List

import yaml

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when a configuration cannot be used by the simulation."""

    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


@dataclass
class FlockingConfig:
    cohesion_weight: float = 0.2
    separation_weight: float = 1.5
    alignment_weight: float = 0.5
    attraction_weight: float = 0.8
    visual_range: float = 50.0
    protected_range: float = 10.0
    min_speed: float = 0.5
    max_speed: float = 2.0
    max_force: float = 0.1


@dataclass
class PerturbationConfig:
    attraction_range_factor: float = 2.0
    explosion_radius: float = 200.0
    # Explosion impulse at the epicenter, as a multiple of max_force.
    explosion_strength: float = 1000.0


@dataclass
class GestureConfig:
    pinch_threshold: float = 0.05
    open_palm_threshold: float = 0.25
    attractor_smoothing: float = 0.5


@dataclass
class SimulationConfig:
    population: int = 500
    bounds: tuple[float, float, float] = (200.0, 200.0, 200.0)
    seed: int = 42
    frame_interval: float = 1.0 / 60.0
    broadcast_interval: int = 1
    config_version: str = "v1"
    flocking: FlockingConfig = field(default_factory=FlockingConfig)
    perturbation: PerturbationConfig = field(default_factory=PerturbationConfig)
    gesture: GestureConfig = field(default_factory=GestureConfig)

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        return load_config(data)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["bounds"] = list(self.bounds)
        return data


_SECTIONS = {
    "flocking": FlockingConfig,
    "perturbation": PerturbationConfig,
    "gesture": GestureConfig,
}


def _bounds(value: Any) -> tuple[float, float, float]:
    try:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return (float(value), float(value), float(value))
        if isinstance(value, (tuple, list)) and len(value) == 3:
            return (float(value[0]), float(value[1]), float(value[2]))
    except (TypeError, ValueError):
        pass
    raise ConfigError([f"bounds must be a number or three numbers, got {value!r}"])


def _is_finite_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _type_problems(config: SimulationConfig) -> List[str]:
    """Problems that would make the range checks below meaningless or raise."""

    problems: List[str] = []
    for name in ("population", "seed", "broadcast_interval"):
        value = getattr(config, name)
        if not _is_integer(value):
            problems.append(f"{name} must be an integer, got {value!r}")
    if not _is_finite_number(config.frame_interval):
        problems.append(f"frame_interval must be a finite number, got {config.frame_interval!r}")
    bounds = config.bounds
    if not (
        isinstance(bounds, (tuple, list))
        and len(bounds) == 3
        and all(_is_finite_number(extent) for extent in bounds)
    ):
        problems.append(f"bounds must be three finite numbers, got {bounds!r}")
    for section_name in _SECTIONS:
        section = getattr(config, section_name)
        for item in fields(section):
            value = getattr(section, item.name)
            if not _is_finite_number(value):
                problems.append(f"{section_name}.{item.name} must be a finite number, got {value!r}")
    return problems


def _reject(problems: List[str]) -> None:
    logger.warning("Rejected configuration: %s", "; ".join(problems))
    raise ConfigError(problems)


def load_config(raw: dict) -> SimulationConfig:
    if not isinstance(raw, dict):
        raise ConfigError([f"configuration must be a mapping, got {type(raw).__name__}"])
    try:
        sections = {name: cls(**(raw.get(name) or {})) for name, cls in _SECTIONS.items()}
        sim_values = {k: v for k, v in raw.items() if k not in _SECTIONS}
        if "bounds" in sim_values:
            sim_values["bounds"] = _bounds(sim_values["bounds"])
        config = SimulationConfig(**sections, **sim_values)
    except TypeError as exc:
        raise ConfigError([str(exc)]) from exc
    validate_config(config)
    return config


def merge_config(config: SimulationConfig, changes: dict) -> SimulationConfig:
    """Return a new validated config with `changes` applied on top of `config`.

    Keys may be nested by section (``{"flocking": {"visual_range": 40}}``) or flat.
    Flat keys are looked up at the top level first and then in each section, which
    lets UI sliders send ``{"visual_range": 40}`` directly.
    """

    merged = config.to_dict()
    section_fields = {name: {f.name for f in fields(cls)} for name, cls in _SECTIONS.items()}
    top_fields = {f.name for f in fields(SimulationConfig)}
    unknown: List[str] = []
    for key, value in changes.items():
        if key in _SECTIONS and isinstance(value, dict):
            merged[key].update(value)
        elif key in top_fields:
            merged[key] = value
        else:
            for name, names in section_fields.items():
                if key in names:
                    merged[name][key] = value
                    break
            else:
                unknown.append(f"unknown parameter {key!r}")
    if unknown:
        raise ConfigError(unknown)
    return load_config(merged)


def validate_config(config: SimulationConfig) -> None:
    problems = _type_problems(config)
    if problems:
        _reject(problems)

    flocking = config.flocking
    perturbation = config.perturbation
    gesture = config.gesture

    if config.population <= 0:
        problems.append(f"population must be a positive integer, got {config.population}")
    if any(extent <= 0 for extent in config.bounds):
        problems.append(f"bounds must be positive, got {config.bounds}")
    if config.frame_interval <= 0:
        problems.append(f"frame_interval must be positive, got {config.frame_interval}")
    if config.broadcast_interval < 1:
        problems.append(f"broadcast_interval must be at least 1, got {config.broadcast_interval}")

    if flocking.visual_range <= 0:
        problems.append(f"visual_range must be positive, got {flocking.visual_range}")
    if flocking.protected_range < 0:
        problems.append(f"protected_range must not be negative, got {flocking.protected_range}")
    elif flocking.protected_range > flocking.visual_range:
        problems.append(
            f"protected_range ({flocking.protected_range}) must not exceed visual_range ({flocking.visual_range})"
        )
    if flocking.min_speed < 0:
        problems.append(f"min_speed must not be negative, got {flocking.min_speed}")
    elif flocking.min_speed > flocking.max_speed:
        problems.append(f"min_speed ({flocking.min_speed}) must not exceed max_speed ({flocking.max_speed})")
    if flocking.max_force < 0:
        problems.append(f"max_force must not be negative, got {flocking.max_force}")
    for name in ("cohesion_weight", "separation_weight", "alignment_weight", "attraction_weight"):
        value = getattr(flocking, name)
        if value < 0:
            problems.append(f"{name} must not be negative, got {value}")

    if perturbation.attraction_range_factor < 0:
        problems.append(
            f"attraction_range_factor must not be negative, got {perturbation.attraction_range_factor}"
        )
    if perturbation.explosion_radius <= 0:
        problems.append(f"explosion_radius must be positive, got {perturbation.explosion_radius}")
    if perturbation.explosion_strength < 0:
        problems.append(f"explosion_strength must not be negative, got {perturbation.explosion_strength}")

    if gesture.pinch_threshold <= 0:
        problems.append(f"pinch_threshold must be positive, got {gesture.pinch_threshold}")
    if gesture.open_palm_threshold <= 0:
        problems.append(f"open_palm_threshold must be positive, got {gesture.open_palm_threshold}")
    if not 0.0 <= gesture.attractor_smoothing <= 1.0:
        problems.append(f"attractor_smoothing must be within [0, 1], got {gesture.attractor_smoothing}")

    if problems:
        _reject(problems)
