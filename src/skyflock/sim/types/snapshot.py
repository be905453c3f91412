from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .metrics import TickMetrics


@dataclass(slots=True)
class Snapshot:
    tick: int
    state: str
    metrics: Optional[TickMetrics]
    agents: List[Dict[str, Any]]
    attractor: "SnapshotAttractor"
    world: "SnapshotWorld"
    metadata: "SnapshotMetadata"


@dataclass(slots=True)
class SnapshotAttractor:
    x: float
    y: float
    z: float
    visible: bool
    active: bool


@dataclass(slots=True)
class SnapshotWorld:
    bounds: List[float]


@dataclass(slots=True)
class SnapshotMetadata:
    population: int
    frame_interval: float
    seed: int
    config_version: str
