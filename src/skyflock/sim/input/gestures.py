from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence

from pygame.math import Vector3

from ..core.config import GestureConfig
from ..core.perturbation import Point, PerturbationState
from ..utils.math3d import _as_vector3

logger = logging.getLogger(__name__)

THUMB_TIP = 4
INDEX_TIP = 8
PINKY_TIP = 20


@dataclass(frozen=True, slots=True)
class Landmark:
    """Hand landmark in normalized image coordinates (0..1 on both axes)."""

    x: float
    y: float
    z: float = 0.0

    @staticmethod
    def from_raw(raw: Sequence[float] | dict) -> "Landmark":
        if isinstance(raw, dict):
            return Landmark(float(raw["x"]), float(raw["y"]), float(raw.get("z", 0.0)))
        if len(raw) < 2:
            raise ValueError(f"Landmark needs at least x and y, got {raw!r}")
        return Landmark(float(raw[0]), float(raw[1]), float(raw[2]) if len(raw) > 2 else 0.0)


@dataclass(frozen=True, slots=True)
class GestureReading:
    hand_detected: bool
    pinching: bool = False
    open_palm: bool = False
    explosion_triggered: bool = False


def _planar_distance(a: Landmark, b: Landmark) -> float:
    return math.hypot(a.x - b.x, a.y - b.y)


class GestureInterpreter:
    """Turns per-frame hand landmarks into perturbation updates.

    Pinching (thumb tip close to index tip) holds attraction on. Spreading the hand
    (thumb tip far from pinky tip) arms one explosion on the frame the palm opens;
    holding the palm open does not re-trigger. Losing the hand releases attraction
    and ends the control session, so the next detected hand re-anchors the attractor.
    """

    def __init__(self, config: GestureConfig, perturbation: PerturbationState):
        self._config = config
        self._perturbation = perturbation
        self._session_active = False
        self._open_palm = False

    @property
    def config(self) -> GestureConfig:
        return self._config

    @config.setter
    def config(self, config: GestureConfig) -> None:
        self._config = config

    def process(
        self,
        landmarks: Optional[Sequence[Landmark]],
        hand_position: Optional[Vector3 | Point] = None,
    ) -> GestureReading:
        perturbation = self._perturbation
        if not landmarks:
            if self._session_active:
                logger.debug("Hand lost; releasing attractor")
            self._session_active = False
            self._open_palm = False
            perturbation.release()
            return GestureReading(hand_detected=False)
        if len(landmarks) <= PINKY_TIP:
            raise ValueError(f"Expected at least {PINKY_TIP + 1} landmarks, got {len(landmarks)}")

        perturbation.set_hand_visible(True)
        if hand_position is not None:
            self._follow(_as_vector3(hand_position))

        thumb = landmarks[THUMB_TIP]
        pinching = _planar_distance(thumb, landmarks[INDEX_TIP]) < self._config.pinch_threshold
        perturbation.set_attraction_active(pinching)

        was_open = self._open_palm
        self._open_palm = _planar_distance(thumb, landmarks[PINKY_TIP]) > self._config.open_palm_threshold
        triggered = self._open_palm and not was_open
        if triggered:
            logger.debug("Open palm detected; arming explosion")
            perturbation.trigger_explosion()

        return GestureReading(
            hand_detected=True,
            pinching=pinching,
            open_palm=self._open_palm,
            explosion_triggered=triggered,
        )

    def _follow(self, hand: Vector3) -> None:
        perturbation = self._perturbation
        if not self._session_active:
            self._session_active = True
            logger.debug("New hand control session at %s", tuple(hand))
            perturbation.set_attractor(hand)
            return
        current = perturbation.attractor_position
        perturbation.set_attractor(current.lerp(hand, self._config.attractor_smoothing))
