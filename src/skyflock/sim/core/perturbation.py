from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional, Tuple

from pygame.math import Vector3

from ..utils.math3d import _as_vector3

logger = logging.getLogger(__name__)

Point = Tuple[float, float, float]


@dataclass(frozen=True, slots=True)
class PerturbationSnapshot:
    """What the steering phase sees for a whole tick."""

    attractor_position: Point = (0.0, 0.0, 0.0)
    attraction_active: bool = False
    explosion_active: bool = False
    explosion_epicenter: Point = (0.0, 0.0, 0.0)
    hand_visible: bool = False
    # Sequence number of the pending explosion, used to claim exactly the pulse observed.
    explosion_sequence: int = 0


class PerturbationState:
    """External input shared between producers (gestures, API) and the simulation.

    Every write happens under a lock, so each field is read atomically. There is no
    cross-field guarantee: a producer updating the attractor and the attraction flag
    in two calls may be observed between them.

    The explosion is a single-slot pending pulse. `trigger_explosion` fills the slot,
    the simulation observes it through `snapshot()` and clears it with
    `claim_explosion()` once every agent has steered.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._attractor = Vector3()
        self._attraction_active = False
        self._hand_visible = False
        self._explosion_pending = False
        self._explosion_epicenter: Optional[Vector3] = None
        self._explosion_sequence = 0

    @property
    def attractor_position(self) -> Vector3:
        with self._lock:
            return Vector3(self._attractor)

    @property
    def attraction_active(self) -> bool:
        return self._attraction_active

    @property
    def explosion_active(self) -> bool:
        return self._explosion_pending

    @property
    def hand_visible(self) -> bool:
        return self._hand_visible

    def set_attractor(self, position: Vector3 | Point) -> None:
        point = _as_vector3(position)
        with self._lock:
            self._attractor = point

    def set_attraction_active(self, active: bool) -> None:
        with self._lock:
            self._attraction_active = bool(active)

    def set_hand_visible(self, visible: bool) -> None:
        with self._lock:
            self._hand_visible = bool(visible)

    def trigger_explosion(self, epicenter: Optional[Vector3 | Point] = None) -> None:
        """Arm a one-shot explosion.

        Without an explicit `epicenter` the pulse goes off wherever the attractor is on
        the tick that fires it, not where it was when armed.
        """

        point = None if epicenter is None else _as_vector3(epicenter)
        with self._lock:
            self._explosion_epicenter = point
            self._explosion_pending = True
            self._explosion_sequence += 1
            sequence = self._explosion_sequence
        if point is None:
            logger.debug("Explosion %d armed at the attractor", sequence)
        else:
            logger.debug("Explosion %d armed at %s", sequence, tuple(point))

    def release(self) -> None:
        """Producer lost (no hand): fall back to pure flocking."""

        with self._lock:
            self._attraction_active = False
            self._hand_visible = False

    def reset(self) -> None:
        with self._lock:
            self._attractor = Vector3()
            self._attraction_active = False
            self._hand_visible = False
            self._explosion_pending = False
            self._explosion_epicenter = None

    def snapshot(self) -> PerturbationSnapshot:
        with self._lock:
            attractor = self._attractor
            epicenter = attractor if self._explosion_epicenter is None else self._explosion_epicenter
            return PerturbationSnapshot(
                attractor_position=(attractor.x, attractor.y, attractor.z),
                attraction_active=self._attraction_active,
                explosion_active=self._explosion_pending,
                explosion_epicenter=(epicenter.x, epicenter.y, epicenter.z),
                hand_visible=self._hand_visible,
                explosion_sequence=self._explosion_sequence,
            )

    def claim_explosion(self, observed: PerturbationSnapshot) -> bool:
        """Clear the pending explosion if it is the one `observed` saw.

        A pulse armed after the snapshot was taken stays pending for the next tick.
        """

        if not observed.explosion_active:
            return False
        with self._lock:
            if self._explosion_pending and self._explosion_sequence == observed.explosion_sequence:
                self._explosion_pending = False
                return True
        return False
