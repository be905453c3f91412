from __future__ import annotations

import pytest
from pygame.math import Vector3
from pytest import approx

from skyflock.sim.core.config import GestureConfig
from skyflock.sim.core.perturbation import PerturbationState
from skyflock.sim.input.gestures import GestureInterpreter, Landmark


def _hand(pinch: float = 0.2, spread: float = 0.1) -> list[Landmark]:
    """21 landmarks with the thumb tip at (0.5, 0.5) and index/pinky at the given distances."""

    points = [Landmark(0.5, 0.6) for _ in range(21)]
    points[4] = Landmark(0.5, 0.5)
    points[8] = Landmark(0.5 + pinch, 0.5)
    points[20] = Landmark(0.5, 0.5 + spread)
    return points


@pytest.fixture
def interpreter_and_state():
    state = PerturbationState()
    return GestureInterpreter(GestureConfig(), state), state


def test_no_hand_releases_attraction(interpreter_and_state):
    interpreter, state = interpreter_and_state
    state.set_attraction_active(True)
    state.set_hand_visible(True)

    reading = interpreter.process(None)

    assert not reading.hand_detected
    assert not state.attraction_active
    assert not state.hand_visible


def test_pinch_turns_attraction_on_and_off(interpreter_and_state):
    interpreter, state = interpreter_and_state

    pinching = interpreter.process(_hand(pinch=0.01), (0.0, 0.0, 0.0))
    assert pinching.pinching
    assert state.attraction_active
    assert state.hand_visible

    relaxed = interpreter.process(_hand(pinch=0.2), (0.0, 0.0, 0.0))
    assert not relaxed.pinching
    assert not state.attraction_active


def test_open_palm_triggers_only_on_rising_edge(interpreter_and_state):
    interpreter, state = interpreter_and_state

    first = interpreter.process(_hand(spread=0.3))
    assert first.explosion_triggered
    observed = state.snapshot()
    assert state.claim_explosion(observed)

    held = interpreter.process(_hand(spread=0.3))
    assert held.open_palm
    assert not held.explosion_triggered
    assert not state.explosion_active

    interpreter.process(_hand(spread=0.1))
    again = interpreter.process(_hand(spread=0.3))
    assert again.explosion_triggered
    assert state.explosion_active


def test_explosion_epicenter_is_current_attractor(interpreter_and_state):
    interpreter, state = interpreter_and_state

    interpreter.process(_hand(spread=0.3), (12.0, -4.0, 7.0))

    assert state.snapshot().explosion_epicenter == approx((12.0, -4.0, 7.0))


def test_attractor_jumps_on_new_session_then_smooths(interpreter_and_state):
    interpreter, state = interpreter_and_state

    interpreter.process(_hand(), (10.0, 0.0, 0.0))
    assert state.attractor_position == Vector3(10.0, 0.0, 0.0)

    interpreter.process(_hand(), (20.0, 0.0, 0.0))
    assert state.attractor_position.x == approx(15.0)

    interpreter.process(None)
    interpreter.process(_hand(), (-30.0, 0.0, 0.0))
    assert state.attractor_position == Vector3(-30.0, 0.0, 0.0)


def test_thresholds_are_configurable():
    state = PerturbationState()
    interpreter = GestureInterpreter(GestureConfig(pinch_threshold=0.3, open_palm_threshold=0.5), state)

    reading = interpreter.process(_hand(pinch=0.2, spread=0.3))

    assert reading.pinching
    assert not reading.open_palm


def test_short_landmark_list_is_rejected(interpreter_and_state):
    interpreter, _ = interpreter_and_state

    with pytest.raises(ValueError):
        interpreter.process([Landmark(0.0, 0.0)] * 5)


def test_landmark_from_raw_accepts_sequences_and_mappings():
    assert Landmark.from_raw([0.1, 0.2]) == Landmark(0.1, 0.2, 0.0)
    assert Landmark.from_raw({"x": 0.1, "y": 0.2, "z": 0.3}) == Landmark(0.1, 0.2, 0.3)
