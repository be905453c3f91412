from __future__ import annotations

import math

from pygame.math import Vector3


def _set_length_xyz_f(x: float, y: float, z: float, length: float) -> tuple[float, float, float]:
    magnitude_sq = x * x + y * y + z * z
    if magnitude_sq <= 1e-18:
        return 0.0, 0.0, 0.0
    scale = length / math.sqrt(magnitude_sq)
    return x * scale, y * scale, z * scale


def _clamp_length_xyz_f(x: float, y: float, z: float, max_length: float) -> tuple[float, float, float]:
    if max_length <= 0.0:
        return 0.0, 0.0, 0.0
    magnitude_sq = x * x + y * y + z * z
    if magnitude_sq <= max_length * max_length:
        return x, y, z
    scale = max_length / math.sqrt(magnitude_sq)
    return x * scale, y * scale, z * scale


def _clamp_speed_xyz_f(
    x: float, y: float, z: float, min_length: float, max_length: float
) -> tuple[float, float, float]:
    # A zero vector has no direction to keep, so it stays zero.
    magnitude_sq = x * x + y * y + z * z
    if magnitude_sq <= 1e-18:
        return 0.0, 0.0, 0.0
    magnitude = math.sqrt(magnitude_sq)
    target = _clamp_value(magnitude, min_length, max_length)
    if target == magnitude:
        return x, y, z
    scale = target / magnitude
    return x * scale, y * scale, z * scale


def _wrap_axis(value: float, half_extent: float) -> float:
    """Map `value` onto [-half_extent, half_extent], keeping the overshoot past a face.

    Values already inside (faces included) come back unchanged. Non-finite values have
    no place on the torus and are returned as they are.
    """

    if -half_extent <= value <= half_extent or not math.isfinite(value):
        return value
    return (value + half_extent) % (2.0 * half_extent) - half_extent


def _clamp_value(value: float, min_value: float, max_value: float) -> float:
    return max(min_value, min(max_value, value))


def _as_vector3(value: Vector3 | tuple[float, float, float] | list[float]) -> Vector3:
    if isinstance(value, Vector3):
        point = Vector3(value)
    elif len(value) != 3:
        raise ValueError(f"Expected three components, got {len(value)}")
    else:
        point = Vector3(float(value[0]), float(value[1]), float(value[2]))
    if not (math.isfinite(point.x) and math.isfinite(point.y) and math.isfinite(point.z)):
        raise ValueError(f"Expected finite components, got {tuple(point)}")
    return point
