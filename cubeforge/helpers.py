"""Geometry and naming helpers shared by the construct tools."""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any


def calculate_rotation_outward(center: Sequence[float], position: Sequence[float]) -> float:
    """Return the heading, in degrees, from ``center`` to ``position`` in the XZ plane."""
    dx = position[0] - center[0]
    dz = position[2] - center[2]
    return math.degrees(math.atan2(dz, dx))


def normalize(vec: Sequence[float]) -> list[float]:
    """Return ``vec`` scaled to unit length; a zero vector maps to straight up."""
    x, y, z = vec[0], vec[1], vec[2]
    magnitude = math.sqrt(x * x + y * y + z * z)
    if magnitude == 0:
        return [0.0, 1.0, 0.0]
    return [x / magnitude, y / magnitude, z / magnitude]


def to_string_list(value: Any) -> list[str]:
    """Keep the string items of a decoded JSON array; anything else yields an empty list."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def fibonacci_sphere(n: int, radius: float, center: Sequence[float]) -> list[list[float]]:
    """Return ``n`` points spread evenly over a sphere, from its top to its bottom."""
    golden_angle = math.pi * (3 - math.sqrt(5))
    points = []
    for i in range(n):
        y = 1 - (i / (n - 1)) * 2 if n > 1 else 1.0
        ring = math.sqrt(max(0.0, 1 - y * y))
        theta = golden_angle * i
        x = math.cos(theta) * ring
        z = math.sin(theta) * ring
        points.append(
            [
                center[0] + x * radius,
                center[1] + y * radius,
                center[2] + z * radius,
            ]
        )
    return points


def generate_unit_id(role: str, domain: str, gen: int, version: int) -> str:
    """Build a unit identifier such as ``[ROLE]-XY-gen1-v2`` from a role and domain."""
    project_code = "".join(part[0].upper() for part in domain.split(".") if part)
    return f"[{role.upper()}]-{project_code}-gen{gen}-v{version}"