"""Axis-aligned bounding boxes.

The host-side ``Aabb`` is an immutable value used while building the scene
(bounding boxes of geometry, transformed boxes, BVH node boxes). The device
side only needs the slab test, ``hit_aabb``, which reads box corners from the
compiled BVH tables.
"""

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3

Vec3 = tuple[float, float, float]

# Minimum extent given to flat boxes so slab tests never see a zero-width slab
FLAT_BOX_PADDING = 1e-4


@dataclass(frozen=True)
class Aabb:
    """An axis-aligned box given by its min and max corners.

    Attributes:
        min: Corner with the smallest coordinate on every axis.
        max: Corner with the largest coordinate on every axis.

    Raises:
        ValueError: If ``min > max`` on any axis.
    """

    min: Vec3
    max: Vec3

    def __post_init__(self) -> None:
        object.__setattr__(self, "min", tuple(float(c) for c in self.min))
        object.__setattr__(self, "max", tuple(float(c) for c in self.max))
        for axis in range(3):
            if self.min[axis] > self.max[axis]:
                raise ValueError(
                    f"Aabb min {self.min} exceeds max {self.max} on axis {axis}"
                )

    @classmethod
    def from_points(cls, points: Iterable[Sequence[float]]) -> "Aabb":
        """Smallest box containing every point.

        Raises:
            ValueError: If no points are given.
        """
        points = [tuple(p) for p in points]
        if not points:
            raise ValueError("Cannot bound an empty point set")
        low = tuple(min(p[axis] for p in points) for axis in range(3))
        high = tuple(max(p[axis] for p in points) for axis in range(3))
        return cls(low, high)

    @classmethod
    def surrounding(cls, boxes: Iterable["Aabb"]) -> "Aabb":
        """Smallest box containing every box.

        Raises:
            ValueError: If no boxes are given.
        """
        boxes = list(boxes)
        if not boxes:
            raise ValueError("Cannot surround an empty box list")
        low = tuple(min(b.min[axis] for b in boxes) for axis in range(3))
        high = tuple(max(b.max[axis] for b in boxes) for axis in range(3))
        return cls(low, high)

    @classmethod
    def around(cls, center: Sequence[float], radius: float) -> "Aabb":
        """Box of half-size ``radius`` centred on ``center``."""
        return cls(
            tuple(c - radius for c in center),
            tuple(c + radius for c in center),
        )

    def union(self, other: "Aabb") -> "Aabb":
        return Aabb.surrounding((self, other))

    def corners(self) -> list[Vec3]:
        """The eight corners of the box, min corner first, max corner last."""
        (x0, y0, z0), (x1, y1, z1) = self.min, self.max
        return [
            (x0, y0, z0),
            (x1, y0, z0),
            (x0, y1, z0),
            (x0, y0, z1),
            (x1, y1, z0),
            (x1, y0, z1),
            (x0, y1, z1),
            (x1, y1, z1),
        ]

    def translate(self, offset: Sequence[float]) -> "Aabb":
        return Aabb(
            tuple(c + o for c, o in zip(self.min, offset)),
            tuple(c + o for c, o in zip(self.max, offset)),
        )

    def extent(self) -> Vec3:
        return tuple(hi - lo for lo, hi in zip(self.min, self.max))

    def is_finite(self) -> bool:
        return all(math.isfinite(c) for c in self.min + self.max)

    def pad(self, epsilon: float = FLAT_BOX_PADDING) -> "Aabb":
        """Widen every axis thinner than ``epsilon`` to exactly ``epsilon``."""
        low, high = list(self.min), list(self.max)
        for axis in range(3):
            if high[axis] - low[axis] < epsilon:
                mid = 0.5 * (low[axis] + high[axis])
                low[axis] = mid - 0.5 * epsilon
                high[axis] = mid + 0.5 * epsilon
        return Aabb(tuple(low), tuple(high))


# =============================================================================
# Ray-Box Slab Test (Taichi)
# =============================================================================


@ti.func
def hit_aabb(
    box_min: vec3,
    box_max: vec3,
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
):
    """Slab test of a ray against an axis-aligned box.

    Intersects the ray's parameter interval with the slab interval of each
    axis in turn. A zero direction component yields an infinite slab
    interval, so rays parallel to a slab are handled without branching.

    Args:
        box_min: Minimum corner of the box.
        box_max: Maximum corner of the box.
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        t_min: Start of the parameter range to test.
        t_max: End of the parameter range to test.

    Returns:
        A tuple of (hit, t_enter, t_exit). hit is 1 when the clipped
        interval is non-empty; t_enter and t_exit bound it.
    """
    t_enter = t_min
    t_exit = t_max
    for axis in ti.static(range(3)):
        inv_d = 1.0 / ray_direction[axis]
        t0 = (box_min[axis] - ray_origin[axis]) * inv_d
        t1 = (box_max[axis] - ray_origin[axis]) * inv_d
        t_enter = tm.max(tm.min(t0, t1), t_enter)
        t_exit = tm.min(tm.max(t0, t1), t_exit)
    hit = 1
    if t_exit <= t_enter:
        hit = 0
    return hit, t_enter, t_exit
