"""Axis-aligned rectangle primitive.

A rect lies in one of the three coordinate planes at a signed distance along
the plane's normal axis, and is bounded by a range on each of the two
in-plane axes. Rects are the only geometry that can act as the scene's
sampled light, so this module also carries the area and uniform point
sampling used by the light distribution.

Plane axes (in-plane axis 0, in-plane axis 1, normal axis):
    XY: (x, y | z)    XZ: (x, z | y)    YZ: (y, z | x)
"""

import math
from dataclasses import dataclass
from enum import IntEnum
from typing import Sequence

import taichi as ti
import taichi.math as tm

from pathtracer.core.sampler import RngState, rand_range
from pathtracer.geometry.aabb import Aabb
from pathtracer.geometry.interaction import HitRecord, face_forward
from pathtracer.geometry.transform import Transformation, Vec3

vec3 = tm.vec3
vec2 = tm.vec2

# Half thickness given to the bounding box along the normal axis
RECT_THICKNESS = 0.01


class RectPlane(IntEnum):
    """Coordinate plane a rect lies in."""

    XY = 0
    XZ = 1
    YZ = 2

    @property
    def axes(self) -> tuple[int, int, int]:
        """(in-plane axis 0, in-plane axis 1, normal axis)."""
        return {
            RectPlane.XY: (0, 1, 2),
            RectPlane.XZ: (0, 2, 1),
            RectPlane.YZ: (1, 2, 0),
        }[self]


@dataclass(frozen=True)
class RectGeometry:
    """A rectangle in a coordinate plane.

    Attributes:
        plane: The plane the rect lies in.
        distance: Coordinate of the rect along the plane's normal axis.
        range0: (low, high) bounds along in-plane axis 0.
        range1: (low, high) bounds along in-plane axis 1.
    """

    plane: RectPlane
    distance: float
    range0: tuple[float, float]
    range1: tuple[float, float]

    def __post_init__(self) -> None:
        object.__setattr__(self, "plane", RectPlane(self.plane))
        for name in ("range0", "range1"):
            low, high = getattr(self, name)
            if low > high:
                raise ValueError(f"Rect {name} is inverted: ({low}, {high})")
            object.__setattr__(self, name, (float(low), float(high)))

    @classmethod
    def centered(
        cls, plane: RectPlane, center: Sequence[float], size0: float, size1: float
    ) -> "RectGeometry":
        """Rect of the given in-plane sizes centred on ``center``."""
        a0, a1, n = RectPlane(plane).axes
        return cls(
            plane,
            center[n],
            (center[a0] - 0.5 * size0, center[a0] + 0.5 * size0),
            (center[a1] - 0.5 * size1, center[a1] + 0.5 * size1),
        )

    def area(self) -> float:
        return (self.range0[1] - self.range0[0]) * (self.range1[1] - self.range1[0])

    def bounding_box(self) -> Aabb | None:
        """Box padded along the normal axis; None for an infinite rect."""
        if not all(math.isfinite(c) for c in self.range0 + self.range1):
            return None
        a0, a1, n = self.plane.axes
        low = [0.0, 0.0, 0.0]
        high = [0.0, 0.0, 0.0]
        low[a0], high[a0] = self.range0
        low[a1], high[a1] = self.range1
        low[n] = self.distance - RECT_THICKNESS
        high[n] = self.distance + RECT_THICKNESS
        return Aabb(tuple(low), tuple(high))

    def partial_apply(
        self, transform: Transformation
    ) -> tuple["RectGeometry", Transformation | None]:
        """Rects are never baked; any non-identity transform stays residual."""
        return self, None if transform.is_identity() else transform

    def contains(self, point: Vec3) -> bool:
        """Whether a point on the rect's plane lies within its ranges."""
        a0, a1, _ = self.plane.axes
        return (
            self.range0[0] <= point[a0] <= self.range0[1]
            and self.range1[0] <= point[a1] <= self.range1[1]
        )


# =============================================================================
# Rect Intersection and Sampling (Taichi)
# =============================================================================


@ti.func
def rect_axes(plane: ti.i32):
    """Unit vectors of a rect's in-plane axes and normal axis.

    Selecting components with dot products keeps every index static.

    Returns:
        A tuple of (axis0, axis1, normal_axis).
    """
    axis0 = vec3(1.0, 0.0, 0.0)
    axis1 = vec3(0.0, 1.0, 0.0)
    normal_axis = vec3(0.0, 0.0, 1.0)
    if plane == int(RectPlane.XZ):
        axis1 = vec3(0.0, 0.0, 1.0)
        normal_axis = vec3(0.0, 1.0, 0.0)
    elif plane == int(RectPlane.YZ):
        axis0 = vec3(0.0, 1.0, 0.0)
        axis1 = vec3(0.0, 0.0, 1.0)
        normal_axis = vec3(1.0, 0.0, 0.0)
    return axis0, axis1, normal_axis


@ti.func
def hit_rect(
    ray_origin: vec3,
    ray_direction: vec3,
    plane: ti.i32,
    distance: ti.f32,
    range0: vec2,
    range1: vec2,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Test for ray-rect intersection.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction of the ray.
        plane: RectPlane value.
        distance: Coordinate of the rect along its normal axis.
        range0: (low, high) along in-plane axis 0.
        range1: (low, high) along in-plane axis 1.
        t_min: Lower end of the open parameter range.
        t_max: Upper end of the open parameter range.

    Returns:
        A HitRecord. The outward normal points down the normal axis; uv is
        the fractional position within the two ranges.
    """
    axis0, axis1, normal_axis = rect_axes(plane)

    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    hit_uv = vec2(0.0, 0.0)
    is_front_face = 0

    # A ray parallel to the plane gives an infinite or NaN t, rejected below
    t = (distance - tm.dot(ray_origin, normal_axis)) / tm.dot(ray_direction, normal_axis)
    if t > t_min and t < t_max:
        point = ray_origin + t * ray_direction
        x = tm.dot(point, axis0)
        y = tm.dot(point, axis1)
        if range0[0] <= x and x <= range0[1] and range1[0] <= y and y <= range1[1]:
            did_hit = 1
            hit_t = t
            hit_point = point
            hit_normal, is_front_face = face_forward(-normal_axis, ray_direction)
            hit_uv = vec2(
                (x - range0[0]) / (range0[1] - range0[0]),
                (y - range1[0]) / (range1[1] - range1[0]),
            )

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=hit_normal,
        uv=hit_uv,
        front_face=is_front_face,
    )


@ti.func
def rect_area(range0: vec2, range1: vec2) -> ti.f32:
    return (range0[1] - range0[0]) * (range1[1] - range1[0])


@ti.func
def rect_sample_point(
    state: RngState, plane: ti.i32, distance: ti.f32, range0: vec2, range1: vec2
):
    """Draw a point uniformly on the rect.

    Returns:
        A tuple of (new_state, point).
    """
    axis0, axis1, normal_axis = rect_axes(plane)
    rng, x = rand_range(state, range0[0], range0[1])
    rng, y = rand_range(rng, range1[0], range1[1])
    return rng, x * axis0 + y * axis1 + distance * normal_axis
