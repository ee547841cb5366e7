"""Solid axis-aligned box primitive.

Unlike a BVH node box, which only answers "does the ray pass through", an
axis-aligned box geometry reports a full surface interaction. A ray that
starts inside the box hits its far wall, which lets boxes serve as volume
boundaries.

Transforms are baked as far as axis alignment allows: the translation moves
the corners, and any rotation is left as a residual transform.
"""

from dataclasses import dataclass
from typing import Sequence

import taichi as ti
import taichi.math as tm

from pathtracer.geometry.aabb import Aabb
from pathtracer.geometry.interaction import HitRecord, face_forward
from pathtracer.geometry.transform import Transformation

vec3 = tm.vec3
vec2 = tm.vec2


@dataclass(frozen=True)
class BoxGeometry:
    """An axis-aligned box solid.

    Attributes:
        aabb: The box extents.
    """

    aabb: Aabb

    @classmethod
    def from_size(cls, width: float, height: float, depth: float) -> "BoxGeometry":
        """Box spanning from the origin to (width, height, depth)."""
        return cls(Aabb((0.0, 0.0, 0.0), (width, height, depth)))

    @classmethod
    def from_corners(cls, low: Sequence[float], high: Sequence[float]) -> "BoxGeometry":
        return cls(Aabb(tuple(low), tuple(high)))

    def bounding_box(self) -> Aabb:
        return self.aabb.pad()

    def partial_apply(
        self, transform: Transformation
    ) -> tuple["BoxGeometry", Transformation | None]:
        """Bake the translation; keep the rotation (if any) as a residual."""
        translation, remainder = transform.split_translation_remainder()
        baked = BoxGeometry(self.aabb.translate(translation))
        return baked, None if remainder.is_identity() else remainder


# =============================================================================
# Box Intersection (Taichi)
# =============================================================================


@ti.func
def _face_uv(relative: vec3, face_axis: ti.i32) -> vec2:
    uv = vec2(relative.x, relative.y)
    if face_axis == 0:
        uv = vec2(relative.y, relative.z)
    elif face_axis == 1:
        uv = vec2(relative.x, relative.z)
    return uv


@ti.func
def hit_box(
    ray_origin: vec3,
    ray_direction: vec3,
    box_min: vec3,
    box_max: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Test for ray-box intersection.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction of the ray.
        box_min: Minimum corner of the box.
        box_max: Maximum corner of the box.
        t_min: Lower end of the open parameter range.
        t_max: Upper end of the open parameter range.

    Returns:
        A HitRecord for the entry wall if it lies in range, else for the
        exit wall.
    """
    t_near = -tm.inf
    t_far = tm.inf
    near_normal = vec3(0.0, 0.0, 0.0)
    far_normal = vec3(0.0, 0.0, 0.0)
    near_axis = 0
    far_axis = 0

    for axis in ti.static(range(3)):
        inv_d = 1.0 / ray_direction[axis]
        t0 = (box_min[axis] - ray_origin[axis]) * inv_d
        t1 = (box_max[axis] - ray_origin[axis]) * inv_d
        heading = ti.select(ray_direction[axis] < 0.0, -1.0, 1.0)
        axis_vec = vec3(0.0, 0.0, 0.0)
        axis_vec[axis] = 1.0
        if tm.min(t0, t1) > t_near:
            t_near = tm.min(t0, t1)
            near_normal = -heading * axis_vec
            near_axis = axis
        if tm.max(t0, t1) < t_far:
            t_far = tm.max(t0, t1)
            far_normal = heading * axis_vec
            far_axis = axis

    did_hit = 0
    hit_t = 0.0
    outward_normal = vec3(0.0, 0.0, 0.0)
    face_axis = 0
    if t_near <= t_far:
        if t_near > t_min and t_near < t_max:
            did_hit = 1
            hit_t = t_near
            outward_normal = near_normal
            face_axis = near_axis
        elif t_far > t_min and t_far < t_max:
            did_hit = 1
            hit_t = t_far
            outward_normal = far_normal
            face_axis = far_axis

    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    hit_uv = vec2(0.0, 0.0)
    is_front_face = 0
    if did_hit == 1:
        hit_point = ray_origin + hit_t * ray_direction
        hit_normal, is_front_face = face_forward(outward_normal, ray_direction)
        # A flat box has a zero extent; its uv along that axis is 0
        extent = box_max - box_min
        safe_extent = vec3(1.0, 1.0, 1.0)
        for axis in ti.static(range(3)):
            if extent[axis] > 0.0:
                safe_extent[axis] = extent[axis]
        hit_uv = _face_uv((hit_point - box_min) / safe_extent, face_axis)

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=hit_normal,
        uv=hit_uv,
        front_face=is_front_face,
    )
