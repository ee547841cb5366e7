"""Triangle primitive with per-vertex normals and texture coordinates.

Triangles are the building block of meshes. Each vertex carries a position,
a shading normal and a uv pair; hits interpolate normal and uv with the
barycentric weights of the hit point.
"""

import math
from dataclasses import dataclass
from typing import Sequence

import taichi as ti
import taichi.math as tm

from pathtracer.geometry.aabb import Aabb
from pathtracer.geometry.interaction import HitRecord, face_forward
from pathtracer.geometry.transform import Transformation, Vec3

vec3 = tm.vec3
vec2 = tm.vec2

# Rays closer to parallel with the triangle's plane than this are misses
PARALLEL_EPSILON = 1e-4

Vec2 = tuple[float, float]


def _sub(a: Sequence[float], b: Sequence[float]) -> Vec3:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def _cross(a: Sequence[float], b: Sequence[float]) -> Vec3:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def _unit(v: Sequence[float]) -> Vec3:
    length = math.sqrt(sum(c * c for c in v))
    if length == 0.0:
        raise ValueError("Cannot normalize a zero-length vector (degenerate triangle?)")
    return tuple(c / length for c in v)


@dataclass(frozen=True)
class TriangleGeometry:
    """A triangle with per-vertex attributes.

    Attributes:
        positions: The three vertex positions.
        normals: The three vertex shading normals (unit length).
        uvs: The three vertex texture coordinates.
    """

    positions: tuple[Vec3, Vec3, Vec3]
    normals: tuple[Vec3, Vec3, Vec3]
    uvs: tuple[Vec2, Vec2, Vec2] = ((0.0, 0.0), (1.0, 0.0), (0.0, 1.0))

    def __post_init__(self) -> None:
        for name in ("positions", "normals", "uvs"):
            value = tuple(tuple(float(c) for c in v) for v in getattr(self, name))
            if len(value) != 3:
                raise ValueError(f"Triangle needs exactly 3 {name}, got {len(value)}")
            object.__setattr__(self, name, value)

    @classmethod
    def flat(
        cls,
        p0: Sequence[float],
        p1: Sequence[float],
        p2: Sequence[float],
        uvs: tuple[Vec2, Vec2, Vec2] | None = None,
    ) -> "TriangleGeometry":
        """Triangle whose vertex normals all equal its face normal.

        Raises:
            ValueError: If the triangle has zero area.
        """
        normal = _unit(_cross(_sub(p1, p0), _sub(p2, p0)))
        positions = (tuple(p0), tuple(p1), tuple(p2))
        if uvs is None:
            return cls(positions, (normal, normal, normal))
        return cls(positions, (normal, normal, normal), uvs)

    def bounding_box(self) -> Aabb:
        # Axis-aligned triangles are flat on one axis; pad so slab tests see volume
        return Aabb.from_points(self.positions).pad()

    def partial_apply(self, transform: Transformation) -> tuple["TriangleGeometry", None]:
        """Bake a transform into every vertex position and normal."""
        return (
            TriangleGeometry(
                tuple(transform.apply_point(p) for p in self.positions),
                tuple(transform.apply_normal(n) for n in self.normals),
                self.uvs,
            ),
            None,
        )


# =============================================================================
# Triangle Intersection (Taichi)
# =============================================================================


@ti.func
def hit_triangle(
    ray_origin: vec3,
    ray_direction: vec3,
    p0: vec3,
    p1: vec3,
    p2: vec3,
    n0: vec3,
    n1: vec3,
    n2: vec3,
    uv0: vec2,
    uv1: vec2,
    uv2: vec2,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Test for ray-triangle intersection.

    Intersects the ray with the triangle's plane, then expresses the hit
    point in barycentric weights (w0, w1, w2). The hit counts only when all
    three weights lie strictly inside (0, 1); a point exactly on an edge is
    left to whichever neighbouring triangle claims it.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction of the ray.
        p0, p1, p2: Vertex positions.
        n0, n1, n2: Vertex shading normals.
        uv0, uv1, uv2: Vertex texture coordinates.
        t_min: Lower end of the open parameter range.
        t_max: Upper end of the open parameter range.

    Returns:
        A HitRecord with interpolated normal and uv.
    """
    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    hit_uv = vec2(0.0, 0.0)
    is_front_face = 0

    edge1 = p1 - p0
    edge2 = p2 - p0
    plane_normal = tm.normalize(tm.cross(edge1, edge2))
    denom = tm.dot(ray_direction, plane_normal)

    if ti.abs(denom) > PARALLEL_EPSILON:
        t = tm.dot(p0 - ray_origin, plane_normal) / denom
        if t > t_min and t < t_max:
            point = ray_origin + t * ray_direction
            q = point - p0
            perp2 = tm.cross(plane_normal, edge2)
            w1 = tm.dot(q, perp2) / tm.dot(edge1, perp2)
            perp1 = tm.cross(plane_normal, edge1)
            w2 = tm.dot(q, perp1) / tm.dot(edge2, perp1)
            w0 = 1.0 - w1 - w2
            if w1 > 0.0 and w1 < 1.0 and w2 > 0.0 and w2 < 1.0 and w0 > 0.0 and w0 < 1.0:
                did_hit = 1
                hit_t = t
                hit_point = point
                shading_normal = tm.normalize(w0 * n0 + w1 * n1 + w2 * n2)
                hit_normal, is_front_face = face_forward(shading_normal, ray_direction)
                hit_uv = w0 * uv0 + w1 * uv1 + w2 * uv2

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=hit_normal,
        uv=hit_uv,
        front_face=is_front_face,
    )
