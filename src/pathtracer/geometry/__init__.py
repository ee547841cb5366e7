"""Geometry module for shape primitives, transforms and spatial acceleration.

Components:
    aabb: Axis-aligned bounding boxes and the ray slab test
    transform: Rigid transforms (translation + rotation about the up axis)
    interaction: The HitRecord produced by every hit routine
    sphere, rect, box, triangle: The primitive shapes
    bvh: Bounding Volume Hierarchy construction

Each primitive has a frozen host-side dataclass (``SphereGeometry`` etc.) used
while building the scene, and a Taichi ``hit_*`` function evaluated per ray.
None of these modules declares Taichi fields, so they can be imported before
``ti.init``.
"""

from .aabb import Aabb, hit_aabb
from .box import BoxGeometry, hit_box
from .bvh import BvhLayout, BvhNode, build_hierarchy, is_leaf_ref, leaf_index, leaf_ref
from .interaction import HitRecord, face_forward, make_miss_record
from .rect import RectGeometry, RectPlane, hit_rect
from .sphere import Sphere, SphereGeometry, hit_sphere
from .transform import Transformation
from .triangle import TriangleGeometry, hit_triangle

Geometry = SphereGeometry | RectGeometry | BoxGeometry | TriangleGeometry

__all__ = [
    "Aabb",
    "hit_aabb",
    "BoxGeometry",
    "hit_box",
    "BvhLayout",
    "BvhNode",
    "build_hierarchy",
    "is_leaf_ref",
    "leaf_index",
    "leaf_ref",
    "HitRecord",
    "face_forward",
    "make_miss_record",
    "RectGeometry",
    "RectPlane",
    "hit_rect",
    "Sphere",
    "SphereGeometry",
    "hit_sphere",
    "Transformation",
    "TriangleGeometry",
    "hit_triangle",
    "Geometry",
]
