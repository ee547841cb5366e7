"""Device scene tables and nearest-hit traversal.

The compiled scene lives in module-level Taichi fields:

    * geometry tables, one per primitive kind (structure of arrays);
    * the element table, one row per scene element;
    * ``child_refs``, runs of traversal references used by groups and by
      the unbounded items of BVH elements;
    * the BVH node table.

Element rows store their payload in ``element_ints`` (4 ints),
``element_vectors``, ``element_sincos`` and ``element_scalars``:

    =============== ========================== =========== ========== =========
    kind            ints                       vector      sincos     scalar
    =============== ========================== =========== ========== =========
    SURFACE         geometry kind, index,      -           -          -
                    material id
    VOLUME          geometry kind, index,      -           -          -1/density
                    phase material id
    GROUP           child run start, length    -           -          -
    BVH             root ref, unbounded run    -           -          -
                    start, length, has root
    TRANSFORMATION  child                      offset      (sin, cos) -
    ANIMATION       child                      velocity    -          -
    =============== ========================== =========== ========== =========

A traversal reference ``r`` is an element index when ``r >= 0`` and BVH node
``-1 - r`` otherwise; BVH node children use the same encoding.

``intersect_scene`` walks the tree with an explicit stack. Every stack entry
carries the transform from its local frame to world space, so rays are
brought into the local frame lazily and hits are mapped back once.
"""

from enum import IntEnum
from typing import Sequence

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import UP
from pathtracer.core.sampler import hash_u32, rand_float
from pathtracer.geometry.box import hit_box
from pathtracer.geometry.aabb import hit_aabb
from pathtracer.geometry.interaction import HitRecord, make_miss_record
from pathtracer.geometry.rect import hit_rect
from pathtracer.geometry.sphere import Sphere, hit_sphere
from pathtracer.geometry.transform import (
    transform_apply_direction,
    transform_apply_point,
    transform_reverse_direction,
    transform_reverse_point,
    transform_then,
)
from pathtracer.geometry.triangle import hit_triangle

vec3 = tm.vec3
vec2 = tm.vec2

# Gap between the two boundary queries of a volume
VOLUME_EXIT_EPSILON = 0.001

# Entries of the traversal stack; pushes beyond this are dropped
STACK_SIZE = 64


class GeometryType(IntEnum):
    SPHERE = 0
    RECT = 1
    BOX = 2
    TRIANGLE = 3


class ElementKind(IntEnum):
    GROUP = 0
    BVH = 1
    SURFACE = 2
    VOLUME = 3
    ANIMATION = 4
    TRANSFORMATION = 5


@ti.dataclass
class SceneHitRecord:
    """Record of a ray-scene intersection with material information.

    Attributes:
        hit: Whether the ray intersected anything (1 if hit, 0 if miss).
        t: The ray parameter of the nearest hit. Only valid if hit == 1.
        point: World-space hit position.
        normal: World-space unit normal, facing the incoming ray.
        uv: Surface coordinates of the hit.
        front_face: 1 if the ray hit the outside of the surface.
        material_id: Unified material id of the hit element.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    uv: vec2
    front_face: ti.i32
    material_id: ti.i32


# =============================================================================
# Geometry Tables
# =============================================================================

MAX_SPHERES = 4096
MAX_RECTS = 4096
MAX_BOXES = 4096
MAX_TRIANGLES = 65536

sphere_centers = ti.Vector.field(3, dtype=ti.f32, shape=MAX_SPHERES)
sphere_radii = ti.field(dtype=ti.f32, shape=MAX_SPHERES)
num_spheres = ti.field(dtype=ti.i32, shape=())

rect_planes = ti.field(dtype=ti.i32, shape=MAX_RECTS)
rect_distances = ti.field(dtype=ti.f32, shape=MAX_RECTS)
rect_range0 = ti.Vector.field(2, dtype=ti.f32, shape=MAX_RECTS)
rect_range1 = ti.Vector.field(2, dtype=ti.f32, shape=MAX_RECTS)
num_rects = ti.field(dtype=ti.i32, shape=())

box_mins = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BOXES)
box_maxs = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BOXES)
num_boxes = ti.field(dtype=ti.i32, shape=())

# Per-vertex attributes, indexed [triangle, vertex]
triangle_positions = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_TRIANGLES, 3))
triangle_normals = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_TRIANGLES, 3))
triangle_uvs = ti.Vector.field(2, dtype=ti.f32, shape=(MAX_TRIANGLES, 3))
num_triangles = ti.field(dtype=ti.i32, shape=())

# =============================================================================
# Element, Child Reference and BVH Node Tables
# =============================================================================

MAX_ELEMENTS = 65536
MAX_CHILD_REFS = 131072
MAX_BVH_NODES = 65536

element_kinds = ti.field(dtype=ti.i32, shape=MAX_ELEMENTS)
element_ints = ti.Vector.field(4, dtype=ti.i32, shape=MAX_ELEMENTS)
element_vectors = ti.Vector.field(3, dtype=ti.f32, shape=MAX_ELEMENTS)
element_sincos = ti.Vector.field(2, dtype=ti.f32, shape=MAX_ELEMENTS)
element_scalars = ti.field(dtype=ti.f32, shape=MAX_ELEMENTS)
num_elements = ti.field(dtype=ti.i32, shape=())

child_refs = ti.field(dtype=ti.i32, shape=MAX_CHILD_REFS)
num_child_refs = ti.field(dtype=ti.i32, shape=())

bvh_node_mins = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_node_maxs = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_node_axes = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_node_lefts = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_node_rights = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
num_bvh_nodes = ti.field(dtype=ti.i32, shape=())

# Element the traversal starts from; -1 for an empty scene
scene_root = ti.field(dtype=ti.i32, shape=())


def clear_scene() -> None:
    """Clear every scene table.

    Resets the counts; stale rows are overwritten by later additions.
    """
    num_spheres[None] = 0
    num_rects[None] = 0
    num_boxes[None] = 0
    num_triangles[None] = 0
    num_elements[None] = 0
    num_child_refs[None] = 0
    num_bvh_nodes[None] = 0
    scene_root[None] = -1


def _reserve(counter, capacity: int, what: str, count: int = 1) -> int:
    idx = counter[None]
    if idx + count > capacity:
        raise RuntimeError(f"Maximum number of {what} ({capacity}) exceeded")
    counter[None] = idx + count
    return idx


def add_sphere_geometry(center: Sequence[float], radius: float) -> int:
    """Add a sphere to the sphere table.

    Returns:
        The index of the added sphere.

    Raises:
        RuntimeError: If the maximum number of spheres is exceeded.
    """
    idx = _reserve(num_spheres, MAX_SPHERES, "spheres")
    sphere_centers[idx] = center
    sphere_radii[idx] = radius
    return idx


def add_rect_geometry(
    plane: int,
    distance: float,
    range0: tuple[float, float],
    range1: tuple[float, float],
) -> int:
    idx = _reserve(num_rects, MAX_RECTS, "rects")
    rect_planes[idx] = int(plane)
    rect_distances[idx] = distance
    rect_range0[idx] = range0
    rect_range1[idx] = range1
    return idx


def add_box_geometry(low: Sequence[float], high: Sequence[float]) -> int:
    idx = _reserve(num_boxes, MAX_BOXES, "boxes")
    box_mins[idx] = low
    box_maxs[idx] = high
    return idx


def add_triangle_geometry(
    positions: Sequence[Sequence[float]],
    normals: Sequence[Sequence[float]],
    uvs: Sequence[Sequence[float]],
) -> int:
    idx = _reserve(num_triangles, MAX_TRIANGLES, "triangles")
    for vertex in range(3):
        triangle_positions[idx, vertex] = positions[vertex]
        triangle_normals[idx, vertex] = normals[vertex]
        triangle_uvs[idx, vertex] = uvs[vertex]
    return idx


def add_element(
    kind: ElementKind,
    ints: Sequence[int] = (0, 0, 0, 0),
    vector: Sequence[float] = (0.0, 0.0, 0.0),
    sincos: Sequence[float] = (0.0, 1.0),
    scalar: float = 0.0,
) -> int:
    """Append a row to the element table.

    Returns:
        The element index, usable as a traversal reference.

    Raises:
        RuntimeError: If the maximum number of elements is exceeded.
    """
    idx = _reserve(num_elements, MAX_ELEMENTS, "elements")
    element_kinds[idx] = int(kind)
    element_ints[idx] = tuple(ints)
    element_vectors[idx] = tuple(vector)
    element_sincos[idx] = tuple(sincos)
    element_scalars[idx] = scalar
    return idx


def add_child_refs(refs: Sequence[int]) -> int:
    """Store a run of traversal references.

    Returns:
        The start index of the run.
    """
    start = _reserve(num_child_refs, MAX_CHILD_REFS, "child references", len(refs))
    for offset, ref in enumerate(refs):
        child_refs[start + offset] = ref
    return start


def reserve_bvh_nodes(count: int) -> int:
    """Reserve ``count`` consecutive BVH node rows; returns the first."""
    return _reserve(num_bvh_nodes, MAX_BVH_NODES, "BVH nodes", count)


def set_bvh_node(
    idx: int,
    box_min: Sequence[float],
    box_max: Sequence[float],
    axis: int,
    left: int,
    right: int,
) -> None:
    bvh_node_mins[idx] = box_min
    bvh_node_maxs[idx] = box_max
    bvh_node_axes[idx] = axis
    bvh_node_lefts[idx] = left
    bvh_node_rights[idx] = right


def set_scene_root(element: int) -> None:
    scene_root[None] = element


def node_ref(node_index: int) -> int:
    """Traversal reference of a BVH node row."""
    return -1 - node_index


def get_table_counts() -> dict[str, int]:
    """Row counts of every scene table, for logging and tests."""
    return {
        "spheres": int(num_spheres[None]),
        "rects": int(num_rects[None]),
        "boxes": int(num_boxes[None]),
        "triangles": int(num_triangles[None]),
        "elements": int(num_elements[None]),
        "child_refs": int(num_child_refs[None]),
        "bvh_nodes": int(num_bvh_nodes[None]),
    }


# =============================================================================
# Geometry and Volume Hits (Taichi)
# =============================================================================


@ti.func
def hit_geometry(
    kind: ti.i32,
    index: ti.i32,
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Dispatch a hit test to the table of the given geometry kind."""
    record = make_miss_record()
    if kind == int(GeometryType.SPHERE):
        sphere = Sphere(center=sphere_centers[index], radius=sphere_radii[index])
        record = hit_sphere(ray_origin, ray_direction, sphere, t_min, t_max)
    elif kind == int(GeometryType.RECT):
        record = hit_rect(
            ray_origin,
            ray_direction,
            rect_planes[index],
            rect_distances[index],
            rect_range0[index],
            rect_range1[index],
            t_min,
            t_max,
        )
    elif kind == int(GeometryType.BOX):
        record = hit_box(
            ray_origin, ray_direction, box_mins[index], box_maxs[index], t_min, t_max
        )
    elif kind == int(GeometryType.TRIANGLE):
        record = hit_triangle(
            ray_origin,
            ray_direction,
            triangle_positions[index, 0],
            triangle_positions[index, 1],
            triangle_positions[index, 2],
            triangle_normals[index, 0],
            triangle_normals[index, 1],
            triangle_normals[index, 2],
            triangle_uvs[index, 0],
            triangle_uvs[index, 1],
            triangle_uvs[index, 2],
            t_min,
            t_max,
        )
    return record


@ti.func
def hit_volume(
    kind: ti.i32,
    index: ti.i32,
    neg_inv_density: ti.f32,
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
    noise: ti.u32,
) -> HitRecord:
    """Sample a scattering distance inside a constant-density medium.

    The boundary is queried twice to find where the ray enters and leaves
    it. The free-flight distance is ``neg_inv_density * ln(u)`` with ``u``
    in (0, 1], drawn from ``noise``.

    Returns:
        A HitRecord with normal UP and front_face 1, or a miss when the
        sampled distance lies beyond the exit.
    """
    record = make_miss_record()
    entry = hit_geometry(kind, index, ray_origin, ray_direction, -tm.inf, tm.inf)
    if entry.hit == 1:
        exit_ = hit_geometry(
            kind,
            index,
            ray_origin,
            ray_direction,
            entry.t + VOLUME_EXIT_EPSILON,
            tm.inf,
        )
        if exit_.hit == 1:
            t_enter = tm.max(entry.t, t_min)
            t_exit = tm.min(exit_.t, t_max)
            if t_enter < t_exit:
                t_enter = tm.max(t_enter, 0.0)
                speed = tm.length(ray_direction)
                inside = (t_exit - t_enter) * speed
                _, draw = rand_float(noise)
                hit_distance = neg_inv_density * tm.log(1.0 - draw)
                if hit_distance <= inside:
                    t = t_enter + hit_distance / speed
                    record = HitRecord(
                        hit=1,
                        t=t,
                        point=ray_origin + t * ray_direction,
                        normal=UP,
                        uv=vec2(0.0, 0.0),
                        front_face=1,
                    )
    return record


@ti.func
def _component(v: vec3, axis: ti.i32) -> ti.f32:
    value = v.z
    if axis == 0:
        value = v.x
    elif axis == 1:
        value = v.y
    return value


# =============================================================================
# Scene Traversal (Taichi)
# =============================================================================


@ti.func
def intersect_scene(
    ray_origin: vec3,
    ray_direction: vec3,
    time: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
    noise_seed: ti.u32,
) -> SceneHitRecord:
    """Find the nearest hit of a world-space ray within (t_min, t_max).

    Args:
        ray_origin: World-space ray origin.
        ray_direction: World-space unit ray direction.
        time: Ray time, used to place animated elements.
        t_min: Lower end of the open parameter range.
        t_max: Upper end of the open parameter range.
        noise_seed: Randomness for volume scattering; each volume element
            hashes it with its own index.

    Returns:
        A SceneHitRecord for the nearest hit, or hit == 0.
    """
    did_hit = 0
    closest = t_max
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    hit_uv = vec2(0.0, 0.0)
    is_front_face = 0
    hit_material = -1

    # Entry: a traversal ref, or with count > 0 a run of child_refs, plus the
    # local-to-world transform (offset, sin, cos) of that ref
    stack_refs = ti.Vector([0 for _ in range(STACK_SIZE)], dt=ti.i32)
    stack_counts = ti.Vector([0 for _ in range(STACK_SIZE)], dt=ti.i32)
    stack_ox = ti.Vector([0.0 for _ in range(STACK_SIZE)], dt=ti.f32)
    stack_oy = ti.Vector([0.0 for _ in range(STACK_SIZE)], dt=ti.f32)
    stack_oz = ti.Vector([0.0 for _ in range(STACK_SIZE)], dt=ti.f32)
    stack_sin = ti.Vector([0.0 for _ in range(STACK_SIZE)], dt=ti.f32)
    stack_cos = ti.Vector([1.0 for _ in range(STACK_SIZE)], dt=ti.f32)
    stack_ptr = 0

    root = scene_root[None]
    if root >= 0:
        stack_refs[0] = root
        stack_counts[0] = 0
        stack_ptr = 1

    while stack_ptr > 0:
        stack_ptr -= 1
        ref = stack_refs[stack_ptr]
        count = stack_counts[stack_ptr]
        offset = vec3(stack_ox[stack_ptr], stack_oy[stack_ptr], stack_oz[stack_ptr])
        sincos = vec2(stack_sin[stack_ptr], stack_cos[stack_ptr])

        # Up to two pushes per pop; the second is visited first
        num_push = 0
        first_ref = 0
        first_count = 0
        second_ref = 0
        second_count = 0
        next_offset = offset
        next_sincos = sincos

        if count > 0:
            # Run cursor: visit the head, keep the tail for later
            second_ref = child_refs[ref]
            if count > 1:
                first_ref = ref + 1
                first_count = count - 1
                num_push = 2
            else:
                first_ref = second_ref
                num_push = 1
        elif ref < 0:
            node = -1 - ref
            local_origin = transform_reverse_point(offset, sincos, ray_origin)
            local_direction = transform_reverse_direction(sincos, ray_direction)
            box_hit, _, _ = hit_aabb(
                bvh_node_mins[node],
                bvh_node_maxs[node],
                local_origin,
                local_direction,
                t_min,
                closest,
            )
            if box_hit == 1:
                near = bvh_node_lefts[node]
                far = bvh_node_rights[node]
                if _component(local_direction, bvh_node_axes[node]) < 0.0:
                    near = bvh_node_rights[node]
                    far = bvh_node_lefts[node]
                first_ref = far
                second_ref = near
                num_push = 2
        else:
            kind = element_kinds[ref]
            ints = element_ints[ref]
            if kind == int(ElementKind.SURFACE) or kind == int(ElementKind.VOLUME):
                local_origin = transform_reverse_point(offset, sincos, ray_origin)
                local_direction = transform_reverse_direction(sincos, ray_direction)
                record = make_miss_record()
                if kind == int(ElementKind.SURFACE):
                    record = hit_geometry(
                        ints[0], ints[1], local_origin, local_direction, t_min, closest
                    )
                else:
                    noise = hash_u32(noise_seed ^ hash_u32(ti.cast(ref, ti.u32)))
                    record = hit_volume(
                        ints[0],
                        ints[1],
                        element_scalars[ref],
                        local_origin,
                        local_direction,
                        t_min,
                        closest,
                        noise,
                    )
                if record.hit == 1 and record.t < closest:
                    did_hit = 1
                    closest = record.t
                    hit_point = transform_apply_point(offset, sincos, record.point)
                    hit_normal = transform_apply_direction(sincos, record.normal)
                    hit_uv = record.uv
                    is_front_face = record.front_face
                    hit_material = ints[2]
            elif kind == int(ElementKind.GROUP):
                if ints[1] > 0:
                    first_ref = ints[0]
                    first_count = ints[1]
                    num_push = 1
            elif kind == int(ElementKind.BVH):
                # Unbounded items are visited before the tree
                if ints[3] == 1:
                    first_ref = ints[0]
                    num_push = 1
                    if ints[2] > 0:
                        second_ref = ints[1]
                        second_count = ints[2]
                        num_push = 2
                elif ints[2] > 0:
                    first_ref = ints[1]
                    first_count = ints[2]
                    num_push = 1
            elif kind == int(ElementKind.TRANSFORMATION):
                first_ref = ints[0]
                num_push = 1
                next_offset, next_sincos = transform_then(
                    element_vectors[ref], element_sincos[ref], offset, sincos
                )
            elif kind == int(ElementKind.ANIMATION):
                first_ref = ints[0]
                num_push = 1
                next_offset, next_sincos = transform_then(
                    element_vectors[ref] * time, vec2(0.0, 1.0), offset, sincos
                )

        if num_push >= 1 and stack_ptr < STACK_SIZE:
            stack_refs[stack_ptr] = first_ref
            stack_counts[stack_ptr] = first_count
            stack_ox[stack_ptr] = next_offset.x
            stack_oy[stack_ptr] = next_offset.y
            stack_oz[stack_ptr] = next_offset.z
            stack_sin[stack_ptr] = next_sincos[0]
            stack_cos[stack_ptr] = next_sincos[1]
            stack_ptr += 1
        if num_push >= 2 and stack_ptr < STACK_SIZE:
            stack_refs[stack_ptr] = second_ref
            stack_counts[stack_ptr] = second_count
            stack_ox[stack_ptr] = next_offset.x
            stack_oy[stack_ptr] = next_offset.y
            stack_oz[stack_ptr] = next_offset.z
            stack_sin[stack_ptr] = next_sincos[0]
            stack_cos[stack_ptr] = next_sincos[1]
            stack_ptr += 1

    return SceneHitRecord(
        hit=did_hit,
        t=closest,
        point=hit_point,
        normal=hit_normal,
        uv=hit_uv,
        front_face=is_front_face,
        material_id=hit_material,
    )
