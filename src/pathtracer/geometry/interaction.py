"""Surface interaction record shared by all geometry hit routines."""

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3
vec2 = tm.vec2


@ti.dataclass
class HitRecord:
    """Record of a ray-geometry intersection.

    Attributes:
        hit: Whether the ray intersected the geometry (1 if hit, 0 if miss).
        t: The parameter value along the ray where intersection occurred.
            Only valid if hit == 1.
        point: The 3D point where the ray intersected the surface.
        normal: The unit surface normal, flipped to oppose the incoming ray.
        uv: Surface parameterisation at the hit point.
        front_face: 1 if the ray arrived on the side the outward normal
            points to, 0 otherwise. Dielectrics use it to tell entering
            from exiting.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    uv: vec2
    front_face: ti.i32


@ti.func
def make_miss_record() -> HitRecord:
    """Create a HitRecord indicating no intersection."""
    return HitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        uv=vec2(0.0, 0.0),
        front_face=0,
    )


@ti.func
def face_forward(outward_normal: vec3, ray_direction: vec3):
    """Orient a surface normal against the incoming ray.

    Args:
        outward_normal: The geometric normal on the geometry's outside.
        ray_direction: The incoming ray direction.

    Returns:
        A tuple of (normal, front_face) where normal opposes the ray.
    """
    front_face = 1
    normal = outward_normal
    if tm.dot(outward_normal, ray_direction) >= 0.0:
        front_face = 0
        normal = -outward_normal
    return normal, front_face
