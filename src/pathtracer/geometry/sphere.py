"""Sphere primitive with robust ray-sphere intersection.

The host-side ``SphereGeometry`` is the immutable value used while building
the scene; ``Sphere`` and ``hit_sphere`` are its device counterparts.

Ray directions are unit length throughout the renderer, so the quadratic
is solved in its half-b form with a = 1. Both the discriminant and the roots
follow Ray Tracing Gems (chapter 7): the discriminant is taken from the
distance between the centre and the ray line, and the roots avoid
subtracting nearly equal values, so small spheres seen from far away stay
accurate in single precision.

Example:
    >>> sphere = SphereGeometry(center=(0.0, 0.0, -1.0), radius=0.5)
    >>> sphere.bounding_box()
    Aabb(min=(-0.5, -0.5, -1.5), max=(0.5, 0.5, -0.5))
"""

from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from pathtracer.geometry.aabb import Aabb
from pathtracer.geometry.interaction import HitRecord, face_forward
from pathtracer.geometry.transform import Transformation, Vec3

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3
vec2 = tm.vec2


@dataclass(frozen=True)
class SphereGeometry:
    """A sphere given by centre and radius.

    Raises:
        ValueError: If the radius is not positive.
    """

    center: Vec3
    radius: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "center", tuple(float(c) for c in self.center))
        if self.radius <= 0.0:
            raise ValueError(f"Sphere radius must be positive, got {self.radius}")

    def bounding_box(self) -> Aabb:
        return Aabb.around(self.center, self.radius)

    def partial_apply(self, transform: Transformation) -> tuple["SphereGeometry", None]:
        """Bake a transform into the sphere; it never needs a residual."""
        return (
            SphereGeometry(
                transform.apply_point(self.center), transform.apply_distance(self.radius)
            ),
            None,
        )


@ti.dataclass
class Sphere:
    """A sphere defined by center point and radius.

    Attributes:
        center: The center point of the sphere (vec3).
        radius: The radius of the sphere (positive float).
    """

    center: vec3
    radius: ti.f32


@ti.func
def _solve_quadratic_robust(h: ti.f32, c: ti.f32, sqrt_d: ti.f32):
    """Solve t^2 + 2*h*t + c = 0 with a numerically stable method.

    Args:
        h: Half of the linear coefficient.
        c: Constant term.
        sqrt_d: Square root of the discriminant (h^2 - c).

    Returns:
        Tuple of (t0, t1) where t0 <= t1.
    """
    # q = -(h + sign(h) * sqrt(discriminant)) never subtracts nearly equal values
    sign_h = ti.select(h < 0.0, -1.0, 1.0)
    q = -(h + sign_h * sqrt_d)

    t0 = 0.0
    t1 = 0.0

    if ti.abs(q) < 1e-10:
        # Tangent ray through the centre plane; fall back to the direct formula
        t0 = -h - sqrt_d
        t1 = -h + sqrt_d
    else:
        t0 = q
        t1 = c / q

    if t0 > t1:
        temp = t0
        t0 = t1
        t1 = temp

    return t0, t1


@ti.func
def sphere_uv(outward_normal: vec3) -> vec2:
    """Spherical (longitude, latitude) coordinates of a unit normal in [0, 1]."""
    theta = tm.acos(tm.clamp(-outward_normal.y, -1.0, 1.0))
    phi = tm.atan2(-outward_normal.z, outward_normal.x) + tm.pi
    return vec2(phi / (2.0 * tm.pi), theta / tm.pi)


@ti.func
def hit_sphere(
    ray_origin: vec3,
    ray_direction: vec3,
    sphere: Sphere,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Test for ray-sphere intersection.

    The intersection solves |origin + t * direction - center|^2 = radius^2,
    which for a unit direction is t^2 + 2*h*t + c = 0 with
    h = dot(direction, origin - center) and c = |origin - center|^2 - radius^2.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The unit direction of the ray.
        sphere: The sphere to test intersection against.
        t_min: Lower end of the open parameter range.
        t_max: Upper end of the open parameter range.

    Returns:
        A HitRecord for the nearest root in (t_min, t_max). The smaller root
        is preferred; the larger is used when the smaller is out of range
        (ray starting inside the sphere).
    """
    oc = ray_origin - sphere.center
    h = tm.dot(ray_direction, oc)
    c = tm.dot(oc, oc) - sphere.radius * sphere.radius
    # h^2 - c rewritten as r^2 - |oc - h*d|^2: no cancellation for distant origins
    perpendicular = oc - h * ray_direction
    discriminant = sphere.radius * sphere.radius - tm.dot(perpendicular, perpendicular)

    # Initialize result fields (Taichi requires outer-scope declaration)
    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    hit_uv = vec2(0.0, 0.0)
    is_front_face = 0

    if discriminant >= 0.0:
        sqrt_d = ti.sqrt(discriminant)
        t0, t1 = _solve_quadratic_robust(h, c, sqrt_d)

        t = t0
        valid = (t > t_min) and (t < t_max)
        if not valid:
            t = t1
            valid = (t > t_min) and (t < t_max)

        if valid:
            did_hit = 1
            hit_t = t
            hit_point = ray_origin + t * ray_direction
            outward_normal = tm.normalize(hit_point - sphere.center)
            hit_normal, is_front_face = face_forward(outward_normal, ray_direction)
            hit_uv = sphere_uv(outward_normal)

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=hit_normal,
        uv=hit_uv,
        front_face=is_front_face,
    )
