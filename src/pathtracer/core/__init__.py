"""Core rendering module.

Components:
    ray: Ray data structure and vector utilities
    sampler: Explicit-state random number generation
    integrator: The iterative path tracing loop
    renderer: Multi-worker rendering, merging and progress reporting

All per-ray work runs in Taichi functions. The generator state is threaded
through every sampling call explicitly, which keeps renders reproducible
regardless of how Taichi schedules parallel loops.
"""

from .ray import (
    UP,
    Ray,
    cross,
    dot,
    is_finite_color,
    length_squared,
    lerp,
    make_ray,
    near_zero,
    normalize,
    ray_at,
    reflect,
    refract,
    schlick_reflectance,
    vec3,
)
from .sampler import (
    RngState,
    derive_worker_seeds,
    hash_u32,
    lane_state,
    rand_float,
    rand_range,
    rand_u32,
    random_in_unit_disk,
    random_in_unit_sphere,
    random_unit_vector,
)

# Note: integrator and renderer are NOT imported here; they declare Taichi
# fields and pull in the scene package. Import them directly:
#   from pathtracer.core.renderer import render

__all__ = [
    "UP",
    "Ray",
    "ray_at",
    "make_ray",
    "vec3",
    "length_squared",
    "normalize",
    "dot",
    "cross",
    "reflect",
    "refract",
    "schlick_reflectance",
    "near_zero",
    "lerp",
    "is_finite_color",
    "RngState",
    "derive_worker_seeds",
    "hash_u32",
    "lane_state",
    "rand_u32",
    "rand_float",
    "rand_range",
    "random_in_unit_sphere",
    "random_unit_vector",
    "random_in_unit_disk",
]
