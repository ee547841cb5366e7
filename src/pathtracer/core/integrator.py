"""Path tracing integrator for Monte Carlo light transport.

This module implements the per-ray light transport: an iterative path tracer
with material-based scattering and combined light/material importance
sampling, plus a normals debug mode.

Along a path the integrator keeps the accumulated attenuation (product of
``attenuation * ratio`` over the bounces so far) and the accumulated emitted
radiance. At each step:

    - a miss returns ``emitted + attenuation * background``;
    - a hit once the depth budget is spent returns black;
    - an absorbing hit returns ``emitted + attenuation * emission``;
    - a scattering hit adds its emission, multiplies in the material
      attenuation and sampling ratio, and continues from the hit point.

The random state is threaded through explicitly, so a path is a pure
function of its starting state.

Example:
    >>> @ti.kernel
    ... def shade(seed: ti.u32) -> vec3:
    ...     state = lane_state(seed, 0)
    ...     state, origin, direction, time = get_ray(state, 0.5, 0.5)
    ...     state, color = trace_path(state, origin, direction, time, 50)
    ...     return color
"""

from enum import IntEnum

import taichi as ti
import taichi.math as tm

from pathtracer.core.sampler import RngState, rand_u32
from pathtracer.materials.dielectric import get_dielectric_ior, scatter_dielectric
from pathtracer.materials.diffuse_light import get_diffuse_light_emission
from pathtracer.materials.isotropic import get_isotropic_albedo, scatter_isotropic
from pathtracer.materials.lambertian import get_lambertian_albedo, scatter_lambertian
from pathtracer.materials.metal import get_metal_albedo, get_metal_fuzz, scatter_metal
from pathtracer.materials.sampling import DistributionKind, sample_scatter_direction
from pathtracer.scene.background import sample_background
from pathtracer.scene.intersection import SceneHitRecord, intersect_scene
from pathtracer.scene.manager import (
    MaterialType,
    get_material_type,
    get_material_type_index,
)

# Type alias for 3D vectors
vec3 = tm.vec3

# =============================================================================
# Rendering Constants
# =============================================================================

# t_min and t_max for ray intersection; t_min keeps bounces off their own surface
T_MIN = 0.001
T_MAX = 1e10


class RenderMode(IntEnum):
    """What a sample computes."""

    DEFAULT = 0
    NORMALS = 1


# =============================================================================
# Material Dispatch
# =============================================================================


@ti.func
def _scatter_material(state: RngState, incident_direction: vec3, record: SceneHitRecord):
    """Dispatch to the appropriate material scattering function.

    Args:
        state: Generator state.
        incident_direction: The incoming ray direction (normalized).
        record: The hit being shaded.

    Returns:
        A tuple of (new_state, did_scatter, attenuation, kind, vector) where
        kind is a DistributionKind and vector the normal (COSINE) or the
        scattered direction (DELTA).
    """
    mat_type = get_material_type(record.material_id)
    type_index = get_material_type_index(record.material_id)

    rng = state
    did_scatter = 0
    attenuation = vec3(0.0, 0.0, 0.0)
    kind = int(DistributionKind.DELTA)
    vector = vec3(0.0, 0.0, 0.0)

    if mat_type == int(MaterialType.LAMBERTIAN):
        albedo = get_lambertian_albedo(type_index, record.point, record.uv)
        did_scatter, attenuation, kind, vector = scatter_lambertian(albedo, record.normal)

    elif mat_type == int(MaterialType.METAL):
        albedo = get_metal_albedo(type_index, record.point, record.uv)
        fuzz = get_metal_fuzz(type_index)
        rng, did_scatter, attenuation, kind, vector = scatter_metal(
            rng, albedo, fuzz, incident_direction, record.normal
        )

    elif mat_type == int(MaterialType.DIELECTRIC):
        ior = get_dielectric_ior(type_index)
        rng, did_scatter, attenuation, kind, vector = scatter_dielectric(
            rng, ior, incident_direction, record.normal, record.front_face
        )

    elif mat_type == int(MaterialType.ISOTROPIC):
        albedo = get_isotropic_albedo(type_index, record.point, record.uv)
        rng, did_scatter, attenuation, kind, vector = scatter_isotropic(rng, albedo)

    # DIFFUSE_LIGHT and unknown ids absorb

    return rng, did_scatter, attenuation, kind, vector


@ti.func
def _get_emission(record: SceneHitRecord) -> vec3:
    """Emitted radiance at a hit; zero for every non-emitter."""
    emission = vec3(0.0, 0.0, 0.0)
    if get_material_type(record.material_id) == int(MaterialType.DIFFUSE_LIGHT):
        type_index = get_material_type_index(record.material_id)
        emission = get_diffuse_light_emission(type_index, record.point, record.uv)
    return emission


# =============================================================================
# Path Tracing Core
# =============================================================================


@ti.func
def trace_path(
    state: RngState,
    origin: vec3,
    direction: vec3,
    time: ti.f32,
    max_depth: ti.i32,
):
    """Estimate the radiance arriving along a ray.

    Args:
        state: Generator state.
        origin: Ray origin.
        direction: Unit ray direction.
        time: Ray time, kept for every bounce.
        max_depth: Depth budget; a hit with budget <= 1 returns black.

    Returns:
        A tuple of (new_state, radiance).
    """
    rng = state
    ray_origin = origin
    ray_direction = direction
    depth = max_depth

    attenuation = vec3(1.0, 1.0, 1.0)
    emitted = vec3(0.0, 0.0, 0.0)
    radiance = vec3(0.0, 0.0, 0.0)

    # Active flag for path continuation
    active = 1
    while active == 1:
        rng, noise = rand_u32(rng)
        record = intersect_scene(ray_origin, ray_direction, time, T_MIN, T_MAX, noise)

        if record.hit == 0:
            radiance = emitted + attenuation * sample_background(ray_direction)
            active = 0
        elif depth <= 1:
            radiance = vec3(0.0, 0.0, 0.0)
            active = 0
        else:
            emission = _get_emission(record)
            rng, did_scatter, material_attenuation, kind, vector = _scatter_material(
                rng, ray_direction, record
            )
            if did_scatter == 0:
                radiance = emitted + attenuation * emission
                active = 0
            else:
                rng, next_direction, ratio = sample_scatter_direction(
                    rng, record.point, kind, vector
                )
                emitted += attenuation * emission
                attenuation *= material_attenuation * ratio
                ray_origin = record.point
                ray_direction = next_direction
                depth -= 1

    return rng, radiance


@ti.func
def trace_normals(state: RngState, origin: vec3, direction: vec3, time: ti.f32):
    """Debug shading: the hit normal mapped to [0, 1], background on a miss.

    Returns:
        A tuple of (new_state, color).
    """
    rng, noise = rand_u32(state)
    record = intersect_scene(origin, direction, time, T_MIN, T_MAX, noise)
    color = sample_background(direction)
    if record.hit == 1:
        color = (record.normal + vec3(1.0, 1.0, 1.0)) * 0.5
    return rng, color


@ti.func
def trace_sample(
    state: RngState,
    origin: vec3,
    direction: vec3,
    time: ti.f32,
    max_depth: ti.i32,
    mode: ti.i32,
):
    """Run the integrator selected by ``mode`` (a RenderMode value)."""
    rng = state
    color = vec3(0.0, 0.0, 0.0)
    if mode == int(RenderMode.NORMALS):
        rng, color = trace_normals(rng, origin, direction, time)
    else:
        rng, color = trace_path(rng, origin, direction, time, max_depth)
    return rng, color
