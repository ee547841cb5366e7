"""Scattering distributions, the scene light distribution, and MIS.

After a hit, a material presents one of two scattering distributions:

    COSINE: diffuse scattering around the surface normal, density
        max(0, cos(theta)) / pi. Can be resampled analytically.
    DELTA: all probability on one direction (mirror, fuzzy mirror,
        refraction, isotropic phase draw). Always taken with weight 1.

Separately, the scene may expose one light distribution built from a Rect:
directions towards a uniformly chosen point on the rect, with the
solid-angle density distance^2 / (|cos| * area).

For a COSINE distribution the integrator draws from a 50/50 mixture of the
light and the material distribution and weights the sample with the balance
heuristic:

    p = 0.5 * p_light(dir) + 0.5 * p_cosine(dir)
    ratio = p_cosine(dir) / p

Without a light, the cosine lobe alone is sampled and the ratio is 1.
"""

import logging
from enum import IntEnum

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import near_zero, normalize
from pathtracer.core.sampler import RngState, rand_float, random_unit_vector
from pathtracer.geometry.rect import RectGeometry, hit_rect, rect_area, rect_sample_point

logger = logging.getLogger(__name__)

vec3 = tm.vec3
vec2 = tm.vec2

# Lower bound of the t-range used when probing the light along a direction
LIGHT_T_MIN = 0.001


class DistributionKind(IntEnum):
    COSINE = 0
    DELTA = 1


# =============================================================================
# Cosine Distribution
# =============================================================================


@ti.func
def cosine_generate(state: RngState, normal: vec3):
    """Draw a cosine-weighted direction around a normal.

    Adds a uniformly distributed unit vector to the normal and renormalizes;
    falls back to the normal when the sum is near zero.

    Returns:
        A tuple of (new_state, direction).
    """
    rng, offset = random_unit_vector(state)
    candidate = normal + offset
    direction = normal
    if not near_zero(candidate):
        direction = normalize(candidate)
    return rng, direction


@ti.func
def cosine_value(normal: vec3, direction: vec3) -> ti.f32:
    """Density of the cosine distribution: max(0, cos(theta)) / pi."""
    return tm.max(0.0, tm.dot(normal, direction)) / tm.pi


# =============================================================================
# Light Distribution
# =============================================================================

_light_enabled = ti.field(dtype=ti.i32, shape=())
_light_plane = ti.field(dtype=ti.i32, shape=())
_light_distance = ti.field(dtype=ti.f32, shape=())
_light_range0 = ti.Vector.field(2, dtype=ti.f32, shape=())
_light_range1 = ti.Vector.field(2, dtype=ti.f32, shape=())


def setup_light(rect: RectGeometry | None) -> None:
    """Install (or with None, remove) the scene's light distribution.

    Args:
        rect: World-space rect to sample towards.

    Raises:
        ValueError: If the rect has zero or infinite area.
    """
    if rect is None:
        disable_light()
        return
    area = rect.area()
    if not (0.0 < area < float("inf")):
        raise ValueError(f"Light rect must have finite, positive area, got {area}")
    _light_plane[None] = int(rect.plane)
    _light_distance[None] = rect.distance
    _light_range0[None] = rect.range0
    _light_range1[None] = rect.range1
    _light_enabled[None] = 1
    logger.debug("Light distribution set to %s", rect)


def disable_light() -> None:
    """Remove the light distribution; sampling falls back to materials only."""
    _light_enabled[None] = 0


def is_light_enabled() -> bool:
    return _light_enabled[None] == 1


@ti.func
def light_generate(state: RngState, origin: vec3):
    """Draw a direction from ``origin`` towards a uniform point on the light.

    Returns:
        A tuple of (new_state, direction).
    """
    rng, target = rect_sample_point(
        state,
        _light_plane[None],
        _light_distance[None],
        _light_range0[None],
        _light_range1[None],
    )
    return rng, normalize(target - origin)


@ti.func
def light_value(origin: vec3, direction: vec3) -> ti.f32:
    """Solid-angle density of ``direction`` under the light distribution.

    Returns 0 exactly when the direction does not hit the light.
    """
    record = hit_rect(
        origin,
        direction,
        _light_plane[None],
        _light_distance[None],
        _light_range0[None],
        _light_range1[None],
        LIGHT_T_MIN,
        tm.inf,
    )
    value = 0.0
    if record.hit == 1:
        cosine = ti.abs(tm.dot(direction, record.normal))
        if cosine > 0.0:
            area = rect_area(_light_range0[None], _light_range1[None])
            value = record.t * record.t / (cosine * area)
    return value


# =============================================================================
# Mixture Sampling
# =============================================================================


@ti.func
def sample_scatter_direction(state: RngState, point: vec3, kind: ti.i32, vector: vec3):
    """Pick the next path direction for a scattering event.

    Args:
        state: Generator state.
        point: World-space hit position.
        kind: DistributionKind of the material's distribution.
        vector: The normal (COSINE) or the fixed direction (DELTA).

    Returns:
        A tuple of (new_state, direction, ratio), where ratio is the
        throughput multiplier material_pdf(direction) / mixture_pdf.
    """
    rng = state
    direction = vector
    ratio = 1.0
    if kind == int(DistributionKind.COSINE):
        if _light_enabled[None] == 1:
            rng, u = rand_float(rng)
            if u < 0.5:
                rng, direction = light_generate(rng, point)
            else:
                rng, direction = cosine_generate(rng, vector)
            material_pdf = cosine_value(vector, direction)
            mixture_pdf = 0.5 * light_value(point, direction) + 0.5 * material_pdf
            ratio = 0.0
            if mixture_pdf > 0.0:
                ratio = material_pdf / mixture_pdf
        else:
            rng, direction = cosine_generate(rng, vector)
    return rng, direction, ratio
