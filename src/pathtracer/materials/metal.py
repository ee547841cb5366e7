"""Metal (specular reflective) material implementation.

This module implements the metal BSDF, which models specular reflection with
optional fuzz. Perfect metals (fuzz=0) produce mirror-like reflections,
while fuzzier metals perturb the reflected direction by a random offset
inside a ball of radius ``fuzz``.

The reflection formula is:
    R = I - 2(I . N)N

The scattered direction is a delta distribution: the integrator follows it
with weight 1. A perturbed direction that ends up below the surface is
absorbed.
"""

from dataclasses import dataclass
from typing import Sequence

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import normalize, reflect
from pathtracer.core.sampler import RngState, random_in_unit_sphere
from pathtracer.materials.sampling import DistributionKind
from pathtracer.materials.texture import (
    Texture,
    add_texture,
    as_texture,
    sample_texture,
    texture_colors,
)

# Type alias for 3D vectors
vec3 = tm.vec3
vec2 = tm.vec2


@dataclass(frozen=True, eq=False)
class Metal:
    """Specular reflector.

    Attributes:
        albedo: Colour tint of reflected light.
        fuzz: Radius of the random perturbation, in [0, 1]. 0 is a mirror.
    """

    albedo: Texture
    fuzz: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "albedo", as_texture(self.albedo))

    @classmethod
    def from_color(cls, color: Sequence[float], fuzz: float = 0.0) -> "Metal":
        return cls(as_texture(color), fuzz)


@ti.func
def scatter_metal(
    state: RngState,
    albedo: vec3,
    fuzz: ti.f32,
    incident_direction: vec3,
    normal: vec3,
):
    """Reflect off a metal surface.

    Args:
        state: Generator state.
        albedo: The reflective color at the hit.
        fuzz: The perturbation radius in [0, 1].
        incident_direction: The incoming ray direction (normalized).
        normal: The surface normal (normalized, facing the ray).

    Returns:
        A tuple of (new_state, did_scatter, attenuation, kind, direction).
        did_scatter is 0 when the fuzzed direction points into the surface.
    """
    rng, offset = random_in_unit_sphere(state)
    scattered = reflect(incident_direction, normal) + fuzz * offset

    did_scatter = 0
    direction = vec3(0.0, 0.0, 0.0)
    if tm.dot(scattered, normal) > 0.0:
        did_scatter = 1
        direction = normalize(scattered)

    return rng, did_scatter, albedo, int(DistributionKind.DELTA), direction


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

# Maximum number of metal materials in the scene
MAX_METAL_MATERIALS = 1024

# Storage for metal material properties
metal_textures = ti.field(dtype=ti.i32, shape=MAX_METAL_MATERIALS)
metal_fuzz = ti.field(dtype=ti.f32, shape=MAX_METAL_MATERIALS)
num_metal_materials = ti.field(dtype=ti.i32, shape=())


def clear_metal_materials() -> None:
    """Clear all metal materials."""
    num_metal_materials[None] = 0


def add_metal_material(albedo: Texture, fuzz: float = 0.0) -> int:
    """Add a metal material to the material registry.

    Args:
        albedo: The reflective color texture. Components must be in [0, 1].
        fuzz: The perturbation radius in [0, 1]. Default is 0 (perfect mirror).

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If any albedo component is outside [0, 1].
        ValueError: If fuzz is outside [0, 1].
    """
    for color in texture_colors(albedo):
        for i, component in enumerate(color):
            if component < 0.0 or component > 1.0:
                raise ValueError(
                    f"Albedo component {i} = {component} is outside [0, 1]. "
                    "This would violate energy conservation."
                )

    if fuzz < 0.0 or fuzz > 1.0:
        raise ValueError(
            f"Fuzz = {fuzz} is outside [0, 1]. "
            "Fuzz must be between 0 (perfect mirror) and 1 (maximum fuzz)."
        )

    idx = num_metal_materials[None]
    if idx >= MAX_METAL_MATERIALS:
        raise RuntimeError(
            f"Maximum number of metal materials ({MAX_METAL_MATERIALS}) exceeded"
        )

    metal_textures[idx] = add_texture(albedo)
    metal_fuzz[idx] = fuzz
    num_metal_materials[None] = idx + 1
    return idx


def get_metal_material_count() -> int:
    """Get the number of metal materials in the registry."""
    return int(num_metal_materials[None])


@ti.func
def get_metal_albedo(material_idx: ti.i32, point: vec3, uv: vec2) -> vec3:
    return sample_texture(metal_textures[material_idx], point, uv)


@ti.func
def get_metal_fuzz(material_idx: ti.i32) -> ti.f32:
    return metal_fuzz[material_idx]
