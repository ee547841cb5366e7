"""Isotropic phase function for participating media.

Inside a constant-density volume, a scattering event sends the ray off in a
uniformly random direction, tinted by the medium's albedo. The drawn
direction is handed to the integrator as a delta distribution.
"""

from dataclasses import dataclass
from typing import Sequence

import taichi as ti
import taichi.math as tm

from pathtracer.core.sampler import RngState, random_unit_vector
from pathtracer.materials.sampling import DistributionKind
from pathtracer.materials.texture import (
    Texture,
    add_texture,
    as_texture,
    sample_texture,
    texture_colors,
)

vec3 = tm.vec3
vec2 = tm.vec2


@dataclass(frozen=True, eq=False)
class Isotropic:
    """Uniform phase function.

    Attributes:
        albedo: Colour of the medium.
    """

    albedo: Texture

    def __post_init__(self) -> None:
        object.__setattr__(self, "albedo", as_texture(self.albedo))

    @classmethod
    def from_color(cls, color: Sequence[float]) -> "Isotropic":
        return cls(as_texture(color))


@ti.func
def scatter_isotropic(state: RngState, albedo: vec3):
    """Scatter in a uniformly random direction.

    Returns:
        A tuple of (new_state, did_scatter, attenuation, kind, direction).
    """
    rng, direction = random_unit_vector(state)
    return rng, 1, albedo, int(DistributionKind.DELTA), direction


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

MAX_ISOTROPIC_MATERIALS = 256

isotropic_textures = ti.field(dtype=ti.i32, shape=MAX_ISOTROPIC_MATERIALS)
num_isotropic_materials = ti.field(dtype=ti.i32, shape=())


def clear_isotropic_materials() -> None:
    """Clear all isotropic materials."""
    num_isotropic_materials[None] = 0


def add_isotropic_material(albedo: Texture) -> int:
    """Add an isotropic phase function to the material registry.

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If any albedo component is outside [0, 1].
    """
    for color in texture_colors(albedo):
        for i, component in enumerate(color):
            if component < 0.0 or component > 1.0:
                raise ValueError(f"Albedo component {i} = {component} is outside [0, 1].")

    idx = num_isotropic_materials[None]
    if idx >= MAX_ISOTROPIC_MATERIALS:
        raise RuntimeError(
            f"Maximum number of isotropic materials ({MAX_ISOTROPIC_MATERIALS}) exceeded"
        )

    isotropic_textures[idx] = add_texture(albedo)
    num_isotropic_materials[None] = idx + 1
    return idx


def get_isotropic_material_count() -> int:
    return int(num_isotropic_materials[None])


@ti.func
def get_isotropic_albedo(material_idx: ti.i32, point: vec3, uv: vec2) -> vec3:
    return sample_texture(isotropic_textures[material_idx], point, uv)
