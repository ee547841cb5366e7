"""Lambertian (ideal diffuse) material implementation.

This module implements the Lambertian BRDF, which scatters incident light in
all directions weighted by the cosine of the angle from the surface normal.

The Lambertian BRDF is:
    f_r(wi, wo) = albedo / pi

A Lambertian hit does not pick a direction itself; it hands the integrator a
cosine distribution around the normal, so the direction can be drawn from
the light/material mixture (see ``materials.sampling``). When sampled from
the cosine lobe alone, the BRDF * cos / pdf weight reduces to the albedo.

Example:
    >>> from pathtracer.materials.lambertian import Lambertian
    >>> red = Lambertian.from_color((0.65, 0.05, 0.05))
"""

from dataclasses import dataclass
from typing import Sequence

import taichi as ti
import taichi.math as tm

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
class Lambertian:
    """Ideal diffuse material.

    Attributes:
        albedo: Diffuse reflectance texture. Every colour it produces must
            lie in [0, 1] for energy conservation.
    """

    albedo: Texture

    def __post_init__(self) -> None:
        object.__setattr__(self, "albedo", as_texture(self.albedo))

    @classmethod
    def from_color(cls, color: Sequence[float]) -> "Lambertian":
        return cls(as_texture(color))


@ti.func
def scatter_lambertian(albedo: vec3, normal: vec3):
    """Scatter off a Lambertian surface.

    Args:
        albedo: The diffuse reflectance at the hit.
        normal: The surface normal at the hit point (facing the ray).

    Returns:
        A tuple of (did_scatter, attenuation, kind, vector): always
        scatters, with a cosine distribution around the normal.
    """
    return 1, albedo, int(DistributionKind.COSINE), normal


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

# Maximum number of Lambertian materials in the scene
MAX_LAMBERTIAN_MATERIALS = 1024

# Texture index of each Lambertian material
lambertian_textures = ti.field(dtype=ti.i32, shape=MAX_LAMBERTIAN_MATERIALS)
num_lambertian_materials = ti.field(dtype=ti.i32, shape=())


def clear_lambertian_materials() -> None:
    """Clear all Lambertian materials.

    Resets the material count to zero. Existing data in the field will be
    overwritten when new materials are added.
    """
    num_lambertian_materials[None] = 0


def add_lambertian_material(albedo: Texture) -> int:
    """Add a Lambertian material to the material registry.

    Args:
        albedo: The diffuse reflectance texture.

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If any albedo component is outside [0, 1].
    """
    for color in texture_colors(albedo):
        for i, component in enumerate(color):
            if component < 0.0 or component > 1.0:
                raise ValueError(
                    f"Albedo component {i} = {component} is outside [0, 1]. "
                    "This would violate energy conservation."
                )

    idx = num_lambertian_materials[None]
    if idx >= MAX_LAMBERTIAN_MATERIALS:
        raise RuntimeError(
            f"Maximum number of Lambertian materials ({MAX_LAMBERTIAN_MATERIALS}) exceeded"
        )

    lambertian_textures[idx] = add_texture(albedo)
    num_lambertian_materials[None] = idx + 1
    return idx


def get_lambertian_material_count() -> int:
    """Get the number of Lambertian materials in the registry."""
    return int(num_lambertian_materials[None])


@ti.func
def get_lambertian_albedo(material_idx: ti.i32, point: vec3, uv: vec2) -> vec3:
    """Get the albedo of a Lambertian material at a hit.

    Args:
        material_idx: The index of the material in the registry.
        point: World-space hit position.
        uv: Surface coordinates of the hit.

    Returns:
        The albedo color (RGB).
    """
    return sample_texture(lambertian_textures[material_idx], point, uv)
