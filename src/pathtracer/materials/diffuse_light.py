"""Diffuse area light material.

An emitter absorbs every ray that hits it and contributes its emitted
radiance to the path. Emission may exceed 1 per channel.
"""

from dataclasses import dataclass
from typing import Sequence

import taichi as ti
import taichi.math as tm

from pathtracer.materials.texture import Texture, add_texture, as_texture, sample_texture

vec3 = tm.vec3
vec2 = tm.vec2


@dataclass(frozen=True, eq=False)
class DiffuseLight:
    """Emitter.

    Attributes:
        emit: Emitted radiance texture.
    """

    emit: Texture

    def __post_init__(self) -> None:
        object.__setattr__(self, "emit", as_texture(self.emit))

    @classmethod
    def from_color(cls, color: Sequence[float]) -> "DiffuseLight":
        return cls(as_texture(color))


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

MAX_DIFFUSE_LIGHT_MATERIALS = 256

diffuse_light_textures = ti.field(dtype=ti.i32, shape=MAX_DIFFUSE_LIGHT_MATERIALS)
num_diffuse_light_materials = ti.field(dtype=ti.i32, shape=())


def clear_diffuse_light_materials() -> None:
    """Clear all emitter materials."""
    num_diffuse_light_materials[None] = 0


def add_diffuse_light_material(emit: Texture) -> int:
    """Add an emitter material to the material registry.

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
    """
    idx = num_diffuse_light_materials[None]
    if idx >= MAX_DIFFUSE_LIGHT_MATERIALS:
        raise RuntimeError(
            f"Maximum number of diffuse light materials ({MAX_DIFFUSE_LIGHT_MATERIALS}) exceeded"
        )

    diffuse_light_textures[idx] = add_texture(emit)
    num_diffuse_light_materials[None] = idx + 1
    return idx


def get_diffuse_light_material_count() -> int:
    return int(num_diffuse_light_materials[None])


@ti.func
def get_diffuse_light_emission(material_idx: ti.i32, point: vec3, uv: vec2) -> vec3:
    """Emitted radiance of an emitter material at a hit."""
    return sample_texture(diffuse_light_textures[material_idx], point, uv)
