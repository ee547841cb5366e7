"""Unified material registry for material dispatch in the path tracer.

Every material kind keeps its own field table (``lambertian_textures``,
``metal_fuzz``...). This module assigns one scene-wide material id per
material value and records, for each id, the material kind and the index in
that kind's table. The integrator reads both to dispatch scattering.

Materials are registered by identity: a material shared between several
leaves gets a single id.

Example:
    >>> registry = MaterialRegistry()
    >>> red = Lambertian.from_color((0.65, 0.05, 0.05))
    >>> registry.register(red)
    0
    >>> registry.register(red)  # same object, same id
    0
"""

import logging
from dataclasses import dataclass
from enum import IntEnum

import taichi as ti

from pathtracer.materials import (
    Dielectric,
    DiffuseLight,
    Isotropic,
    Lambertian,
    Material,
    Metal,
    add_dielectric_material,
    add_diffuse_light_material,
    add_isotropic_material,
    add_lambertian_material,
    add_metal_material,
    clear_dielectric_materials,
    clear_diffuse_light_materials,
    clear_isotropic_materials,
    clear_lambertian_materials,
    clear_metal_materials,
    clear_textures,
)

logger = logging.getLogger(__name__)


class MaterialType(IntEnum):
    """Enumeration of supported material types.

    Used for material dispatch in the path tracer to determine which
    scattering function to call.
    """

    LAMBERTIAN = 0
    METAL = 1
    DIELECTRIC = 2
    DIFFUSE_LIGHT = 3
    ISOTROPIC = 4


# Maximum number of materials across all types
MAX_MATERIALS = 2048

# material_types[i] stores the MaterialType for material_id i
material_types = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
# material_type_indices[i] stores the type-local index for material_id i
material_type_indices = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())


def clear_materials() -> None:
    """Clear every material table, the textures, and the id mapping."""
    clear_lambertian_materials()
    clear_metal_materials()
    clear_dielectric_materials()
    clear_diffuse_light_materials()
    clear_isotropic_materials()
    clear_textures()
    num_materials[None] = 0


@ti.func
def get_material_type(material_id: ti.i32) -> ti.i32:
    """Get the material type for a given material ID.

    Returns:
        The material type as an integer (see MaterialType enum).
        Returns -1 for invalid material IDs.
    """
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_types[material_id]
    return result


@ti.func
def get_material_type_index(material_id: ti.i32) -> ti.i32:
    """Get the index into the type-specific material table.

    Returns:
        The type-local index, or -1 for invalid material IDs.
    """
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_type_indices[material_id]
    return result


@dataclass
class MaterialInfo:
    """Information about a registered material.

    Attributes:
        material_id: The unified material ID.
        material_type: The kind of material.
        type_index: The index within the type-specific material table.
        material: The registered material value.
    """

    material_id: int
    material_type: MaterialType
    type_index: int
    material: Material


class MaterialRegistry:
    """Assigns unified material ids and fills the material tables.

    Creating a registry clears every material table.

    Attributes:
        materials: MaterialInfo for every registered material, by id.
    """

    def __init__(self) -> None:
        self.materials: list[MaterialInfo] = []
        self._ids: dict[int, int] = {}
        clear_materials()

    def clear(self) -> None:
        clear_materials()
        self.materials.clear()
        self._ids.clear()

    def register(self, material: Material) -> int:
        """Return the id of ``material``, registering it on first sight.

        Raises:
            RuntimeError: If a material table is full.
            ValueError: If the material's parameters are invalid.
            TypeError: If ``material`` is not a known material kind.
        """
        known = self._ids.get(id(material))
        if known is not None:
            return known

        material_id = num_materials[None]
        if material_id >= MAX_MATERIALS:
            raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")

        material_type, type_index = self._add_to_table(material)

        material_types[material_id] = int(material_type)
        material_type_indices[material_id] = type_index
        num_materials[None] = material_id + 1

        self.materials.append(MaterialInfo(material_id, material_type, type_index, material))
        self._ids[id(material)] = material_id
        return material_id

    @staticmethod
    def _add_to_table(material: Material) -> tuple[MaterialType, int]:
        if isinstance(material, Lambertian):
            return MaterialType.LAMBERTIAN, add_lambertian_material(material.albedo)
        if isinstance(material, Metal):
            return MaterialType.METAL, add_metal_material(material.albedo, material.fuzz)
        if isinstance(material, Dielectric):
            return MaterialType.DIELECTRIC, add_dielectric_material(
                material.index_of_refraction
            )
        if isinstance(material, DiffuseLight):
            return MaterialType.DIFFUSE_LIGHT, add_diffuse_light_material(material.emit)
        if isinstance(material, Isotropic):
            return MaterialType.ISOTROPIC, add_isotropic_material(material.albedo)
        raise TypeError(f"Unsupported material: {material!r}")

    def get_material_count(self) -> int:
        return int(num_materials[None])

    def get_material_info(self, material_id: int) -> MaterialInfo | None:
        if 0 <= material_id < len(self.materials):
            return self.materials[material_id]
        return None
