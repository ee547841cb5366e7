"""Materials module: light scattering models and sampling.

Components:
    texture: Solid, checker and marble (Perlin) colour textures
    lambertian: Ideal diffuse reflection (cosine distribution)
    metal: Specular reflection with optional fuzz (delta distribution)
    dielectric: Glass-like reflection/refraction with Schlick's approximation
    diffuse_light: Area light emitter
    isotropic: Phase function of constant-density volumes
    sampling: Scattering distributions, the scene light distribution, MIS

Each material module provides a frozen host-side dataclass (``Lambertian``,
``Metal``...) used while building scenes, a Taichi field registry
(``add_*_material`` / ``clear_*_materials``) and a ``scatter_*`` function.
Importing this package declares Taichi fields: call ``ti.init`` first.
"""

from .dielectric import (
    Dielectric,
    add_dielectric_material,
    clear_dielectric_materials,
    get_dielectric_ior,
    get_dielectric_material_count,
    scatter_dielectric,
)
from .diffuse_light import (
    DiffuseLight,
    add_diffuse_light_material,
    clear_diffuse_light_materials,
    get_diffuse_light_emission,
    get_diffuse_light_material_count,
)
from .isotropic import (
    Isotropic,
    add_isotropic_material,
    clear_isotropic_materials,
    get_isotropic_albedo,
    get_isotropic_material_count,
    scatter_isotropic,
)
from .lambertian import (
    Lambertian,
    add_lambertian_material,
    clear_lambertian_materials,
    get_lambertian_albedo,
    get_lambertian_material_count,
    scatter_lambertian,
)
from .metal import (
    Metal,
    add_metal_material,
    clear_metal_materials,
    get_metal_albedo,
    get_metal_fuzz,
    get_metal_material_count,
    scatter_metal,
)
from .sampling import (
    DistributionKind,
    cosine_generate,
    cosine_value,
    disable_light,
    is_light_enabled,
    light_generate,
    light_value,
    sample_scatter_direction,
    setup_light,
)
from .texture import (
    CheckerTexture,
    MarbleTexture,
    SolidTexture,
    Texture,
    add_texture,
    clear_textures,
)

Material = Lambertian | Metal | Dielectric | DiffuseLight | Isotropic

__all__ = [
    # Textures
    "CheckerTexture",
    "MarbleTexture",
    "SolidTexture",
    "Texture",
    "add_texture",
    "clear_textures",
    # Lambertian
    "Lambertian",
    "add_lambertian_material",
    "clear_lambertian_materials",
    "get_lambertian_albedo",
    "get_lambertian_material_count",
    "scatter_lambertian",
    # Metal
    "Metal",
    "add_metal_material",
    "clear_metal_materials",
    "get_metal_albedo",
    "get_metal_fuzz",
    "get_metal_material_count",
    "scatter_metal",
    # Dielectric
    "Dielectric",
    "add_dielectric_material",
    "clear_dielectric_materials",
    "get_dielectric_ior",
    "get_dielectric_material_count",
    "scatter_dielectric",
    # Diffuse light
    "DiffuseLight",
    "add_diffuse_light_material",
    "clear_diffuse_light_materials",
    "get_diffuse_light_emission",
    "get_diffuse_light_material_count",
    # Isotropic
    "Isotropic",
    "add_isotropic_material",
    "clear_isotropic_materials",
    "get_isotropic_albedo",
    "get_isotropic_material_count",
    "scatter_isotropic",
    # Sampling
    "DistributionKind",
    "cosine_generate",
    "cosine_value",
    "disable_light",
    "is_light_enabled",
    "light_generate",
    "light_value",
    "sample_scatter_direction",
    "setup_light",
    "Material",
]
