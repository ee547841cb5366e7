"""Dielectric (transparent, refractive) material implementation.

Dielectrics such as glass and water both reflect and refract light. At each
hit the material picks one of the two:

    - reflection, when Snell's law has no solution (total internal
      reflection) or with the probability given by Schlick's approximation
      of the Fresnel reflectance;
    - refraction otherwise.

The refraction ratio is 1/ior when entering the material (front face) and
ior when leaving it. Dielectrics never absorb: attenuation is white and the
chosen direction is a delta distribution.
"""

from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import normalize, reflect, refract, schlick_reflectance
from pathtracer.core.sampler import RngState, rand_float
from pathtracer.materials.sampling import DistributionKind

# Type alias for 3D vectors
vec3 = tm.vec3


@dataclass(frozen=True, eq=False)
class Dielectric:
    """Clear refractive material.

    Attributes:
        index_of_refraction: Ratio of the material's refractive index to the
            surrounding medium's. Values below 1 model e.g. an air bubble
            inside glass.
    """

    index_of_refraction: float = 1.5


@ti.func
def scatter_dielectric(
    state: RngState,
    ior: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
):
    """Reflect or refract at a dielectric boundary.

    Args:
        state: Generator state.
        ior: Index of refraction of the material.
        incident_direction: The incoming ray direction (normalized).
        normal: The surface normal (normalized, facing the ray).
        front_face: 1 if the ray enters the material, 0 if it leaves.

    Returns:
        A tuple of (new_state, did_scatter, attenuation, kind, direction).
        Dielectrics always scatter.
    """
    attenuation = vec3(1.0, 1.0, 1.0)

    refraction_ratio = 1.0 / ior
    if front_face == 0:
        refraction_ratio = ior

    cos_theta = tm.min(-tm.dot(incident_direction, normal), 1.0)
    sin_theta = tm.sqrt(tm.max(0.0, 1.0 - cos_theta * cos_theta))

    # sin(theta_t) = ratio * sin(theta_i) > 1 has no refracted solution
    cannot_refract = refraction_ratio * sin_theta > 1.0

    rng, u = rand_float(state)
    scattered_direction = vec3(0.0, 0.0, 0.0)
    if cannot_refract or u < schlick_reflectance(cos_theta, refraction_ratio):
        scattered_direction = reflect(incident_direction, normal)
    else:
        scattered_direction = refract(incident_direction, normal, refraction_ratio)

    return (
        rng,
        1,
        attenuation,
        int(DistributionKind.DELTA),
        normalize(scattered_direction),
    )


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

# Maximum number of dielectric materials in the scene
MAX_DIELECTRIC_MATERIALS = 256

# Storage for dielectric material properties
dielectric_iors = ti.field(dtype=ti.f32, shape=MAX_DIELECTRIC_MATERIALS)
num_dielectric_materials = ti.field(dtype=ti.i32, shape=())


def clear_dielectric_materials() -> None:
    """Clear all dielectric materials."""
    num_dielectric_materials[None] = 0


def add_dielectric_material(ior: float = 1.5) -> int:
    """Add a dielectric material to the material registry.

    Args:
        ior: Index of refraction. Default is 1.5 (typical glass).
            Common values:
            - Water: 1.33
            - Glass: 1.5
            - Diamond: 2.4

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If IOR is not positive.
    """
    if ior <= 0.0:
        raise ValueError(f"Index of refraction = {ior} must be positive.")

    idx = num_dielectric_materials[None]
    if idx >= MAX_DIELECTRIC_MATERIALS:
        raise RuntimeError(
            f"Maximum number of dielectric materials ({MAX_DIELECTRIC_MATERIALS}) exceeded"
        )

    dielectric_iors[idx] = ior
    num_dielectric_materials[None] = idx + 1
    return idx


def get_dielectric_material_count() -> int:
    """Get the number of dielectric materials in the registry."""
    return int(num_dielectric_materials[None])


@ti.func
def get_dielectric_ior(material_idx: ti.i32) -> ti.f32:
    return dielectric_iors[material_idx]
