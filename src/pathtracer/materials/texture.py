"""Procedural colour textures.

Materials take their colours from textures so that the same material model
can be uniform or patterned. Three kinds are supported:

    SolidTexture: one colour everywhere.
    CheckerTexture: a 3-D checker pattern alternating between two colours,
        evaluated from the world-space hit position.
    MarbleTexture: sine veins along z, distorted by Perlin turbulence.

Textures are registered into a device table by ``add_texture``; materials
store the returned texture index. Every marble texture owns a Perlin noise
table (unit gradients plus one permutation per axis) built on the host from
its seed and uploaded next to the texture table.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Sequence

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

vec3 = tm.vec3
vec2 = tm.vec2

Color = tuple[float, float, float]

NOISE_BITS = 8
NOISE_SIZE = 1 << NOISE_BITS
NOISE_MASK = NOISE_SIZE - 1

# Octaves and per-octave weight of the marble turbulence
TURBULENCE_DEPTH = 7
TURBULENCE_FALL_OFF = 0.5
TURBULENCE_STRENGTH = 10.0


class TextureType(IntEnum):
    SOLID = 0
    CHECKER = 1
    MARBLE = 2


@dataclass(frozen=True)
class SolidTexture:
    """A single colour."""

    color: Color

    def __post_init__(self) -> None:
        object.__setattr__(self, "color", _as_color(self.color))


@dataclass(frozen=True)
class CheckerTexture:
    """A 3-D checker pattern.

    Attributes:
        even: Colour where sin(fx) sin(fy) sin(fz) is negative.
        odd: Colour elsewhere.
        frequency: Spatial frequency f of the pattern.
    """

    even: Color
    odd: Color
    frequency: float = 10.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "even", _as_color(self.even))
        object.__setattr__(self, "odd", _as_color(self.odd))


@dataclass(frozen=True)
class MarbleTexture:
    """Marble veins: ``color * 0.5 * (1 + sin(scale * z + 10 * turbulence(p)))``.

    Attributes:
        scale: Spatial frequency of the veins along z.
        color: Colour of the brightest veins.
        seed: Seed of the Perlin noise table.

    Raises:
        ValueError: If the scale is not finite.
    """

    scale: float = 1.0
    color: Color = (1.0, 1.0, 1.0)
    seed: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "color", _as_color(self.color))
        if not np.isfinite(self.scale):
            raise ValueError(f"Marble scale must be finite, got {self.scale}")


Texture = SolidTexture | CheckerTexture | MarbleTexture


def _as_color(value: Sequence[float]) -> Color:
    color = tuple(float(c) for c in value)
    if len(color) != 3:
        raise ValueError(f"A colour needs 3 components, got {len(color)}")
    return color


def as_texture(value: Texture | Sequence[float]) -> Texture:
    """Accept either a texture or a bare (r, g, b) colour."""
    if isinstance(value, (SolidTexture, CheckerTexture, MarbleTexture)):
        return value
    return SolidTexture(_as_color(value))


def texture_colors(texture: Texture) -> list[Color]:
    """Every colour a texture can produce at full strength."""
    if isinstance(texture, SolidTexture):
        return [texture.color]
    if isinstance(texture, MarbleTexture):
        return [texture.color]
    return [texture.even, texture.odd]


def perlin_tables(
    seed: int,
) -> tuple[npt.NDArray[np.float32], npt.NDArray[np.int32]]:
    """Build the Perlin noise table for a seed.

    Returns:
        A tuple of (gradients, permutations): ``NOISE_SIZE`` random unit
        vectors of shape (NOISE_SIZE, 3), and one shuffled index table per
        axis, shape (3, NOISE_SIZE).
    """
    rng = np.random.default_rng(seed)
    gradients = rng.normal(size=(NOISE_SIZE, 3))
    gradients /= np.linalg.norm(gradients, axis=1, keepdims=True)
    permutations = np.stack([rng.permutation(NOISE_SIZE) for _ in range(3)])
    return gradients.astype(np.float32), permutations.astype(np.int32)


# =============================================================================
# Texture Field Storage
# =============================================================================

MAX_TEXTURES = 1024
MAX_NOISE_TABLES = 64

texture_types = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_color_a = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TEXTURES)
texture_color_b = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TEXTURES)
texture_frequency = ti.field(dtype=ti.f32, shape=MAX_TEXTURES)
texture_noise = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
num_textures = ti.field(dtype=ti.i32, shape=())

noise_gradients = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_NOISE_TABLES, NOISE_SIZE))
noise_permutations = ti.field(dtype=ti.i32, shape=(MAX_NOISE_TABLES, 3, NOISE_SIZE))
num_noise_tables = ti.field(dtype=ti.i32, shape=())


def clear_textures() -> None:
    """Clear all textures and their noise tables."""
    num_textures[None] = 0
    num_noise_tables[None] = 0


@ti.kernel
def _upload_noise_table(
    table: ti.i32,
    gradients: ti.types.ndarray(dtype=ti.f32, ndim=2),
    permutations: ti.types.ndarray(dtype=ti.i32, ndim=2),
):
    for i in range(NOISE_SIZE):
        noise_gradients[table, i] = vec3(gradients[i, 0], gradients[i, 1], gradients[i, 2])
        for axis in ti.static(range(3)):
            noise_permutations[table, axis, i] = permutations[axis, i]


def _add_noise_table(seed: int) -> int:
    table = num_noise_tables[None]
    if table >= MAX_NOISE_TABLES:
        raise RuntimeError(f"Maximum number of noise tables ({MAX_NOISE_TABLES}) exceeded")
    gradients, permutations = perlin_tables(seed)
    _upload_noise_table(table, gradients, permutations)
    num_noise_tables[None] = table + 1
    return table


def add_texture(texture: Texture) -> int:
    """Add a texture to the texture table.

    Returns:
        The index of the added texture.

    Raises:
        RuntimeError: If the maximum number of textures or noise tables is
            exceeded.
    """
    idx = num_textures[None]
    if idx >= MAX_TEXTURES:
        raise RuntimeError(f"Maximum number of textures ({MAX_TEXTURES}) exceeded")

    texture_noise[idx] = -1
    if isinstance(texture, SolidTexture):
        texture_types[idx] = int(TextureType.SOLID)
        texture_color_a[idx] = texture.color
        texture_color_b[idx] = texture.color
        texture_frequency[idx] = 0.0
    elif isinstance(texture, MarbleTexture):
        texture_noise[idx] = _add_noise_table(texture.seed)
        texture_types[idx] = int(TextureType.MARBLE)
        texture_color_a[idx] = texture.color
        texture_color_b[idx] = texture.color
        texture_frequency[idx] = texture.scale
    else:
        texture_types[idx] = int(TextureType.CHECKER)
        texture_color_a[idx] = texture.even
        texture_color_b[idx] = texture.odd
        texture_frequency[idx] = texture.frequency

    num_textures[None] = idx + 1
    return idx


def get_texture_count() -> int:
    return int(num_textures[None])


def get_noise_table_count() -> int:
    return int(num_noise_tables[None])


# =============================================================================
# Perlin Noise (Taichi)
# =============================================================================


@ti.func
def perlin_noise(table: ti.i32, p: vec3) -> ti.f32:
    """Gradient noise at ``p``, roughly in [-1, 1]."""
    cell = ti.floor(p)
    f = p - cell
    i = ti.cast(cell.x, ti.i32)
    j = ti.cast(cell.y, ti.i32)
    k = ti.cast(cell.z, ti.i32)
    smooth = f * f * (3.0 - 2.0 * f)

    accum = 0.0
    for di, dj, dk in ti.static(ti.ndrange(2, 2, 2)):
        r = (
            noise_permutations[table, 0, (i + di) & NOISE_MASK]
            ^ noise_permutations[table, 1, (j + dj) & NOISE_MASK]
            ^ noise_permutations[table, 2, (k + dk) & NOISE_MASK]
        )
        weight = (
            (di * smooth.x + (1 - di) * (1.0 - smooth.x))
            * (dj * smooth.y + (1 - dj) * (1.0 - smooth.y))
            * (dk * smooth.z + (1 - dk) * (1.0 - smooth.z))
        )
        accum += weight * tm.dot(noise_gradients[table, r], f - vec3(di, dj, dk))
    return accum


@ti.func
def turbulence(table: ti.i32, p: vec3) -> ti.f32:
    """Absolute sum of ``TURBULENCE_DEPTH`` noise octaves."""
    accum = 0.0
    weight = 1.0
    q = p
    for _ in ti.static(range(TURBULENCE_DEPTH)):
        accum += weight * perlin_noise(table, q)
        weight *= TURBULENCE_FALL_OFF
        q *= 2.0
    return ti.abs(accum)


@ti.func
def sample_texture(texture_idx: ti.i32, point: vec3, uv: vec2) -> vec3:
    """Evaluate a texture at a hit.

    Args:
        texture_idx: Index in the texture table.
        point: World-space hit position.
        uv: Surface coordinates of the hit.

    Returns:
        The texture colour (RGB).
    """
    color = texture_color_a[texture_idx]
    kind = texture_types[texture_idx]
    if kind == int(TextureType.CHECKER):
        f = texture_frequency[texture_idx]
        sines = ti.sin(f * point.x) * ti.sin(f * point.y) * ti.sin(f * point.z)
        if sines >= 0.0:
            color = texture_color_b[texture_idx]
    elif kind == int(TextureType.MARBLE):
        veins = texture_frequency[texture_idx] * point.z + TURBULENCE_STRENGTH * turbulence(
            texture_noise[texture_idx], point
        )
        color = color * 0.5 * (1.0 + ti.sin(veins))
    return color
