"""Background radiance returned for rays that leave the scene."""

import logging
from dataclasses import dataclass
from enum import IntEnum

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import lerp, normalize

logger = logging.getLogger(__name__)

vec3 = tm.vec3

# Sky colour straight up; white at the horizon
SKY_ZENITH = (0.5, 0.7, 1.0)


class BackgroundType(IntEnum):
    SOLID = 0
    SKY = 1


@dataclass(frozen=True)
class SolidBackground:
    """Constant radiance in every direction."""

    color: tuple[float, float, float] = (0.0, 0.0, 0.0)

    def __post_init__(self) -> None:
        object.__setattr__(self, "color", tuple(float(c) for c in self.color))


@dataclass(frozen=True)
class SkyBackground:
    """Vertical gradient from white at the horizon to light blue overhead."""


Background = SolidBackground | SkyBackground

_background_type = ti.field(dtype=ti.i32, shape=())
_background_color = ti.Vector.field(3, dtype=ti.f32, shape=())


def setup_background(background: Background) -> None:
    if isinstance(background, SkyBackground):
        _background_type[None] = int(BackgroundType.SKY)
        _background_color[None] = SKY_ZENITH
    else:
        _background_type[None] = int(BackgroundType.SOLID)
        _background_color[None] = background.color
    logger.debug("Background set to %s", background)


@ti.func
def sample_background(direction: vec3) -> vec3:
    """Radiance arriving along a ray that escaped in ``direction``.

    The sky blends ``lerp(white, (0.5, 0.7, 1.0), 0.5 * (d.y + 1))`` over
    the normalized direction.
    """
    color = _background_color[None]
    if _background_type[None] == int(BackgroundType.SKY):
        unit = normalize(direction)
        t = 0.5 * (unit.y + 1.0)
        color = lerp(vec3(1.0, 1.0, 1.0), vec3(0.5, 0.7, 1.0), t)
    return color
