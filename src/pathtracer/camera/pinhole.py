"""Perspective camera with a thin lens and a shutter interval.

The camera builds an orthonormal basis (u, v, w) from the view parameters:
- w: points from lookat toward lookfrom (opposite view direction)
- u: points right in the image plane
- v: points up in the image plane

The image plane sits at ``focus_distance`` in front of the camera. Rays start
at a random point on a lens disk of diameter ``aperture`` (a pinhole when the
aperture is 0) and carry a random time in ``[time0, time1)`` for motion blur.

Example:
    >>> camera = Camera(
    ...     lookfrom=(278.0, 278.0, -800.0),
    ...     lookat=(278.0, 278.0, 0.0),
    ...     vup=(0.0, 1.0, 0.0),
    ...     vfov=40.0,
    ...     aspect_ratio=1.0,
    ... )
    >>> setup_camera(camera)
    >>> @ti.kernel
    ... def render(seed: ti.u32):
    ...     state, origin, direction, time = get_ray(seed, 0.5, 0.5)
"""

import logging
import math
from dataclasses import dataclass

import numpy as np
import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import normalize
from pathtracer.core.sampler import RngState, rand_range, random_in_unit_disk

logger = logging.getLogger(__name__)

vec3 = tm.vec3

# =============================================================================
# Camera Data Structures
# =============================================================================


@dataclass(frozen=True)
class Camera:
    """Camera configuration.

    Attributes:
        lookfrom: Camera position in world space (x, y, z).
        lookat: Point the camera is looking at in world space (x, y, z).
        vup: Up direction vector for camera orientation (typically (0, 1, 0)).
        vfov: Vertical field of view in degrees.
        aspect_ratio: Width divided by height of the output image.
        aperture: Lens diameter; 0 gives a pinhole with everything in focus.
        focus_distance: Distance to the plane in perfect focus.
        time0: Shutter open time.
        time1: Shutter close time.
    """

    lookfrom: tuple[float, float, float]
    lookat: tuple[float, float, float]
    vup: tuple[float, float, float] = (0.0, 1.0, 0.0)
    vfov: float = 40.0
    aspect_ratio: float = 1.0
    aperture: float = 0.0
    focus_distance: float = 1.0
    time0: float = 0.0
    time1: float = 1.0

    def __post_init__(self) -> None:
        if not 0.0 < self.vfov < 180.0:
            raise ValueError(f"Vertical field of view must be in (0, 180), got {self.vfov}")
        if self.aspect_ratio <= 0.0:
            raise ValueError(f"Aspect ratio must be positive, got {self.aspect_ratio}")
        if self.aperture < 0.0:
            raise ValueError(f"Aperture must be non-negative, got {self.aperture}")
        if self.focus_distance <= 0.0:
            raise ValueError(f"Focus distance must be positive, got {self.focus_distance}")
        if self.time1 < self.time0:
            raise ValueError(f"Shutter closes ({self.time1}) before it opens ({self.time0})")
        if np.allclose(self.lookfrom, self.lookat):
            raise ValueError("Camera lookfrom and lookat must differ")


# =============================================================================
# Taichi Fields for Camera State
# =============================================================================

_camera_origin = ti.Vector.field(3, dtype=ti.f32, shape=())

# Orthonormal basis vectors
_camera_u = ti.Vector.field(3, dtype=ti.f32, shape=())  # Right
_camera_v = ti.Vector.field(3, dtype=ti.f32, shape=())  # Up
_camera_w = ti.Vector.field(3, dtype=ti.f32, shape=())  # Backward (opposite view)

# Viewport vectors at the focus plane
_viewport_horizontal = ti.Vector.field(3, dtype=ti.f32, shape=())
_viewport_vertical = ti.Vector.field(3, dtype=ti.f32, shape=())
_lower_left_corner = ti.Vector.field(3, dtype=ti.f32, shape=())

_lens_radius = ti.field(dtype=ti.f32, shape=())
_shutter = ti.Vector.field(2, dtype=ti.f32, shape=())


# =============================================================================
# Camera Setup
# =============================================================================


def setup_camera(camera: Camera) -> None:
    """Initialize camera state from configuration.

    Computes the orthonormal basis and the viewport at the focus plane.
    Must be called before rendering.
    """
    theta = math.radians(camera.vfov)
    h = math.tan(theta / 2.0)

    viewport_height = 2.0 * h
    viewport_width = camera.aspect_ratio * viewport_height

    lookfrom = np.array(camera.lookfrom, dtype=np.float64)
    lookat = np.array(camera.lookat, dtype=np.float64)
    vup = np.array(camera.vup, dtype=np.float64)

    w = lookfrom - lookat
    w = w / np.linalg.norm(w)

    u = np.cross(vup, w)
    norm_u = np.linalg.norm(u)
    if norm_u == 0.0:
        raise ValueError("Camera vup must not be parallel to the view direction")
    u = u / norm_u

    v = np.cross(w, u)

    horizontal = camera.focus_distance * viewport_width * u
    vertical = camera.focus_distance * viewport_height * v
    lower_left = lookfrom - horizontal / 2.0 - vertical / 2.0 - camera.focus_distance * w

    _camera_origin[None] = lookfrom.tolist()
    _camera_u[None] = u.tolist()
    _camera_v[None] = v.tolist()
    _camera_w[None] = w.tolist()
    _viewport_horizontal[None] = horizontal.tolist()
    _viewport_vertical[None] = vertical.tolist()
    _lower_left_corner[None] = lower_left.tolist()
    _lens_radius[None] = camera.aperture / 2.0
    _shutter[None] = (camera.time0, camera.time1)
    logger.debug("Camera set up at %s looking at %s", camera.lookfrom, camera.lookat)


# =============================================================================
# Ray Generation (Taichi)
# =============================================================================


@ti.func
def get_ray(state: RngState, s: ti.f32, t: ti.f32):
    """Generate a ray through normalized image coordinates (s, t).

    Args:
        state: Generator state.
        s: Horizontal coordinate in [0, 1] (left to right).
        t: Vertical coordinate in [0, 1] (bottom to top).

    Returns:
        A tuple of (new_state, origin, direction, time) with a unit
        direction.
    """
    rng, disk = random_in_unit_disk(state)
    rd = _lens_radius[None] * disk
    lens_offset = _camera_u[None] * rd.x + _camera_v[None] * rd.y

    origin = _camera_origin[None] + lens_offset
    target = _lower_left_corner[None] + s * _viewport_horizontal[None] + t * _viewport_vertical[None]
    direction = normalize(target - origin)

    shutter = _shutter[None]
    time = shutter[0]
    if shutter[1] > shutter[0]:
        rng, time = rand_range(rng, shutter[0], shutter[1])
    return rng, origin, direction, time


# =============================================================================
# Utility Functions
# =============================================================================


def get_camera_info() -> dict[str, tuple[float, ...]]:
    """Get current camera state for debugging.

    Returns:
        Dictionary with origin, u, v, w, horizontal, vertical, lower_left,
        lens_radius and shutter.
    """

    def _tuple(value) -> tuple[float, ...]:
        return tuple(float(c) for c in value)

    return {
        "origin": _tuple(_camera_origin[None]),
        "u": _tuple(_camera_u[None]),
        "v": _tuple(_camera_v[None]),
        "w": _tuple(_camera_w[None]),
        "horizontal": _tuple(_viewport_horizontal[None]),
        "vertical": _tuple(_viewport_vertical[None]),
        "lower_left": _tuple(_lower_left_corner[None]),
        "lens_radius": (float(_lens_radius[None]),),
        "shutter": _tuple(_shutter[None]),
    }
