"""Rigid transforms: a translation plus a rotation about the up (y) axis.

The rotation is stored as the sine and cosine of its angle instead of the
angle itself, so composing two transforms is pure angle-sum algebra and
inverting one only flips the sign of the sine.

A point is transformed by rotating it about the y axis, then adding the
offset. Directions and normals only rotate; distances are unchanged.

Example:
    >>> t = Transformation.translation((1.0, 0.0, 0.0)).rotate_around_up(90.0)
    >>> t.apply_point((0.0, 0.0, 0.0))  # rotated offset
    (6.1e-17, 0.0, -1.0)
"""

import math
from dataclasses import dataclass
from typing import ClassVar, Sequence

import taichi as ti
import taichi.math as tm

from pathtracer.geometry.aabb import Aabb

vec3 = tm.vec3
vec2 = tm.vec2

Vec3 = tuple[float, float, float]


def _rotate_around_up(cosine: float, sine: float, v: Sequence[float]) -> Vec3:
    x, y, z = v
    return (cosine * x + sine * z, float(y), -sine * x + cosine * z)


@dataclass(frozen=True)
class Transformation:
    """A translation combined with a rotation about the y axis.

    Attributes:
        offset: Translation applied after the rotation.
        y_sine: Sine of the rotation angle.
        y_cosine: Cosine of the rotation angle.
    """

    offset: Vec3 = (0.0, 0.0, 0.0)
    y_sine: float = 0.0
    y_cosine: float = 1.0

    IDENTITY: ClassVar["Transformation"]

    def __post_init__(self) -> None:
        object.__setattr__(self, "offset", tuple(float(c) for c in self.offset))
        object.__setattr__(self, "y_sine", float(self.y_sine))
        object.__setattr__(self, "y_cosine", float(self.y_cosine))

    @classmethod
    def translation(cls, offset: Sequence[float]) -> "Transformation":
        return cls(offset=tuple(offset))

    @classmethod
    def rotation(cls, degrees: float) -> "Transformation":
        """Rotation about the up axis by ``degrees``."""
        radians = math.radians(degrees)
        return cls(y_sine=math.sin(radians), y_cosine=math.cos(radians))

    def is_identity(self) -> bool:
        return self == Transformation.IDENTITY

    # -------------------------------------------------------------------------
    # Composition
    # -------------------------------------------------------------------------

    def then(self, other: "Transformation") -> "Transformation":
        """Transform equal to applying ``self`` first, then ``other``."""
        offset = tuple(
            a + b for a, b in zip(other.apply_direction(self.offset), other.offset)
        )
        y_sine = self.y_sine * other.y_cosine + self.y_cosine * other.y_sine
        y_cosine = self.y_cosine * other.y_cosine - self.y_sine * other.y_sine
        return Transformation(offset, y_sine, y_cosine)

    def translate(self, offset: Sequence[float]) -> "Transformation":
        """Follow this transform with a translation."""
        return self.then(Transformation.translation(offset))

    def rotate_around_up(self, degrees: float) -> "Transformation":
        """Follow this transform with a rotation about the up axis.

        The accumulated offset rotates along with everything else.
        """
        return self.then(Transformation.rotation(degrees))

    def inverse(self) -> "Transformation":
        reversed_offset = _rotate_around_up(self.y_cosine, -self.y_sine, self.offset)
        return Transformation(
            tuple(-c for c in reversed_offset), -self.y_sine, self.y_cosine
        )

    def split_translation_remainder(self) -> tuple[Vec3, "Transformation"]:
        """Split into a local translation and a pure rotation.

        Returns:
            A tuple of (translation, remainder) such that translating a point
            by ``translation`` and then applying ``remainder`` equals
            ``apply_point``. For a transform without rotation, remainder is
            the identity and translation is the offset.
        """
        translation = self.reverse_direction(self.offset)
        remainder = Transformation((0.0, 0.0, 0.0), self.y_sine, self.y_cosine)
        return translation, remainder

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------

    def apply_point(self, point: Sequence[float]) -> Vec3:
        rotated = _rotate_around_up(self.y_cosine, self.y_sine, point)
        return tuple(r + o for r, o in zip(rotated, self.offset))

    def reverse_point(self, point: Sequence[float]) -> Vec3:
        local = tuple(p - o for p, o in zip(point, self.offset))
        return _rotate_around_up(self.y_cosine, -self.y_sine, local)

    def apply_direction(self, direction: Sequence[float]) -> Vec3:
        return _rotate_around_up(self.y_cosine, self.y_sine, direction)

    def reverse_direction(self, direction: Sequence[float]) -> Vec3:
        return _rotate_around_up(self.y_cosine, -self.y_sine, direction)

    apply_normal = apply_direction
    reverse_normal = reverse_direction

    def reverse_ray(
        self, origin: Sequence[float], direction: Sequence[float]
    ) -> tuple[Vec3, Vec3]:
        """Bring a world-space ray into the local frame; t is unchanged."""
        return self.reverse_point(origin), self.reverse_direction(direction)

    def apply_distance(self, distance: float) -> float:
        return distance

    def apply_aabb(self, box: Aabb) -> Aabb:
        """Smallest axis-aligned box containing the transformed box."""
        return Aabb.from_points(self.apply_point(c) for c in box.corners())

    def to_device(self) -> tuple[Vec3, tuple[float, float]]:
        """Offset and (sine, cosine) pair in the layout the kernels read."""
        return self.offset, (self.y_sine, self.y_cosine)


Transformation.IDENTITY = Transformation()


# =============================================================================
# Device Transforms (Taichi)
# =============================================================================
# A device transform is an (offset: vec3, sincos: vec2) pair, sincos = (sin, cos).


@ti.func
def _rotate(sine: ti.f32, cosine: ti.f32, v: vec3) -> vec3:
    return vec3(cosine * v.x + sine * v.z, v.y, -sine * v.x + cosine * v.z)


@ti.func
def transform_apply_point(offset: vec3, sincos: vec2, p: vec3) -> vec3:
    return _rotate(sincos[0], sincos[1], p) + offset


@ti.func
def transform_reverse_point(offset: vec3, sincos: vec2, p: vec3) -> vec3:
    return _rotate(-sincos[0], sincos[1], p - offset)


@ti.func
def transform_apply_direction(sincos: vec2, d: vec3) -> vec3:
    return _rotate(sincos[0], sincos[1], d)


@ti.func
def transform_reverse_direction(sincos: vec2, d: vec3) -> vec3:
    return _rotate(-sincos[0], sincos[1], d)


@ti.func
def transform_then(
    first_offset: vec3,
    first_sincos: vec2,
    next_offset: vec3,
    next_sincos: vec2,
):
    """Device version of ``Transformation.then``.

    Returns:
        A tuple of (offset, sincos) for "apply first, then next".
    """
    offset = transform_apply_direction(next_sincos, first_offset) + next_offset
    s1 = first_sincos[0]
    c1 = first_sincos[1]
    s2 = next_sincos[0]
    c2 = next_sincos[1]
    sincos = vec2(s1 * c2 + c1 * s2, c1 * c2 - s1 * s2)
    return offset, sincos
