"""Scene elements: the tree a finished scene is made of.

Elements are immutable values built on the host. The compiler walks them and
writes the device tables the traversal reads; nothing here touches Taichi.

    SurfaceGeometry   one geometry with a material
    VolumeGeometry    constant-density medium inside a boundary geometry
    Group             children tested one after another
    BuiltBVH          children arranged in a bounding volume hierarchy
    Transformed       child placed by a rigid transform
    Animation         child moving with constant velocity over time
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from pathtracer.geometry import Aabb, BvhLayout, Geometry, Transformation, build_hierarchy
from pathtracer.geometry.transform import Vec3
from pathtracer.materials import Isotropic, Material

TimeRange = tuple[float, float]


@dataclass(frozen=True, eq=False)
class SurfaceGeometry:
    geometry: Geometry
    material: Material

    def bounding_box(self, time_range: TimeRange) -> Aabb | None:
        return self.geometry.bounding_box()


@dataclass(frozen=True, eq=False)
class VolumeGeometry:
    """A constant-density participating medium.

    Attributes:
        boundary: Closed geometry enclosing the medium.
        phase_function: Scattering inside the medium.
        density: Extinction per unit length; must be positive.
    """

    boundary: Geometry
    phase_function: Isotropic
    density: float

    def __post_init__(self) -> None:
        if not self.density > 0.0:
            raise ValueError(f"Volume density must be positive, got {self.density}")

    @property
    def neg_inv_density(self) -> float:
        return -1.0 / self.density

    def bounding_box(self, time_range: TimeRange) -> Aabb | None:
        return self.boundary.bounding_box()


@dataclass(frozen=True, eq=False)
class Group:
    children: tuple[SceneElement, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "children", tuple(self.children))

    def bounding_box(self, time_range: TimeRange) -> Aabb | None:
        """Union of the children's boxes; None if any child is unbounded."""
        boxes = [child.bounding_box(time_range) for child in self.children]
        if not boxes or any(box is None for box in boxes):
            return None
        return Aabb.surrounding(boxes)


@dataclass(frozen=True, eq=False)
class BuiltBVH:
    """Children arranged in a bounding volume hierarchy.

    Attributes:
        items: The children, referenced by index from ``layout``.
        layout: The hierarchy built over the items' boxes.
        boxes: The item boxes the layout was built from.
    """

    items: tuple[SceneElement, ...]
    layout: BvhLayout
    boxes: tuple[Aabb | None, ...] = field(default=())

    @classmethod
    def build(
        cls, items: Sequence[SceneElement], time_range: TimeRange = (0.0, 1.0)
    ) -> BuiltBVH:
        """Build a hierarchy over ``items``.

        Raises:
            ValueError: If ``items`` is empty.
        """
        items = tuple(items)
        boxes = tuple(item.bounding_box(time_range) for item in items)
        return cls(items, build_hierarchy(boxes), boxes)

    def bounding_box(self, time_range: TimeRange) -> Aabb | None:
        return self.layout.bounding_box(self.boxes)


@dataclass(frozen=True, eq=False)
class Transformed:
    child: SceneElement
    transform: Transformation

    def bounding_box(self, time_range: TimeRange) -> Aabb | None:
        box = self.child.bounding_box(time_range)
        if box is None:
            return None
        return self.transform.apply_aabb(box)


@dataclass(frozen=True, eq=False)
class Animation:
    """A child translated by ``velocity * time``.

    Attributes:
        child: The moving element.
        velocity: World-space displacement per unit of ray time.
    """

    child: SceneElement
    velocity: Vec3

    def __post_init__(self) -> None:
        object.__setattr__(self, "velocity", tuple(float(c) for c in self.velocity))

    def offset_at(self, time: float) -> Vec3:
        return tuple(v * time for v in self.velocity)

    def bounding_box(self, time_range: TimeRange) -> Aabb | None:
        """Box swept between the start and end of ``time_range``."""
        box = self.child.bounding_box(time_range)
        if box is None:
            return None
        start, end = time_range
        return box.translate(self.offset_at(start)).union(
            box.translate(self.offset_at(end))
        )


SceneElement = (
    SurfaceGeometry | VolumeGeometry | Group | BuiltBVH | Transformed | Animation
)
