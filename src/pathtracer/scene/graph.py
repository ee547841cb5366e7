"""Scene graph builder and the flattening pass that finishes it.

A ``SceneGraph`` is an arena of nodes addressed by integer ``NodeHandle``s.
Each node carries a local transform, a velocity, child handles, and any
number of leaves (a geometry with its material) or prebuilt element
instances. The same handle may be attached under several parents to reuse a
sub-assembly.

``finish`` walks the graph once, depth first:

    1. accumulates transforms (``parent.then(local)``) and velocities;
    2. bakes each leaf's transform into its geometry where the geometry
       allows it (``partial_apply``), wrapping whatever is left in
       ``Transformed`` and any motion in ``Animation``;
    3. picks the first light-candidate rect that ended up in world space
       untouched as the scene's sampled light.

Every leaf ends up in one flat list, ready for a single BVH build.

Example:
    >>> graph = SceneGraph()
    >>> root = graph.add_group()
    >>> white = Lambertian.from_color((0.73, 0.73, 0.73))
    >>> box = graph.add_box((165, 330, 165), white, parent=root)
    >>> graph.rotate_around_up(box, 15.0)
    >>> graph.translate(box, (265, 0, 295))
    >>> scene = graph.finish(root)
    >>> bvh = scene.root()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from pathtracer.geometry import (
    BoxGeometry,
    Geometry,
    RectGeometry,
    RectPlane,
    SphereGeometry,
    Transformation,
    TriangleGeometry,
)
from pathtracer.geometry.transform import Vec3
from pathtracer.materials import Isotropic, Material
from pathtracer.scene.elements import (
    Animation,
    BuiltBVH,
    SceneElement,
    SurfaceGeometry,
    TimeRange,
    Transformed,
    VolumeGeometry,
)

logger = logging.getLogger(__name__)

NodeHandle = int

_ZERO: Vec3 = (0.0, 0.0, 0.0)


@dataclass
class Leaf:
    """A geometry with its material.

    Attributes:
        geometry: Local-space geometry.
        material: Surface material, or the phase function of a volume.
        light_candidate: Whether the leaf may become the sampled light.
        density: Set for volumes; the geometry is then the boundary.
    """

    geometry: Geometry
    material: Material
    light_candidate: bool = False
    density: float | None = None


@dataclass
class SceneNode:
    transform: Transformation = Transformation.IDENTITY
    velocity: Vec3 = _ZERO
    children: list[NodeHandle] = field(default_factory=list)
    leaves: list[Leaf] = field(default_factory=list)
    instances: list[SceneElement] = field(default_factory=list)


@dataclass
class FinishedScene:
    """Output of ``SceneGraph.finish``.

    Attributes:
        elements: Every leaf, in world space, in depth-first order.
        light: The world-space rect to sample towards, if any.
        time_range: Ray time interval the boxes were computed over.
    """

    elements: list[SceneElement]
    light: RectGeometry | None
    time_range: TimeRange = (0.0, 1.0)

    def root(self) -> BuiltBVH:
        """Build the BVH over all elements."""
        return BuiltBVH.build(self.elements, self.time_range)


class SceneGraph:
    """Arena of scene nodes with a builder API.

    Every ``add_*`` method creates a node and returns its handle; with
    ``parent`` given, the node is attached under that parent as well.
    """

    def __init__(self) -> None:
        self._nodes: list[SceneNode] = []

    def __len__(self) -> int:
        return len(self._nodes)

    def _node(self, handle: NodeHandle) -> SceneNode:
        if not 0 <= handle < len(self._nodes):
            raise ValueError(f"Unknown scene node handle: {handle}")
        return self._nodes[handle]

    def _new_node(self, parent: NodeHandle | None, node: SceneNode) -> NodeHandle:
        if parent is not None:
            self._node(parent)
        handle = len(self._nodes)
        self._nodes.append(node)
        if parent is not None:
            self.attach(parent, handle)
        return handle

    # -------------------------------------------------------------------------
    # Nodes
    # -------------------------------------------------------------------------

    def add_group(self, parent: NodeHandle | None = None) -> NodeHandle:
        return self._new_node(parent, SceneNode())

    def add_object(
        self,
        geometry: Geometry,
        material: Material,
        parent: NodeHandle | None = None,
        *,
        light: bool = False,
    ) -> NodeHandle:
        """Add a node holding one geometry with its material."""
        return self._new_node(
            parent, SceneNode(leaves=[Leaf(geometry, material, light_candidate=light)])
        )

    def add_rect(
        self,
        plane: RectPlane,
        distance: float,
        range0: tuple[float, float],
        range1: tuple[float, float],
        material: Material,
        parent: NodeHandle | None = None,
        *,
        light: bool = False,
    ) -> NodeHandle:
        return self.add_object(
            RectGeometry(plane, distance, range0, range1), material, parent, light=light
        )

    def add_box(
        self,
        size: Sequence[float],
        material: Material,
        parent: NodeHandle | None = None,
    ) -> NodeHandle:
        """Add a box spanning from the local origin to ``size``."""
        return self.add_object(BoxGeometry.from_size(*size), material, parent)

    def add_sphere(
        self,
        center: Sequence[float],
        radius: float,
        material: Material,
        parent: NodeHandle | None = None,
    ) -> NodeHandle:
        return self.add_object(SphereGeometry(tuple(center), radius), material, parent)

    def add_mesh(
        self,
        triangles: Sequence[TriangleGeometry],
        material: Material,
        parent: NodeHandle | None = None,
    ) -> NodeHandle:
        """Add one node holding every triangle of a mesh.

        Raises:
            ValueError: If the mesh has no triangles.
        """
        if not triangles:
            raise ValueError("A mesh needs at least one triangle")
        leaves = [Leaf(triangle, material) for triangle in triangles]
        return self._new_node(parent, SceneNode(leaves=leaves))

    def add_volume(
        self,
        boundary: Geometry,
        phase_function: Isotropic,
        density: float,
        parent: NodeHandle | None = None,
    ) -> NodeHandle:
        """Add a constant-density medium filling ``boundary``.

        Raises:
            ValueError: If the density is not positive.
        """
        if not density > 0.0:
            raise ValueError(f"Volume density must be positive, got {density}")
        leaf = Leaf(boundary, phase_function, density=density)
        return self._new_node(parent, SceneNode(leaves=[leaf]))

    def add_instance(
        self, element: SceneElement, parent: NodeHandle | None = None
    ) -> NodeHandle:
        """Add a prebuilt element (e.g. a ``BuiltBVH``) as-is.

        Instances are never baked; a non-identity world transform wraps them
        in ``Transformed``.
        """
        return self._new_node(parent, SceneNode(instances=[element]))

    # -------------------------------------------------------------------------
    # Structure and placement
    # -------------------------------------------------------------------------

    def attach(self, parent: NodeHandle, child: NodeHandle) -> None:
        self._node(child)
        self._node(parent).children.append(child)

    def mark_light(self, handle: NodeHandle) -> None:
        """Make every leaf of a node a light candidate."""
        for leaf in self._node(handle).leaves:
            leaf.light_candidate = True

    def set_transform(self, handle: NodeHandle, transform: Transformation) -> None:
        self._node(handle).transform = transform

    def translate(self, handle: NodeHandle, offset: Sequence[float]) -> None:
        node = self._node(handle)
        node.transform = node.transform.translate(offset)

    def rotate_around_up(self, handle: NodeHandle, degrees: float) -> None:
        node = self._node(handle)
        node.transform = node.transform.rotate_around_up(degrees)

    def animate(self, handle: NodeHandle, velocity: Sequence[float]) -> None:
        """Give a node a world-space velocity, added to its ancestors'."""
        self._node(handle).velocity = tuple(float(v) for v in velocity)

    # -------------------------------------------------------------------------
    # Flattening
    # -------------------------------------------------------------------------

    def finish(
        self, root: NodeHandle, time_range: TimeRange = (0.0, 1.0)
    ) -> FinishedScene:
        """Flatten the graph below ``root`` into world-space elements.

        Raises:
            ValueError: If the graph contains a cycle, or has no leaves.
        """
        scene = FinishedScene(elements=[], light=None, time_range=time_range)
        self._flatten(root, Transformation.IDENTITY, _ZERO, scene, path=set())
        if not scene.elements:
            raise ValueError(f"Scene graph under node {root} has no leaves")

        logger.info(
            "Finished scene graph: %d nodes, %d elements, light %s",
            len(self._nodes),
            len(scene.elements),
            "found" if scene.light is not None else "absent",
        )
        return scene

    def _flatten(
        self,
        handle: NodeHandle,
        parent_transform: Transformation,
        parent_velocity: Vec3,
        scene: FinishedScene,
        path: set[NodeHandle],
    ) -> None:
        node = self._node(handle)
        if handle in path:
            raise ValueError(f"Scene graph has a cycle through node {handle}")
        path.add(handle)

        world = node.transform.then(parent_transform)
        velocity = tuple(a + b for a, b in zip(parent_velocity, node.velocity))
        moving = any(v != 0.0 for v in velocity)

        for leaf in node.leaves:
            geometry, residual = leaf.geometry.partial_apply(world)
            element: SceneElement
            if leaf.density is not None:
                element = VolumeGeometry(geometry, leaf.material, leaf.density)
            else:
                element = SurfaceGeometry(geometry, leaf.material)
            if residual is not None:
                element = Transformed(element, residual)
            if moving:
                element = Animation(element, velocity)
            scene.elements.append(element)

            if leaf.light_candidate:
                self._offer_light(scene, geometry, residual, moving)

        for instance in node.instances:
            element = instance
            if not world.is_identity():
                element = Transformed(element, world)
            if moving:
                element = Animation(element, velocity)
            scene.elements.append(element)

        for child in node.children:
            self._flatten(child, world, velocity, scene, path)

        path.discard(handle)

    @staticmethod
    def _offer_light(
        scene: FinishedScene,
        geometry: Geometry,
        residual: Transformation | None,
        moving: bool,
    ) -> None:
        if not isinstance(geometry, RectGeometry) or residual is not None or moving:
            logger.debug("Light candidate %s is not a world-space rect; skipped", geometry)
            return
        if scene.light is not None:
            logger.debug("Ignoring extra light candidate %s", geometry)
            return
        scene.light = geometry
        logger.info("Light provider: %s", geometry)
