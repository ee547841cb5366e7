"""Compile host scene elements into the device tables.

``SceneCompiler`` walks an element tree bottom-up: children are written
before their parents, so every row refers to rows that already exist.
Elements and geometries reached more than once (a BVH instanced under two
transforms, a shared mesh) are compiled once and referenced by index.

``load_world`` is the entry point used before rendering: it clears the
tables, compiles the root, and uploads the light, background and camera.
"""

from __future__ import annotations

import logging

from pathtracer.camera.pinhole import setup_camera
from pathtracer.geometry import (
    BoxGeometry,
    Geometry,
    RectGeometry,
    SphereGeometry,
    TriangleGeometry,
    is_leaf_ref,
    leaf_index,
)
from pathtracer.materials import setup_light
from pathtracer.scene.background import setup_background
from pathtracer.scene.elements import (
    Animation,
    BuiltBVH,
    Group,
    SceneElement,
    SurfaceGeometry,
    Transformed,
    VolumeGeometry,
)
from pathtracer.scene.intersection import (
    STACK_SIZE,
    ElementKind,
    GeometryType,
    add_box_geometry,
    add_child_refs,
    add_element,
    add_rect_geometry,
    add_sphere_geometry,
    add_triangle_geometry,
    clear_scene,
    get_table_counts,
    node_ref,
    reserve_bvh_nodes,
    set_bvh_node,
    set_scene_root,
)
from pathtracer.scene.manager import MaterialRegistry
from pathtracer.scene.world import World

logger = logging.getLogger(__name__)


class SceneCompiler:
    """Writes element trees into the scene tables.

    Attributes:
        registry: Material id assignment shared by every compiled element.
    """

    def __init__(self, registry: MaterialRegistry | None = None) -> None:
        self.registry = registry if registry is not None else MaterialRegistry()
        self._elements: dict[int, int] = {}
        self._geometries: dict[int, tuple[GeometryType, int]] = {}
        self._stack_demand: dict[int, int] = {}

    def compile(self, element: SceneElement) -> int:
        """Compile ``element`` and everything below it.

        Returns:
            The element's row index, usable as the scene root.

        Raises:
            RuntimeError: If a table is full, or the tree nests too deeply
                for the traversal stack.
        """
        demand = self.stack_demand(element)
        if demand > STACK_SIZE:
            raise RuntimeError(
                f"Scene nesting needs {demand} traversal stack entries; "
                f"the maximum is {STACK_SIZE}"
            )
        return self._compile(element)

    def _compile(self, element: SceneElement) -> int:
        known = self._elements.get(id(element))
        if known is not None:
            return known

        if isinstance(element, SurfaceGeometry):
            kind, index = self._add_geometry(element.geometry)
            material_id = self.registry.register(element.material)
            row = add_element(ElementKind.SURFACE, (int(kind), index, material_id, 0))
        elif isinstance(element, VolumeGeometry):
            kind, index = self._add_geometry(element.boundary)
            material_id = self.registry.register(element.phase_function)
            row = add_element(
                ElementKind.VOLUME,
                (int(kind), index, material_id, 0),
                scalar=element.neg_inv_density,
            )
        elif isinstance(element, Group):
            children = [self._compile(child) for child in element.children]
            start = add_child_refs(children)
            row = add_element(ElementKind.GROUP, (start, len(children), 0, 0))
        elif isinstance(element, BuiltBVH):
            row = self._add_bvh(element)
        elif isinstance(element, Transformed):
            child = self._compile(element.child)
            offset, sincos = element.transform.to_device()
            row = add_element(
                ElementKind.TRANSFORMATION, (child, 0, 0, 0), vector=offset, sincos=sincos
            )
        elif isinstance(element, Animation):
            child = self._compile(element.child)
            row = add_element(ElementKind.ANIMATION, (child, 0, 0, 0), vector=element.velocity)
        else:
            raise TypeError(f"Unsupported scene element: {element!r}")

        self._elements[id(element)] = row
        return row

    def _add_bvh(self, bvh: BuiltBVH) -> int:
        items = [self._compile(item) for item in bvh.items]
        layout = bvh.layout
        base = reserve_bvh_nodes(len(layout.nodes))

        def to_device(ref: int) -> int:
            if is_leaf_ref(ref):
                return items[leaf_index(ref)]
            return node_ref(base + ref)

        for offset, node in enumerate(layout.nodes):
            set_bvh_node(
                base + offset,
                node.aabb.min,
                node.aabb.max,
                node.axis,
                to_device(node.left),
                to_device(node.right),
            )

        unbounded = [items[i] for i in layout.unbounded]
        start = add_child_refs(unbounded) if unbounded else 0
        has_root = layout.root is not None
        root = to_device(layout.root) if has_root else 0
        return add_element(ElementKind.BVH, (root, start, len(unbounded), int(has_root)))

    def _add_geometry(self, geometry: Geometry) -> tuple[GeometryType, int]:
        known = self._geometries.get(id(geometry))
        if known is not None:
            return known

        if isinstance(geometry, SphereGeometry):
            entry = GeometryType.SPHERE, add_sphere_geometry(geometry.center, geometry.radius)
        elif isinstance(geometry, RectGeometry):
            entry = GeometryType.RECT, add_rect_geometry(
                geometry.plane, geometry.distance, geometry.range0, geometry.range1
            )
        elif isinstance(geometry, BoxGeometry):
            entry = GeometryType.BOX, add_box_geometry(geometry.aabb.min, geometry.aabb.max)
        elif isinstance(geometry, TriangleGeometry):
            entry = GeometryType.TRIANGLE, add_triangle_geometry(
                geometry.positions, geometry.normals, geometry.uvs
            )
        else:
            raise TypeError(f"Unsupported geometry: {geometry!r}")

        self._geometries[id(geometry)] = entry
        return entry

    def stack_demand(self, element: SceneElement) -> int:
        """Traversal stack entries needed below ``element``, plus its own."""
        known = self._stack_demand.get(id(element))
        if known is not None:
            return known

        if isinstance(element, (SurfaceGeometry, VolumeGeometry)):
            demand = 1
        elif isinstance(element, Group):
            # The run cursor stays pending while each child is walked
            demand = max((1 + self.stack_demand(c) for c in element.children), default=1)
        elif isinstance(element, BuiltBVH):
            child_demands = [self.stack_demand(item) for item in element.items]
            tree = 1 + (element.layout.depth() + 1) + max(child_demands)
            demand = max(tree, 2 + max(child_demands))
        elif isinstance(element, (Transformed, Animation)):
            demand = self.stack_demand(element.child)
        else:
            raise TypeError(f"Unsupported scene element: {element!r}")

        self._stack_demand[id(element)] = demand
        return demand


def load_world(world: World) -> dict[str, int]:
    """Upload a world to the device, replacing whatever was loaded.

    Returns:
        Row counts of every scene table, plus the number of materials.
    """
    clear_scene()
    compiler = SceneCompiler()
    root = compiler.compile(world.root)
    set_scene_root(root)

    setup_light(world.light)
    setup_background(world.background)
    setup_camera(world.camera)

    counts = get_table_counts()
    counts["materials"] = compiler.registry.get_material_count()
    logger.info(
        "Loaded world: %d elements, %d BVH nodes, %d materials, light %s",
        counts["elements"],
        counts["bvh_nodes"],
        counts["materials"],
        "enabled" if world.light is not None else "disabled",
    )
    logger.debug("Scene table counts: %s", counts)
    return counts
