"""Scene module: scene construction, compilation and ray-scene queries.

Components:
    elements: Immutable scene elements (surfaces, volumes, groups, BVHs,
        transformed and animated elements)
    graph: Scene graph builder and the flattening pass that bakes transforms
    manager: Unified material ids for material dispatch
    intersection: Device scene tables and the nearest-hit traversal
    compiler: Writes element trees into the device tables; ``load_world``
    background: Solid and sky backgrounds
    world: The render-ready World container
    cornell_box: The Cornell box test scene
    perlin_spheres: Marble-textured spheres under a sky

Scene data is organized for efficient device access:
    - Structure-of-Arrays layout for geometric data
    - One element table with per-kind payload columns
    - BVH nodes in a flat table, children referenced by index

Importing this package declares Taichi fields: call ``ti.init`` first.
"""

from .background import Background, SkyBackground, SolidBackground, sample_background
from .compiler import SceneCompiler, load_world
from .cornell_box import (
    BOX_SIZE,
    HALF_SIZE,
    CornellBoxParams,
    build_cornell_box_graph,
    create_cornell_box_camera,
    create_cornell_box_world,
    get_light_rect,
)
from .elements import (
    Animation,
    BuiltBVH,
    Group,
    SceneElement,
    SurfaceGeometry,
    Transformed,
    VolumeGeometry,
)
from .graph import FinishedScene, NodeHandle, SceneGraph
from .intersection import (
    ElementKind,
    GeometryType,
    SceneHitRecord,
    clear_scene,
    get_table_counts,
    intersect_scene,
)
from .perlin_spheres import (
    build_perlin_spheres_graph,
    create_perlin_spheres_camera,
    create_perlin_spheres_world,
)
from .manager import (
    MAX_MATERIALS,
    MaterialInfo,
    MaterialRegistry,
    MaterialType,
    clear_materials,
    get_material_type,
    get_material_type_index,
)
from .world import World

__all__ = [
    # Elements and graph
    "Animation",
    "BuiltBVH",
    "Group",
    "SceneElement",
    "SurfaceGeometry",
    "Transformed",
    "VolumeGeometry",
    "FinishedScene",
    "NodeHandle",
    "SceneGraph",
    # Device tables
    "ElementKind",
    "GeometryType",
    "SceneHitRecord",
    "clear_scene",
    "get_table_counts",
    "intersect_scene",
    # Materials
    "MAX_MATERIALS",
    "MaterialInfo",
    "MaterialRegistry",
    "MaterialType",
    "clear_materials",
    "get_material_type",
    "get_material_type_index",
    # World
    "Background",
    "SkyBackground",
    "SolidBackground",
    "sample_background",
    "SceneCompiler",
    "load_world",
    "World",
    # Cornell box
    "BOX_SIZE",
    "HALF_SIZE",
    "CornellBoxParams",
    "build_cornell_box_graph",
    "create_cornell_box_camera",
    "create_cornell_box_world",
    "get_light_rect",
    # Marble spheres
    "build_perlin_spheres_graph",
    "create_perlin_spheres_camera",
    "create_perlin_spheres_world",
]
