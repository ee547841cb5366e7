"""Cornell box scene configuration.

The classic Cornell box, a standard test scene for global illumination:

- 5 walls: red at x = 0 (on the right as seen from the camera), green
  opposite it, white floor, ceiling and back wall
- a square area light just below the ceiling, sampled for direct lighting
- two white boxes, a tall one rotated 15 degrees and a short one rotated
  -18 degrees

The box spans 0 to 2 * HALF_SIZE on every axis; the camera sits in front of
the open side at z = -800, looking toward +z.

With ``smoke=True`` the two boxes become constant-density media (white and
black smoke) and the light grows larger and dimmer.

Example:
    >>> world = create_cornell_box_world()
    >>> load_world(world)
"""

from __future__ import annotations

from dataclasses import dataclass

from pathtracer.camera.pinhole import Camera
from pathtracer.geometry import BoxGeometry, RectGeometry, RectPlane
from pathtracer.materials import DiffuseLight, Isotropic, Lambertian
from pathtracer.scene.background import SolidBackground
from pathtracer.scene.graph import NodeHandle, SceneGraph
from pathtracer.scene.world import World

# =============================================================================
# Cornell Box Constants
# =============================================================================

# Half the side length of the box
HALF_SIZE = 278.0
BOX_SIZE = 2.0 * HALF_SIZE

CAMERA_DISTANCE = 800.0
CAMERA_VFOV = 40.0

# Light sits just below the ceiling
LIGHT_DROP = 1.0

SMOKE_DENSITY = 0.01


@dataclass
class CornellBoxParams:
    """Parameters for configuring a Cornell box scene.

    Attributes:
        light_intensity: Radiance scale of the area light.
        light_color: RGB colour of the light.
        light_size: Side length of the square light.
        wall_x0_color: RGB albedo of the wall at x = 0.
        wall_x1_color: RGB albedo of the wall at x = BOX_SIZE.
        white_color: RGB albedo of the floor, ceiling, back wall and boxes.
        smoke: Replace the boxes with white and black smoke.
    """

    light_intensity: float = 15.0
    light_color: tuple[float, float, float] = (1.0, 1.0, 1.0)
    light_size: float = 130.0
    wall_x0_color: tuple[float, float, float] = (0.65, 0.05, 0.05)
    wall_x1_color: tuple[float, float, float] = (0.12, 0.45, 0.15)
    white_color: tuple[float, float, float] = (0.73, 0.73, 0.73)
    smoke: bool = False

    @classmethod
    def smoky(cls) -> CornellBoxParams:
        """Settings of the smoke variant: a larger, dimmer light."""
        return cls(light_intensity=7.0, light_size=300.0, smoke=True)


def get_light_rect(params: CornellBoxParams | None = None) -> RectGeometry:
    """World-space rect of the ceiling light."""
    params = params or CornellBoxParams()
    return RectGeometry.centered(
        RectPlane.XZ,
        (HALF_SIZE, BOX_SIZE - LIGHT_DROP, HALF_SIZE),
        params.light_size,
        params.light_size,
    )


def build_cornell_box_graph(
    params: CornellBoxParams | None = None,
) -> tuple[SceneGraph, NodeHandle]:
    """Build the Cornell box scene graph.

    Returns:
        A tuple of (graph, root handle).
    """
    params = params or CornellBoxParams()
    graph = SceneGraph()
    root = graph.add_group()

    red = Lambertian.from_color(params.wall_x0_color)
    green = Lambertian.from_color(params.wall_x1_color)
    white = Lambertian.from_color(params.white_color)
    light = DiffuseLight.from_color(
        tuple(params.light_intensity * c for c in params.light_color)
    )

    walls = [
        (RectPlane.YZ, (0.0, HALF_SIZE, HALF_SIZE), red),
        (RectPlane.YZ, (BOX_SIZE, HALF_SIZE, HALF_SIZE), green),
        (RectPlane.XZ, (HALF_SIZE, 0.0, HALF_SIZE), white),
        (RectPlane.XZ, (HALF_SIZE, BOX_SIZE, HALF_SIZE), white),
        (RectPlane.XY, (HALF_SIZE, HALF_SIZE, BOX_SIZE), white),
    ]
    for plane, wall_center, material in walls:
        graph.add_object(
            RectGeometry.centered(plane, wall_center, BOX_SIZE, BOX_SIZE), material, root
        )
    graph.add_object(get_light_rect(params), light, root, light=True)

    blocks = [
        ((165.0, 330.0, 165.0), 15.0, (265.0, 0.0, 295.0), (1.0, 1.0, 1.0)),
        ((165.0, 165.0, 165.0), -18.0, (130.0, 0.0, 65.0), (0.0, 0.0, 0.0)),
    ]
    for size, degrees, offset, smoke_color in blocks:
        if params.smoke:
            block = graph.add_volume(
                BoxGeometry.from_size(*size),
                Isotropic.from_color(smoke_color),
                SMOKE_DENSITY,
                root,
            )
        else:
            block = graph.add_box(size, white, root)
        graph.rotate_around_up(block, degrees)
        graph.translate(block, offset)

    return graph, root


def create_cornell_box_camera(aspect_ratio: float = 1.0) -> Camera:
    return Camera(
        lookfrom=(HALF_SIZE, HALF_SIZE, -CAMERA_DISTANCE),
        lookat=(HALF_SIZE, HALF_SIZE, 0.0),
        vup=(0.0, 1.0, 0.0),
        vfov=CAMERA_VFOV,
        aspect_ratio=aspect_ratio,
        focus_distance=CAMERA_DISTANCE,
    )


def create_cornell_box_world(
    params: CornellBoxParams | None = None, aspect_ratio: float = 1.0
) -> World:
    """Create the Cornell box world: graph finished into a BVH, black background.

    Args:
        params: Scene customisation; defaults to the classic box.
        aspect_ratio: Image width over height for the camera.

    Returns:
        A render-ready World whose light is the ceiling lamp.
    """
    graph, root = build_cornell_box_graph(params)
    scene = graph.finish(root)
    return World.from_scene(
        create_cornell_box_camera(aspect_ratio), SolidBackground((0.0, 0.0, 0.0)), scene
    )
