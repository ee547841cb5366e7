"""Two marble spheres under a sky.

A small sphere resting on a huge one that acts as the ground, both sharing
one marble-textured Lambertian material. There is no light to sample; all
illumination comes from the sky background.

Example:
    >>> world = create_perlin_spheres_world()
    >>> load_world(world)
"""

from __future__ import annotations

from pathtracer.camera.pinhole import Camera
from pathtracer.materials import Lambertian, MarbleTexture
from pathtracer.scene.background import SkyBackground
from pathtracer.scene.graph import NodeHandle, SceneGraph
from pathtracer.scene.world import World

GROUND_RADIUS = 1000.0
SPHERE_RADIUS = 2.0
MARBLE_SCALE = 4.0


def build_perlin_spheres_graph(seed: int = 0) -> tuple[SceneGraph, NodeHandle]:
    """Build the graph; ``seed`` picks the noise table of the marble."""
    graph = SceneGraph()
    root = graph.add_group()
    marble = Lambertian(MarbleTexture(scale=MARBLE_SCALE, seed=seed))
    graph.add_sphere((0.0, -GROUND_RADIUS, 0.0), GROUND_RADIUS, marble, root)
    graph.add_sphere((0.0, SPHERE_RADIUS, 0.0), SPHERE_RADIUS, marble, root)
    return graph, root


def create_perlin_spheres_camera(aspect_ratio: float = 1.0) -> Camera:
    return Camera(
        lookfrom=(13.0, 2.0, 3.0),
        lookat=(0.0, 0.0, 0.0),
        vup=(0.0, 1.0, 0.0),
        vfov=40.0,
        aspect_ratio=aspect_ratio,
    )


def create_perlin_spheres_world(seed: int = 0, aspect_ratio: float = 1.0) -> World:
    graph, root = build_perlin_spheres_graph(seed)
    return World.from_scene(
        create_perlin_spheres_camera(aspect_ratio), SkyBackground(), graph.finish(root)
    )
