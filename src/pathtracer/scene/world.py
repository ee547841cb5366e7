"""Everything a render needs: camera, background, scene root and light."""

from __future__ import annotations

from dataclasses import dataclass

from pathtracer.camera.pinhole import Camera
from pathtracer.geometry import RectGeometry
from pathtracer.scene.background import Background
from pathtracer.scene.elements import SceneElement
from pathtracer.scene.graph import FinishedScene


@dataclass(frozen=True)
class World:
    """A complete, render-ready scene.

    Attributes:
        camera: The viewpoint.
        background: Radiance for rays that escape the scene.
        root: Top element, usually a ``BuiltBVH``.
        light: World-space rect sampled for direct lighting, if any.
    """

    camera: Camera
    background: Background
    root: SceneElement
    light: RectGeometry | None = None

    @classmethod
    def from_scene(
        cls, camera: Camera, background: Background, scene: FinishedScene
    ) -> World:
        """World over a finished scene graph, with its BVH and light."""
        return cls(camera, background, scene.root(), scene.light)
