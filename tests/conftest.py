"""Pytest configuration for path tracer tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

import pytest
import taichi as ti

from pathtracer.config import configure_logging


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls which can cause
    segmentation faults due to Taichi runtime conflicts.
    """
    configure_logging("DEBUG")
    ti.init(arch=ti.cpu, random_seed=42)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Clear scene, material, light and background state around each test."""
    # Imported here so field declarations follow ti.init
    from pathtracer.materials import disable_light
    from pathtracer.scene.background import SolidBackground, setup_background
    from pathtracer.scene.intersection import clear_scene
    from pathtracer.scene.manager import clear_materials

    def _clear_all():
        clear_scene()
        clear_materials()
        disable_light()
        setup_background(SolidBackground())

    _clear_all()
    yield
    _clear_all()


@pytest.fixture
def sky_world_factory():
    """Build a World around a list of elements, with a sky background."""

    def _make(elements, light=None, camera=None):
        from pathtracer.camera.pinhole import Camera
        from pathtracer.scene.background import SkyBackground
        from pathtracer.scene.elements import BuiltBVH
        from pathtracer.scene.world import World

        camera = camera or Camera(lookfrom=(0.0, 0.0, 0.0), lookat=(0.0, 0.0, -1.0), vfov=90.0)
        return World(camera, SkyBackground(), BuiltBVH.build(elements), light)

    return _make
