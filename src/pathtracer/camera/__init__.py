"""Camera module for primary ray generation.

Components:
    pinhole: Perspective camera with optional thin lens and shutter interval

Ray generation uses normalized image coordinates:
    s in [0, 1]: left to right across image
    t in [0, 1]: bottom to top across image
"""

from .pinhole import Camera, get_camera_info, get_ray, setup_camera

__all__ = [
    "Camera",
    "setup_camera",
    "get_ray",
    "get_camera_info",
]
