"""Preview module: turning rendered radiance into image files.

Components:
    export: Gamma encoding, 8-bit conversion and PNG export (Pillow)

This package declares no Taichi fields and can be imported at any time.
"""

from pathtracer.preview.export import (
    DEFAULT_GAMMA,
    compute_rmse,
    encode_gamma,
    save_png,
    to_uint8,
)

__all__ = [
    "DEFAULT_GAMMA",
    "compute_rmse",
    "encode_gamma",
    "save_png",
    "to_uint8",
]
