"""Render configuration, Taichi initialisation and logging setup.

Nothing in this module declares Taichi fields, so it is safe to import before
``ti.init`` has been called. Typical use from a front end:

    >>> from pathtracer.config import RenderConfig, configure_logging, init_taichi
    >>> configure_logging("INFO")
    >>> config = RenderConfig(width=400, height=400, samples_per_pixel=64)
    >>> init_taichi(config.arch, thread_count=config.thread_count)
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from typing import Any

import taichi as ti

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"

SUPPORTED_ARCHS = ("cpu",)


def configure_logging(level: str = "INFO") -> None:
    """Configure process-wide logging for the renderer."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )


def init_taichi(
    arch: str = "cpu",
    thread_count: int | None = None,
    seed: int = 42,
    debug: bool = False,
) -> None:
    """Initialise the Taichi runtime.

    Must be called once, before importing any module that declares Taichi
    fields (scene tables, materials, camera, renderer).

    Args:
        arch: Taichi backend name. Only "cpu" is supported.
        thread_count: Upper bound on CPU threads used by parallel kernels.
            None lets Taichi use every hardware thread.
        seed: Seed for Taichi's internal ``ti.random`` (unused by the
            renderer, which carries its own generator state).
        debug: Enable Taichi's bounds-checking debug mode.

    Raises:
        ValueError: If the architecture is not supported.
    """
    if arch not in SUPPORTED_ARCHS:
        raise ValueError(f"Unsupported Taichi arch '{arch}', expected one of {SUPPORTED_ARCHS}")

    options: dict[str, Any] = {"arch": getattr(ti, arch), "random_seed": seed, "debug": debug}
    if thread_count is not None and thread_count > 0:
        options["cpu_max_num_threads"] = thread_count
    ti.init(**options)
    logger.debug("Taichi initialised with %s", options)


@dataclass
class RenderConfig:
    """Settings for one render.

    Attributes:
        width: Output image width in pixels.
        height: Output image height in pixels.
        samples_per_pixel: Total samples per pixel, split across workers.
        max_depth: Maximum number of path segments per sample.
        thread_count: Number of render workers. 0 is treated as 1.
        seed: Master seed from which every worker's generator is derived.
        mode: "default" for path tracing, "normals" for the debug view.
        arch: Taichi backend.
    """

    width: int = 400
    height: int = 400
    samples_per_pixel: int = 64
    max_depth: int = 50
    thread_count: int = 1
    seed: int = 0
    mode: str = "default"
    arch: str = "cpu"

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    @property
    def image_size(self) -> tuple[int, int]:
        return self.width, self.height

    def validate(self) -> None:
        """Check the settings.

        Raises:
            ValueError: If any setting is out of range.
        """
        if self.width < 1 or self.height < 1:
            raise ValueError(f"Image size must be positive, got {self.width}x{self.height}")
        if self.samples_per_pixel < 1:
            raise ValueError(f"samples_per_pixel must be >= 1, got {self.samples_per_pixel}")
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be >= 1, got {self.max_depth}")
        if self.mode not in ("default", "normals"):
            raise ValueError(f"Unknown render mode '{self.mode}'")
        if self.arch not in SUPPORTED_ARCHS:
            raise ValueError(f"Unsupported Taichi arch '{self.arch}'")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RenderConfig:
        """Build a config from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown render settings: %s", ", ".join(unknown))
        config = cls(**{k: v for k, v in data.items() if k in known})
        config.validate()
        return config
