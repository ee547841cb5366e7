#!/usr/bin/env python3
"""Render the Cornell box scene.

Builds the Cornell box (optionally with smoke-filled blocks), renders it with
several workers, and saves a gamma-encoded PNG.

Usage:
    python -m examples.render_cornell_box [options]

Options:
    --width WIDTH       Image width in pixels (default: 400)
    --height HEIGHT     Image height in pixels (default: 400)
    --samples SAMPLES   Samples per pixel (default: 64)
    --depth DEPTH       Maximum path depth (default: 50)
    --threads THREADS   Number of render workers (default: CPU count)
    --seed SEED         Master seed (default: 0)
    --mode MODE         "default" or "normals" (default: default)
    --smoke             Replace the blocks with smoke
    --output OUTPUT     Output file path (default: cornell_box.png)
    --log-level LEVEL   Logging level (default: INFO)

Example:
    python -m examples.render_cornell_box --width 256 --height 256 --samples 32
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from pathtracer.config import RenderConfig, configure_logging, init_taichi

logger = logging.getLogger("render_cornell_box")


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render the Cornell box scene.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--width", type=int, default=400, help="Image width in pixels")
    parser.add_argument("--height", type=int, default=400, help="Image height in pixels")
    parser.add_argument("--samples", type=int, default=64, help="Samples per pixel")
    parser.add_argument("--depth", type=int, default=50, help="Maximum path depth")
    parser.add_argument(
        "--threads",
        type=int,
        default=os.cpu_count() or 1,
        help="Number of render workers (default: CPU count)",
    )
    parser.add_argument("--seed", type=int, default=0, help="Master seed")
    parser.add_argument(
        "--mode", choices=("default", "normals"), default="default", help="Render mode"
    )
    parser.add_argument("--smoke", action="store_true", help="Replace the blocks with smoke")
    parser.add_argument(
        "--output", type=str, default="cornell_box.png", help="Output file path"
    )
    parser.add_argument("--log-level", type=str, default="INFO", help="Logging level")
    return parser.parse_args()


def render_cornell_box(config: RenderConfig, output_path: str, smoke: bool = False) -> Path:
    """Render the Cornell box scene and save it to a PNG file.

    Args:
        config: Validated render settings.
        output_path: Output file path (PNG).
        smoke: Render the smoke variant.

    Returns:
        Path to the saved image file.
    """
    # Lazy imports so field declarations follow Taichi initialization
    from pathtracer.core.integrator import RenderMode
    from pathtracer.core.renderer import render
    from pathtracer.preview.export import save_png
    from pathtracer.scene.cornell_box import CornellBoxParams, create_cornell_box_world

    params = CornellBoxParams.smoky() if smoke else CornellBoxParams()
    world = create_cornell_box_world(params, aspect_ratio=config.aspect_ratio)

    image = render(
        config.image_size,
        config.thread_count,
        config.samples_per_pixel,
        config.max_depth,
        world,
        RenderMode[config.mode.upper()],
        seed=config.seed,
    )

    output_file = Path(output_path)
    save_png(image, output_file)
    return output_file


def main() -> int:
    """Main entry point."""
    args = parse_args()
    configure_logging(args.log_level)

    try:
        config = RenderConfig(
            width=args.width,
            height=args.height,
            samples_per_pixel=args.samples,
            max_depth=args.depth,
            thread_count=args.threads,
            seed=args.seed,
            mode=args.mode,
        )
        config.validate()
    except ValueError as e:
        logger.error("Invalid settings: %s", e)
        return 2

    init_taichi(config.arch, thread_count=config.thread_count, seed=config.seed)

    try:
        output_file = render_cornell_box(config, args.output, smoke=args.smoke)
    except (ValueError, RuntimeError) as e:
        logger.error("Rendering failed: %s", e)
        return 1

    logger.info("Saved to: %s", output_file.absolute())
    return 0


if __name__ == "__main__":
    sys.exit(main())
