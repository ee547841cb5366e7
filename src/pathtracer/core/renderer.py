"""Multi-worker rendering, merging and progress reporting.

The requested samples per pixel are split across ``thread_count`` workers as
evenly as possible. Each worker renders the whole image into its own plane
with its own seed, and the planes are averaged at the end. A worker is a
logical sample stream: all workers run together in one parallel Taichi
kernel over (worker, row, col), so their physical execution is spread over
the threads of the Taichi CPU backend.

Rendering proceeds band by band (a few rows at a time). After each band the
host posts one ``(worker_id, samples_done)`` message per worker to a queue; a
``ProgressAggregator`` thread turns them into an overall percentage.

Example:
    >>> world = create_cornell_box_world()
    >>> image = render((256, 256), 4, 64, 50, world, seed=7)
    >>> image.shape
    (256, 256, 3)
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Callable

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from pathtracer.camera.pinhole import get_ray
from pathtracer.core.integrator import RenderMode, trace_sample
from pathtracer.core.ray import is_finite_color
from pathtracer.core.sampler import derive_worker_seeds, lane_state, rand_float
from pathtracer.scene.compiler import load_world
from pathtracer.scene.world import World

logger = logging.getLogger(__name__)

vec3 = tm.vec3

ProgressCallback = Callable[[int], None]

# Rows rendered per kernel launch, as a fraction of the image height
DEFAULT_BANDS = 20


# =============================================================================
# Work Splitting and Merging
# =============================================================================


@dataclass(frozen=True)
class WorkTask:
    """Samples per pixel assigned to one worker."""

    worker_id: int
    samples_per_pixel: int


def split_work_tasks(samples_per_pixel: int, thread_count: int) -> list[WorkTask]:
    """Split samples per pixel across workers.

    Every worker gets ``samples_per_pixel // thread_count`` samples; the first
    ``samples_per_pixel % thread_count`` workers get one more. Workers left
    with no samples are dropped.

    Args:
        samples_per_pixel: Total samples per pixel.
        thread_count: Number of workers; values below 1 mean 1.

    Returns:
        One WorkTask per worker with at least one sample.
    """
    thread_count = max(1, thread_count)
    whole, remainder = divmod(samples_per_pixel, thread_count)
    tasks = []
    for worker_id in range(thread_count):
        samples = whole + (1 if worker_id < remainder else 0)
        if samples == 0:
            break
        tasks.append(WorkTask(worker_id, samples))
    return tasks


def merge_planes(planes: npt.NDArray[np.float32]) -> npt.NDArray[np.float32]:
    """Unweighted mean of per-worker planes.

    Args:
        planes: Array of shape (workers, height, width, 3).

    Returns:
        Array of shape (height, width, 3).

    Raises:
        ValueError: If there are no planes.
    """
    if planes.shape[0] == 0:
        raise ValueError("Cannot merge an empty list of planes")
    return planes.mean(axis=0, dtype=np.float64).astype(np.float32)


# =============================================================================
# Progress Reporting
# =============================================================================


class ProgressAggregator(threading.Thread):
    """Consumes per-worker progress messages and reports the overall percentage.

    The percentage is ``100 * sum(done) // total_work``, reported to the log
    and the callback only when it changes. The thread exits after ``close``.
    """

    _SENTINEL = None

    def __init__(
        self,
        total_work: int,
        worker_count: int,
        callback: ProgressCallback | None = None,
    ) -> None:
        super().__init__(name="render-progress", daemon=True)
        self.total_work = max(1, total_work)
        self.done_work = [0] * worker_count
        self.callback = callback
        self.last_percent: int | None = None
        self._messages: queue.Queue[tuple[int, int] | None] = queue.Queue()

    def report(self, worker_id: int, samples_done: int) -> None:
        """Post a worker's cumulative sample count."""
        self._messages.put((worker_id, samples_done))

    def close(self) -> None:
        """Process all pending messages, then stop the thread."""
        self._messages.put(self._SENTINEL)
        self.join()

    def run(self) -> None:
        while True:
            message = self._messages.get()
            if message is self._SENTINEL:
                return
            worker_id, samples_done = message
            self.done_work[worker_id] = samples_done
            percent = 100 * sum(self.done_work) // self.total_work
            if percent != self.last_percent:
                self.last_percent = percent
                logger.info("Rendering: %d %%", percent)
                if self.callback is not None:
                    self.callback(percent)


# =============================================================================
# Rendering Kernel
# =============================================================================


@ti.kernel
def _render_band(
    planes: ti.types.ndarray(dtype=ti.f32, ndim=4),
    seeds: ti.types.ndarray(dtype=ti.u32, ndim=1),
    samples: ti.types.ndarray(dtype=ti.i32, ndim=1),
    row_start: ti.i32,
    row_end: ti.i32,
    max_depth: ti.i32,
    mode: ti.i32,
):
    """Fill rows [row_start, row_end) of every worker's plane.

    Row 0 is the top of the image. Each (worker, pixel) lane owns one
    generator state derived from the worker seed and the pixel index, and
    stores the mean of its samples.
    """
    height = planes.shape[1]
    width = planes.shape[2]
    for w, row, col in ti.ndrange(planes.shape[0], (row_start, row_end), width):
        state = lane_state(seeds[w], row * width + col)
        total = vec3(0.0, 0.0, 0.0)
        count = samples[w]
        for _ in range(count):
            state, du = rand_float(state)
            state, dv = rand_float(state)
            s = (ti.cast(col, ti.f32) + du) / ti.cast(width, ti.f32)
            t = 1.0 - (ti.cast(row, ti.f32) + dv) / ti.cast(height, ti.f32)
            state, origin, direction, ray_time = get_ray(state, s, t)
            state, color = trace_sample(state, origin, direction, ray_time, max_depth, mode)
            # Replace NaN/Inf with black
            if is_finite_color(color) == 0:
                color = vec3(0.0, 0.0, 0.0)
            total += color
        mean = total / ti.cast(count, ti.f32)
        for c in ti.static(range(3)):
            planes[w, row, col, c] = mean[c]


# =============================================================================
# Public Rendering API
# =============================================================================


def render(
    image_size: tuple[int, int],
    thread_count: int,
    samples_per_pixel: int,
    max_depth: int,
    world: World,
    mode: RenderMode = RenderMode.DEFAULT,
    *,
    seed: int = 0,
    progress: ProgressCallback | None = None,
    band_rows: int | None = None,
) -> npt.NDArray[np.float32]:
    """Render a world to a linear-radiance image.

    Args:
        image_size: (width, height) in pixels.
        thread_count: Number of workers; values below 1 mean 1.
        samples_per_pixel: Total samples per pixel.
        max_depth: Maximum path depth.
        world: The scene to render; uploaded to the device first.
        mode: What each sample computes.
        seed: Master seed; equal seeds and worker counts give identical
            images.
        progress: Called with the overall percentage whenever it changes.
        band_rows: Rows per kernel launch; defaults to 1/20 of the height.

    Returns:
        Array of shape (height, width, 3), float32, row 0 at the top.

    Raises:
        ValueError: If the image size, sample count or depth is below 1.
    """
    width, height = image_size
    if width < 1 or height < 1:
        raise ValueError(f"Image size must be at least 1x1, got {width}x{height}")
    if samples_per_pixel < 1:
        raise ValueError(f"samples_per_pixel must be at least 1, got {samples_per_pixel}")
    if max_depth < 1:
        raise ValueError(f"max_depth must be at least 1, got {max_depth}")
    if thread_count < 1:
        logger.warning("thread_count %d is below 1; using 1", thread_count)
        thread_count = 1

    load_world(world)

    tasks = split_work_tasks(samples_per_pixel, thread_count)
    seeds = derive_worker_seeds(seed, len(tasks))
    samples = np.array([task.samples_per_pixel for task in tasks], dtype=np.int32)
    planes = np.zeros((len(tasks), height, width, 3), dtype=np.float32)

    band_rows = band_rows or max(1, height // DEFAULT_BANDS)
    aggregator = ProgressAggregator(samples_per_pixel * width * height, len(tasks), progress)

    logger.info(
        "Start rendering %dx%d, %d spp over %d workers, max depth %d, mode %s",
        width,
        height,
        samples_per_pixel,
        len(tasks),
        max_depth,
        RenderMode(mode).name,
    )
    start_time = time.perf_counter()
    aggregator.start()
    try:
        for row_start in range(0, height, band_rows):
            row_end = min(height, row_start + band_rows)
            _render_band(
                planes, seeds, samples, row_start, row_end, max_depth, int(mode)
            )
            for task in tasks:
                aggregator.report(task.worker_id, row_end * width * task.samples_per_pixel)
    finally:
        aggregator.close()

    elapsed = time.perf_counter() - start_time
    logger.info("Rendering done in %.2f seconds", elapsed)
    logger.debug("Merging %d worker planes", len(tasks))
    return merge_planes(planes)
