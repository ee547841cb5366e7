"""Deterministic random number generation for render workers.

Taichi's built-in ``ti.random`` draws from per-thread runtime state, so the
values a pixel sees depend on how the CPU backend schedules the loop. To make
renders reproducible, every (worker, pixel) lane instead carries its own
generator state explicitly: each sampling function takes the current state
and returns the advanced state alongside the drawn value.

The generator is a 32-bit LCG step followed by the PCG "RXS-M-XS" output
permutation. A state is a ``uvec2`` of (position, increment): each lane runs
its own stream, selected by an odd increment, rather than sharing one cycle
with every other lane. Worker seeds are derived host-side from one master
seed with ``numpy.random.SeedSequence``.

Example:
    >>> @ti.kernel
    ... def draw(seed: ti.u32) -> ti.f32:
    ...     state = lane_state(seed, 0)
    ...     state, u = rand_float(state)
    ...     return u
"""

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import length_squared, normalize

vec3 = tm.vec3

_LCG_MULTIPLIER = 1664525
_LCG_INCREMENT = 1013904223
_PERMUTE_MULTIPLIER = 277803737

# 2^-24: maps the top 24 bits of a draw onto [0, 1)
_FLOAT_SCALE = 1.0 / 16777216.0

# Rejection sampling gives up after this many attempts
_MAX_REJECTION_TRIES = 64


def derive_worker_seeds(master_seed: int, count: int) -> npt.NDArray[np.uint32]:
    """Derive one independent 32-bit seed per worker from a master seed.

    Args:
        master_seed: Non-negative master seed.
        count: Number of workers.

    Returns:
        Array of ``count`` uint32 seeds. Identical inputs give identical seeds.
    """
    children = np.random.SeedSequence(master_seed).spawn(count)
    return np.array([child.generate_state(1, dtype=np.uint32)[0] for child in children], dtype=np.uint32)


# =============================================================================
# Core Generator
# =============================================================================

# (position, increment); the odd increment selects the stream
RngState = tm.uvec2


@ti.func
def _lcg(value: ti.u32, increment: ti.u32) -> ti.u32:
    return value * ti.cast(_LCG_MULTIPLIER, ti.u32) + increment


@ti.func
def _permute(state: ti.u32) -> ti.u32:
    shift = (state >> ti.cast(28, ti.u32)) + ti.cast(4, ti.u32)
    word = ((state >> shift) ^ state) * ti.cast(_PERMUTE_MULTIPLIER, ti.u32)
    return (word >> ti.cast(22, ti.u32)) ^ word


@ti.func
def hash_u32(value: ti.u32) -> ti.u32:
    """Stateless 32-bit hash, used to decorrelate seeds and indices."""
    return _permute(_lcg(value, ti.cast(_LCG_INCREMENT, ti.u32)))


@ti.func
def lane_state(seed: ti.u32, lane: ti.i32) -> RngState:
    """Initial generator state for one lane (pixel) of a worker.

    Every lane gets its own stream: the LCG increment is built from the lane
    index and the worker seed and forced odd, so two lanes of a worker never
    walk the same cycle at an offset from each other.

    Args:
        seed: The worker seed.
        lane: Lane index, typically ``row * width + col``.

    Returns:
        A generator state unique to (seed, lane).
    """
    lane_bits = ti.cast(lane, ti.u32)
    stream = hash_u32(seed) ^ lane_bits
    increment = (stream << ti.cast(1, ti.u32)) | ti.cast(1, ti.u32)
    return RngState(hash_u32(seed ^ hash_u32(lane_bits)), increment)


@ti.func
def rand_u32(state: RngState):
    """Draw 32 random bits.

    Returns:
        A tuple of (new_state, bits).
    """
    position = _lcg(state[0], state[1])
    return RngState(position, state[1]), _permute(position)


@ti.func
def rand_float(state: RngState):
    """Draw a float uniformly from [0, 1).

    Returns:
        A tuple of (new_state, value).
    """
    new_state, bits = rand_u32(state)
    value = ti.cast(bits >> ti.cast(8, ti.u32), ti.f32) * _FLOAT_SCALE
    return new_state, value


@ti.func
def rand_range(state: RngState, low: ti.f32, high: ti.f32):
    """Draw a float uniformly from [low, high)."""
    new_state, u = rand_float(state)
    return new_state, low + (high - low) * u


# =============================================================================
# Geometric Sampling
# =============================================================================


@ti.func
def random_in_unit_sphere(state: RngState):
    """Draw a point uniformly inside the unit ball by rejection sampling.

    Returns:
        A tuple of (new_state, point) with ``|point| < 1``.
    """
    rng = state
    p = vec3(0.0, 0.0, 0.0)
    found = False
    for _ in range(_MAX_REJECTION_TRIES):
        if not found:
            rng, x = rand_range(rng, -1.0, 1.0)
            rng, y = rand_range(rng, -1.0, 1.0)
            rng, z = rand_range(rng, -1.0, 1.0)
            candidate = vec3(x, y, z)
            if length_squared(candidate) < 1.0:
                p = candidate
                found = True
    return rng, p


@ti.func
def random_unit_vector(state: RngState):
    """Draw a direction uniformly on the unit sphere.

    Returns:
        A tuple of (new_state, direction).
    """
    rng = state
    p = vec3(0.0, 0.0, 0.0)
    found = False
    for _ in range(_MAX_REJECTION_TRIES):
        if not found:
            rng, x = rand_range(rng, -1.0, 1.0)
            rng, y = rand_range(rng, -1.0, 1.0)
            rng, z = rand_range(rng, -1.0, 1.0)
            candidate = vec3(x, y, z)
            len_sq = length_squared(candidate)
            # Reject the tiny core as well, so the normalization is stable
            if len_sq < 1.0 and len_sq > 1e-8:
                p = candidate
                found = True
    direction = vec3(0.0, 1.0, 0.0)
    if found:
        direction = normalize(p)
    return rng, direction


@ti.func
def random_in_unit_disk(state: RngState):
    """Draw a point uniformly inside the unit disk in the xy-plane.

    Returns:
        A tuple of (new_state, point) with ``point.z == 0``.
    """
    rng = state
    p = vec3(0.0, 0.0, 0.0)
    found = False
    for _ in range(_MAX_REJECTION_TRIES):
        if not found:
            rng, x = rand_range(rng, -1.0, 1.0)
            rng, y = rand_range(rng, -1.0, 1.0)
            if x * x + y * y < 1.0:
                p = vec3(x, y, 0.0)
                found = True
    return rng, p
