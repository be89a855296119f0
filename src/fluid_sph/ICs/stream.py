"""
Particle stream injection around a source point.

Each injected particle is placed within ±0.05 of the source on every axis
and receives the source velocity perturbed by ±0.25 per axis, so a burst
of particles leaves the inlet as a loose jet rather than a single column.
"""

from typing import Sequence, Tuple

import numpy as np

from fluid_sph.core.interfaces import NDArrayFloat, as_vector3
from fluid_sph.ICs.lattice import AMBIENT_TEMPERATURE, random_lifetimes

POSITION_JITTER = 0.05
VELOCITY_JITTER = 0.25


def generate_stream(
    position: Sequence[float],
    velocity: Sequence[float],
    count: int,
    rng: np.random.Generator,
    temperature: float = AMBIENT_TEMPERATURE
) -> Tuple[NDArrayFloat, NDArrayFloat, NDArrayFloat, NDArrayFloat]:
    """
    Jittered particles emitted from a source point.

    Parameters
    ----------
    position : Sequence[float]
        Source position (3 components).
    velocity : Sequence[float]
        Source velocity (3 components).
    count : int
        Number of particles to generate (≥ 0).
    rng : np.random.Generator
        Random generator for the jitter and lifetimes.
    temperature : float, default 298.15
        Temperature of the emitted particles.

    Returns
    -------
    positions : NDArrayFloat, shape (count, 3)
    velocities : NDArrayFloat, shape (count, 3)
    temperatures : NDArrayFloat, shape (count,)
    lives : NDArrayFloat, shape (count,)

    Raises
    ------
    ValueError
        If ``count`` is negative or a vector is malformed.
    """
    if count < 0:
        raise ValueError(f"count must be non-negative, got {count}")

    source = as_vector3(position, "position")
    base_velocity = as_vector3(velocity, "velocity")

    positions = source + rng.uniform(-POSITION_JITTER, POSITION_JITTER, (count, 3))
    velocities = base_velocity + rng.uniform(-VELOCITY_JITTER, VELOCITY_JITTER, (count, 3))
    temperatures = np.full(count, temperature, dtype=np.float64)
    lives = random_lifetimes(rng, count)

    return positions, velocities, temperatures, lives
