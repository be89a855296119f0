"""
Regular lattice fill of an axis-aligned container.

The initial fluid block is a cubic lattice anchored one spacing inside the
lower corner of the container:

    x_(ix, iy, iz) = min_corner + s + (ix, iy, iz) × s,   0 ≤ i < ceil(N^(1/3))

Positions that do not lie strictly below the upper corner on every axis are
discarded, and at most N positions are kept in x-major order. With the
default spacing s = 0.5 h every interior particle starts with neighbours
inside its smoothing radius.
"""

from typing import Optional, Tuple

import numpy as np

from fluid_sph.core.interfaces import ICGenerator, NDArrayFloat

AMBIENT_TEMPERATURE = 298.15
INITIAL_VELOCITY_JITTER = 0.05
LIFE_BASE = 100.0
LIFE_SPREAD = 200.0


def lattice_side(n_particles: int) -> int:
    """Smallest k with k³ ≥ n_particles."""
    if n_particles <= 0:
        return 0
    side = int(round(np.cbrt(n_particles)))
    while side**3 < n_particles:
        side += 1
    while side > 1 and (side - 1)**3 >= n_particles:
        side -= 1
    return side


def random_lifetimes(rng: np.random.Generator, n: int) -> NDArrayFloat:
    """Lifetimes drawn uniformly from [100, 300)."""
    return LIFE_BASE + rng.uniform(0.0, LIFE_SPREAD, n)


class LatticeFill(ICGenerator):
    """
    Fill a container with a cubic particle lattice.

    Attributes
    ----------
    temperature : float
        Initial temperature of every particle.
    velocity_jitter : float
        Half-width of the uniform initial velocity perturbation per axis.
    random_seed : Optional[int]
        Seed used when no generator is passed to ``generate``.
    """

    def __init__(
        self,
        temperature: float = AMBIENT_TEMPERATURE,
        velocity_jitter: float = INITIAL_VELOCITY_JITTER,
        random_seed: Optional[int] = 42
    ):
        """
        Initialize the lattice generator.

        Parameters
        ----------
        temperature : float, default 298.15
            Initial temperature.
        velocity_jitter : float, default 0.05
            Initial velocity perturbation amplitude.
        random_seed : Optional[int], default 42
            Random seed for reproducible jitter and lifetimes.
            Set to None for non-reproducible placement.
        """
        self.temperature = temperature
        self.velocity_jitter = velocity_jitter
        self.random_seed = random_seed

    def lattice_positions(
        self,
        n_particles: int,
        min_corner: NDArrayFloat,
        max_corner: NDArrayFloat,
        spacing: float
    ) -> NDArrayFloat:
        """
        Lattice sites inside the container, x-major, at most n_particles.

        Parameters
        ----------
        n_particles : int
            Maximum number of sites.
        min_corner, max_corner : NDArrayFloat, shape (3,)
            Container bounds.
        spacing : float
            Lattice spacing s.

        Returns
        -------
        positions : NDArrayFloat, shape (M, 3)
            M ≤ n_particles; fewer if the container is too small.
        """
        if spacing <= 0.0:
            raise ValueError(f"spacing must be positive, got {spacing}")

        side = lattice_side(n_particles)
        if side == 0:
            return np.zeros((0, 3), dtype=np.float64)

        offsets = (np.arange(side, dtype=np.float64) + 1.0) * spacing
        ix, iy, iz = np.meshgrid(offsets, offsets, offsets, indexing='ij')
        positions = np.column_stack([ix.ravel(), iy.ravel(), iz.ravel()])
        positions += np.asarray(min_corner, dtype=np.float64)

        inside = np.all(positions < np.asarray(max_corner, dtype=np.float64), axis=1)
        return positions[inside][:n_particles]

    def generate(
        self,
        n_particles: int,
        container=None,
        spacing: float = 0.15,
        rng: Optional[np.random.Generator] = None,
        **kwargs
    ) -> Tuple[NDArrayFloat, NDArrayFloat, NDArrayFloat, NDArrayFloat]:
        """
        Generate a lattice of particles filling the container.

        Parameters
        ----------
        n_particles : int
            Maximum number of particles.
        container : Container
            Simulation domain.
        spacing : float, default 0.15
            Absolute lattice spacing.
        rng : np.random.Generator, optional
            Random generator for jitter and lifetimes. Seeded from
            ``random_seed`` if omitted.

        Returns
        -------
        positions : NDArrayFloat, shape (M, 3)
        velocities : NDArrayFloat, shape (M, 3)
        temperatures : NDArrayFloat, shape (M,)
        lives : NDArrayFloat, shape (M,)
        """
        if container is None:
            raise ValueError("LatticeFill.generate requires a container")
        if rng is None:
            rng = np.random.default_rng(self.random_seed)

        positions = self.lattice_positions(
            n_particles, container.min_corner, container.max_corner, spacing
        )
        n = positions.shape[0]

        velocities = rng.uniform(-self.velocity_jitter, self.velocity_jitter, (n, 3))
        temperatures = np.full(n, self.temperature, dtype=np.float64)
        lives = random_lifetimes(rng, n)

        return positions, velocities, temperatures, lives

    def __repr__(self) -> str:
        return (
            f"LatticeFill(temperature={self.temperature}, "
            f"velocity_jitter={self.velocity_jitter})"
        )
