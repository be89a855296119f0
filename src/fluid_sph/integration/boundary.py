"""
Axis-aligned container and collision response for SPH particles.

Particles leaving the box are clamped back onto the violated face. The
normal velocity component is reflected inward with a restitution factor
and the two tangential components lose a fixed fraction to friction:

    v_n ← |v_n| × e          (pointing back into the box)
    v_t ← v_t × (1 − μ_f)

with e = 0.6 and μ_f = 0.1. Axes are handled independently in x, y, z
order, so a particle past an edge or a corner is corrected on every
violated axis in the same step. In-bounds particles are left untouched.
"""

from dataclasses import dataclass, field

import numpy as np

from fluid_sph.core.interfaces import NDArrayFloat, as_vector3

RESTITUTION = 0.6
FRICTION = 0.1


@dataclass(frozen=True, eq=False)
class Container:
    """
    Static axis-aligned simulation domain.

    Attributes
    ----------
    min_corner : NDArrayFloat, shape (3,)
        Lower corner.
    max_corner : NDArrayFloat, shape (3,)
        Upper corner; strictly greater than ``min_corner`` on every axis.
    """
    min_corner: NDArrayFloat = field(default_factory=lambda: np.zeros(3))
    max_corner: NDArrayFloat = field(default_factory=lambda: np.ones(3))

    def __post_init__(self):
        lo = as_vector3(self.min_corner, "min_corner")
        hi = as_vector3(self.max_corner, "max_corner")
        if np.any(hi <= lo):
            raise ValueError(
                f"max_corner must exceed min_corner on every axis, got {lo} and {hi}"
            )
        lo.setflags(write=False)
        hi.setflags(write=False)
        object.__setattr__(self, 'min_corner', lo)
        object.__setattr__(self, 'max_corner', hi)

    @classmethod
    def centered(cls, width: float, height: float, depth: float) -> "Container":
        """Box of the given extents centred on the origin."""
        half = np.array([width, height, depth], dtype=np.float64) / 2.0
        return cls(min_corner=-half, max_corner=half)

    @property
    def size(self) -> NDArrayFloat:
        return self.max_corner - self.min_corner

    def contains(self, positions: NDArrayFloat) -> np.ndarray:
        """Boolean mask of positions inside the closed box."""
        positions = np.atleast_2d(positions)
        return np.all(
            (positions >= self.min_corner) & (positions <= self.max_corner),
            axis=1
        )


class BoxBoundary:
    """
    Clamp-and-reflect collision handler for a Container.

    Parameters
    ----------
    container : Container
        Simulation domain.
    restitution : float, optional
        Fraction of normal speed kept after a bounce (default 0.6).
    friction : float, optional
        Fraction of tangential speed lost per bounce (default 0.1).
    """

    def __init__(
        self,
        container: Container,
        restitution: float = RESTITUTION,
        friction: float = FRICTION
    ):
        self.container = container
        self.restitution = restitution
        self.friction = friction

    def apply(self, positions: NDArrayFloat, velocities: NDArrayFloat) -> int:
        """
        Resolve boundary collisions in place.

        Parameters
        ----------
        positions : NDArrayFloat, shape (N, 3)
            Positions after the drift (modified in place).
        velocities : NDArrayFloat, shape (N, 3)
            Velocities after damping (modified in place).

        Returns
        -------
        n_collisions : int
            Number of (particle, axis) corrections made.
        """
        keep = 1.0 - self.friction
        n_collisions = 0

        for axis in range(3):
            others = [a for a in range(3) if a != axis]
            lo = self.container.min_corner[axis]
            hi = self.container.max_corner[axis]

            below = positions[:, axis] < lo
            above = (positions[:, axis] > hi) & ~below

            if np.any(below):
                positions[below, axis] = lo
                velocities[below, axis] = np.abs(velocities[below, axis]) * self.restitution
                velocities[np.ix_(below, others)] *= keep

            if np.any(above):
                positions[above, axis] = hi
                velocities[above, axis] = -np.abs(velocities[above, axis]) * self.restitution
                velocities[np.ix_(above, others)] *= keep

            n_collisions += int(np.count_nonzero(below) + np.count_nonzero(above))

        return n_collisions

    def apply_to(self, particles) -> int:
        """Resolve collisions for every live particle of a ParticleStore."""
        if particles.n_particles == 0:
            return 0
        return self.apply(particles.positions, particles.velocities)
