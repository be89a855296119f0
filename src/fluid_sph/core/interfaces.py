"""
Abstract base classes defining interfaces for pluggable solver modules.

This module establishes the contract that the swappable parts of the solver
implement (equation of state, time integrator, initial conditions), so the
solver can be assembled from alternative implementations through
dependency injection.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Sequence, Tuple

import numpy as np
import numpy.typing as npt


# Type aliases for clarity
NDArrayFloat = npt.NDArray[np.float64]


def as_vector3(values: Sequence[float], name: str) -> NDArrayFloat:
    """Validate and convert a finite 3-vector, raising ValueError otherwise."""
    vector = np.asarray(values, dtype=np.float64).reshape(-1)
    if vector.shape != (3,):
        raise ValueError(f"{name} must have 3 components, got {vector.size}")
    if not np.all(np.isfinite(vector)):
        raise ValueError(f"{name} must be finite, got {vector}")
    return vector


class EOS(ABC):
    """
    Abstract base class for a barotropic equation of state.

    Implementations: TaitEOS (weakly-compressible liquid).
    """

    @abstractmethod
    def pressure(
        self,
        density: NDArrayFloat,
        **kwargs
    ) -> NDArrayFloat:
        """
        Compute pressure from density.

        Parameters
        ----------
        density : NDArrayFloat, shape (N,)
            Mass density ρ.
        **kwargs : additional EOS parameters.

        Returns
        -------
        pressure : NDArrayFloat, shape (N,)
            Pressure P (may be negative for tensile states).
        """
        pass

    @abstractmethod
    def sound_speed(
        self,
        density: NDArrayFloat,
        **kwargs
    ) -> NDArrayFloat:
        """
        Compute sound speed c = sqrt(dP/dρ).

        Parameters
        ----------
        density : NDArrayFloat, shape (N,)
            Mass density ρ.

        Returns
        -------
        cs : NDArrayFloat, shape (N,)
            Sound speed.
        """
        pass


class TimeIntegrator(ABC):
    """
    Abstract base class for time integration schemes.

    Implementations: SymplecticEulerIntegrator.
    """

    @abstractmethod
    def step(
        self,
        particles: Any,  # ParticleStore type
        dt: float,
        forces: Dict[str, NDArrayFloat],
        **kwargs
    ) -> None:
        """
        Advance the particle store by one timestep.

        Parameters
        ----------
        particles : ParticleStore
            Particle store to evolve in place.
        dt : float
            Timestep.
        forces : Dict[str, NDArrayFloat]
            Force contributions (gravity, pressure, viscosity, ...),
            each of shape (N, 3).
        **kwargs : integrator-specific parameters.
        """
        pass


class ICGenerator(ABC):
    """
    Abstract base class for initial conditions generators.

    Implementations: LatticeFill.
    """

    @abstractmethod
    def generate(
        self,
        n_particles: int,
        **kwargs
    ) -> Tuple[NDArrayFloat, NDArrayFloat, NDArrayFloat, NDArrayFloat]:
        """
        Generate an initial particle distribution.

        Parameters
        ----------
        n_particles : int
            Maximum number of particles to generate.
        **kwargs : model-specific parameters (container, spacing, ...).

        Returns
        -------
        positions : NDArrayFloat, shape (M, 3)
            Initial positions, M ≤ n_particles.
        velocities : NDArrayFloat, shape (M, 3)
            Initial velocities.
        temperatures : NDArrayFloat, shape (M,)
            Initial temperatures.
        lives : NDArrayFloat, shape (M,)
            Particle lifetimes.
        """
        pass
