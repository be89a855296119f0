"""
Symplectic (semi-implicit) Euler integrator for SPH fluids.

Implements the kick-then-drift update used by interactive SPH solvers:
    a^n     = F^n / m
    v^(n+1) = clamp(v^n + a^n Δt, v_max)
    x^(n+1) = x^n + v^(n+1) Δt
    v^(n+1) ← damping × v^(n+1)

The position update uses the undamped velocity; damping is applied after
the drift. This ordering is part of the scheme and must not be changed.

References
----------
- Müller, M. et al. (2003), SCA '03 - interactive SPH
- Hairer, E., Lubich, C., & Wanner, G. (2006), "Geometric Numerical
  Integration", Springer - symplectic Euler
"""

from typing import Any, Dict, Optional

import numpy as np

from fluid_sph.core.interfaces import TimeIntegrator, NDArrayFloat


class SymplecticEulerIntegrator(TimeIntegrator):
    """
    Semi-implicit Euler integrator with speed clamp and velocity damping.

    Attributes
    ----------
    max_velocity : float
        Default speed limit |v| ≤ v_max (rescaled, direction preserved).
    damping : float
        Default per-step velocity decay factor, 0 < d ≤ 1.
    """

    def __init__(
        self,
        max_velocity: float = 10.0,
        damping: float = 0.95
    ):
        """
        Initialize the integrator.

        Parameters
        ----------
        max_velocity : float, default 10.0
            Speed clamp.
        damping : float, default 0.95
            Velocity decay factor applied after the drift.
        """
        self.max_velocity = max_velocity
        self.damping = damping

    def step(
        self,
        particles: Any,
        dt: float,
        forces: Dict[str, NDArrayFloat],
        max_velocity: Optional[float] = None,
        damping: Optional[float] = None,
        **kwargs
    ) -> None:
        """
        Advance the particle store by one timestep.

        Parameters
        ----------
        particles : ParticleStore
            Store with positions, velocities, accelerations, forces, masses
            and age arrays. Updated in place.
        dt : float
            Timestep.
        forces : Dict[str, NDArrayFloat]
            Force contributions, each of shape (N, 3). They are summed into
            ``particles.forces``.
        max_velocity : float, optional
            Overrides the integrator's speed clamp for this step.
        damping : float, optional
            Overrides the integrator's damping for this step.
        **kwargs
            Unused.

        Notes
        -----
        Modifies positions, velocities, accelerations, forces and age in place.
        """
        if particles.n_particles == 0:
            return

        v_max = self.max_velocity if max_velocity is None else max_velocity
        decay = self.damping if damping is None else damping

        total_force = np.zeros_like(particles.positions)
        for key, contribution in forces.items():
            if contribution is not None:
                total_force += contribution
        particles.forces = total_force

        accel = total_force / particles.masses[:, np.newaxis]
        particles.accelerations = accel

        velocities = particles.velocities + accel * dt
        clamp_speed(velocities, v_max)

        particles.positions = particles.positions + velocities * dt
        particles.velocities = velocities * decay
        particles.age = particles.age + dt


def clamp_speed(velocities: NDArrayFloat, max_velocity: float) -> NDArrayFloat:
    """
    Rescale rows with |v| > max_velocity onto the limit, in place.

    Parameters
    ----------
    velocities : NDArrayFloat, shape (N, 3)
        Velocities (modified in place).
    max_velocity : float
        Speed limit.

    Returns
    -------
    velocities : NDArrayFloat
        The same array, for chaining.
    """
    speed = np.linalg.norm(velocities, axis=1)
    too_fast = speed > max_velocity
    if np.any(too_fast):
        velocities[too_fast] *= (max_velocity / speed[too_fast])[:, np.newaxis]
    return velocities
