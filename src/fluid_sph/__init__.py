"""
fluid-sph: weakly-compressible SPH fluid solver.

A modular Python/numba framework for interactive particle-based liquid
simulation: Müller-style SPH kernels, a reusable spatial hash grid, Tait
equation of state, symplectic Euler integration and box collisions.
"""

__version__ = "1.0.0"
__author__ = "fluid-sph Dev Team"

# Core imports for convenience
from fluid_sph.core.interfaces import (
    EOS,
    TimeIntegrator,
    ICGenerator,
)
from fluid_sph.core.solver import (
    SPHSolver,
    SimulationParameters,
    SolverPhase,
    SolverState,
)
from fluid_sph.integration.boundary import Container

__all__ = [
    "EOS",
    "TimeIntegrator",
    "ICGenerator",
    "SPHSolver",
    "SimulationParameters",
    "SolverPhase",
    "SolverState",
    "Container",
]
