"""
Core module: interfaces and solver orchestrator.
"""

from fluid_sph.core.interfaces import (
    EOS,
    TimeIntegrator,
    ICGenerator,
    as_vector3,
)
from fluid_sph.core.solver import (
    SPHSolver,
    SimulationParameters,
    SolverPhase,
    SolverState,
)

__all__ = [
    "EOS",
    "TimeIntegrator",
    "ICGenerator",
    "as_vector3",
    "SPHSolver",
    "SimulationParameters",
    "SolverPhase",
    "SolverState",
]
