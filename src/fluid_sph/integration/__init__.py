"""
Integration module: time integrators and container boundaries.
"""

from fluid_sph.integration.symplectic_euler import SymplecticEulerIntegrator, clamp_speed
from fluid_sph.integration.boundary import BoxBoundary, Container

__all__ = [
    "SymplecticEulerIntegrator",
    "clamp_speed",
    "BoxBoundary",
    "Container",
]
