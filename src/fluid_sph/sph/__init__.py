"""
SPH module: particles, kernels, neighbour search, density and forces.
"""

from .particles import Particle, ParticleSnapshot, ParticleStore, compute_particle_colors
from .kernels import (
    poly6,
    poly6_array,
    spiky_gradient,
    spiky_gradient_factor,
    viscosity_laplacian,
    surface_tension_kernel,
)
from .spatial_hash import SpatialHashGrid, query_neighbours
from .density import (
    compute_density_summation,
    compute_density_bruteforce,
    compute_density_pressure,
    apply_density_floor,
)
from .hydro_forces import (
    compute_hydro_forces,
    scalar_diffusion,
    compute_thermal_diffusion,
)

__all__ = [
    # Particle management
    "Particle",
    "ParticleSnapshot",
    "ParticleStore",
    "compute_particle_colors",

    # Kernels
    "poly6",
    "poly6_array",
    "spiky_gradient",
    "spiky_gradient_factor",
    "viscosity_laplacian",
    "surface_tension_kernel",

    # Neighbour search
    "SpatialHashGrid",
    "query_neighbours",

    # Density and pressure
    "compute_density_summation",
    "compute_density_bruteforce",
    "compute_density_pressure",
    "apply_density_floor",

    # Forces and diffusion
    "compute_hydro_forces",
    "scalar_diffusion",
    "compute_thermal_diffusion",
]
