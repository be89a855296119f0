"""
SPH density summation and pressure evaluation.

Implements the standard SPH density estimator with the poly6 kernel:

    ρ_i = m_i W(0, h) + ∑_{j≠i} m_j W(|r_i − r_j|, h)

The self-term W(0, h) is the kernel maximum and is always included. The
result is floored at 10% of the rest density so that isolated particles
keep a well-defined equation of state, then mapped to pressure by the EOS.

Neighbours come from the spatial hash grid; the particle at the query
position is excluded by id.
"""

import numpy as np
import numpy.typing as npt
from numba import njit

from .kernels import poly6, poly6_array
from .spatial_hash import SpatialHashGrid, query_neighbours
from ..core.interfaces import EOS

# Type alias for clarity
NDArrayFloat = npt.NDArray[np.float64]

DENSITY_FLOOR_FRACTION = 0.1


@njit(cache=True)
def _compute_density_numba(
    positions, masses, ids, h,
    head, nxt, cells, points, cell_size
):
    """Grid-accelerated density summation."""
    n = positions.shape[0]
    density = np.zeros(n)
    buffer = np.empty(max(n, 1), dtype=np.int64)
    w_self = poly6(0.0, h)

    for i in range(n):
        x = positions[i, 0]
        y = positions[i, 1]
        z = positions[i, 2]
        rho = masses[i] * w_self

        count = query_neighbours(head, nxt, cells, points, x, y, z, h, cell_size, buffer)
        for k in range(count):
            j = buffer[k]
            if ids[j] == ids[i]:
                continue
            dx = x - positions[j, 0]
            dy = y - positions[j, 1]
            dz = z - positions[j, 2]
            r = np.sqrt(dx * dx + dy * dy + dz * dz)
            rho += masses[j] * poly6(r, h)

        density[i] = rho

    return density


def compute_density_summation(
    positions: NDArrayFloat,
    masses: NDArrayFloat,
    ids: npt.NDArray[np.int64],
    grid: SpatialHashGrid,
    h: float
) -> NDArrayFloat:
    """
    Compute SPH densities using the spatial hash grid.

    Parameters
    ----------
    positions : NDArrayFloat, shape (N, 3)
        Particle positions (must match what was inserted into ``grid``).
    masses : NDArrayFloat, shape (N,)
        Particle masses.
    ids : NDArray[int64], shape (N,)
        Stable particle ids used for self-exclusion.
    grid : SpatialHashGrid
        Grid built from ``positions`` for this step.
    h : float
        Smoothing radius.

    Returns
    -------
    density : NDArrayFloat, shape (N,)
        Unfloored densities.
    """
    if positions.shape[0] == 0:
        return np.zeros(0, dtype=np.float64)
    return _compute_density_numba(
        np.ascontiguousarray(positions), np.ascontiguousarray(masses),
        np.ascontiguousarray(ids), float(h),
        grid.head, grid.next, grid.cells, grid.points, grid.cell_size
    )


def compute_density_bruteforce(
    positions: NDArrayFloat,
    masses: NDArrayFloat,
    h: float
) -> NDArrayFloat:
    """
    Reference O(N²) density summation without a grid.

    Useful for testing the grid-based path; every pair is evaluated and
    the diagonal contributes the self-term.

    Parameters
    ----------
    positions : NDArrayFloat, shape (N, 3)
        Particle positions.
    masses : NDArrayFloat, shape (N,)
        Particle masses.
    h : float
        Smoothing radius.

    Returns
    -------
    density : NDArrayFloat, shape (N,)
        Unfloored densities.
    """
    positions = np.asarray(positions, dtype=np.float64)
    n_particles = positions.shape[0]
    density = np.zeros(n_particles, dtype=np.float64)

    for i in range(n_particles):
        r_ij = np.linalg.norm(positions[i] - positions, axis=1)
        density[i] = np.sum(masses * poly6_array(r_ij, h))

    return density


def apply_density_floor(density: NDArrayFloat, rest_density: float) -> NDArrayFloat:
    """Clamp densities from below at DENSITY_FLOOR_FRACTION × rest_density."""
    return np.maximum(density, rest_density * DENSITY_FLOOR_FRACTION)


def compute_density_pressure(
    positions: NDArrayFloat,
    masses: NDArrayFloat,
    ids: npt.NDArray[np.int64],
    grid: SpatialHashGrid,
    h: float,
    rest_density: float,
    eos: EOS
):
    """
    Density and pressure stage.

    Parameters
    ----------
    positions, masses, ids, grid, h :
        See ``compute_density_summation``.
    rest_density : float
        Rest density ρ₀ (sets the density floor).
    eos : EOS
        Equation of state mapping density to pressure.

    Returns
    -------
    density : NDArrayFloat, shape (N,)
        Floored densities, all ≥ 0.1 ρ₀.
    pressure : NDArrayFloat, shape (N,)
        Pressures from the EOS.
    """
    density = compute_density_summation(positions, masses, ids, grid, h)
    density = apply_density_floor(density, rest_density)
    pressure = eos.pressure(density)
    return density, pressure
