"""
SPH force accumulation and scalar diffusion.

This module implements the per-particle force terms of a weakly-compressible
SPH fluid (Müller et al. 2003):

- Body force:       F_i += m_i g
- Pressure force:   F_i += −∑_j m_j (P_i + P_j) / (2 ρ_j) ∇W_spiky(r_ij, h)
- Viscous force:    F_i += μ ∑_j m_j ∇²W_visc(|r_ij|, h) / ρ_j (v_j − v_i)
- Surface tension:  F_i += σ ∑_j m_j C(|r_ij|, h) r̂_ij

Each particle sums its own neighbours independently. The spiky gradient is
antisymmetric in r_ij, so the pressure contributions of a pair are equal
and opposite (for equal m/ρ) without explicit pair bookkeeping.
Coincident pairs (|r_ij| = 0) are skipped.

A generic scalar diffusion operator reuses the viscosity Laplacian:

    dφ_i/dt = κ ∑_j m_j (φ_j − φ_i) ∇²W(|r_ij|, h) / ρ_j

and drives the optional thermal stage.

All outputs are written to fresh arrays; inputs are never modified, so a
whole pass sees one consistent state.
"""

from typing import Dict, Optional, Sequence

import numpy as np
import numpy.typing as npt
from numba import njit

from .kernels import spiky_gradient_factor, surface_tension_kernel, viscosity_laplacian
from .spatial_hash import SpatialHashGrid, query_neighbours

# Type alias for clarity
NDArrayFloat = npt.NDArray[np.float64]


@njit(cache=True)
def _compute_forces_numba(
    positions, velocities, masses, densities, pressures, ids,
    h, viscosity, surface_tension,
    head, nxt, cells, points, cell_size
):
    """Numba implementation of the pairwise force terms."""
    n = positions.shape[0]
    f_pressure = np.zeros((n, 3))
    f_viscous = np.zeros((n, 3))
    f_surface = np.zeros((n, 3))
    buffer = np.empty(max(n, 1), dtype=np.int64)

    for i in range(n):
        x = positions[i, 0]
        y = positions[i, 1]
        z = positions[i, 2]
        P_i = pressures[i]

        count = query_neighbours(head, nxt, cells, points, x, y, z, h, cell_size, buffer)

        px = 0.0
        py = 0.0
        pz = 0.0
        vx = 0.0
        vy = 0.0
        vz = 0.0
        sx = 0.0
        sy = 0.0
        sz = 0.0

        for k in range(count):
            j = buffer[k]
            if ids[j] == ids[i]:
                continue

            dx = x - positions[j, 0]
            dy = y - positions[j, 1]
            dz = z - positions[j, 2]
            r = np.sqrt(dx * dx + dy * dy + dz * dz)
            if r == 0.0:
                continue

            m_j = masses[j]
            rho_j = densities[j]

            # Pressure (symmetrised)
            grad = spiky_gradient_factor(r, h)
            p_scale = -m_j * (P_i + pressures[j]) / (2.0 * rho_j) * grad
            px += p_scale * dx
            py += p_scale * dy
            pz += p_scale * dz

            # Viscosity
            v_scale = viscosity * m_j * viscosity_laplacian(r, h) / rho_j
            vx += v_scale * (velocities[j, 0] - velocities[i, 0])
            vy += v_scale * (velocities[j, 1] - velocities[i, 1])
            vz += v_scale * (velocities[j, 2] - velocities[i, 2])

            # Surface tension
            if surface_tension > 0.0:
                s_scale = surface_tension * m_j * surface_tension_kernel(r, h) / r
                sx += s_scale * dx
                sy += s_scale * dy
                sz += s_scale * dz

        f_pressure[i, 0] = px
        f_pressure[i, 1] = py
        f_pressure[i, 2] = pz
        f_viscous[i, 0] = vx
        f_viscous[i, 1] = vy
        f_viscous[i, 2] = vz
        f_surface[i, 0] = sx
        f_surface[i, 1] = sy
        f_surface[i, 2] = sz

    return f_pressure, f_viscous, f_surface


def compute_hydro_forces(
    positions: NDArrayFloat,
    velocities: NDArrayFloat,
    masses: NDArrayFloat,
    densities: NDArrayFloat,
    pressures: NDArrayFloat,
    ids: npt.NDArray[np.int64],
    grid: SpatialHashGrid,
    h: float,
    gravity: Sequence[float],
    viscosity: float = 0.0,
    surface_tension: float = 0.0
) -> Dict[str, NDArrayFloat]:
    """
    Compute all force contributions for every particle.

    Parameters
    ----------
    positions : NDArrayFloat, shape (N, 3)
        Particle positions (as inserted into ``grid``).
    velocities : NDArrayFloat, shape (N, 3)
        Particle velocities.
    masses : NDArrayFloat, shape (N,)
        Particle masses.
    densities : NDArrayFloat, shape (N,)
        Finalised (floored) densities for this step.
    pressures : NDArrayFloat, shape (N,)
        Finalised pressures for this step.
    ids : NDArray[int64], shape (N,)
        Stable particle ids used for self-exclusion.
    grid : SpatialHashGrid
        Grid built from ``positions`` for this step.
    h : float
        Smoothing radius.
    gravity : Sequence[float]
        Body acceleration vector.
    viscosity : float, optional
        Viscosity coefficient μ (default 0).
    surface_tension : float, optional
        Surface tension coefficient σ (default 0 = off).

    Returns
    -------
    forces : Dict[str, NDArrayFloat]
        Force contributions, each of shape (N, 3):
        - 'gravity'
        - 'pressure'
        - 'viscosity'
        - 'surface_tension'
    """
    n_particles = positions.shape[0]
    gravity = np.asarray(gravity, dtype=np.float64)
    f_gravity = masses[:, np.newaxis] * gravity[np.newaxis, :]

    if n_particles == 0:
        empty = np.zeros((0, 3), dtype=np.float64)
        return {
            'gravity': f_gravity,
            'pressure': empty,
            'viscosity': empty.copy(),
            'surface_tension': empty.copy(),
        }

    f_pressure, f_viscous, f_surface = _compute_forces_numba(
        np.ascontiguousarray(positions), np.ascontiguousarray(velocities),
        np.ascontiguousarray(masses), np.ascontiguousarray(densities),
        np.ascontiguousarray(pressures), np.ascontiguousarray(ids),
        float(h), float(viscosity), float(surface_tension),
        grid.head, grid.next, grid.cells, grid.points, grid.cell_size
    )

    return {
        'gravity': f_gravity,
        'pressure': f_pressure,
        'viscosity': f_viscous,
        'surface_tension': f_surface,
    }


@njit
def _scalar_diffusion_numba(
    field, positions, masses, densities, ids, h, coefficient,
    head, nxt, cells, points, cell_size, kernel
):
    """Numba implementation of the kernel-weighted scalar Laplacian."""
    n = positions.shape[0]
    rate = np.zeros(n)
    buffer = np.empty(max(n, 1), dtype=np.int64)

    for i in range(n):
        x = positions[i, 0]
        y = positions[i, 1]
        z = positions[i, 2]
        phi_i = field[i]

        count = query_neighbours(head, nxt, cells, points, x, y, z, h, cell_size, buffer)
        acc = 0.0
        for k in range(count):
            j = buffer[k]
            if ids[j] == ids[i]:
                continue
            dx = x - positions[j, 0]
            dy = y - positions[j, 1]
            dz = z - positions[j, 2]
            r = np.sqrt(dx * dx + dy * dy + dz * dz)
            acc += coefficient * masses[j] * (field[j] - phi_i) * kernel(r, h) / densities[j]

        rate[i] = acc

    return rate


def scalar_diffusion(
    field: NDArrayFloat,
    positions: NDArrayFloat,
    masses: NDArrayFloat,
    densities: NDArrayFloat,
    ids: npt.NDArray[np.int64],
    grid: SpatialHashGrid,
    h: float,
    coefficient: float,
    kernel: Optional[callable] = None
) -> NDArrayFloat:
    """
    Rate of change of a scalar field under SPH diffusion.

        dφ_i/dt = κ ∑_j m_j (φ_j − φ_i) L(|r_ij|, h) / ρ_j

    Parameters
    ----------
    field : NDArrayFloat, shape (N,)
        Scalar field φ (e.g. temperature).
    positions, masses, densities, ids, grid, h :
        See ``compute_hydro_forces``.
    coefficient : float
        Diffusivity κ.
    kernel : numba-compiled callable, optional
        Laplacian-like kernel L(r, h). Defaults to ``viscosity_laplacian``.

    Returns
    -------
    rate : NDArrayFloat, shape (N,)
        dφ/dt for every particle. The field itself is not modified.

    Notes
    -----
    The kernel must be an ``@njit`` function; plain Python callables cannot
    be invoked from the compiled loop.
    """
    if kernel is None:
        kernel = viscosity_laplacian

    if positions.shape[0] == 0 or coefficient == 0.0:
        return np.zeros(positions.shape[0], dtype=np.float64)

    return _scalar_diffusion_numba(
        np.ascontiguousarray(field, dtype=np.float64),
        np.ascontiguousarray(positions), np.ascontiguousarray(masses),
        np.ascontiguousarray(densities), np.ascontiguousarray(ids),
        float(h), float(coefficient),
        grid.head, grid.next, grid.cells, grid.points, grid.cell_size,
        kernel
    )


def compute_thermal_diffusion(
    temperature: NDArrayFloat,
    positions: NDArrayFloat,
    masses: NDArrayFloat,
    densities: NDArrayFloat,
    ids: npt.NDArray[np.int64],
    grid: SpatialHashGrid,
    h: float,
    thermal_diffusivity: float,
    dt: float
) -> NDArrayFloat:
    """
    Explicit thermal diffusion step.

    Returns the updated temperatures T + Δt dT/dt. All rates are evaluated
    from the incoming temperatures before any value is replaced.
    """
    rate = scalar_diffusion(
        temperature, positions, masses, densities, ids, grid, h,
        thermal_diffusivity, kernel=viscosity_laplacian
    )
    return temperature + dt * rate
