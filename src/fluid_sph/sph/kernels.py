"""
SPH kernel functions for density, pressure and diffusion terms.

This module implements the kernel set of Müller et al. (2003) used by
interactive weakly-compressible SPH solvers:

- Poly6 for density summation
- Spiky gradient for the pressure force
- Viscosity Laplacian for viscous (and generic scalar) diffusion
- A piecewise cubic cohesion kernel for surface tension (Akinci et al. 2013)

All kernels have compact support radius h: they return exactly zero for
r ≥ h. The neighbour loops rely on this, not only for speed.

The scalar functions are compiled with numba so the neighbour loops in
``density`` and ``hydro_forces`` can call them directly.

References
----------
.. [1] Müller, M., Charypar, D., & Gross, M. (2003), "Particle-based fluid
       simulation for interactive applications", SCA '03, 154.
.. [2] Akinci, N., Akinci, G., & Teschner, M. (2013), "Versatile surface
       tension and adhesion for SPH fluids", ACM TOG, 32, 182.
"""

import math

import numpy as np
import numpy.typing as npt
from numba import njit

# Type alias for clarity
NDArrayFloat = npt.NDArray[np.float64]


@njit(cache=True)
def poly6(r, h):
    """
    Poly6 density kernel.

        W(r, h) = 315 / (64 π h⁹) × (h² − r²)³,   0 ≤ r < h

    Parameters
    ----------
    r : float
        Distance between particles.
    h : float
        Smoothing radius.

    Returns
    -------
    W : float
        Kernel value (0 for r ≥ h).
    """
    if r >= h:
        return 0.0
    diff = h * h - r * r
    return 315.0 / (64.0 * math.pi * h**9) * diff * diff * diff


@njit(cache=True)
def spiky_gradient_factor(r, h):
    """
    Scalar factor f such that ∇W_spiky(r_vec, h) = f × r_vec.

        f = −45 / (π h⁶) × (h − r)² / r

    Returns 0 for r ≥ h and for r = 0 (direction undefined).
    """
    if r >= h or r == 0.0:
        return 0.0
    return -45.0 / (math.pi * h**6) * (h - r) * (h - r) / r


@njit(cache=True)
def spiky_gradient(r_vec, h):
    """
    Gradient of the spiky pressure kernel.

    Parameters
    ----------
    r_vec : NDArrayFloat, shape (3,)
        Separation vector r_i − r_j.
    h : float
        Smoothing radius.

    Returns
    -------
    grad_W : NDArrayFloat, shape (3,)
        −45 / (π h⁶) × (h − |r|)² × r̂, or the zero vector for |r| ≥ h
        or |r| = 0.

    Notes
    -----
    The gradient is antisymmetric, ∇W(r_ij) = −∇W(r_ji), which makes
    the per-particle pressure sums momentum conserving without explicit
    pair bookkeeping.
    """
    r = math.sqrt(r_vec[0] * r_vec[0] + r_vec[1] * r_vec[1] + r_vec[2] * r_vec[2])
    factor = spiky_gradient_factor(r, h)
    grad = np.zeros(3)
    grad[0] = factor * r_vec[0]
    grad[1] = factor * r_vec[1]
    grad[2] = factor * r_vec[2]
    return grad


@njit(cache=True)
def viscosity_laplacian(r, h):
    """
    Laplacian of the viscosity kernel.

        ∇²W(r, h) = 45 / (π h⁶) × (h − r),   0 ≤ r < h

    Used for both the viscous force and scalar (thermal) diffusion.
    """
    if r >= h:
        return 0.0
    return 45.0 / (math.pi * h**6) * (h - r)


@njit(cache=True)
def surface_tension_kernel(r, h):
    """
    Cohesion kernel for surface tension (dimensionless, q = r/h).

        C(q) = 2 (1 − q)³ q³ − 1/64,   0 ≤ q ≤ 1/2
             = (1 − q)³ q³,            1/2 < q < 1
             = 0,                      q ≥ 1

    Both branches equal 1/64 at q = 1/2. The negative values near the
    origin are repulsive and keep particles from clumping.
    """
    if r >= h:
        return 0.0
    q = r / h
    c = (1.0 - q) * (1.0 - q) * (1.0 - q) * q * q * q
    if q <= 0.5:
        return 2.0 * c - 1.0 / 64.0
    return c


def poly6_array(r: NDArrayFloat, h: float) -> NDArrayFloat:
    """
    Vectorised poly6 for arrays of distances.

    Parameters
    ----------
    r : NDArrayFloat
        Distances.
    h : float
        Smoothing radius.

    Returns
    -------
    W : NDArrayFloat
        Kernel values, same shape as ``r``.
    """
    r = np.asarray(r, dtype=np.float64)
    w_vals = np.zeros_like(r)
    mask = r < h
    diff = h * h - r[mask] ** 2
    w_vals[mask] = 315.0 / (64.0 * np.pi * h**9) * diff**3
    return w_vals
