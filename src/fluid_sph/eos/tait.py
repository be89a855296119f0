"""
Tait equation of state for weakly-compressible SPH liquids.

The pressure responds stiffly to small density deviations so the fluid
stays nearly incompressible at an explicit timestep:

    P = k × ((ρ / ρ₀)^γ − 1)

with γ = 7 for water-like liquids. Densities below ρ₀ give negative
(tensile) pressure, which is valid and expected.

References:
    Batchelor (1967) - An Introduction to Fluid Dynamics
    Monaghan (1994) - Simulating free surface flows with SPH, JCP 110, 399
    Becker & Teschner (2007) - Weakly compressible SPH for free surface flows
"""

import numpy as np
from ..core.interfaces import EOS, NDArrayFloat


class TaitEOS(EOS):
    """
    Tait equation of state.

    Parameters
    ----------
    rest_density : float
        Reference density ρ₀ at which the pressure vanishes.
    stiffness : float
        Pressure coefficient k.
    gamma : float, optional
        Polytropic exponent (default 7).

    Notes
    -----
    Density is expected to be floored upstream (see
    ``fluid_sph.sph.density.apply_density_floor``); the EOS itself
    accepts any non-negative density.
    """

    def __init__(
        self,
        rest_density: float = 1000.0,
        stiffness: float = 200.0,
        gamma: float = 7.0
    ):
        if rest_density <= 0.0:
            raise ValueError(f"rest_density must be > 0, got {rest_density}")
        if stiffness < 0.0:
            raise ValueError(f"stiffness must be >= 0, got {stiffness}")

        self.rest_density = float(rest_density)
        self.stiffness = float(stiffness)
        self.gamma = float(gamma)

    def pressure(
        self,
        density: NDArrayFloat,
        **kwargs
    ) -> NDArrayFloat:
        """
        Compute pressure P = k ((ρ/ρ₀)^γ − 1).

        Parameters
        ----------
        density : NDArrayFloat, shape (N,)
            Mass density ρ.

        Returns
        -------
        pressure : NDArrayFloat, shape (N,)
            Pressure.
        """
        density = np.asarray(density, dtype=np.float64)
        ratio = density / self.rest_density
        return self.stiffness * (ratio**self.gamma - 1.0)

    def sound_speed(
        self,
        density: NDArrayFloat,
        **kwargs
    ) -> NDArrayFloat:
        """
        Compute sound speed c² = dP/dρ = k γ / ρ₀ × (ρ/ρ₀)^(γ−1).

        Parameters
        ----------
        density : NDArrayFloat, shape (N,)
            Mass density ρ.

        Returns
        -------
        cs : NDArrayFloat, shape (N,)
            Sound speed.
        """
        density = np.maximum(np.asarray(density, dtype=np.float64), 0.0)
        ratio = density / self.rest_density
        cs_squared = self.stiffness * self.gamma / self.rest_density * ratio**(self.gamma - 1.0)
        return np.sqrt(cs_squared)

    def __repr__(self) -> str:
        return (
            f"TaitEOS(rest_density={self.rest_density}, "
            f"stiffness={self.stiffness}, gamma={self.gamma})"
        )
