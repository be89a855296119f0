"""
Initial conditions module: lattice fill and stream injection.
"""

from fluid_sph.ICs.lattice import LatticeFill, lattice_side
from fluid_sph.ICs.stream import generate_stream

__all__ = ["LatticeFill", "lattice_side", "generate_stream"]
