"""
Equation of state module: barotropic liquid EOS.
"""

from fluid_sph.eos.tait import TaitEOS

__all__ = ["TaitEOS"]
