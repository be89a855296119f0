"""
Tests for density summation, the density floor and the Tait EOS.
"""

import numpy as np
import pytest

from fluid_sph.eos import TaitEOS
from fluid_sph.sph import (
    SpatialHashGrid,
    compute_density_summation,
    compute_density_bruteforce,
    compute_density_pressure,
    apply_density_floor,
    poly6,
)


def _grid_for(positions, h):
    grid = SpatialHashGrid(cell_size=h, capacity=positions.shape[0])
    grid.build(positions)
    return grid


class TestDensitySummation:

    def test_isolated_particle_gets_self_term(self):
        h = 0.3
        positions = np.zeros((1, 3))
        masses = np.array([2.0])
        ids = np.array([0], dtype=np.int64)

        density = compute_density_summation(positions, masses, ids, _grid_for(positions, h), h)

        assert density[0] == pytest.approx(2.0 * poly6(0.0, h))

    def test_grid_matches_bruteforce(self):
        rng = np.random.default_rng(5)
        h = 0.25
        positions = rng.uniform(0.0, 1.0, (200, 3))
        masses = rng.uniform(0.5, 1.5, 200)
        ids = np.arange(200, dtype=np.int64)

        grid_density = compute_density_summation(positions, masses, ids, _grid_for(positions, h), h)
        brute_density = compute_density_bruteforce(positions, masses, h)

        np.testing.assert_allclose(grid_density, brute_density, rtol=1e-12)

    def test_lattice_corner_has_three_neighbours(self):
        """2×2×2 lattice with h/√2 < s < h: only edge neighbours contribute."""
        h = 1.0
        s = 0.8
        offsets = np.array([[i, j, k] for i in (0, 1) for j in (0, 1) for k in (0, 1)], dtype=np.float64)
        positions = 1.0 + s * offsets
        masses = np.ones(8)
        ids = np.arange(8, dtype=np.int64)

        density = compute_density_summation(positions, masses, ids, _grid_for(positions, h), h)

        expected = poly6(0.0, h) + 3.0 * poly6(s, h)
        np.testing.assert_allclose(density, expected, rtol=1e-12)

    def test_empty_input(self):
        grid = SpatialHashGrid(cell_size=0.3, capacity=0)
        density = compute_density_summation(
            np.zeros((0, 3)), np.zeros(0), np.zeros(0, dtype=np.int64), grid, 0.3
        )
        assert density.shape == (0,)


class TestDensityFloor:

    def test_floor_applies_below_ten_percent(self):
        density = np.array([10.0, 100.0, 500.0])
        floored = apply_density_floor(density, rest_density=1000.0)
        np.testing.assert_array_equal(floored, [100.0, 100.0, 500.0])

    def test_isolated_particle_density_is_floored(self):
        h = 0.3
        positions = np.zeros((1, 3))
        eos = TaitEOS(rest_density=1000.0, stiffness=200.0)

        density, pressure = compute_density_pressure(
            positions, np.ones(1), np.zeros(1, dtype=np.int64),
            _grid_for(positions, h), h, 1000.0, eos
        )

        assert density[0] == pytest.approx(max(poly6(0.0, h), 100.0))
        assert density[0] >= 100.0
        assert pressure[0] < 0.0


class TestTaitEOS:

    def test_pressure_zero_at_rest_density(self):
        eos = TaitEOS(rest_density=1000.0, stiffness=200.0)
        assert eos.pressure(np.array([1000.0]))[0] == pytest.approx(0.0)

    def test_pressure_formula(self):
        eos = TaitEOS(rest_density=1000.0, stiffness=200.0)
        density = np.array([100.0, 1100.0])
        expected = 200.0 * ((density / 1000.0) ** 7 - 1.0)
        np.testing.assert_allclose(eos.pressure(density), expected)

    def test_tensile_pressure_below_rest_density(self):
        eos = TaitEOS()
        assert eos.pressure(np.array([500.0]))[0] < 0.0

    def test_sound_speed_at_rest(self):
        eos = TaitEOS(rest_density=1000.0, stiffness=200.0)
        cs = eos.sound_speed(np.array([1000.0]))
        assert cs[0] == pytest.approx(np.sqrt(200.0 * 7.0 / 1000.0))

    def test_invalid_parameters(self):
        with pytest.raises(ValueError, match="rest_density"):
            TaitEOS(rest_density=0.0)
        with pytest.raises(ValueError, match="stiffness"):
            TaitEOS(stiffness=-1.0)
