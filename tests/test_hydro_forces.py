"""
Tests for SPH force accumulation and scalar diffusion.

Validates:
- Pairwise momentum symmetry of the pressure force
- Coincident particles are skipped without NaNs
- Viscosity damps relative motion
- Scalar diffusion conserves the mass-weighted field
"""

import numpy as np
import pytest

from fluid_sph.eos import TaitEOS
from fluid_sph.sph import (
    SpatialHashGrid,
    compute_density_pressure,
    compute_hydro_forces,
    compute_thermal_diffusion,
    scalar_diffusion,
    surface_tension_kernel,
    viscosity_laplacian,
)


def _setup(positions, h=0.3, rest_density=1.0, stiffness=200.0):
    positions = np.asarray(positions, dtype=np.float64)
    n = positions.shape[0]
    masses = np.ones(n)
    ids = np.arange(n, dtype=np.int64)
    grid = SpatialHashGrid(cell_size=h, capacity=n)
    grid.build(positions)
    eos = TaitEOS(rest_density=rest_density, stiffness=stiffness)
    density, pressure = compute_density_pressure(positions, masses, ids, grid, h, rest_density, eos)
    return positions, masses, ids, grid, density, pressure


class TestPressureForce:

    def test_isolated_pair_is_momentum_conserving(self):
        h = 0.3
        positions, masses, ids, grid, density, pressure = _setup(
            [[0.0, 0.0, 0.0], [0.1, 0.05, -0.02]], h=h
        )
        forces = compute_hydro_forces(
            positions, np.zeros((2, 3)), masses, density, pressure, ids, grid, h,
            gravity=(0.0, 0.0, 0.0)
        )

        f_p = forces['pressure']
        assert np.linalg.norm(f_p[0]) > 0.0
        np.testing.assert_allclose(f_p[0], -f_p[1], rtol=1e-12)

    def test_compressed_pair_repels(self):
        h = 0.3
        positions, masses, ids, grid, density, pressure = _setup(
            [[0.0, 0.0, 0.0], [0.05, 0.0, 0.0]], h=h
        )
        assert np.all(pressure > 0.0)

        forces = compute_hydro_forces(
            positions, np.zeros((2, 3)), masses, density, pressure, ids, grid, h,
            gravity=(0.0, 0.0, 0.0)
        )
        assert forces['pressure'][0, 0] < 0.0
        assert forces['pressure'][1, 0] > 0.0

    def test_coincident_particles_are_skipped(self):
        h = 0.3
        positions, masses, ids, grid, density, pressure = _setup(
            [[0.2, 0.2, 0.2], [0.2, 0.2, 0.2]], h=h
        )
        forces = compute_hydro_forces(
            positions, np.array([[1.0, 0.0, 0.0], [0.0, 0.0, 0.0]]),
            masses, density, pressure, ids, grid, h,
            gravity=(0.0, 0.0, 0.0), viscosity=1.0, surface_tension=1.0
        )

        for key in ('pressure', 'viscosity', 'surface_tension'):
            assert np.all(np.isfinite(forces[key]))
            np.testing.assert_array_equal(forces[key], np.zeros((2, 3)))

    def test_particles_beyond_support_do_not_interact(self):
        h = 0.3
        positions, masses, ids, grid, density, pressure = _setup(
            [[0.0, 0.0, 0.0], [0.31, 0.0, 0.0]], h=h
        )
        forces = compute_hydro_forces(
            positions, np.zeros((2, 3)), masses, density, pressure, ids, grid, h,
            gravity=(0.0, 0.0, 0.0)
        )
        np.testing.assert_array_equal(forces['pressure'], np.zeros((2, 3)))


class TestOtherForces:

    def test_gravity_scales_with_mass(self):
        h = 0.3
        positions, masses, ids, grid, density, pressure = _setup([[0.0, 0.0, 0.0]], h=h)
        masses = np.array([2.0])
        forces = compute_hydro_forces(
            positions, np.zeros((1, 3)), masses, density, pressure, ids, grid, h,
            gravity=(0.0, -9.81, 0.0)
        )
        np.testing.assert_allclose(forces['gravity'], [[0.0, -19.62, 0.0]])

    def test_viscosity_opposes_relative_velocity(self):
        h = 0.3
        positions, masses, ids, grid, density, pressure = _setup(
            [[0.0, 0.0, 0.0], [0.1, 0.0, 0.0]], h=h
        )
        velocities = np.array([[1.0, 0.0, 0.0], [-1.0, 0.0, 0.0]])
        forces = compute_hydro_forces(
            positions, velocities, masses, density, pressure, ids, grid, h,
            gravity=(0.0, 0.0, 0.0), viscosity=0.5
        )

        f_v = forces['viscosity']
        expected = 0.5 * 1.0 * viscosity_laplacian(0.1, h) / density[1] * (-2.0)
        assert f_v[0, 0] == pytest.approx(expected)
        assert f_v[0, 0] < 0.0 < f_v[1, 0]

    def test_surface_tension_disabled_by_default(self):
        h = 0.3
        positions, masses, ids, grid, density, pressure = _setup(
            [[0.0, 0.0, 0.0], [0.2, 0.0, 0.0]], h=h
        )
        forces = compute_hydro_forces(
            positions, np.zeros((2, 3)), masses, density, pressure, ids, grid, h,
            gravity=(0.0, 0.0, 0.0)
        )
        np.testing.assert_array_equal(forces['surface_tension'], np.zeros((2, 3)))

    def test_surface_tension_along_separation(self):
        h = 0.3
        positions, masses, ids, grid, density, pressure = _setup(
            [[0.0, 0.0, 0.0], [0.2, 0.0, 0.0]], h=h
        )
        forces = compute_hydro_forces(
            positions, np.zeros((2, 3)), masses, density, pressure, ids, grid, h,
            gravity=(0.0, 0.0, 0.0), surface_tension=2.0
        )

        expected = 2.0 * surface_tension_kernel(0.2, h)
        np.testing.assert_allclose(forces['surface_tension'][0], [-expected, 0.0, 0.0])
        np.testing.assert_allclose(forces['surface_tension'][1], [expected, 0.0, 0.0])

    def test_empty_system(self):
        grid = SpatialHashGrid(cell_size=0.3, capacity=0)
        forces = compute_hydro_forces(
            np.zeros((0, 3)), np.zeros((0, 3)), np.zeros(0), np.zeros(0), np.zeros(0),
            np.zeros(0, dtype=np.int64), grid, 0.3, gravity=(0.0, -9.81, 0.0)
        )
        assert set(forces) == {'gravity', 'pressure', 'viscosity', 'surface_tension'}
        assert all(f.shape == (0, 3) for f in forces.values())


class TestScalarDiffusion:

    def test_conserves_total_with_equal_masses_and_densities(self):
        rng = np.random.default_rng(2)
        h = 0.3
        positions = rng.uniform(0.0, 0.6, (60, 3))
        masses = np.ones(60)
        densities = np.full(60, 1000.0)
        ids = np.arange(60, dtype=np.int64)
        field = rng.uniform(280.0, 320.0, 60)
        grid = SpatialHashGrid(cell_size=h, capacity=60)
        grid.build(positions)

        rate = scalar_diffusion(field, positions, masses, densities, ids, grid, h, 0.1)

        assert np.any(rate != 0.0)
        assert np.sum(masses * rate) == pytest.approx(0.0, abs=1e-9)

    def test_uniform_field_has_zero_rate(self):
        h = 0.3
        positions = np.array([[0.0, 0.0, 0.0], [0.1, 0.0, 0.0], [0.0, 0.1, 0.0]])
        grid = SpatialHashGrid(cell_size=h, capacity=3)
        grid.build(positions)

        rate = scalar_diffusion(
            np.full(3, 298.15), positions, np.ones(3), np.full(3, 1000.0),
            np.arange(3, dtype=np.int64), grid, h, 0.1
        )
        np.testing.assert_array_equal(rate, np.zeros(3))

    def test_zero_coefficient_short_circuits(self):
        h = 0.3
        positions = np.array([[0.0, 0.0, 0.0], [0.1, 0.0, 0.0]])
        grid = SpatialHashGrid(cell_size=h, capacity=2)
        grid.build(positions)

        rate = scalar_diffusion(
            np.array([0.0, 100.0]), positions, np.ones(2), np.ones(2),
            np.arange(2, dtype=np.int64), grid, h, 0.0
        )
        np.testing.assert_array_equal(rate, np.zeros(2))

    def test_thermal_step_moves_heat_from_hot_to_cold(self):
        h = 0.3
        positions = np.array([[0.0, 0.0, 0.0], [0.1, 0.0, 0.0]])
        temperature = np.array([350.0, 300.0])
        grid = SpatialHashGrid(cell_size=h, capacity=2)
        grid.build(positions)

        updated = compute_thermal_diffusion(
            temperature, positions, np.ones(2), np.full(2, 1000.0),
            np.arange(2, dtype=np.int64), grid, h, thermal_diffusivity=0.1, dt=0.016
        )

        assert updated[0] < 350.0
        assert updated[1] > 300.0
        assert updated[0] - 350.0 == pytest.approx(-(updated[1] - 300.0))
        np.testing.assert_array_equal(temperature, [350.0, 300.0])
