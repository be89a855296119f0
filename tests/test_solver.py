"""
Tests for the SPHSolver orchestrator.

Validates:
- Lattice initialization and the density of a small lattice
- Boundary bounce and containment through full steps
- Capacity limits of stream injection
- Id uniqueness across injection and culling
- Parameter updates, reset and statistics
"""

import numpy as np
import pytest
from pydantic import ValidationError

from fluid_sph.core import SPHSolver, SimulationParameters, SolverPhase
from fluid_sph.eos import TaitEOS
from fluid_sph.integration import Container
from fluid_sph.sph import poly6


BOX = Container(min_corner=(0.0, 0.0, 0.0), max_corner=(10.0, 10.0, 10.0))

STAT_KEYS = {
    'particle_count',
    'average_density',
    'average_pressure',
    'average_speed',
    'average_temperature',
    'simulation_time',
    'frame_count',
}


def _solver(**overrides):
    params = SimulationParameters(**overrides)
    return SPHSolver(params, BOX)


class TestInitialization:

    def test_requires_container(self):
        with pytest.raises(ValueError, match="container"):
            SPHSolver(SimulationParameters(particle_count=8))

    def test_lattice_fill_on_construction(self):
        solver = _solver(particle_count=27)

        assert solver.phase is SolverPhase.INITIALIZED
        assert solver.particles.n_particles == 27
        snapshot = solver.get_particles()
        np.testing.assert_allclose(snapshot.positions[0], [0.15, 0.15, 0.15])
        np.testing.assert_array_equal(snapshot.density, np.full(27, 1000.0))
        np.testing.assert_array_equal(snapshot.pressure, np.zeros(27))
        np.testing.assert_array_equal(snapshot.temperature, np.full(27, 298.15))
        assert np.all(np.abs(snapshot.velocities) <= 0.05)

    def test_small_container_limits_lattice(self):
        tiny = Container(min_corner=(0.0, 0.0, 0.0), max_corner=(0.25, 0.25, 0.25))
        solver = SPHSolver(SimulationParameters(particle_count=20), tiny)

        assert solver.particles.n_particles == 1
        assert solver.particles.free_slots == 19

    def test_injected_components_are_used(self):
        eos = TaitEOS(rest_density=1000.0, stiffness=50.0)
        solver = SPHSolver(SimulationParameters(particle_count=8), BOX, eos=eos)
        assert solver.eos is eos

        solver.update_parameters(stiffness=500.0)
        assert solver.eos is eos


class TestStepping:

    def test_lattice_density_scenario(self):
        """2×2×2 lattice with h/√2 < s < h: three neighbours per corner."""
        h = 1.0
        solver = _solver(
            particle_count=8,
            smoothing_radius=h,
            lattice_spacing=0.8,
            rest_density=1.0,
            gravity=(0.0, 0.0, 0.0),
            viscosity=0.0,
        )
        solver.step()

        expected = poly6(0.0, h) + 3.0 * poly6(0.8, h)
        np.testing.assert_allclose(solver.get_particles().density, expected, rtol=1e-12)
        assert solver.phase is SolverPhase.STEPPING

    def test_bounce_scenario(self):
        damping = 0.99
        solver = _solver(
            particle_count=1,
            smoothing_radius=1.0,
            gravity=(0.0, 0.0, 0.0),
            damping=damping,
            max_velocity=1000.0,
            time_step=0.016,
        )
        solver.particles.velocities[0] = [1.0, -100.0, 2.0]

        solver.step()

        v = solver.get_particles().velocities[0]
        assert solver.get_particles().positions[0, 1] == 0.0
        assert v[1] == pytest.approx(0.6 * 100.0 * damping)
        assert v[0] == pytest.approx(1.0 * damping * 0.9)
        assert v[2] == pytest.approx(2.0 * damping * 0.9)
        assert solver.timings.last_collisions == 1

    def test_particles_stay_in_container(self):
        container = Container.centered(1.0, 1.0, 1.0)
        solver = SPHSolver(
            SimulationParameters(particle_count=64, max_velocity=50.0),
            container
        )
        solver.particles.velocities[:] = np.random.default_rng(0).uniform(-20.0, 20.0, (64, 3))

        for _ in range(10):
            solver.step()
            assert np.all(container.contains(solver.get_particles().positions))

    def test_temperature_unchanged_when_disabled(self):
        solver = _solver(particle_count=27, enable_temperature=False)
        solver.particles.temperature[0] = 400.0
        before = solver.get_particles().temperature

        stats = solver.run(5)

        np.testing.assert_array_equal(solver.get_particles().temperature, before)
        assert stats['average_temperature'] == pytest.approx(np.mean(before))

    def test_uniform_temperature_is_stationary_when_enabled(self):
        solver = _solver(particle_count=27, enable_temperature=True)
        solver.run(3)
        np.testing.assert_allclose(solver.get_particles().temperature, 298.15, rtol=1e-12)

    def test_run_advances_time_and_frames(self):
        solver = _solver(particle_count=8, time_step=0.01)
        stats = solver.run(4)

        assert stats['frame_count'] == 4
        assert stats['simulation_time'] == pytest.approx(0.04)
        assert solver.timings.timing_total >= 0.0

    def test_colors_are_recomputed_each_step(self):
        solver = _solver(particle_count=8)
        solver.step()
        colors = solver.get_particles().colors
        assert not np.allclose(colors, [0.3, 0.6, 1.0])
        assert np.all((colors >= 0.0) & (colors <= 1.0))

    def test_cfl_timestep_is_finite_for_fluid(self):
        solver = _solver(particle_count=8)
        solver.step()
        dt = solver.cfl_timestep()
        assert 0.0 < dt < np.inf


class TestPopulation:

    def test_stream_respects_capacity(self):
        tiny = Container(min_corner=(0.0, 0.0, 0.0), max_corner=(0.25, 0.25, 0.25))
        solver = SPHSolver(SimulationParameters(particle_count=20), tiny)

        added = solver.add_particle_stream((0.1, 0.1, 0.1), (0.0, 0.0, 0.0), count=50)
        assert added == 19
        assert solver.particles.n_particles == 20

        assert solver.add_particle_stream((0.1, 0.1, 0.1), (0.0, 0.0, 0.0), count=5) == 0
        assert solver.particles.n_particles <= 20

    def test_stream_rejects_negative_count(self):
        solver = _solver(particle_count=8)
        with pytest.raises(ValueError, match="count"):
            solver.add_particle_stream((1.0, 1.0, 1.0), (0.0, 0.0, 0.0), count=-1)

    def test_stream_particle_fields(self):
        solver = SPHSolver(
            SimulationParameters(particle_count=10),
            Container(min_corner=(0.0, 0.0, 0.0), max_corner=(0.25, 0.25, 0.25))
        )
        solver.add_particle_stream((0.1, 0.1, 0.1), (0.0, -1.0, 0.0), count=3, temperature=350.0)

        snapshot = solver.get_particles()
        np.testing.assert_array_equal(snapshot.temperature[-3:], [350.0, 350.0, 350.0])
        np.testing.assert_array_equal(snapshot.density[-3:], [1000.0, 1000.0, 1000.0])
        assert np.all(np.abs(snapshot.velocities[-3:, 1] + 1.0) <= 0.25)

    def test_remove_old_particles(self):
        solver = _solver(particle_count=27)
        solver.particles.age[:10] = solver.particles.life[:10]

        removed = solver.remove_old_particles()

        assert removed == 10
        assert solver.particles.n_particles == 17
        assert solver.remove_old_particles() == 0

    def test_ids_unique_across_injection_and_culling(self):
        tiny = Container(min_corner=(0.0, 0.0, 0.0), max_corner=(0.25, 0.25, 0.25))
        solver = SPHSolver(SimulationParameters(particle_count=10), tiny)
        seen = set(solver.get_particles().ids.tolist())

        for _ in range(3):
            solver.add_particle_stream((0.1, 0.1, 0.1), (0.0, 0.0, 0.0), count=9)
            new_ids = set(solver.get_particles().ids.tolist()) - seen
            assert new_ids.isdisjoint(seen)
            seen |= new_ids
            solver.particles.age[:] = solver.particles.life
            solver.remove_old_particles()

        ids = solver.get_particles().ids
        assert len(ids) == len(set(ids.tolist()))

    def test_statistics_with_no_particles(self):
        solver = _solver(particle_count=8)
        solver.particles.age[:] = solver.particles.life
        solver.remove_old_particles()

        stats = solver.get_simulation_statistics()
        assert set(stats) == STAT_KEYS
        assert stats['particle_count'] == 0
        for key in ('average_density', 'average_pressure', 'average_speed', 'average_temperature'):
            assert stats[key] == 0.0

        solver.step()
        assert solver.get_simulation_statistics()['frame_count'] == 1


class TestLifecycle:

    def test_update_parameters_merges_and_validates(self):
        solver = _solver(particle_count=8)
        ids_before = solver.get_particles().ids

        params = solver.update_parameters({'viscosity': 0.1}, surface_tension=0.2)

        assert params.viscosity == 0.1
        assert params.surface_tension == 0.2
        assert params.particle_count == 8
        np.testing.assert_array_equal(solver.get_particles().ids, ids_before)

        with pytest.raises(ValidationError):
            solver.update_parameters(damping=1.5)
        assert solver.params.damping == 0.95

        with pytest.raises(ValidationError):
            solver.update_parameters(unknown_field=1.0)

    def test_update_particle_count_reinitializes(self):
        solver = _solver(particle_count=8)
        solver.run(2)

        solver.update_parameters(particle_count=27)

        assert solver.particles.capacity == 27
        assert solver.particles.n_particles == 27
        assert solver.grid.capacity == 27
        assert solver.phase is SolverPhase.INITIALIZED

    def test_update_smoothing_radius_reconfigures_grid(self):
        solver = _solver(particle_count=8)
        solver.update_parameters(smoothing_radius=0.5)
        assert solver.grid.cell_size == 0.5
        solver.step()

    def test_default_eos_tracks_parameters(self):
        solver = _solver(particle_count=8)
        solver.update_parameters(stiffness=400.0)
        assert solver.eos.stiffness == 400.0

    def test_reset_restores_initial_state(self):
        solver = _solver(particle_count=27)
        initial = solver.get_particles()
        solver.run(5)

        solver.reset()

        snapshot = solver.get_particles()
        assert solver.state.time == 0.0
        assert solver.state.frame_count == 0
        assert solver.phase is SolverPhase.INITIALIZED
        np.testing.assert_array_equal(snapshot.positions, initial.positions)
        np.testing.assert_array_equal(snapshot.velocities, initial.velocities)
