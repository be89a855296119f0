"""
Solver orchestrator for the fluid-SPH framework.

This module implements the SPHSolver class that owns the particle store and
the spatial hash grid and advances the fluid through discrete time steps.

Design:
- SPHSolver orchestrates pluggable components (EOS, TimeIntegrator,
  ICGenerator), each swappable via dependency injection
- Every step is a fixed pipeline of passes separated by barriers:
  grid rebuild → density/pressure → forces → thermal diffusion →
  integration → boundary → colours
- Each pass reads the finalised output of the previous one and writes to
  fresh arrays
"""

from typing import Any, Dict, Optional, Tuple
from dataclasses import dataclass
from enum import Enum
import math
import warnings
import time as time_module

import numpy as np
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict

from fluid_sph.core.interfaces import EOS, ICGenerator, NDArrayFloat, TimeIntegrator
from fluid_sph.eos.tait import TaitEOS
from fluid_sph.ICs.lattice import LatticeFill
from fluid_sph.ICs.stream import generate_stream
from fluid_sph.integration.boundary import BoxBoundary, Container
from fluid_sph.integration.symplectic_euler import SymplecticEulerIntegrator
from fluid_sph.sph import (
    ParticleStore,
    ParticleSnapshot,
    SpatialHashGrid,
    compute_density_pressure,
    compute_hydro_forces,
    compute_thermal_diffusion,
)

CFL_FACTOR = 0.4


class SimulationParameters(BaseModel):
    """
    Tunable parameters of the SPH fluid with Pydantic validation.

    Attributes
    ----------
    particle_count : int
        Capacity of the particle store (lattice fill size).
    smoothing_radius : float
        Smoothing radius h; also the grid cell size.
    rest_density : float
        Rest density ρ₀ of the Tait EOS.
    stiffness : float
        Tait pressure coefficient k.
    viscosity : float
        Viscous coefficient μ.
    gravity : Tuple[float, float, float]
        Body acceleration.
    damping : float
        Per-step velocity decay factor.
    boundary_stiffness : float
        Accepted for configuration compatibility; collisions use a fixed
        restitution instead.
    time_step : float
        Fixed timestep Δt.
    surface_tension : float
        Surface tension coefficient (0 disables the term).
    thermal_diffusivity : float
        Thermal diffusion coefficient.
    enable_temperature : bool
        Run the thermal diffusion pass.
    max_velocity : float
        Speed clamp.
    lattice_spacing : float
        Initial lattice spacing as a fraction of h.
    random_seed : Optional[int]
        Seed for velocity jitter and lifetimes.
    verbose : bool
        Print solver log messages.
    """

    # Particles
    particle_count: int = Field(default=1000, gt=0, description="Particle capacity")
    lattice_spacing: float = Field(
        default=0.5,
        gt=0.0,
        description="Initial lattice spacing as a fraction of the smoothing radius"
    )

    # Kernel
    smoothing_radius: float = Field(default=0.3, gt=0.0, description="Smoothing radius h")

    # Fluid
    rest_density: float = Field(default=1000.0, gt=0.0, description="Rest density ρ₀")
    stiffness: float = Field(default=200.0, ge=0.0, description="Tait EOS stiffness k")
    viscosity: float = Field(default=0.5, ge=0.0, description="Viscosity coefficient μ")
    surface_tension: float = Field(default=0.0, ge=0.0, description="Surface tension coefficient")

    # Thermal
    thermal_diffusivity: float = Field(default=0.1, ge=0.0, description="Thermal diffusivity")
    enable_temperature: bool = Field(default=False, description="Enable thermal diffusion")

    # External
    gravity: Tuple[float, float, float] = Field(
        default=(0.0, -9.81, 0.0),
        description="Body acceleration vector"
    )

    # Time evolution
    time_step: float = Field(default=0.016, gt=0.0, description="Fixed timestep Δt")
    damping: float = Field(default=0.95, gt=0.0, le=1.0, description="Per-step velocity decay")
    max_velocity: float = Field(default=10.0, gt=0.0, description="Speed clamp")

    # Boundary
    boundary_stiffness: float = Field(
        default=50000.0,
        ge=0.0,
        description="Unused; collisions use fixed restitution 0.6 and friction 0.1"
    )

    # Misc
    random_seed: Optional[int] = Field(
        default=42,
        description="Random seed for reproducibility"
    )
    verbose: bool = Field(
        default=False,
        description="Enable verbose logging"
    )

    model_config = ConfigDict(
        validate_assignment=True,
        extra="forbid",  # Raise error on unknown fields
    )

    @field_validator('gravity')
    @classmethod
    def validate_gravity(cls, v: Tuple[float, float, float]) -> Tuple[float, float, float]:
        """Gravity must be a finite 3-vector."""
        if not all(math.isfinite(component) for component in v):
            raise ValueError(f"gravity components must be finite, got {v}")
        return v

    @model_validator(mode='after')
    def validate_configuration_consistency(self):
        """
        Cross-field checks for legal but questionable settings.

        1. boundary_stiffness has no effect on collisions
        2. lattice spacing ≥ h leaves initial particles without neighbours
        """
        if 'boundary_stiffness' in self.model_fields_set:
            warnings.warn(
                "boundary_stiffness is accepted but unused; container collisions "
                "use a fixed restitution of 0.6 and friction of 0.1."
            )

        if self.lattice_spacing >= 1.0:
            warnings.warn(
                f"lattice_spacing={self.lattice_spacing} is not below 1; initial "
                "lattice particles are outside each other's smoothing radius."
            )

        return self


class SolverPhase(Enum):
    """Lifecycle phase of an SPHSolver."""
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    STEPPING = "stepping"


@dataclass
class SolverState:
    """
    Current state of the solver.
    """
    time: float = 0.0
    frame_count: int = 0

    # Boundary diagnostics
    last_collisions: int = 0

    # Timing diagnostics (wall time of the last step, seconds)
    timing_grid: float = 0.0
    timing_density: float = 0.0
    timing_forces: float = 0.0
    timing_temperature: float = 0.0
    timing_integration: float = 0.0
    timing_boundary: float = 0.0
    timing_total: float = 0.0


class SPHSolver:
    """
    Weakly-compressible SPH fluid solver.

    Owns the particle store and the spatial hash grid exclusively; callers
    observe the fluid through read-only snapshots.

    Architecture:
        SPHSolver orchestrates:
        - ParticleStore (particle data)
        - SpatialHashGrid (neighbour search)
        - EOS (density → pressure, Tait by default)
        - TimeIntegrator (symplectic Euler by default)
        - ICGenerator (lattice fill by default)
        - BoxBoundary (container collisions)

    Usage:
        >>> params = SimulationParameters(particle_count=500)
        >>> container = Container.centered(4.0, 4.0, 4.0)
        >>> solver = SPHSolver(params, container)
        >>> solver.run(100)
        >>> snapshot = solver.get_particles()

    References:
        - Müller, Charypar & Gross (2003) - Particle-based fluid simulation
        - Becker & Teschner (2007) - Weakly compressible SPH
    """

    def __init__(
        self,
        params: Optional[SimulationParameters] = None,
        container: Optional[Container] = None,
        eos: Optional[EOS] = None,
        integrator: Optional[TimeIntegrator] = None,
        ic_generator: Optional[ICGenerator] = None,
    ):
        """
        Initialize the solver and fill the container with a lattice.

        Parameters
        ----------
        params : Optional[SimulationParameters]
            Simulation parameters. If None, uses defaults.
        container : Container
            Static simulation domain.
        eos : Optional[EOS]
            Equation of state. Defaults to TaitEOS built from ``params``
            and kept in sync with later parameter updates.
        integrator : Optional[TimeIntegrator]
            Time integrator. Defaults to SymplecticEulerIntegrator.
        ic_generator : Optional[ICGenerator]
            Initial particle layout. Defaults to LatticeFill.
        """
        if container is None:
            raise ValueError("SPHSolver requires a container")

        self.phase = SolverPhase.UNINITIALIZED
        self.params = params or SimulationParameters()
        self.container = container
        self.state = SolverState()

        self._eos_from_params = eos is None
        self.eos = eos if eos is not None else self._build_eos()
        self.integrator = integrator or SymplecticEulerIntegrator(
            max_velocity=self.params.max_velocity,
            damping=self.params.damping
        )
        self.ic_generator = ic_generator or LatticeFill(random_seed=self.params.random_seed)
        self.boundary = BoxBoundary(container)

        self.particles = ParticleStore(self.params.particle_count)
        self.grid = SpatialHashGrid(
            cell_size=self.params.smoothing_radius,
            capacity=self.params.particle_count
        )

        self._initialize_particles()

        if self.params.verbose:
            self._log("Initialized SPH fluid solver")
            self._log(f"  Particles: {self.particles.n_particles} / {self.particles.capacity}")
            self._log(f"  Container: {container.min_corner} → {container.max_corner}")
            self._log(f"  EOS: {self.eos}")

    def _build_eos(self) -> TaitEOS:
        return TaitEOS(
            rest_density=self.params.rest_density,
            stiffness=self.params.stiffness
        )

    def _initialize_particles(self) -> None:
        """Reseed the generator and refill the container from scratch."""
        self.rng = np.random.default_rng(self.params.random_seed)
        self.particles.clear()
        self.grid.clear()

        spacing = self.params.lattice_spacing * self.params.smoothing_radius
        positions, velocities, temperatures, lives = self.ic_generator.generate(
            self.params.particle_count,
            container=self.container,
            spacing=spacing,
            rng=self.rng
        )
        density = np.full(positions.shape[0], self.params.rest_density, dtype=np.float64)
        self.particles.add(positions, velocities, temperatures, lives, density)

        if self.particles.n_particles < self.params.particle_count:
            self._log(
                f"Container holds {self.particles.n_particles} lattice sites; "
                f"{self.particles.free_slots} slots left for injection"
            )

        self.phase = SolverPhase.INITIALIZED

    def _log(self, message: str):
        """Log message if verbose."""
        if self.params.verbose:
            print(f"[{self.state.time:.4f}] {message}")

    # Stepping -------------------------------------------------------------

    def step(self) -> None:
        """
        Advance the fluid by one timestep.

        Pipeline: grid rebuild → density/pressure → forces → thermal
        diffusion (optional) → integration → boundary → colours.
        """
        t0_step = time_module.time()
        params = self.params
        store = self.particles
        h = params.smoothing_radius
        dt = params.time_step

        # Neighbour grid
        t0 = time_module.time()
        self.grid.build(store.positions)
        self.state.timing_grid = time_module.time() - t0

        # Density and pressure
        t0 = time_module.time()
        density, pressure = compute_density_pressure(
            store.positions, store.masses, store.ids, self.grid, h,
            params.rest_density, self.eos
        )
        store.density = density
        store.pressure = pressure
        self.state.timing_density = time_module.time() - t0

        # Forces
        t0 = time_module.time()
        forces = compute_hydro_forces(
            store.positions, store.velocities, store.masses,
            store.density, store.pressure, store.ids, self.grid, h,
            gravity=params.gravity,
            viscosity=params.viscosity,
            surface_tension=params.surface_tension
        )
        self.state.timing_forces = time_module.time() - t0

        # Thermal diffusion
        t0 = time_module.time()
        if params.enable_temperature:
            store.temperature = compute_thermal_diffusion(
                store.temperature, store.positions, store.masses,
                store.density, store.ids, self.grid, h,
                params.thermal_diffusivity, dt
            )
        self.state.timing_temperature = time_module.time() - t0

        # Integration
        t0 = time_module.time()
        self.integrator.step(
            store, dt, forces,
            max_velocity=params.max_velocity,
            damping=params.damping
        )
        self.state.timing_integration = time_module.time() - t0

        # Boundary and rendering colours
        t0 = time_module.time()
        self.state.last_collisions = self.boundary.apply_to(store)
        store.update_colors()
        self.state.timing_boundary = time_module.time() - t0

        self.state.time += dt
        self.state.frame_count += 1
        self.phase = SolverPhase.STEPPING

        self.state.timing_total = time_module.time() - t0_step

    def run(self, n_steps: int = 1) -> Dict[str, Any]:
        """
        Advance the fluid by ``n_steps`` timesteps.

        Parameters
        ----------
        n_steps : int, default 1
            Number of steps (e.g. substeps per rendered frame).

        Returns
        -------
        statistics : Dict[str, Any]
            ``get_simulation_statistics()`` after the last step.
        """
        if n_steps < 0:
            raise ValueError(f"n_steps must be non-negative, got {n_steps}")

        for _ in range(n_steps):
            self.step()

        if self.params.verbose and n_steps > 0:
            dt_cfl = self.cfl_timestep()
            self._log(
                f"Step {self.state.frame_count}: n={self.particles.n_particles}, "
                f"t_step={self.state.timing_total * 1e3:.2f} ms, "
                f"collisions={self.state.last_collisions}"
            )
            if self.params.time_step > dt_cfl:
                self._log(
                    f"WARNING: time_step {self.params.time_step:.3e} exceeds "
                    f"CFL estimate {dt_cfl:.3e}"
                )

        return self.get_simulation_statistics()

    def cfl_timestep(self) -> float:
        """
        Courant estimate Δt ≤ C h / (c_max + |v|_max) with C = 0.4.

        Returns
        -------
        dt : float
            Largest stable timestep estimate; inf when nothing moves.
        """
        if self.particles.n_particles == 0:
            return math.inf
        c_max = float(np.max(self.eos.sound_speed(self.particles.density)))
        v_max = float(np.max(self.particles.speeds()))
        signal = c_max + v_max
        if signal <= 0.0:
            return math.inf
        return CFL_FACTOR * self.params.smoothing_radius / signal

    # Access ---------------------------------------------------------------

    def get_particles(self) -> ParticleSnapshot:
        """Read-only snapshot of the live particles."""
        return self.particles.snapshot()

    @property
    def timings(self) -> SolverState:
        """Per-stage wall times of the last step."""
        return self.state

    def get_simulation_statistics(self) -> Dict[str, Any]:
        """
        Aggregate diagnostics of the current state.

        Returns
        -------
        statistics : Dict[str, Any]
            particle_count, average_density, average_pressure,
            average_speed, average_temperature, simulation_time and
            frame_count. Averages are 0.0 when there are no particles.
        """
        store = self.particles
        if store.n_particles == 0:
            average_density = average_pressure = average_speed = average_temperature = 0.0
        else:
            average_density = float(np.mean(store.density))
            average_pressure = float(np.mean(store.pressure))
            average_speed = float(np.mean(store.speeds()))
            average_temperature = float(np.mean(store.temperature))

        return {
            'particle_count': store.n_particles,
            'average_density': average_density,
            'average_pressure': average_pressure,
            'average_speed': average_speed,
            'average_temperature': average_temperature,
            'simulation_time': self.state.time,
            'frame_count': self.state.frame_count,
        }

    # Population -----------------------------------------------------------

    def add_particle_stream(
        self,
        position: NDArrayFloat,
        velocity: NDArrayFloat,
        count: int = 1,
        temperature: float = 298.15
    ) -> int:
        """
        Inject jittered particles around a source point.

        Injection past capacity is silently truncated.

        Parameters
        ----------
        position : array-like, shape (3,)
            Source position.
        velocity : array-like, shape (3,)
            Source velocity.
        count : int, default 1
            Number of particles requested.
        temperature : float, default 298.15
            Temperature of the injected particles.

        Returns
        -------
        n_added : int
            Number of particles actually added.
        """
        if count < 0:
            raise ValueError(f"count must be non-negative, got {count}")

        n_request = min(count, self.particles.free_slots)
        positions, velocities, temperatures, lives = generate_stream(
            position, velocity, n_request, self.rng, temperature=temperature
        )
        density = np.full(n_request, self.params.rest_density, dtype=np.float64)
        new_ids = self.particles.add(positions, velocities, temperatures, lives, density)

        if n_request < count:
            self._log(f"Stream truncated at capacity: {n_request}/{count} particles added")

        return int(new_ids.size)

    def remove_old_particles(self) -> int:
        """
        Cull particles whose age has reached their lifetime.

        Returns
        -------
        n_removed : int
            Number of particles removed.
        """
        store = self.particles
        if store.n_particles == 0:
            return 0
        n_removed = store.remove(store.age >= store.life)
        if n_removed:
            self._log(f"Removed {n_removed} expired particles")
        return n_removed

    # Lifecycle ------------------------------------------------------------

    def update_parameters(
        self,
        updates: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> SimulationParameters:
        """
        Merge and validate new parameter values.

        Changing ``particle_count`` reinitializes the fluid (destructive).
        Changing ``smoothing_radius`` reconfigures the grid cell size.

        Parameters
        ----------
        updates : Optional[Dict[str, Any]]
            Partial parameter mapping.
        **kwargs
            Further parameter values; override ``updates``.

        Returns
        -------
        params : SimulationParameters
            The validated, active parameters.

        Raises
        ------
        pydantic.ValidationError
            If the merged parameters are invalid; the solver is unchanged.
        """
        changes = dict(updates or {})
        changes.update(kwargs)

        merged = self.params.model_dump(exclude_unset=True)
        merged.update(changes)
        new_params = SimulationParameters(**merged)

        old_params = self.params
        self.params = new_params

        if self._eos_from_params and (
            new_params.rest_density != old_params.rest_density
            or new_params.stiffness != old_params.stiffness
        ):
            self.eos = self._build_eos()

        if isinstance(self.integrator, SymplecticEulerIntegrator):
            self.integrator.max_velocity = new_params.max_velocity
            self.integrator.damping = new_params.damping

        if new_params.smoothing_radius != old_params.smoothing_radius:
            self.grid.cell_size = new_params.smoothing_radius
            self._log(f"Grid cell size set to {new_params.smoothing_radius}")

        if new_params.particle_count != old_params.particle_count:
            self.particles.resize(new_params.particle_count)
            self.grid.resize(new_params.particle_count)
            self._initialize_particles()
            self._log(f"Reinitialized with capacity {new_params.particle_count}")

        return self.params

    def reset(self) -> None:
        """Zero the clock and frame counter and refill the container."""
        self.state = SolverState()
        self._initialize_particles()
        self._log("Solver reset")

    def __repr__(self) -> str:
        return (
            f"SPHSolver(phase={self.phase.value}, "
            f"n_particles={self.particles.n_particles}, "
            f"time={self.state.time:.4f}, frame={self.state.frame_count})"
        )
