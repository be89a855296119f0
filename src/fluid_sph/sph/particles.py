"""
Particle store for SPH fluid simulations.

This module implements the ParticleStore class that owns all live particle
data (kinematics, thermodynamic fields, lifecycle counters and a derived
rendering colour), plus the read-only snapshot handed to callers.

Storage is structure-of-arrays, preallocated to a fixed capacity. Live
particles occupy rows [0, n_particles); a row index doubles as the arena
slot used by the spatial hash grid. Every particle carries an id issued
from a monotonically increasing counter. Ids are never reused, so they
identify a particle for its whole lifetime even when rows shift after
culling.
"""

from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

import numpy as np
import numpy.typing as npt

# Type alias for clarity
NDArrayFloat = npt.NDArray[np.float64]
NDArrayInt = npt.NDArray[np.int64]

DEFAULT_COLOR = (0.3, 0.6, 1.0)


@dataclass(frozen=True)
class Particle:
    """Read-only record of a single particle taken from a snapshot."""
    id: int
    position: Tuple[float, float, float]
    velocity: Tuple[float, float, float]
    acceleration: Tuple[float, float, float]
    force: Tuple[float, float, float]
    mass: float
    density: float
    pressure: float
    temperature: float
    age: float
    life: float
    color: Tuple[float, float, float]


@dataclass(frozen=True)
class ParticleSnapshot:
    """
    Immutable copy of the live particle state.

    All arrays are copies with the write flag cleared; mutating them raises
    ``ValueError``. Iterating yields ``Particle`` records.
    """
    ids: NDArrayInt
    positions: NDArrayFloat
    velocities: NDArrayFloat
    accelerations: NDArrayFloat
    forces: NDArrayFloat
    masses: NDArrayFloat
    density: NDArrayFloat
    pressure: NDArrayFloat
    temperature: NDArrayFloat
    age: NDArrayFloat
    life: NDArrayFloat
    colors: NDArrayFloat

    def __len__(self) -> int:
        return self.ids.shape[0]

    def __getitem__(self, index: int) -> Particle:
        return Particle(
            id=int(self.ids[index]),
            position=tuple(float(v) for v in self.positions[index]),
            velocity=tuple(float(v) for v in self.velocities[index]),
            acceleration=tuple(float(v) for v in self.accelerations[index]),
            force=tuple(float(v) for v in self.forces[index]),
            mass=float(self.masses[index]),
            density=float(self.density[index]),
            pressure=float(self.pressure[index]),
            temperature=float(self.temperature[index]),
            age=float(self.age[index]),
            life=float(self.life[index]),
            color=tuple(float(v) for v in self.colors[index]),
        )

    def __iter__(self) -> Iterator[Particle]:
        for i in range(len(self)):
            yield self[i]


def _frozen_copy(array: np.ndarray) -> np.ndarray:
    copy = np.array(array, copy=True)
    copy.setflags(write=False)
    return copy


def _hsl_to_rgb(hue: NDArrayFloat, saturation: NDArrayFloat, lightness: NDArrayFloat) -> NDArrayFloat:
    """Vectorised HSL → RGB, all channels in [0, 1]."""
    q = np.where(
        lightness < 0.5,
        lightness * (1.0 + saturation),
        lightness + saturation - lightness * saturation
    )
    p = 2.0 * lightness - q

    def channel(t: NDArrayFloat) -> NDArrayFloat:
        t = np.mod(t, 1.0)
        return np.select(
            [t < 1.0 / 6.0, t < 0.5, t < 2.0 / 3.0],
            [p + (q - p) * 6.0 * t, q, p + (q - p) * (2.0 / 3.0 - t) * 6.0],
            default=p,
        )

    return np.stack(
        [channel(hue + 1.0 / 3.0), channel(hue), channel(hue - 1.0 / 3.0)],
        axis=-1
    )


def compute_particle_colors(speed: NDArrayFloat, pressure: NDArrayFloat) -> NDArrayFloat:
    """
    Rendering hint colour from speed and pressure.

    Hue runs from blue (at rest) to red (|v| ≥ 10); saturation rises with
    positive pressure up to p = 1000.

    Parameters
    ----------
    speed : NDArrayFloat, shape (N,)
        Velocity magnitudes.
    pressure : NDArrayFloat, shape (N,)
        Pressures.

    Returns
    -------
    colors : NDArrayFloat, shape (N, 3)
        RGB colours in [0, 1].
    """
    speed_ratio = np.minimum(speed / 10.0, 1.0)
    pressure_ratio = np.clip(pressure / 1000.0, 0.0, 1.0)
    return _hsl_to_rgb(
        0.7 - speed_ratio * 0.7,
        0.8 + pressure_ratio * 0.2,
        0.4 + speed_ratio * 0.4,
    )


class _LiveRows:
    """
    Descriptor exposing the live rows [0, n_particles) of a buffer.

    Reads return a view; assignment copies into the buffer, so augmented
    assignment (``store.velocities *= 0.9``) updates the store in place.
    """

    def __init__(self, buffer_name: str):
        self.buffer_name = buffer_name

    def __get__(self, store, owner=None):
        if store is None:
            return self
        return getattr(store, self.buffer_name)[:store.n_particles]

    def __set__(self, store, value) -> None:
        getattr(store, self.buffer_name)[:store.n_particles] = value


class ParticleStore:
    """
    Container for SPH particle data with a fixed capacity.

    Attributes
    ----------
    capacity : int
        Maximum number of live particles.
    n_particles : int
        Number of live particles.
    ids : NDArrayInt, shape (N,)
        Stable unique particle ids.
    positions, velocities, accelerations, forces : NDArrayFloat, shape (N, 3)
        Kinematic state. ``forces`` is the per-step accumulator.
    masses : NDArrayFloat, shape (N,)
        Particle masses (default 1.0).
    density, pressure, temperature : NDArrayFloat, shape (N,)
        Thermodynamic fields.
    age, life : NDArrayFloat, shape (N,)
        Lifecycle counters; particles with age ≥ life are culled on request.
    colors : NDArrayFloat, shape (N, 3)
        Derived RGB rendering hint.

    Notes
    -----
    The array attributes are views onto the live rows of preallocated
    buffers, so in-place updates (``store.velocities *= 0.9``) write
    straight into the store.
    """

    def __init__(self, capacity: int):
        """
        Initialize an empty particle store.

        Parameters
        ----------
        capacity : int
            Maximum number of particles the store can hold.
        """
        if capacity < 0:
            raise ValueError(f"capacity must be non-negative, got {capacity}")

        self._next_id = 0
        self._allocate(capacity)

    def _allocate(self, capacity: int) -> None:
        self.capacity = int(capacity)
        self.n_particles = 0
        self._ids = np.zeros(self.capacity, dtype=np.int64)
        self._positions = np.zeros((self.capacity, 3), dtype=np.float64)
        self._velocities = np.zeros((self.capacity, 3), dtype=np.float64)
        self._accelerations = np.zeros((self.capacity, 3), dtype=np.float64)
        self._forces = np.zeros((self.capacity, 3), dtype=np.float64)
        self._masses = np.ones(self.capacity, dtype=np.float64)
        self._density = np.zeros(self.capacity, dtype=np.float64)
        self._pressure = np.zeros(self.capacity, dtype=np.float64)
        self._temperature = np.zeros(self.capacity, dtype=np.float64)
        self._age = np.zeros(self.capacity, dtype=np.float64)
        self._life = np.zeros(self.capacity, dtype=np.float64)
        self._colors = np.zeros((self.capacity, 3), dtype=np.float64)

    # Live views -----------------------------------------------------------

    ids = _LiveRows("_ids")
    positions = _LiveRows("_positions")
    velocities = _LiveRows("_velocities")
    accelerations = _LiveRows("_accelerations")
    forces = _LiveRows("_forces")
    masses = _LiveRows("_masses")
    density = _LiveRows("_density")
    pressure = _LiveRows("_pressure")
    temperature = _LiveRows("_temperature")
    age = _LiveRows("_age")
    life = _LiveRows("_life")
    colors = _LiveRows("_colors")

    @property
    def free_slots(self) -> int:
        """Number of particles that can still be added."""
        return self.capacity - self.n_particles

    # Lifecycle ------------------------------------------------------------

    def clear(self) -> None:
        """Drop all particles. Ids keep counting from where they were."""
        self.n_particles = 0

    def add(
        self,
        positions: NDArrayFloat,
        velocities: NDArrayFloat,
        temperature: NDArrayFloat,
        life: NDArrayFloat,
        density: NDArrayFloat,
        masses: Optional[NDArrayFloat] = None,
    ) -> NDArrayInt:
        """
        Append particles, truncating silently at capacity.

        Parameters
        ----------
        positions : NDArrayFloat, shape (M, 3)
            Initial positions.
        velocities : NDArrayFloat, shape (M, 3)
            Initial velocities.
        temperature : NDArrayFloat, shape (M,)
            Initial temperatures.
        life : NDArrayFloat, shape (M,)
            Lifetimes.
        density : NDArrayFloat, shape (M,)
            Initial densities (usually the rest density).
        masses : NDArrayFloat, shape (M,), optional
            Particle masses. Defaults to 1.0.

        Returns
        -------
        ids : NDArrayInt
            Ids of the particles actually added (may be fewer than M).
        """
        positions = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
        m = min(positions.shape[0], self.free_slots)
        if m <= 0:
            return np.zeros(0, dtype=np.int64)

        start = self.n_particles
        stop = start + m
        new_ids = np.arange(self._next_id, self._next_id + m, dtype=np.int64)
        self._next_id += m

        self._ids[start:stop] = new_ids
        self._positions[start:stop] = positions[:m]
        self._velocities[start:stop] = np.asarray(velocities, dtype=np.float64).reshape(-1, 3)[:m]
        self._accelerations[start:stop] = 0.0
        self._forces[start:stop] = 0.0
        self._masses[start:stop] = 1.0 if masses is None else np.asarray(masses, dtype=np.float64)[:m]
        self._density[start:stop] = np.asarray(density, dtype=np.float64)[:m]
        self._pressure[start:stop] = 0.0
        self._temperature[start:stop] = np.asarray(temperature, dtype=np.float64)[:m]
        self._age[start:stop] = 0.0
        self._life[start:stop] = np.asarray(life, dtype=np.float64)[:m]
        self._colors[start:stop] = DEFAULT_COLOR

        self.n_particles = stop
        return new_ids

    def remove(self, mask: npt.NDArray[np.bool_]) -> int:
        """
        Remove the live particles selected by ``mask`` and compact the rows.

        Parameters
        ----------
        mask : NDArray[bool], shape (N,)
            True for particles to remove.

        Returns
        -------
        n_removed : int
            Number of particles removed.
        """
        mask = np.asarray(mask, dtype=bool)
        assert mask.shape == (self.n_particles,), f"mask shape mismatch: {mask.shape}"

        keep = np.flatnonzero(~mask)
        n_removed = self.n_particles - keep.size
        if n_removed == 0:
            return 0

        for buffer in (
            self._ids, self._positions, self._velocities, self._accelerations,
            self._forces, self._masses, self._density, self._pressure,
            self._temperature, self._age, self._life, self._colors,
        ):
            buffer[:keep.size] = buffer[keep]

        self.n_particles = keep.size
        return n_removed

    def resize(self, capacity: int) -> None:
        """Change the capacity, keeping as many live particles as fit."""
        live = min(self.n_particles, capacity)
        old = {
            name: getattr(self, name)[:live].copy()
            for name in (
                "_ids", "_positions", "_velocities", "_accelerations", "_forces",
                "_masses", "_density", "_pressure", "_temperature", "_age",
                "_life", "_colors",
            )
        }
        self._allocate(capacity)
        for name, values in old.items():
            getattr(self, name)[:live] = values
        self.n_particles = live

    # Derived quantities ---------------------------------------------------

    def speeds(self) -> NDArrayFloat:
        """Velocity magnitudes of the live particles."""
        return np.linalg.norm(self.velocities, axis=1)

    def update_colors(self) -> None:
        """Recompute the rendering colour from speed and pressure."""
        if self.n_particles == 0:
            return
        self.colors[:] = compute_particle_colors(self.speeds(), self.pressure)

    def kinetic_energy(self) -> float:
        """
        Compute total kinetic energy of the system.

        Returns
        -------
        E_kin : float
            Total kinetic energy: ∑ (1/2) m v².
        """
        v_squared = np.sum(self.velocities**2, axis=1)
        return float(0.5 * np.sum(self.masses * v_squared))

    def total_mass(self) -> float:
        """Total mass ∑ m."""
        return float(np.sum(self.masses))

    def total_momentum(self) -> NDArrayFloat:
        """Total linear momentum ∑ m v."""
        return np.sum(self.masses[:, np.newaxis] * self.velocities, axis=0)

    def center_of_mass(self) -> NDArrayFloat:
        """
        Compute center of mass position.

        Returns
        -------
        r_com : NDArrayFloat, shape (3,)
            Center of mass position.
        """
        total_mass = self.total_mass()
        if total_mass == 0:
            return np.zeros(3, dtype=np.float64)
        return np.sum(self.masses[:, np.newaxis] * self.positions, axis=0) / total_mass

    def snapshot(self) -> ParticleSnapshot:
        """Read-only copy of the live particle state."""
        return ParticleSnapshot(
            ids=_frozen_copy(self.ids),
            positions=_frozen_copy(self.positions),
            velocities=_frozen_copy(self.velocities),
            accelerations=_frozen_copy(self.accelerations),
            forces=_frozen_copy(self.forces),
            masses=_frozen_copy(self.masses),
            density=_frozen_copy(self.density),
            pressure=_frozen_copy(self.pressure),
            temperature=_frozen_copy(self.temperature),
            age=_frozen_copy(self.age),
            life=_frozen_copy(self.life),
            colors=_frozen_copy(self.colors),
        )

    def __len__(self) -> int:
        return self.n_particles

    def __repr__(self) -> str:
        """String representation of the particle store."""
        return (
            f"ParticleStore(n_particles={self.n_particles}, "
            f"capacity={self.capacity}, "
            f"total_mass={self.total_mass():.3e}, "
            f"E_kin={self.kinetic_energy():.3e})"
        )
