"""
Uniform-cell spatial hash grid for radius-bounded neighbour queries.

The grid is rebuilt every step from the current particle positions. Cells
have edge length equal to the smoothing radius h, so a query of radius h
only needs to scan the 3×3×3 block of cells around the query point.

Storage is a preallocated bucket arena indexed by a hashed cell key:

- ``head[table_size]``  first slot in each bucket (-1 when empty)
- ``next[capacity]``    next slot in the same bucket (-1 terminates)
- ``cells[capacity, 3]`` integer cell coordinates of each inserted slot
- ``points[capacity, 3]`` position of each inserted slot

Clearing only resets ``head``; nothing is reallocated between steps.
Different cells may share a bucket. Queries compare the stored cell
coordinates with the scanned cell, so collisions never produce duplicate
or spurious hits.

Slots are row indices into the particle store. A query may return the
slot sitting at the query position itself; callers exclude it by id.

References
----------
.. [1] Teschner, M. et al. (2003), "Optimized spatial hashing for collision
       detection of deformable objects", VMV '03, 47.
"""

import math
from typing import Optional

import numpy as np
import numpy.typing as npt
from numba import njit

# Type alias for clarity
NDArrayFloat = npt.NDArray[np.float64]
NDArrayInt = npt.NDArray[np.int64]

# Large primes from Teschner et al. (2003)
_P1 = 73856093
_P2 = 19349663
_P3 = 83492791


@njit(cache=True)
def _hash_cell(cx, cy, cz, table_size):
    """Map integer cell coordinates to a bucket index in [0, table_size)."""
    key = (cx * _P1) ^ (cy * _P2) ^ (cz * _P3)
    return key % table_size


@njit(cache=True)
def _cell_coord(x, cell_size):
    return int(math.floor(x / cell_size))


@njit(cache=True)
def _insert_numba(head, nxt, cells, points, slot, x, y, z, cell_size):
    """Link ``slot`` at position (x, y, z) into its cell bucket."""
    cx = _cell_coord(x, cell_size)
    cy = _cell_coord(y, cell_size)
    cz = _cell_coord(z, cell_size)
    cells[slot, 0] = cx
    cells[slot, 1] = cy
    cells[slot, 2] = cz
    points[slot, 0] = x
    points[slot, 1] = y
    points[slot, 2] = z
    key = _hash_cell(cx, cy, cz, head.shape[0])
    nxt[slot] = head[key]
    head[key] = slot


@njit(cache=True)
def _build_numba(head, nxt, cells, points, positions, n, cell_size):
    """Clear the table and insert rows [0, n) of ``positions``."""
    head[:] = -1
    for i in range(n):
        _insert_numba(
            head, nxt, cells, points, i,
            positions[i, 0], positions[i, 1], positions[i, 2],
            cell_size
        )


@njit(cache=True)
def query_neighbours(head, nxt, cells, points, x, y, z, radius, cell_size, out):
    """
    Collect slots within ``radius`` of (x, y, z) into ``out``.

    Scans the cube of ceil(radius / cell_size) rings of cells around the
    query cell and keeps every slot with |p − x| ≤ radius.

    Parameters
    ----------
    head, nxt, cells, points : arrays
        Grid arena (see module docstring).
    x, y, z : float
        Query position.
    radius : float
        Search radius.
    cell_size : float
        Edge length of a grid cell.
    out : NDArrayInt
        Output buffer, at least as long as the number of inserted slots.

    Returns
    -------
    count : int
        Number of slots written to ``out``.
    """
    reach = int(math.ceil(radius / cell_size))
    cx = _cell_coord(x, cell_size)
    cy = _cell_coord(y, cell_size)
    cz = _cell_coord(z, cell_size)
    table_size = head.shape[0]
    r2 = radius * radius
    count = 0

    for dx in range(-reach, reach + 1):
        tx = cx + dx
        for dy in range(-reach, reach + 1):
            ty = cy + dy
            for dz in range(-reach, reach + 1):
                tz = cz + dz
                slot = head[_hash_cell(tx, ty, tz, table_size)]
                while slot != -1:
                    if cells[slot, 0] == tx and cells[slot, 1] == ty and cells[slot, 2] == tz:
                        ddx = points[slot, 0] - x
                        ddy = points[slot, 1] - y
                        ddz = points[slot, 2] - z
                        if ddx * ddx + ddy * ddy + ddz * ddz <= r2:
                            out[count] = slot
                            count += 1
                    slot = nxt[slot]

    return count


def _default_table_size(capacity: int) -> int:
    """Power of two holding at least twice the capacity (minimum 64)."""
    size = 64
    while size < 2 * capacity:
        size *= 2
    return size


class SpatialHashGrid:
    """
    Reusable spatial hash over particle slots.

    Parameters
    ----------
    cell_size : float
        Edge length of a grid cell (the smoothing radius h).
    capacity : int
        Maximum number of slots that can be inserted between clears.
    table_size : int, optional
        Number of hash buckets. Defaults to a power of two ≥ 2 × capacity.

    Examples
    --------
    >>> grid = SpatialHashGrid(cell_size=0.3, capacity=1000)
    >>> grid.build(positions)
    >>> slots = grid.get_neighbours(positions[0], 0.3)
    """

    def __init__(
        self,
        cell_size: float,
        capacity: int,
        table_size: Optional[int] = None
    ):
        if cell_size <= 0.0:
            raise ValueError(f"cell_size must be positive, got {cell_size}")
        if capacity < 0:
            raise ValueError(f"capacity must be non-negative, got {capacity}")

        self._cell_size = float(cell_size)
        self._fixed_table_size = table_size
        self._allocate(capacity)

    def _allocate(self, capacity: int) -> None:
        table_size = self._fixed_table_size or _default_table_size(capacity)
        self.capacity = int(capacity)
        self.head = np.full(table_size, -1, dtype=np.int64)
        self.next = np.full(max(self.capacity, 1), -1, dtype=np.int64)
        self.cells = np.zeros((max(self.capacity, 1), 3), dtype=np.int64)
        self.points = np.zeros((max(self.capacity, 1), 3), dtype=np.float64)
        self._occupied = np.zeros(max(self.capacity, 1), dtype=bool)
        self.n_inserted = 0

    @property
    def cell_size(self) -> float:
        """Edge length of a grid cell."""
        return self._cell_size

    @cell_size.setter
    def cell_size(self, value: float) -> None:
        if value <= 0.0:
            raise ValueError(f"cell_size must be positive, got {value}")
        self._cell_size = float(value)
        self.clear()

    @property
    def table_size(self) -> int:
        return self.head.shape[0]

    def resize(self, capacity: int) -> None:
        """Reallocate the arena for a new capacity (empties the grid)."""
        self._allocate(capacity)

    def clear(self) -> None:
        """Empty all buckets. Must run before re-inserting a new step."""
        self.head.fill(-1)
        self._occupied.fill(False)
        self.n_inserted = 0

    def insert(self, slot: int, position: NDArrayFloat) -> None:
        """
        Insert a particle slot at ``position``.

        Parameters
        ----------
        slot : int
            Row index of the particle in the store, 0 ≤ slot < capacity.
        position : NDArrayFloat, shape (3,)
            Current particle position.
        """
        if not 0 <= slot < self.capacity:
            raise IndexError(f"slot {slot} outside grid capacity {self.capacity}")
        if self._occupied[slot]:
            # A second link would turn the bucket list into a cycle
            raise ValueError(f"slot {slot} already inserted since last clear()")
        self._occupied[slot] = True
        _insert_numba(
            self.head, self.next, self.cells, self.points, int(slot),
            float(position[0]), float(position[1]), float(position[2]),
            self._cell_size
        )
        self.n_inserted = max(self.n_inserted, int(slot) + 1)

    def build(self, positions: NDArrayFloat) -> None:
        """
        Clear the grid and insert every row of ``positions``.

        Parameters
        ----------
        positions : NDArrayFloat, shape (N, 3)
            Live particle positions; N must not exceed the capacity.
        """
        n = positions.shape[0]
        if n > self.capacity:
            raise ValueError(f"{n} positions exceed grid capacity {self.capacity}")
        _build_numba(
            self.head, self.next, self.cells, self.points,
            np.ascontiguousarray(positions, dtype=np.float64), n, self._cell_size
        )
        self._occupied.fill(False)
        self._occupied[:n] = True
        self.n_inserted = n

    def get_neighbours(self, position: NDArrayFloat, radius: float) -> NDArrayInt:
        """
        Slots within Euclidean ``radius`` of ``position``.

        Parameters
        ----------
        position : NDArrayFloat, shape (3,)
            Query point.
        radius : float
            Search radius (inclusive).

        Returns
        -------
        slots : NDArrayInt
            Matching slot indices in unspecified order. May contain the
            slot located at ``position``.
        """
        out = np.empty(max(self.n_inserted, 1), dtype=np.int64)
        count = query_neighbours(
            self.head, self.next, self.cells, self.points,
            float(position[0]), float(position[1]), float(position[2]),
            float(radius), self._cell_size, out
        )
        return out[:count].copy()

    def __repr__(self) -> str:
        return (
            f"SpatialHashGrid(cell_size={self._cell_size:.3e}, "
            f"capacity={self.capacity}, table_size={self.table_size}, "
            f"n_inserted={self.n_inserted})"
        )
