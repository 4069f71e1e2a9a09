# MIT License (see LICENSE)
"""
Magnetic fields defined on a precalculated grid.

The grid is a flattened array of field vectors ordered with z varying
fastest, then y, then x:

    index = iz + nz·(iy + ny·ix)

Lookups are nearest-cell. Positions outside the grid are clamped to the
boundary cell; the field is never extrapolated.
"""
from __future__ import annotations
from dataclasses import dataclass

import numpy as np
from numba import njit, prange

from ..atom import Position
from ..ecs.dispatcher import System, SystemContext
from ..ecs.world import Component
from ..errors import ConfigurationError
from ..util import f64, vec3
from .sampler import MagneticFieldSampler


@njit(parallel=True, cache=True)
def _grid_index_numba(pos, position, extent_spatial, cells):
    n = pos.shape[0]
    out = np.empty(n, dtype=np.int64)
    for i in prange(n):
        index = 0
        for k in range(3):
            fraction = (pos[i, k] - position[k] + 0.5 * extent_spatial[k]) / extent_spatial[k]
            cell = np.floor(fraction * cells[k])
            # Clamp in floating point so far-away positions cannot overflow.
            cell = min(max(cell, 0.0), cells[k] - 1.0)
            index = index * cells[k] + int(cell)
        out[i] = index
    return out


@dataclass(frozen=True)
class PrecalculatedMagneticFieldGrid(Component):
    """
    A magnetic field sampled on a regular grid.

    Attributes:
        extent_spatial: Size of the grid along (x, y, z) in m.
        position: Centre of the grid in m.
        extent_cells: Number of cells along (x, y, z).
        grid: Field vectors in T, shape (nx·ny·nz, 3), z fastest.
    """
    extent_spatial: np.ndarray
    position: np.ndarray
    extent_cells: tuple[int, int, int]
    grid: np.ndarray

    def __post_init__(self) -> None:
        object.__setattr__(self, "extent_spatial", vec3(self.extent_spatial))
        object.__setattr__(self, "position", vec3(self.position))
        cells = tuple(int(c) for c in self.extent_cells)
        object.__setattr__(self, "extent_cells", cells)
        object.__setattr__(self, "grid", f64(self.grid).reshape(-1, 3))

        if len(cells) != 3 or min(cells) < 1:
            raise ConfigurationError(f"Grid needs at least one cell per axis, got {cells}")
        if not np.all(self.extent_spatial > 0):
            raise ConfigurationError("Grid spatial extent must be positive along every axis")
        expected = cells[0] * cells[1] * cells[2]
        if self.grid.shape[0] != expected:
            raise ConfigurationError(
                f"Grid holds {self.grid.shape[0]} vectors but {cells} needs {expected}"
            )

    def position_to_grid_index(self, pos: np.ndarray) -> np.ndarray:
        """Flattened nearest-cell index for one (3,) or many (N, 3) positions."""
        pos = np.asarray(pos, dtype=np.float64)
        index = _grid_index_numba(
            np.ascontiguousarray(pos.reshape(-1, 3)),
            self.position,
            self.extent_spatial,
            np.array(self.extent_cells, dtype=np.int64),
        )
        return index.reshape(pos.shape[:-1])

    def get_field(self, pos: np.ndarray) -> np.ndarray:
        """Field at one or many positions, in T."""
        return self.grid[self.position_to_grid_index(pos)]


class SampleMagneticGridSystem(System):
    """Add the field of every grid source to every sampler."""
    reads = (Position, PrecalculatedMagneticFieldGrid)
    accumulates = (MagneticFieldSampler,)

    def run(self, ctx: SystemContext) -> None:
        grids = ctx.components(PrecalculatedMagneticFieldGrid)
        if not grids:
            return
        atoms = ctx.entities_with(Position, MagneticFieldSampler)
        if atoms.size == 0:
            return
        pos = ctx.read(Position, atoms)

        b_field = np.zeros_like(pos)
        for _, grid in grids:
            b_field += grid.get_field(pos)
        ctx.accumulate(MagneticFieldSampler, atoms, b_field)
