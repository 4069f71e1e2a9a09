# MIT License (see LICENSE)
"""
Spatial partitioning of atoms into a cubic lattice of cells.

The lattice has box_number³ cells of edge box_width and is centred on the
origin. Along each axis

    index = floor(p / box_width + box_number / 2)

and a position whose index falls outside [0, box_number) on any axis is
outside the lattice; it receives SENTINEL_ID and is left out of every
cell. The flattened cell id is ix + n·iy + n²·iz.

The cell map is rebuilt from scratch each tick (two passes: assign ids,
then group by id). Optionally the lattice is rescaled so that cells hold
about `target_density` atoms on average.
"""
from __future__ import annotations
import logging
import math
from dataclasses import dataclass, field, replace
from typing import ClassVar

import numpy as np
from numba import njit, prange

from .atom import Atom, Position, Velocity
from .constants import SENTINEL_ID
from .ecs.dispatcher import System, SystemContext
from .ecs.world import DenseComponent
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class BoxID(DenseComponent):
    """Id of the partition cell holding the atom; SENTINEL_ID when outside."""
    id: int = 0
    width: ClassVar[int] = 1
    dtype: ClassVar[type] = np.int64


@dataclass
class PartitionCell:
    """
    Atoms sharing one lattice cell during the current tick.

    Attributes:
        velocities: Velocities of the resident atoms, shape (k, 3).
        volume: Cell volume box_width³ in m³.
    """
    velocities: np.ndarray
    volume: float

    @property
    def particle_number(self) -> int:
        return int(self.velocities.shape[0])

    @property
    def density(self) -> float:
        """Resident atoms per m³."""
        return self.particle_number / self.volume


@dataclass(frozen=True)
class PartitionParameters:
    """
    Lattice geometry, persistent across ticks.

    Attributes:
        box_number: Cells per axis, >= 1.
        box_width: Cell edge length in m, > 0.
        target_density: Desired mean number of atoms per occupied cell, > 0.
    """
    box_number: int = 100
    box_width: float = 1e-3
    target_density: float = 30.0

    def __post_init__(self) -> None:
        if self.box_number < 1:
            raise ConfigurationError(f"box_number must be >= 1, got {self.box_number}")
        if not self.box_width > 0:
            raise ConfigurationError(f"box_width must be positive, got {self.box_width}")
        if not self.target_density > 0:
            raise ConfigurationError(f"target_density must be positive, got {self.target_density}")


@dataclass
class VelocityHashmap:
    """Tick-scoped map from cell id to PartitionCell, occupied cells only."""
    cells: dict[int, PartitionCell] = field(default_factory=dict)

    @property
    def particle_number(self) -> int:
        return sum(c.particle_number for c in self.cells.values())

    def average_occupancy(self) -> float:
        """Mean atoms per occupied cell; 0.0 when no cell is occupied."""
        if not self.cells:
            return 0.0
        return self.particle_number / len(self.cells)


def pos_to_id(pos: np.ndarray, box_number: int, box_width: float) -> np.ndarray:
    """
    Cell ids for one (3,) or many (N, 3) positions.

    Raises:
        ConfigurationError: if box_number is zero.
    """
    if box_number == 0:
        raise ConfigurationError("box_number must be non-zero")
    pos = np.asarray(pos, dtype=np.float64)
    ids = _pos_to_id_numba(
        np.ascontiguousarray(pos.reshape(-1, 3)), int(box_number), float(box_width), SENTINEL_ID
    )
    return ids.reshape(pos.shape[:-1])


@njit(parallel=True, cache=True)
def _pos_to_id_numba(pos, box_number, box_width, sentinel):
    n = pos.shape[0]
    ids = np.empty(n, dtype=np.int64)
    for i in prange(n):
        cell_id = 0
        stride = 1
        outside = False
        for k in range(3):
            # Compared as floats; far-away positions must not overflow the cast.
            index = np.floor(pos[i, k] / box_width + 0.5 * box_number)
            if index < 0.0 or index >= box_number:
                outside = True
            else:
                cell_id += stride * int(index)
            stride *= box_number
        ids[i] = sentinel if outside else cell_id
    return ids


def build_cells(ids: np.ndarray, velocities: np.ndarray, box_width: float) -> dict[int, PartitionCell]:
    """Group velocities by cell id, skipping SENTINEL_ID."""
    inside = ids != SENTINEL_ID
    ids, velocities = ids[inside], velocities[inside]
    order = np.argsort(ids, kind="stable")
    ids, velocities = ids[order], velocities[order]
    unique, starts, counts = np.unique(ids, return_index=True, return_counts=True)
    volume = box_width ** 3
    return {
        int(cell_id): PartitionCell(velocities=velocities[s:s + c], volume=volume)
        for cell_id, s, c in zip(unique, starts, counts)
    }


class BuildSpatialPartitionSystem(System):
    """Assign every atom a BoxID and rebuild the VelocityHashmap."""
    reads = (Atom, Position, Velocity)
    writes = (BoxID,)
    reads_resources = (PartitionParameters,)
    writes_resources = (VelocityHashmap,)

    def run(self, ctx: SystemContext) -> None:
        params = ctx.resource(PartitionParameters)
        atoms = ctx.entities_with(Atom, Position, Velocity)
        if atoms.size == 0:
            ctx.replace_resource(VelocityHashmap())
            return
        pos = ctx.read(Position, atoms)
        ids = pos_to_id(pos, params.box_number, params.box_width)

        labelled = np.isin(atoms, ctx.entities_with(BoxID))
        ctx.write(BoxID, atoms[labelled], ids[labelled])
        if not labelled.all():
            ctx.lazy.insert_rows(BoxID, atoms[~labelled], ids[~labelled])

        hashmap = VelocityHashmap(build_cells(ids, ctx.read(Velocity, atoms), params.box_width))
        ctx.replace_resource(hashmap)
        logger.debug(
            "Partition: %d of %d atoms in %d cells", hashmap.particle_number, atoms.size, len(hashmap.cells)
        )


class RescalePartitionCellSystem(System):
    """
    Adapt the lattice towards `target_density` atoms per occupied cell.

    Every `interval` ticks the box width is scaled by
    cbrt(target_density / average occupancy), and box_number becomes the
    number of cells needed to span the largest extent of the atom cloud.
    Skipped while no cell is occupied.
    """
    reads = (Atom, Position)
    reads_resources = (VelocityHashmap,)
    writes_resources = (PartitionParameters,)

    def __init__(self, interval: int = 1) -> None:
        if interval < 1:
            raise ConfigurationError(f"Rescale interval must be >= 1, got {interval}")
        self.interval = interval

    def run(self, ctx: SystemContext) -> None:
        if ctx.step % self.interval != 0:
            return
        occupancy = ctx.resource(VelocityHashmap).average_occupancy()
        if occupancy == 0.0:
            logger.debug("Partition rescale skipped: no occupied cells")
            return
        params = ctx.resource_mut(PartitionParameters)
        box_width = params.box_width * (params.target_density / occupancy) ** (1.0 / 3.0)

        pos = ctx.read(Position, ctx.entities_with(Atom, Position))
        if pos.shape[0] == 0:
            logger.debug("Partition rescale skipped: no atoms left to measure")
            return
        extent = float(np.max(pos.max(axis=0) - pos.min(axis=0)))
        box_number = max(1, math.ceil(extent / box_width))
        ctx.replace_resource(replace(params, box_width=box_width, box_number=box_number))
        logger.debug("Partition rescaled: box_width=%.3e box_number=%d", box_width, box_number)
