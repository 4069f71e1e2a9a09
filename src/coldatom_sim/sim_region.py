# MIT License (see LICENSE)
"""
Simulation volumes bounding the region in which atoms are kept.

A volume is an entity with a Position (its centre) and a Cuboid or Sphere
shape. Inclusive volumes keep atoms: when at least one exists, an atom
outside all of them is marked ToBeDestroyed. Exclusive volumes remove
atoms: an atom inside any of them is marked ToBeDestroyed.
"""
from __future__ import annotations
import enum
import logging
from dataclasses import dataclass

import numpy as np

from .atom import Atom, Position
from .destructor import ToBeDestroyed
from .ecs.dispatcher import System, SystemContext
from .ecs.world import Component
from .errors import ConfigurationError
from .util import vec3

logger = logging.getLogger(__name__)


class VolumeType(enum.Enum):
    INCLUSIVE = "inclusive"
    EXCLUSIVE = "exclusive"


@dataclass(frozen=True)
class Cuboid(Component):
    """Axis-aligned box with the given half-widths (m) around the entity Position."""
    half_width: np.ndarray
    vol_type: VolumeType = VolumeType.INCLUSIVE

    def __post_init__(self) -> None:
        object.__setattr__(self, "half_width", vec3(self.half_width))
        if np.any(self.half_width <= 0):
            raise ConfigurationError(f"Cuboid half widths must be positive, got {self.half_width}")

    def contains(self, centre: np.ndarray, pos: np.ndarray) -> np.ndarray:
        return np.all(np.abs(pos - centre) <= self.half_width, axis=-1)


@dataclass(frozen=True)
class Sphere(Component):
    """Ball of the given radius (m) around the entity Position."""
    radius: float
    vol_type: VolumeType = VolumeType.INCLUSIVE

    def __post_init__(self) -> None:
        if not self.radius > 0:
            raise ConfigurationError(f"Sphere radius must be positive, got {self.radius}")

    def contains(self, centre: np.ndarray, pos: np.ndarray) -> np.ndarray:
        rel = pos - centre
        return np.sum(rel * rel, axis=-1) <= self.radius ** 2


SimulationVolume = Cuboid | Sphere


class RegionSystem(System):
    """Mark atoms that leave the inclusive volumes or enter an exclusive one."""
    reads = (Atom, Position, Cuboid, Sphere, ToBeDestroyed)

    def run(self, ctx: SystemContext) -> None:
        volumes: list[tuple[np.ndarray, SimulationVolume]] = []
        for shape in (Cuboid, Sphere):
            for entity, volume in ctx.components(shape):
                centre = ctx.get(entity, Position)
                volumes.append((np.zeros(3) if centre is None else centre.pos, volume))
        if not volumes:
            return

        atoms = ctx.entities_with(Atom, Position, without=(ToBeDestroyed,))
        if atoms.size == 0:
            return
        pos = ctx.read(Position, atoms)
        inside_inclusive = np.zeros(atoms.size, dtype=bool)
        inside_exclusive = np.zeros(atoms.size, dtype=bool)
        has_inclusive = False
        for centre, volume in volumes:
            inside = volume.contains(centre, pos)
            if volume.vol_type is VolumeType.INCLUSIVE:
                has_inclusive = True
                inside_inclusive |= inside
            else:
                inside_exclusive |= inside

        doomed = inside_exclusive
        if has_inclusive:
            doomed = doomed | ~inside_inclusive
        if doomed.any():
            ctx.lazy.insert_rows(ToBeDestroyed, atoms[doomed], None)
            logger.debug("Marked %d atoms outside the simulation volume", int(doomed.sum()))
