# MIT License (see LICENSE)
"""
Detectors that absorb atoms and record what they caught.

An atom inside any detector is absorbed: its Position and Velocity are
removed through the command queue, so no later system integrates it, and
its velocity is added to the DetectorOutput resource. An atom inside
several detectors in the same tick is counted once.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field

import numpy as np

from .atom import Atom, Position, Velocity
from .ecs.dispatcher import System, SystemContext
from .ecs.world import Component
from .errors import ConfigurationError
from .util import unit, vec3

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Detector(Component):
    """
    Axis-aligned box detector.

    Attributes:
        centre: Centre of the box in m.
        range: Half-extent of the box along each axis in m.
    """
    centre: np.ndarray
    range: np.ndarray

    def __post_init__(self) -> None:
        object.__setattr__(self, "centre", vec3(self.centre))
        object.__setattr__(self, "range", vec3(self.range))

    def contains(self, pos: np.ndarray) -> np.ndarray:
        """Strict containment test for (N, 3) positions."""
        return np.all(np.abs(pos - self.centre) < self.range, axis=-1)


@dataclass(frozen=True)
class RingDetector(Component):
    """
    Annular detector around an axis.

    Attributes:
        centre: Centre of the ring in m.
        direction: Ring axis (normalized on init).
        radius: Inner radius in m.
        width: Radial width of the annulus in m.
        thickness: Extent along the axis in m.
    """
    centre: np.ndarray
    direction: np.ndarray
    radius: float
    width: float
    thickness: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "centre", vec3(self.centre))
        object.__setattr__(self, "direction", unit(self.direction))
        if self.radius < 0 or not self.width > 0 or not self.thickness > 0:
            raise ConfigurationError(
                f"Invalid ring detector dimensions: radius={self.radius}, "
                f"width={self.width}, thickness={self.thickness}"
            )

    def contains(self, pos: np.ndarray) -> np.ndarray:
        """True where radius < radial distance < radius + width and |axial| < thickness/2."""
        rel = pos - self.centre
        axial = rel @ self.direction
        radial = np.sqrt(np.maximum(np.sum(rel * rel, axis=-1) - axial * axial, 0.0))
        return (
            (radial > self.radius)
            & (radial < self.radius + self.width)
            & (np.abs(axial) < 0.5 * self.thickness)
        )


@dataclass
class DetectorOutput:
    """Running totals of absorbed atoms."""
    count: int = 0
    total_velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))

    @property
    def average_velocity(self) -> np.ndarray:
        """Mean velocity of the absorbed atoms; zero before the first detection."""
        if self.count == 0:
            return np.zeros(3)
        return self.total_velocity / self.count


class DetectingAtomSystem(System):
    """Absorb atoms found inside any Detector or RingDetector."""
    reads = (Atom, Position, Velocity, Detector, RingDetector)
    writes_resources = (DetectorOutput,)

    def run(self, ctx: SystemContext) -> None:
        detectors = [d for _, d in ctx.components(Detector)] + [d for _, d in ctx.components(RingDetector)]
        if not detectors:
            return
        atoms = ctx.entities_with(Atom, Position, Velocity)
        if atoms.size == 0:
            return
        pos = ctx.read(Position, atoms)
        hit = np.zeros(atoms.size, dtype=bool)
        for detector in detectors:
            hit |= detector.contains(pos)
        if not hit.any():
            return

        output = ctx.resource_mut(DetectorOutput)
        absorbed = atoms[hit]
        output.count += int(absorbed.size)
        output.total_velocity = output.total_velocity + ctx.read(Velocity, absorbed).sum(axis=0)
        for entity in absorbed:
            ctx.lazy.remove(int(entity), Position)
            ctx.lazy.remove(int(entity), Velocity)
        logger.debug("Detected %d atoms (total %d)", absorbed.size, output.count)
