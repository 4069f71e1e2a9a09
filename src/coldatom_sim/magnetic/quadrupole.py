# MIT License (see LICENSE)
"""
Three-dimensional quadrupole magnetic fields.

A quadrupole source is an entity carrying QuadrupoleField3D and a Position
(the field node). Relative to the node and the normalized symmetry axis n:

    B = gradient · (r_radial - 2·r_axial)

which reduces to Bx = g·x, By = g·y, Bz = -2·g·z for n = z.
"""
from __future__ import annotations
from dataclasses import dataclass

import numpy as np
from numba import njit, prange

from ..atom import Position
from ..ecs.dispatcher import System, SystemContext
from ..ecs.world import Component
from ..util import unit
from .sampler import MagneticFieldSampler


@dataclass(frozen=True)
class QuadrupoleField3D(Component):
    """
    A 3D quadrupole field source.

    Attributes:
        gradient: Field gradient in T/m.
        direction: Unit vector along the symmetry axis (normalized on init).
    """
    gradient: float
    direction: np.ndarray

    def __post_init__(self) -> None:
        object.__setattr__(self, "direction", unit(self.direction))

    @classmethod
    def gauss_per_cm(cls, gradient: float, direction) -> "QuadrupoleField3D":
        """Create a quadrupole with the gradient given in Gauss/cm."""
        return cls(gradient=gradient * 0.01, direction=direction)


def calculate_field(pos: np.ndarray, centre: np.ndarray, gradient: float, direction: np.ndarray) -> np.ndarray:
    """
    Quadrupole field at one or many positions.

    Args:
        pos: Sample position(s), shape (3,) or (N, 3), in m.
        centre: Position of the field node in m.
        gradient: Gradient in T/m.
        direction: Normalized symmetry axis.

    Returns:
        Field(s) in T with the same shape as pos.
    """
    pos = np.asarray(pos, dtype=np.float64)
    b_field = _quadrupole_field_numba(
        np.ascontiguousarray(pos.reshape(-1, 3)),
        np.ascontiguousarray(centre, dtype=np.float64),
        float(gradient),
        np.ascontiguousarray(direction, dtype=np.float64),
    )
    return b_field.reshape(pos.shape)


@njit(parallel=True, cache=True)
def _quadrupole_field_numba(pos, centre, gradient, direction):
    n = pos.shape[0]
    out = np.empty((n, 3))
    for i in prange(n):
        proj = 0.0
        for k in range(3):
            proj += (pos[i, k] - centre[k]) * direction[k]
        for k in range(3):
            axial = proj * direction[k]
            out[i, k] = gradient * ((pos[i, k] - centre[k] - axial) - 2.0 * axial)
    return out


class SampleQuadrupoleFieldSystem(System):
    """Add the field of every quadrupole source to every sampler."""
    reads = (Position, QuadrupoleField3D)
    accumulates = (MagneticFieldSampler,)

    def run(self, ctx: SystemContext) -> None:
        sources = ctx.components(QuadrupoleField3D)
        if not sources:
            return
        atoms = ctx.entities_with(Position, MagneticFieldSampler)
        if atoms.size == 0:
            return
        pos = ctx.read(Position, atoms)
        centres = [(ctx.get(e, Position), quad) for e, quad in sources]

        b_field = np.zeros_like(pos)
        for centre, quad in centres:
            if centre is None:
                continue
            b_field += calculate_field(pos, centre.pos, quad.gradient, quad.direction)
        ctx.accumulate(MagneticFieldSampler, atoms, b_field)
