# MIT License (see LICENSE)
"""
Force generators and accumulator housekeeping.

Kernels operate on (N, 3) arrays and return the contribution they add;
the matching systems feed those contributions into the shared Force
accumulator through SystemContext.accumulate, so any number of force
systems can share a stage without overwriting each other.

Per-tick order:
- ClearForceSystem zeroes Force and RandKick at the start of the tick.
- Field-dependent force systems (gravity, radiation pressure, dipole)
  accumulate into Force.
- Emission systems write RandKick; SumRandKickSystem adds RandKick into
  Force after them.
"""
from __future__ import annotations

import numpy as np

from ..atom import Atom, Force, Mass, Position, RandKick
from ..constants import G_STANDARD
from ..ecs.dispatcher import System, SystemContext
from ..util import vec3


def apply_gravity(mass: np.ndarray, g: np.ndarray) -> np.ndarray:
    """
    Gravitational force on each particle.

    Implements F = m * g.

    Args:
        mass: Particle masses in kg, shape (N,).
        g: Gravitational acceleration vector [gx, gy, gz] in m/s².

    Returns:
        Forces of shape (N, 3) in N.
    """
    return mass[:, None] * g[None, :]


class ClearForceSystem(System):
    """Reset the Force and RandKick accumulators of every atom to zero."""
    reads = (Atom,)
    writes = (Force, RandKick)

    def run(self, ctx: SystemContext) -> None:
        atoms = ctx.entities_with(Atom, Force)
        ctx.write(Force, atoms, 0.0)
        kicked = ctx.entities_with(Atom, RandKick)
        ctx.write(RandKick, kicked, 0.0)


class ApplyGravitationalForceSystem(System):
    """
    Add m·g to the force on every atom still in the simulation.

    Args:
        g: Acceleration vector in m/s². Defaults to standard gravity along -z.
    """
    reads = (Atom, Position, Mass)
    accumulates = (Force,)

    def __init__(self, g=(0.0, 0.0, -G_STANDARD)) -> None:
        self.g = vec3(g)

    def run(self, ctx: SystemContext) -> None:
        atoms = ctx.entities_with(Atom, Position, Mass, Force)
        if atoms.size == 0:
            return
        mass = ctx.read(Mass, atoms)
        ctx.accumulate(Force, atoms, apply_gravity(mass, self.g))


class SumRandKickSystem(System):
    """Add the random-kick accumulator into the net force."""
    reads = (Atom, Position, RandKick)
    accumulates = (Force,)

    def run(self, ctx: SystemContext) -> None:
        atoms = ctx.entities_with(Atom, Position, RandKick, Force)
        if atoms.size == 0:
            return
        ctx.accumulate(Force, atoms, ctx.read(RandKick, atoms))
