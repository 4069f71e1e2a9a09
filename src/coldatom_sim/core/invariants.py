# MIT License (see LICENSE)
"""
Utilities for calculating ensemble quantities of the atom cloud.

Used for verifying simulation correctness and for monitoring cooling.
Without light, and with gravity disabled, total kinetic energy and
momentum are constant within integration error.
"""
from __future__ import annotations
import numpy as np

from ..atom import Atom, Mass, Velocity
from ..constants import BOLTZCONST
from ..ecs.world import World


def _atoms(world: World) -> tuple[np.ndarray, np.ndarray]:
    atoms = world.entities_with(Atom, Velocity, Mass)
    return world.storage(Velocity).data[atoms], world.storage(Mass).data[atoms]


def kinetic_energy(world: World) -> float:
    """
    Calculate the total kinetic energy of all atoms.

    T = Σ 0.5 * m * v²

    Returns:
        Total kinetic energy in Joules.
    """
    v, m = _atoms(world)
    return float(0.5 * np.sum(m * np.einsum("ij,ij->i", v, v)))


def linear_momentum(world: World) -> np.ndarray:
    """
    Calculate the total linear momentum of all atoms.

    P = Σ (m * v)

    Returns:
        Total momentum vector [Px, Py, Pz] in kg·m/s.
    """
    v, m = _atoms(world)
    return (m[:, None] * v).sum(axis=0) if m.size else np.zeros(3)


def temperature(world: World) -> float:
    """
    Kinetic temperature of the cloud in K, from the velocity spread about its mean.

    T = Σ m·|v - <v>|² / (3·N·k_B); 0.0 for fewer than two atoms.
    """
    v, m = _atoms(world)
    if m.size < 2:
        return 0.0
    dv = v - v.mean(axis=0)
    return float(np.sum(m * np.einsum("ij,ij->i", dv, dv)) / (3.0 * m.size * BOLTZCONST))
