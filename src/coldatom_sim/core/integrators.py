# MIT License (see LICENSE)
"""
Numerical integrators for particle motion.

All integrators solve
    dx/dt = v,         dv/dt = F/m
with the force held fixed over one timestep. They run strictly after every
force-aggregating system of the tick and before the accumulators are reset
at the start of the next tick.

Available integrators:
- euler_step: symplectic (semi-implicit) Euler, first order.
- verlet_position_step / verlet_velocity_step: velocity Verlet, second
  order and symplectic.

Velocity Verlet needs the force at both ends of a step. With one force
evaluation per tick the update is split over consecutive ticks:

    tick n:  forces F_n at x_n
             v_n     = v_{n-1} + ½(F_{n-1} + F_n)/m·dt    (needs OldForce)
             x_{n+1} = x_n + v_n·dt + ½(F_n/m)·dt²
             OldForce = F_n

A freshly created atom has no OldForce, so its first tick only advances
the position. Positions reported after tick n are x_{n+1}; velocities are v_n.

Reference:
    Velocity Verlet: https://en.wikipedia.org/wiki/Verlet_integration#Velocity_Verlet
"""
from __future__ import annotations
import logging

import numpy as np
from numba import njit, prange

from ..atom import Atom, Force, Mass, OldForce, Position, Velocity
from ..ecs.dispatcher import System, SystemContext
from ..ecs.world import World
from ..errors import ConfigurationError

logger = logging.getLogger(__name__)


def euler_step(
    x: np.ndarray, v: np.ndarray, force: np.ndarray, mass: np.ndarray, dt: float
) -> tuple[np.ndarray, np.ndarray]:
    """
    Advance positions and velocities by one symplectic Euler step.

        v' = v + (F/m)·dt
        x' = x + v'·dt

    Args:
        x, v, force: Arrays of shape (N, 3).
        mass: Masses of shape (N,).
        dt: Timestep in seconds.

    Returns:
        Tuple (x', v').
    """
    return _euler_numba(*_rows(x, v, force), _masses(mass), float(dt))


def verlet_position_step(
    x: np.ndarray, v: np.ndarray, force: np.ndarray, mass: np.ndarray, dt: float
) -> np.ndarray:
    """Position half of velocity Verlet: x' = x + v·dt + ½(F/m)·dt²."""
    return _verlet_position_numba(*_rows(x, v, force), _masses(mass), float(dt))


def verlet_velocity_step(
    v: np.ndarray, old_force: np.ndarray, force: np.ndarray, mass: np.ndarray, dt: float
) -> np.ndarray:
    """Velocity half of velocity Verlet: v' = v + ½(F_old/m + F_new/m)·dt."""
    return _verlet_velocity_numba(*_rows(v, old_force, force), _masses(mass), float(dt))


def _rows(*arrays: np.ndarray) -> list[np.ndarray]:
    return [np.ascontiguousarray(a, dtype=np.float64).reshape(-1, 3) for a in arrays]


def _masses(mass: np.ndarray) -> np.ndarray:
    return np.ascontiguousarray(mass, dtype=np.float64).reshape(-1)


@njit(parallel=True, cache=True)
def _euler_numba(x, v, force, mass, dt):
    n = x.shape[0]
    x_new = np.empty_like(x)
    v_new = np.empty_like(v)
    for i in prange(n):
        for k in range(3):
            v_new[i, k] = v[i, k] + force[i, k] / mass[i] * dt
            x_new[i, k] = x[i, k] + v_new[i, k] * dt
    return x_new, v_new


@njit(parallel=True, cache=True)
def _verlet_position_numba(x, v, force, mass, dt):
    n = x.shape[0]
    x_new = np.empty_like(x)
    for i in prange(n):
        for k in range(3):
            x_new[i, k] = x[i, k] + v[i, k] * dt + 0.5 * force[i, k] / mass[i] * dt * dt
    return x_new


@njit(parallel=True, cache=True)
def _verlet_velocity_numba(v, old_force, force, mass, dt):
    n = v.shape[0]
    v_new = np.empty_like(v)
    for i in prange(n):
        for k in range(3):
            v_new[i, k] = v[i, k] + 0.5 * (old_force[i, k] + force[i, k]) / mass[i] * dt
    return v_new


def _check_masses(mass: np.ndarray) -> None:
    if mass.size and not np.all(mass > 0):
        raise ConfigurationError("Every integrated particle needs a positive mass")


def validate_masses(world: World) -> None:
    """Raise ConfigurationError unless every atom with a Mass has mass > 0."""
    if not world.is_registered(Mass):
        return
    atoms = world.entities_with(Atom, Mass)
    _check_masses(world.storage(Mass).data[atoms])


class EulerIntegrationSystem(System):
    """Symplectic Euler update of Position and Velocity from Force and Mass."""
    reads = (Atom, Force, Mass)
    writes = (Position, Velocity)

    def setup(self, world: World) -> None:
        validate_masses(world)

    def run(self, ctx: SystemContext) -> None:
        atoms = ctx.entities_with(Atom, Position, Velocity, Force, Mass)
        if atoms.size == 0:
            return
        dt = ctx.dt
        x = ctx.read(Position, atoms)
        v = ctx.read(Velocity, atoms)
        f = ctx.read(Force, atoms)
        m = ctx.read(Mass, atoms)
        _check_masses(m)
        x1, v1 = euler_step(x, v, f, m, dt)
        ctx.write(Position, atoms, x1)
        ctx.write(Velocity, atoms, v1)


class VelocityVerletIntegrateVelocitySystem(System):
    """Complete the previous Verlet step using this tick's force."""
    reads = (Atom, Force, OldForce, Mass)
    writes = (Velocity,)

    def setup(self, world: World) -> None:
        validate_masses(world)

    def run(self, ctx: SystemContext) -> None:
        atoms = ctx.entities_with(Atom, Velocity, Force, OldForce, Mass)
        if atoms.size == 0:
            return
        m = ctx.read(Mass, atoms)
        _check_masses(m)
        v = verlet_velocity_step(
            ctx.read(Velocity, atoms), ctx.read(OldForce, atoms), ctx.read(Force, atoms), m, ctx.dt
        )
        ctx.write(Velocity, atoms, v)


class VelocityVerletIntegratePositionSystem(System):
    """
    Advance positions with this tick's force and retain it as OldForce.

    Atoms without OldForce receive one through the lazy command queue.
    """
    reads = (Atom, Velocity, Force, Mass)
    writes = (Position, OldForce)

    def run(self, ctx: SystemContext) -> None:
        atoms = ctx.entities_with(Atom, Position, Velocity, Force, Mass)
        if atoms.size == 0:
            return
        m = ctx.read(Mass, atoms)
        _check_masses(m)
        f = ctx.read(Force, atoms)
        x = verlet_position_step(ctx.read(Position, atoms), ctx.read(Velocity, atoms), f, m, ctx.dt)
        ctx.write(Position, atoms, x)

        primed = ctx.entities_with(Atom, Position, Velocity, Force, Mass, OldForce)
        has_old = np.isin(atoms, primed, assume_unique=True)
        ctx.write(OldForce, atoms[has_old], f[has_old])
        if not np.all(has_old):
            ctx.lazy.insert_rows(OldForce, atoms[~has_old], f[~has_old])
