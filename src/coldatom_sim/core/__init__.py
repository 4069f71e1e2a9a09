# MIT License (see LICENSE)
"""
Core particle dynamics.

This subpackage provides:
    - Force generators: gravity, accumulator reset, random-kick summation.
    - Integrators: symplectic Euler and velocity Verlet.
    - Invariants: kinetic energy, momentum and temperature of the cloud.

Typical usage:
    from coldatom_sim.core import ClearForceSystem, EulerIntegrationSystem

    builder.with_system(ClearForceSystem(), "clear_forces", [])
    builder.with_system(EulerIntegrationSystem(), "integrate", ["clear_forces"])
"""
from .forces import (
    ApplyGravitationalForceSystem,
    ClearForceSystem,
    SumRandKickSystem,
    apply_gravity,
)
from .integrators import (
    EulerIntegrationSystem,
    VelocityVerletIntegratePositionSystem,
    VelocityVerletIntegrateVelocitySystem,
    euler_step,
    verlet_position_step,
    verlet_velocity_step,
)
from .invariants import kinetic_energy, linear_momentum, temperature

__all__ = [
    # Forces
    "apply_gravity",
    "ClearForceSystem",
    "ApplyGravitationalForceSystem",
    "SumRandKickSystem",
    # Integrators
    "euler_step",
    "verlet_position_step",
    "verlet_velocity_step",
    "EulerIntegrationSystem",
    "VelocityVerletIntegrateVelocitySystem",
    "VelocityVerletIntegratePositionSystem",
    # Invariants
    "kinetic_energy",
    "linear_momentum",
    "temperature",
]
