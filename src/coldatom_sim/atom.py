# MIT License (see LICENSE)
"""
Per-particle component definitions.

An atom is an entity carrying:
- Position, Velocity: kinematic state in m and m/s.
- Mass: scalar in kg, strictly positive.
- Force: accumulator in N, reset at the start of every tick.
- OldForce: force of the previous tick (velocity Verlet only).
- RandKick: stochastic recoil force accumulator in N.
- AtomicTransition: optical transition data used by laser systems.
- Atom: marker distinguishing particles from source entities that also
  carry a Position (for example the centre of a quadrupole field).

The equations of motion follow standard Newtonian mechanics:
  dx/dt = v
  dv/dt = F/m
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import ClassVar

import numpy as np

from .constants import C, HBAR, PI
from .ecs.world import DenseComponent
from .errors import ConfigurationError
from .util import vec3


def _zeros3() -> np.ndarray:
    return np.zeros(3, dtype=np.float64)


@dataclass
class Position(DenseComponent):
    """Position in meters."""
    pos: np.ndarray = field(default_factory=_zeros3)

    def __post_init__(self) -> None:
        self.pos = vec3(self.pos)


@dataclass
class Velocity(DenseComponent):
    """Velocity in m/s."""
    vel: np.ndarray = field(default_factory=_zeros3)

    def __post_init__(self) -> None:
        self.vel = vec3(self.vel)


@dataclass
class Force(DenseComponent):
    """Net force in N accumulated over one tick."""
    force: np.ndarray = field(default_factory=_zeros3)

    def __post_init__(self) -> None:
        self.force = vec3(self.force)


@dataclass
class OldForce(DenseComponent):
    """Force of the previous tick, retained for the velocity Verlet update."""
    force: np.ndarray = field(default_factory=_zeros3)

    def __post_init__(self) -> None:
        self.force = vec3(self.force)


@dataclass
class RandKick(DenseComponent):
    """Random recoil force in N, summed into Force once per tick."""
    force: np.ndarray = field(default_factory=_zeros3)

    def __post_init__(self) -> None:
        self.force = vec3(self.force)


@dataclass
class Mass(DenseComponent):
    """
    Particle mass in kg.

    Raises:
        ConfigurationError: if the mass is not strictly positive.
    """
    value: float
    width: ClassVar[int] = 1

    def __post_init__(self) -> None:
        self.value = float(self.value)
        if not self.value > 0:
            raise ConfigurationError(f"Mass must be positive, got {self.value}")

    @property
    def inv_mass(self) -> float:
        return 1.0 / self.value


@dataclass
class Atom(DenseComponent):
    """Marker for entities that are simulated particles."""
    width: ClassVar[int] = 0


@dataclass(frozen=True)
class AtomicTransition(DenseComponent):
    """
    Optical transition driven by cooling light.

    Attributes:
        frequency: Transition frequency in Hz.
        linewidth: Natural linewidth Γ in Hz (the decay rate is 2πΓ).
        saturation_intensity: Saturation intensity in W/m².
        mup: Magnetic moment of the σ+ transition in J/T.
        mum: Magnetic moment of the σ- transition in J/T.
        muz: Magnetic moment of the π transition in J/T.
    """
    frequency: float
    linewidth: float
    saturation_intensity: float
    mup: float = 0.0
    mum: float = 0.0
    muz: float = 0.0
    width: ClassVar[int] = 6

    def __post_init__(self) -> None:
        if not self.frequency > 0:
            raise ConfigurationError(f"Transition frequency must be positive, got {self.frequency}")
        if self.linewidth < 0:
            raise ConfigurationError(f"Linewidth must be non-negative, got {self.linewidth}")
        if not self.saturation_intensity > 0:
            raise ConfigurationError(
                f"Saturation intensity must be positive, got {self.saturation_intensity}"
            )

    def to_row(self) -> np.ndarray:
        return np.array(
            [self.frequency, self.linewidth, self.saturation_intensity, self.mup, self.mum, self.muz],
            dtype=np.float64,
        )

    @classmethod
    def from_row(cls, row: np.ndarray) -> "AtomicTransition":
        return cls(*(float(x) for x in row))

    @property
    def wavelength(self) -> float:
        return C / self.frequency

    @property
    def gamma(self) -> float:
        """Decay rate 2πΓ in rad/s."""
        return 2.0 * PI * self.linewidth

    @property
    def recoil_momentum(self) -> float:
        """Single-photon recoil ħk in kg·m/s."""
        return HBAR * 2.0 * PI / self.wavelength
