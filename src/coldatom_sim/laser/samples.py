# MIT License (see LICENSE)
"""
Per-tick sampling of cooling-beam intensities.

The number of cooling beams is only known at setup, so per-(atom, beam)
quantities live in the tick-scoped LaserSamples resource rather than in a
fixed-width component. It is rebuilt from scratch every tick.
"""
from __future__ import annotations
from dataclasses import dataclass, field

import numpy as np

from ..atom import Atom, AtomicTransition, Position, Velocity
from ..ecs.dispatcher import System, SystemContext
from ..constants import PI
from ..ecs.world import Component
from ..errors import ConfigurationError
from .gaussian import CircularMask, GaussianBeam, get_gaussian_beam_intensity
from .twolevel import TwoLevelPopulation


@dataclass(frozen=True)
class CoolingLight(Component):
    """
    Near-resonant light scattering photons off the atoms.

    Attached to an entity that also carries a GaussianBeam.

    Attributes:
        wavelength: Wavelength of the light in m.
        detuning: Detuning from the atomic resonance in Hz (negative is red).
        polarization: +1 or -1, handedness relative to the beam direction.
    """
    wavelength: float
    detuning: float
    polarization: int

    def __post_init__(self) -> None:
        if not self.wavelength > 0:
            raise ConfigurationError(f"Wavelength must be positive, got {self.wavelength}")
        if self.polarization not in (-1, 1):
            raise ConfigurationError(f"Polarization must be +1 or -1, got {self.polarization}")

    @classmethod
    def for_transition(cls, transition: AtomicTransition, detuning: float, polarization: int) -> "CoolingLight":
        """Light at the transition wavelength, detuned by `detuning` Hz."""
        return cls(wavelength=transition.wavelength, detuning=detuning, polarization=polarization)

    @property
    def wavenumber(self) -> float:
        return 2.0 * PI / self.wavelength


@dataclass
class LaserSamples:
    """
    Tick-scoped cooling-beam data for the atoms that interact with light.

    Attributes:
        atoms: Entity ids, shape (N,).
        beams: Entity ids of the cooling beams, in ascending order.
        intensity: Beam intensities at each atom, shape (N, B), W/m².
        rates: Rate coefficients, shape (N, B), 1/s.
    """
    atoms: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int64))
    beams: list[int] = field(default_factory=list)
    intensity: np.ndarray = field(default_factory=lambda: np.zeros((0, 0)))
    rates: np.ndarray = field(default_factory=lambda: np.zeros((0, 0)))


def cooling_beams(ctx: SystemContext) -> list[tuple[int, GaussianBeam, CoolingLight]]:
    """Cooling beams in entity order; entities missing a GaussianBeam are skipped."""
    beams = []
    for entity, light in ctx.components(CoolingLight):
        beam = ctx.get(entity, GaussianBeam)
        if beam is not None:
            beams.append((entity, beam, light))
    return beams


class SampleLaserIntensitySystem(System):
    """Start this tick's LaserSamples with the intensity of every cooling beam at every atom."""
    reads = (Atom, Position, Velocity, AtomicTransition, TwoLevelPopulation,
             GaussianBeam, CoolingLight, CircularMask)
    writes_resources = (LaserSamples,)

    def run(self, ctx: SystemContext) -> None:
        atoms = ctx.entities_with(Atom, Position, Velocity, AtomicTransition, TwoLevelPopulation)
        beams = cooling_beams(ctx)
        samples = LaserSamples(
            atoms=atoms,
            beams=[e for e, _, _ in beams],
            intensity=np.zeros((atoms.size, len(beams))),
            rates=np.zeros((atoms.size, len(beams))),
        )
        if atoms.size and beams:
            pos = ctx.read(Position, atoms)
            masks = [ctx.get(e, CircularMask) for e, _, _ in beams]
            samples.intensity = np.column_stack([
                get_gaussian_beam_intensity(beam, pos, mask) for (_, beam, _), mask in zip(beams, masks)
            ])
        ctx.replace_resource(samples)
