# MIT License (see LICENSE)
"""
Optical dipole force from far-detuned trapping beams.

    F = α · Σ_beams ∇I

with the polarizability prefactor of a two-level atom driven far from
resonance (rotating and counter-rotating terms):

    α = 3πc² / (2ω0³) · (γ/(ω0 - ω) + γ/(ω0 + ω))

α > 0 for red-detuned light, which pulls atoms towards high intensity.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import ClassVar

import numpy as np

from ..atom import Atom, AtomicTransition, Force, Position
from ..constants import C, PI
from ..ecs.dispatcher import System, SystemContext
from ..ecs.world import Component, DenseComponent
from ..errors import ConfigurationError
from .gaussian import GaussianBeam, GaussianReferenceFrame, get_gaussian_beam_intensity_gradient


@dataclass(frozen=True)
class DipoleLight(Component):
    """Marks a GaussianBeam entity as a trapping beam of the given wavelength (m)."""
    wavelength: float

    def __post_init__(self) -> None:
        if not self.wavelength > 0:
            raise ConfigurationError(f"Wavelength must be positive, got {self.wavelength}")

    @property
    def angular_frequency(self) -> float:
        return 2.0 * PI * C / self.wavelength


@dataclass
class Polarizability(DenseComponent):
    """Dipole force prefactor α of an atom, in units such that F = α·∇I."""
    prefactor: float
    width: ClassVar[int] = 1

    @classmethod
    def calculate_for(cls, wavelength: float, transition: AtomicTransition) -> "Polarizability":
        """α for light of `wavelength` (m) acting on `transition`."""
        omega = 2.0 * PI * C / wavelength
        omega0 = 2.0 * PI * transition.frequency
        gamma = transition.gamma
        prefactor = 3.0 * PI * C ** 2 / (2.0 * omega0 ** 3) * (gamma / (omega0 - omega) + gamma / (omega0 + omega))
        return cls(prefactor)


class ApplyDipoleForceSystem(System):
    """Accumulate α·∇I of every dipole beam into Force."""
    reads = (Atom, Position, Polarizability, GaussianBeam, DipoleLight, GaussianReferenceFrame)
    accumulates = (Force,)

    def run(self, ctx: SystemContext) -> None:
        beams = []
        for entity, _ in ctx.components(DipoleLight):
            beam = ctx.get(entity, GaussianBeam)
            if beam is not None:
                beams.append((beam, ctx.get(entity, GaussianReferenceFrame)))
        atoms = ctx.entities_with(Atom, Position, Polarizability)
        if not beams or atoms.size == 0:
            return
        pos = ctx.read(Position, atoms)
        alpha = ctx.read(Polarizability, atoms)
        grad = np.zeros_like(pos)
        for beam, frame in beams:
            grad += get_gaussian_beam_intensity_gradient(beam, pos, frame)
        ctx.accumulate(Force, atoms, alpha[:, None] * grad)
