# MIT License (see LICENSE)
"""
Radiation pressure from near-resonant cooling beams.

For every atom and cooling beam i the rate coefficient is

    Rᵢ = Σ_q (γ/2) · s · w_q / (1 + 4δ_q²/γ²),      q ∈ {σ+, σ-, π}

where γ = 2πΓ, s = I/I_sat, and the polarization weights w_q follow from
the angle θ between the beam and the local magnetic field (p = ±1 is the
beam polarization):

    w_σ+ = ((1 + p·cosθ)/2)²,  w_σ- = ((1 - p·cosθ)/2)²,  w_π = (1 - cos²θ)/2

The detuning seen by the atom includes the Doppler and Zeeman shifts:

    δ_q = 2π·detuning - k·(k̂·v) - μ_q·|B|/ħ

The total scattering rate γ·ρ_ee is shared between beams in proportion to
Rᵢ/ΣR, each scattered photon transferring ħk along its beam.
"""
from __future__ import annotations
import logging

import numpy as np

from ..atom import AtomicTransition, Force, Velocity
from ..constants import HBAR, PI
from ..ecs.dispatcher import System, SystemContext
from ..magnetic.sampler import MagneticFieldSampler
from ..util import row_norms
from .gaussian import GaussianBeam
from .samples import CoolingLight, LaserSamples
from .twolevel import TwoLevelPopulation, calculate_excited_fraction

logger = logging.getLogger(__name__)


def calculate_rate_coefficients(
    intensity: np.ndarray,
    direction: np.ndarray,
    light: CoolingLight,
    velocity: np.ndarray,
    b_field: np.ndarray,
    transition: np.ndarray,
) -> np.ndarray:
    """
    Rate coefficients of one cooling beam for N atoms.

    Args:
        intensity: Beam intensity at each atom, shape (N,), W/m².
        direction: Unit propagation direction of the beam.
        light: Wavelength, detuning and polarization of the beam.
        velocity: Atom velocities, shape (N, 3).
        b_field: Magnetic field at each atom, shape (N, 3), T.
        transition: AtomicTransition rows, shape (N, 6).

    Returns:
        Rates of shape (N,) in 1/s.
    """
    linewidth, isat = transition[:, 1], transition[:, 2]
    moments = transition[:, 3:6]
    gamma = 2.0 * PI * linewidth
    inv_gamma2 = np.divide(1.0, gamma * gamma, out=np.zeros_like(gamma), where=gamma > 0)
    s = intensity / isat

    b_mag = row_norms(b_field)
    b_hat = np.divide(b_field, b_mag[:, None], out=np.zeros_like(b_field), where=b_mag[:, None] > 0)
    costheta = b_hat @ direction
    p = light.polarization
    weights = (
        (0.5 * (1.0 + p * costheta)) ** 2,
        (0.5 * (1.0 - p * costheta)) ** 2,
        0.5 * (1.0 - costheta ** 2),
    )

    base = 2.0 * PI * light.detuning - light.wavenumber * (velocity @ direction)
    rate = np.zeros_like(intensity)
    for q, w in enumerate(weights):
        delta = base - moments[:, q] * b_mag / HBAR
        rate += w * 0.5 * gamma * s / (1.0 + 4.0 * delta * delta * inv_gamma2)
    return rate


class CalculateRateCoefficientsSystem(System):
    """Fill LaserSamples.rates from intensities, velocities and the sampled field."""
    reads = (Velocity, AtomicTransition, MagneticFieldSampler, GaussianBeam, CoolingLight)
    writes_resources = (LaserSamples,)

    def run(self, ctx: SystemContext) -> None:
        samples = ctx.resource_mut(LaserSamples)
        atoms = samples.atoms
        if atoms.size == 0 or not samples.beams:
            return
        v = ctx.read(Velocity, atoms)
        # Atoms without a field sampler see zero field.
        b = np.zeros((atoms.size, 3))
        sampled = np.isin(atoms, ctx.entities_with(MagneticFieldSampler))
        b[sampled] = ctx.read(MagneticFieldSampler, atoms[sampled])
        transition = ctx.read(AtomicTransition, atoms)
        beams = [(ctx.get(e, GaussianBeam), ctx.get(e, CoolingLight)) for e in samples.beams]
        intensity = samples.intensity
        samples.rates = np.column_stack([
            calculate_rate_coefficients(intensity[:, i], beam.direction, light, v, b, transition)
            for i, (beam, light) in enumerate(beams)
        ])


class CalculateTwoLevelPopulationSystem(System):
    """Populations from the natural linewidth and this tick's rate coefficients."""
    reads = (AtomicTransition,)
    writes = (TwoLevelPopulation,)
    reads_resources = (LaserSamples,)

    def run(self, ctx: SystemContext) -> None:
        samples = ctx.resource(LaserSamples)
        atoms = samples.atoms
        if atoms.size == 0:
            return
        linewidth = ctx.read(AtomicTransition, atoms)[:, 1]
        if samples.rates.shape[1] == 0:
            excited = np.zeros(atoms.size)
        else:
            excited = calculate_excited_fraction(samples.rates.sum(axis=1), linewidth)
        ctx.write(TwoLevelPopulation, atoms, np.column_stack([1.0 - excited, excited]))


def scattering_rate(transition: np.ndarray, populations: np.ndarray) -> np.ndarray:
    """Photons scattered per second, γ·ρ_ee, for each atom."""
    return 2.0 * PI * transition[:, 1] * populations[:, 1]


class CalculateRadiationPressureSystem(System):
    """Accumulate the absorption force of every cooling beam into Force."""
    reads = (AtomicTransition, TwoLevelPopulation, GaussianBeam, CoolingLight)
    accumulates = (Force,)
    reads_resources = (LaserSamples,)

    def run(self, ctx: SystemContext) -> None:
        samples = ctx.resource(LaserSamples)
        atoms = samples.atoms
        if atoms.size == 0 or not samples.beams:
            return
        scatter = scattering_rate(ctx.read(AtomicTransition, atoms), ctx.read(TwoLevelPopulation, atoms))
        total = samples.rates.sum(axis=1)
        share = np.divide(samples.rates, total[:, None], out=np.zeros_like(samples.rates),
                          where=total[:, None] > 0)
        # Momentum per photon of each beam, shape (B, 3).
        kicks = np.array([
            HBAR * ctx.get(e, CoolingLight).wavenumber * ctx.get(e, GaussianBeam).direction
            for e in samples.beams
        ])
        force = (share * scatter[:, None]) @ kicks
        ctx.accumulate(Force, atoms, force)
