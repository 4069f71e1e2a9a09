# MIT License (see LICENSE)
"""
Random recoil kicks from spontaneous emission.

An atom scattering at rate γ·ρ_ee emits N photons per tick, with
N ~ Poisson(γ·ρ_ee·dt) when fluctuations are enabled and N = γ·ρ_ee·dt
otherwise. The emissions are isotropic, so their summed recoil is a
random walk of N steps of ħk, approximated by one kick of length ħk·√N in
a uniformly random direction. The kick is written to RandKick as the
equivalent force over the tick; SumRandKickSystem adds it to Force.
"""
from __future__ import annotations
from dataclasses import dataclass, field

import numpy as np

from ..atom import AtomicTransition, RandKick
from ..constants import C, HBAR, PI
from ..ecs.dispatcher import System, SystemContext
from ..util import random_unit_vectors
from .cooling import scattering_rate
from .samples import LaserSamples
from .twolevel import TwoLevelPopulation


@dataclass
class RandomSource:
    """Seeded random generator shared by stochastic systems."""
    seed: int | None = None
    rng: np.random.Generator = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.rng = np.random.default_rng(self.seed)


class ApplyEmissionKickSystem(System):
    """
    Write spontaneous-emission recoil into RandKick.

    Args:
        fluctuations: Draw the photon number from a Poisson distribution
                      instead of using its mean.
    """
    reads = (AtomicTransition, TwoLevelPopulation)
    writes = (RandKick,)
    reads_resources = (LaserSamples,)
    writes_resources = (RandomSource,)

    def __init__(self, fluctuations: bool = True) -> None:
        self.fluctuations = fluctuations

    def run(self, ctx: SystemContext) -> None:
        samples = ctx.resource(LaserSamples)
        atoms = samples.atoms[np.isin(samples.atoms, ctx.entities_with(RandKick))]
        if atoms.size == 0:
            return
        rng = ctx.resource_mut(RandomSource).rng
        dt = ctx.dt
        transition = ctx.read(AtomicTransition, atoms)
        expected = scattering_rate(transition, ctx.read(TwoLevelPopulation, atoms)) * dt
        photons = rng.poisson(expected) if self.fluctuations else expected
        recoil = HBAR * 2.0 * PI * transition[:, 0] / C
        magnitude = recoil * np.sqrt(photons) / dt
        ctx.write(RandKick, atoms, magnitude[:, None] * random_unit_vectors(rng, atoms.size))
