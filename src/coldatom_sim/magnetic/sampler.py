# MIT License (see LICENSE)
"""
Per-atom magnetic field samplers.

Every magnetic source system adds its field at the atom's position into
MagneticFieldSampler through partial sums, so the sampled field is the sum
over all sources regardless of source or system order. Once all sources
have run, CalculateMagneticFieldMagnitudeSystem stores |B|.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import ClassVar

import numpy as np

from ..atom import Atom
from ..ecs.dispatcher import System, SystemContext
from ..ecs.world import DenseComponent
from ..util import row_norms, vec3


@dataclass
class MagneticFieldSampler(DenseComponent):
    """Magnetic field in T sampled at the atom position."""
    b_field: np.ndarray = field(default_factory=lambda: np.zeros(3, dtype=np.float64))

    def __post_init__(self) -> None:
        self.b_field = vec3(self.b_field)


@dataclass
class MagneticFieldMagnitude(DenseComponent):
    """|B| in T at the atom position."""
    value: float = 0.0
    width: ClassVar[int] = 1


class ClearMagneticFieldSamplerSystem(System):
    """Zero every sampler at the start of the tick."""
    reads = (Atom,)
    writes = (MagneticFieldSampler,)

    def run(self, ctx: SystemContext) -> None:
        atoms = ctx.entities_with(MagneticFieldSampler)
        ctx.write(MagneticFieldSampler, atoms, 0.0)


class CalculateMagneticFieldMagnitudeSystem(System):
    """Store the magnitude of the summed field."""
    reads = (MagneticFieldSampler,)
    writes = (MagneticFieldMagnitude,)

    def run(self, ctx: SystemContext) -> None:
        atoms = ctx.entities_with(MagneticFieldSampler, MagneticFieldMagnitude)
        if atoms.size == 0:
            return
        ctx.write(MagneticFieldMagnitude, atoms, row_norms(ctx.read(MagneticFieldSampler, atoms)))
