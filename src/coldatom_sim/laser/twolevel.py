# MIT License (see LICENSE)
"""
Steady-state populations of a two-level atom.

With Rᵢ the rate coefficient contributed by beam i and Γ the natural
linewidth in Hz, the excited-state fraction is

    ρ_ee = ΣRᵢ / (2π·Γ + 2·ΣRᵢ),     ρ_gg = 1 - ρ_ee

ρ_ee lies in [0, ½), increases monotonically with ΣRᵢ and is exactly 0
when no light reaches the atom.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import ClassVar

import numpy as np

from ..constants import PI
from ..ecs.world import DenseComponent


@dataclass
class TwoLevelPopulation(DenseComponent):
    """Steady-state populations, each a number in [0, 1]."""
    ground: float = 1.0
    excited: float = 0.0
    width: ClassVar[int] = 2

    def to_row(self) -> np.ndarray:
        return np.array([self.ground, self.excited], dtype=np.float64)

    @classmethod
    def from_row(cls, row: np.ndarray) -> "TwoLevelPopulation":
        return cls(ground=float(row[0]), excited=float(row[1]))


def calculate_excited_fraction(sum_rates, linewidth) -> np.ndarray:
    """
    Excited-state fraction ΣR/(2πΓ + 2ΣR), elementwise.

    Entries whose denominator vanishes (no light and no decay) get 0.
    """
    sum_rates = np.asarray(sum_rates, dtype=np.float64)
    denominator = 2.0 * PI * np.asarray(linewidth, dtype=np.float64) + 2.0 * sum_rates
    out = np.zeros(np.broadcast(sum_rates, denominator).shape)
    return np.divide(sum_rates, denominator, out=out, where=denominator > 0)
