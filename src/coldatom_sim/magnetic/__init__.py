# MIT License (see LICENSE)
"""
Magnetic field sources and per-atom field sampling.

This subpackage provides:
    - MagneticFieldSampler / MagneticFieldMagnitude: per-atom field state.
    - QuadrupoleField3D: analytic quadrupole source.
    - PrecalculatedMagneticFieldGrid: nearest-cell grid source.

Systems are registered by `add_magnetic_systems`, which wires

    clear_magnetic_field -> magnetics_quadrupole, magnetics_grid -> magnetics_magnitude
"""
from __future__ import annotations
from typing import Iterable

from ..ecs.dispatcher import DispatcherBuilder
from .grid import PrecalculatedMagneticFieldGrid, SampleMagneticGridSystem
from .quadrupole import QuadrupoleField3D, SampleQuadrupoleFieldSystem, calculate_field
from .sampler import (
    CalculateMagneticFieldMagnitudeSystem,
    ClearMagneticFieldSamplerSystem,
    MagneticFieldMagnitude,
    MagneticFieldSampler,
)


def add_magnetic_systems(builder: DispatcherBuilder, deps: Iterable[str] = ()) -> DispatcherBuilder:
    """Register the magnetic systems; the magnitude pass is named 'magnetics_magnitude'."""
    deps = list(deps)
    builder.with_system(ClearMagneticFieldSamplerSystem(), "clear_magnetic_field", deps)
    builder.with_system(SampleQuadrupoleFieldSystem(), "magnetics_quadrupole", ["clear_magnetic_field"])
    builder.with_system(SampleMagneticGridSystem(), "magnetics_grid", ["clear_magnetic_field"])
    builder.with_system(
        CalculateMagneticFieldMagnitudeSystem(),
        "magnetics_magnitude",
        ["magnetics_quadrupole", "magnetics_grid"],
    )
    return builder


__all__ = [
    "MagneticFieldSampler",
    "MagneticFieldMagnitude",
    "QuadrupoleField3D",
    "PrecalculatedMagneticFieldGrid",
    "calculate_field",
    "add_magnetic_systems",
    "ClearMagneticFieldSamplerSystem",
    "SampleQuadrupoleFieldSystem",
    "SampleMagneticGridSystem",
    "CalculateMagneticFieldMagnitudeSystem",
]
