# MIT License (see LICENSE)
"""
Laser beams and light forces.

    - GaussianBeam, CircularMask, GaussianReferenceFrame: beam geometry.
    - CoolingLight + cooling systems: radiation pressure and emission kicks.
    - DipoleLight + Polarizability: optical dipole force.

`add_laser_systems` wires

    laser_intensity -> laser_rates -> laser_populations -> laser_radiation_force
                                                        -> laser_emission
    laser_dipole
"""
from __future__ import annotations
from typing import Iterable

from ..ecs.dispatcher import DispatcherBuilder
from .cooling import (
    CalculateRadiationPressureSystem,
    CalculateRateCoefficientsSystem,
    CalculateTwoLevelPopulationSystem,
    calculate_rate_coefficients,
)
from .dipole import ApplyDipoleForceSystem, DipoleLight, Polarizability
from .emission import ApplyEmissionKickSystem, RandomSource
from .gaussian import (
    CircularMask,
    GaussianBeam,
    GaussianReferenceFrame,
    calculate_rayleigh_range,
    get_gaussian_beam_intensity,
    get_gaussian_beam_intensity_gradient,
)
from .samples import CoolingLight, LaserSamples, SampleLaserIntensitySystem
from .twolevel import TwoLevelPopulation, calculate_excited_fraction

# Systems that contribute to Force or RandKick; integrators must run after them.
LASER_FORCE_SYSTEMS = ("laser_radiation_force", "laser_emission", "laser_dipole")


def add_laser_systems(
    builder: DispatcherBuilder,
    deps: Iterable[str] = (),
    fluctuations: bool = True,
) -> DispatcherBuilder:
    """
    Register the laser systems after `deps`.

    `deps` must order them after the force reset and, when Zeeman shifts
    matter, after the magnetic magnitude pass.
    """
    deps = list(deps)
    builder.with_system(SampleLaserIntensitySystem(), "laser_intensity", deps)
    builder.with_system(CalculateRateCoefficientsSystem(), "laser_rates", ["laser_intensity"])
    builder.with_system(CalculateTwoLevelPopulationSystem(), "laser_populations", ["laser_rates"])
    builder.with_system(CalculateRadiationPressureSystem(), "laser_radiation_force", ["laser_populations"])
    builder.with_system(ApplyEmissionKickSystem(fluctuations), "laser_emission", ["laser_populations"])
    builder.with_system(ApplyDipoleForceSystem(), "laser_dipole", deps)
    return builder


__all__ = [
    "GaussianBeam",
    "CircularMask",
    "GaussianReferenceFrame",
    "CoolingLight",
    "DipoleLight",
    "Polarizability",
    "TwoLevelPopulation",
    "LaserSamples",
    "RandomSource",
    "LASER_FORCE_SYSTEMS",
    "add_laser_systems",
    "calculate_rayleigh_range",
    "calculate_rate_coefficients",
    "calculate_excited_fraction",
    "get_gaussian_beam_intensity",
    "get_gaussian_beam_intensity_gradient",
    "SampleLaserIntensitySystem",
    "CalculateRateCoefficientsSystem",
    "CalculateTwoLevelPopulationSystem",
    "CalculateRadiationPressureSystem",
    "ApplyEmissionKickSystem",
    "ApplyDipoleForceSystem",
]
