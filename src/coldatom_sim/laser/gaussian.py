# MIT License (see LICENSE)
"""
Gaussian beam intensity distribution.

A beam propagates along the unit vector `direction` through the point
`intersection` (its waist). With z the distance along the beam and r the
distance from the beam axis:

    w(z)²  = 2·e_radius²·(1 + (z/zR)²)
    I(r,z) = I0 / (1 + (z/zR)²) · exp(-2·r² / w(z)²),   I0 = power / (π·e_radius²)

so the power crossing any transverse plane equals `power`. The intensity
gradient is evaluated analytically in the beam frame spanned by two
transverse unit vectors and the propagation axis.

The beam propagates in vacuum; refraction, reflection and attenuation
are not modelled.
"""
from __future__ import annotations
from dataclasses import dataclass

import numpy as np
from numba import njit, prange

from ..constants import PI
from ..ecs.world import Component
from ..errors import ConfigurationError
from ..util import perpendicular_basis, unit, vec3


def calculate_rayleigh_range(wavelength: float, e_radius: float) -> float:
    """Rayleigh range 2π·e_radius²/λ in m."""
    return 2.0 * PI * e_radius ** 2 / wavelength


@dataclass(frozen=True)
class GaussianBeam(Component):
    """
    A laser beam with a Gaussian transverse profile.

    Attributes:
        intersection: A point on the beam axis at the waist, in m.
        direction: Propagation direction (normalized on init).
        e_radius: Radius at which the intensity falls to 1/e of the peak, in m.
                  Note e_radius = (1/e² radius) / √2.
        power: Beam power in W.
        rayleigh_range: Distance from the waist at which the cross-section
                        area has doubled, in m. Infinite for a collimated beam.
    """
    intersection: np.ndarray
    direction: np.ndarray
    e_radius: float
    power: float
    rayleigh_range: float = float("inf")

    def __post_init__(self) -> None:
        object.__setattr__(self, "intersection", vec3(self.intersection))
        object.__setattr__(self, "direction", unit(self.direction))
        if not self.e_radius > 0:
            raise ConfigurationError(f"Beam e_radius must be positive, got {self.e_radius}")
        if self.power < 0:
            raise ConfigurationError(f"Beam power must be non-negative, got {self.power}")
        if not self.rayleigh_range > 0:
            raise ConfigurationError(f"Rayleigh range must be positive, got {self.rayleigh_range}")

    @classmethod
    def from_peak_intensity(
        cls,
        intersection,
        direction,
        peak_intensity: float,
        e_radius: float,
        wavelength: float | None = None,
        rayleigh_range: float | None = None,
    ) -> "GaussianBeam":
        """
        Create a beam from its peak intensity (W/m²) rather than its power.

        The Rayleigh range is either given directly or follows from
        `wavelength`; with neither the beam is collimated.

        Raises:
            ConfigurationError: if both `wavelength` and `rayleigh_range` are given.
        """
        if wavelength is not None and rayleigh_range is not None:
            raise ConfigurationError("Give either a wavelength or a Rayleigh range, not both")
        power = PI * e_radius ** 2 * peak_intensity
        if rayleigh_range is None:
            rayleigh_range = float("inf") if wavelength is None else calculate_rayleigh_range(wavelength, e_radius)
        return cls(
            intersection=intersection,
            direction=direction,
            e_radius=e_radius,
            power=power,
            rayleigh_range=rayleigh_range,
        )

    @property
    def peak_intensity(self) -> float:
        """On-axis intensity at the waist, W/m²."""
        return self.power / (PI * self.e_radius ** 2)


@dataclass(frozen=True)
class CircularMask(Component):
    """
    Opaque disc coaxial with the beam on the same entity.

    Attributes:
        radius: Radius of the masked region in m.
    """
    radius: float


@dataclass(frozen=True)
class GaussianReferenceFrame(Component):
    """
    Transverse unit vectors of a beam; with the direction they form a right-handed frame.

    `ellipticity` is carried for beam descriptions that specify it; the
    intensity model itself is circularly symmetric.
    """
    x_vector: np.ndarray
    y_vector: np.ndarray
    ellipticity: float = 0.0

    @classmethod
    def for_beam(cls, beam: GaussianBeam) -> "GaussianReferenceFrame":
        x, y = perpendicular_basis(beam.direction)
        return cls(x_vector=x, y_vector=y)


@njit(parallel=True, cache=True)
def _gaussian_intensity_numba(pos, intersection, direction, peak_intensity, e_radius, rayleigh_range, mask_radius):
    n = pos.shape[0]
    out = np.empty(n)
    for i in prange(n):
        z = 0.0
        rr = 0.0
        for k in range(3):
            rel = pos[i, k] - intersection[k]
            z += rel * direction[k]
            rr += rel * rel
        r2 = max(rr - z * z, 0.0)
        broadening = 1.0 + (z / rayleigh_range) ** 2
        spot_size_squared = 2.0 * e_radius ** 2 * broadening
        if r2 < mask_radius * mask_radius:
            out[i] = 0.0
        else:
            out[i] = peak_intensity / broadening * np.exp(-2.0 * r2 / spot_size_squared)
    return out


@njit(parallel=True, cache=True)
def _gaussian_gradient_numba(pos, intersection, direction, x_vector, y_vector, power, e_radius, rayleigh_range):
    n = pos.shape[0]
    out = np.empty((n, 3))
    for i in prange(n):
        x = 0.0
        y = 0.0
        z = 0.0
        for k in range(3):
            rel = pos[i, k] - intersection[k]
            x += rel * x_vector[k]
            y += rel * y_vector[k]
            z += rel * direction[k]
        r2 = x * x + y * y
        spot_size_squared = 2.0 * e_radius ** 2 * (1.0 + (z / rayleigh_range) ** 2)
        intensity = 2.0 * power / (np.pi * spot_size_squared) * np.exp(-2.0 * r2 / spot_size_squared)
        transverse = -4.0 / spot_size_squared
        # 2z/(zR² + z²) written to stay finite for a collimated beam.
        axial = (
            (2.0 * z / rayleigh_range ** 2) / (1.0 + (z / rayleigh_range) ** 2)
            * (2.0 * r2 - spot_size_squared) / spot_size_squared
        )
        for k in range(3):
            out[i, k] = intensity * (
                transverse * x * x_vector[k] + transverse * y * y_vector[k] + axial * direction[k]
            )
    return out


def get_gaussian_beam_intensity(
    beam: GaussianBeam,
    pos: np.ndarray,
    mask: CircularMask | None = None,
) -> np.ndarray:
    """
    Intensity in W/m² at one (3,) or many (N, 3) positions.

    Positions closer to the axis than `mask.radius` see zero intensity.
    """
    pos = np.asarray(pos, dtype=np.float64)
    intensity = _gaussian_intensity_numba(
        np.ascontiguousarray(pos.reshape(-1, 3)),
        beam.intersection,
        beam.direction,
        beam.peak_intensity,
        float(beam.e_radius),
        float(beam.rayleigh_range),
        0.0 if mask is None else float(mask.radius),
    )
    return intensity.reshape(pos.shape[:-1])


def get_gaussian_beam_intensity_gradient(
    beam: GaussianBeam,
    pos: np.ndarray,
    reference_frame: GaussianReferenceFrame | None = None,
) -> np.ndarray:
    """
    Analytic intensity gradient in W/m³ at one (3,) or many (N, 3) positions.

    With x, y the transverse coordinates in `reference_frame` and z the axial
    coordinate:

        ∂I/∂x = -4x/w² · I
        ∂I/∂z = 2z/(zR² + z²) · (2r² - w²)/w² · I
    """
    frame = reference_frame or GaussianReferenceFrame.for_beam(beam)
    pos = np.asarray(pos, dtype=np.float64)
    grad = _gaussian_gradient_numba(
        np.ascontiguousarray(pos.reshape(-1, 3)),
        beam.intersection,
        beam.direction,
        np.ascontiguousarray(frame.x_vector, dtype=np.float64),
        np.ascontiguousarray(frame.y_vector, dtype=np.float64),
        float(beam.power),
        float(beam.e_radius),
        float(beam.rayleigh_range),
    )
    return grad.reshape(pos.shape)
