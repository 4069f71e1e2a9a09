import numpy as np
import pytest
from coldatom_sim.constants import PI
from coldatom_sim.errors import ConfigurationError
from coldatom_sim.laser import (
    CircularMask,
    GaussianBeam,
    GaussianReferenceFrame,
    calculate_rayleigh_range,
    get_gaussian_beam_intensity,
    get_gaussian_beam_intensity_gradient,
)


def _beam(rayleigh_range=float("inf")):
    return GaussianBeam(
        intersection=(0.0, 0.0, 0.0),
        direction=(0.0, 0.0, 1.0),
        e_radius=70.71067812e-6,
        power=100.0,
        rayleigh_range=rayleigh_range,
    )


def test_waist_intensity_on_axis():
    beam = _beam()
    intensity = get_gaussian_beam_intensity(beam, np.array([0.0, 0.0, 0.0]))
    assert np.isclose(intensity, beam.power / (PI * beam.e_radius ** 2))
    assert np.isclose(beam.peak_intensity, intensity)


def test_transverse_integral_equals_power():
    """∫ I 2πr dr over the transverse plane is the beam power at any z."""
    zr = calculate_rayleigh_range(1064e-9, 70.71067812e-6)
    beam = _beam(zr)
    r = np.linspace(0.0, 2e-3, 200001)
    for z in (0.0, 0.5 * zr, 3.0 * zr):
        pos = np.column_stack([r, np.zeros_like(r), np.full_like(r, z)])
        intensity = get_gaussian_beam_intensity(beam, pos)
        integrand = intensity * 2.0 * PI * r
        power = np.sum(0.5 * (integrand[1:] + integrand[:-1]) * np.diff(r))
        print("z", z, "integrated power", power)
        assert np.isclose(power, beam.power, rtol=1e-4)


def test_intensity_falls_off_along_axis():
    zr = calculate_rayleigh_range(1064e-9, 70.71067812e-6)
    beam = _beam(zr)
    at_zr = get_gaussian_beam_intensity(beam, np.array([0.0, 0.0, zr]))
    assert np.isclose(at_zr, 0.5 * beam.peak_intensity)


def test_circular_mask_blocks_core():
    beam = _beam()
    mask = CircularMask(radius=20e-6)
    pos = np.array([[10e-6, 0.0, 0.0], [30e-6, 0.0, 0.0]])
    masked = get_gaussian_beam_intensity(beam, pos, mask)
    unmasked = get_gaussian_beam_intensity(beam, pos)
    assert masked[0] == 0.0
    assert np.isclose(masked[1], unmasked[1])


def test_from_peak_intensity():
    beam = GaussianBeam.from_peak_intensity((0, 0, 0), (1, 0, 0), peak_intensity=1e3, e_radius=1e-3, wavelength=780e-9)
    assert np.isclose(beam.peak_intensity, 1e3)
    assert np.isclose(beam.rayleigh_range, 2 * PI * 1e-6 / 780e-9)


def test_gradient_matches_finite_difference():
    zr = calculate_rayleigh_range(1064e-9, 70.71067812e-6)
    beam = GaussianBeam(
        intersection=(1e-5, -2e-5, 0.0),
        direction=(1.0, 1.0, 0.5),
        e_radius=70.71067812e-6,
        power=100.0,
        rayleigh_range=zr,
    )
    frame = GaussianReferenceFrame.for_beam(beam)
    pos = np.array([3e-5, 1e-5, 2e-4])
    grad = get_gaussian_beam_intensity_gradient(beam, pos, frame)

    h = 1e-9
    numeric = np.zeros(3)
    for i in range(3):
        step = np.zeros(3)
        step[i] = h
        numeric[i] = (
            get_gaussian_beam_intensity(beam, pos + step) - get_gaussian_beam_intensity(beam, pos - step)
        ) / (2 * h)
    np.testing.assert_allclose(grad, numeric, rtol=1e-5)


def test_gradient_vectorized_shape():
    beam = _beam(1e-3)
    pos = np.random.default_rng(0).normal(scale=5e-5, size=(7, 3))
    grad = get_gaussian_beam_intensity_gradient(beam, pos)
    assert grad.shape == (7, 3)
    np.testing.assert_allclose(grad[3], get_gaussian_beam_intensity_gradient(beam, pos[3]))


def test_invalid_beam_raises():
    with pytest.raises(ConfigurationError):
        GaussianBeam(intersection=(0, 0, 0), direction=(0, 0, 1), e_radius=0.0, power=1.0)
    with pytest.raises(ValueError):
        GaussianBeam(intersection=(0, 0, 0), direction=(0, 0, 0), e_radius=1.0, power=1.0)


def test_from_peak_intensity_with_rayleigh_range():
    beam = GaussianBeam.from_peak_intensity((0, 0, 0), (0, 0, 1), peak_intensity=50.0, e_radius=2e-3, rayleigh_range=0.3)
    assert beam.rayleigh_range == 0.3
    assert np.isclose(beam.peak_intensity, 50.0)
    at_zr = get_gaussian_beam_intensity(beam, np.array([0.0, 0.0, 0.3]))
    assert np.isclose(at_zr, 25.0)


def test_from_peak_intensity_rejects_wavelength_and_rayleigh_range():
    with pytest.raises(ConfigurationError):
        GaussianBeam.from_peak_intensity((0, 0, 0), (0, 0, 1), 50.0, 2e-3, wavelength=780e-9, rayleigh_range=0.3)


def test_large_population_matches_closed_form():
    """The compiled kernel agrees with the formula over many atoms, row by row."""
    beam = GaussianBeam(intersection=(0, 0, 0), direction=(0, 1, 0), e_radius=1e-3, power=0.01, rayleigh_range=0.2)
    pos = np.random.default_rng(11).normal(scale=2e-3, size=(20000, 3))
    z = pos[:, 1]
    r2 = pos[:, 0] ** 2 + pos[:, 2] ** 2
    broadening = 1.0 + (z / 0.2) ** 2
    expected = beam.peak_intensity / broadening * np.exp(-r2 / (beam.e_radius ** 2 * broadening))
    np.testing.assert_allclose(get_gaussian_beam_intensity(beam, pos), expected, rtol=1e-10)
