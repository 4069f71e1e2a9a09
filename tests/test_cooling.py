import numpy as np
from coldatom_sim import AtomicTransition, Simulation, SimulationConfig
from coldatom_sim.atom import Atom, Force, Mass, Position, RandKick, Velocity
from coldatom_sim.constants import AMU, BOHRMAG, C, HBAR, PI
from coldatom_sim.laser import (
    CoolingLight,
    GaussianBeam,
    LaserSamples,
    TwoLevelPopulation,
    calculate_excited_fraction,
    calculate_rate_coefficients,
)
from coldatom_sim.magnetic import MagneticFieldSampler

RB87 = AtomicTransition(
    frequency=C / 780.241e-9,
    linewidth=6.065e6,
    saturation_intensity=16.69,
    mup=BOHRMAG,
    mum=-BOHRMAG,
    muz=0.0,
)


def _rows(n=1):
    return np.tile(RB87.to_row(), (n, 1))


def _beam(direction=(1.0, 0.0, 0.0), saturation=1.0):
    return GaussianBeam.from_peak_intensity(
        (0.0, 0.0, 0.0), direction, peak_intensity=saturation * RB87.saturation_intensity, e_radius=1e-2
    )


def test_excited_fraction_limits():
    rates = np.array([0.0, 1e3, 1e6, 1e9, 1e12])
    excited = calculate_excited_fraction(rates, RB87.linewidth)
    assert excited[0] == 0.0
    assert np.all(np.diff(excited) > 0)
    assert np.all((excited >= 0.0) & (excited < 1.0))
    assert excited[-1] < 0.5


def test_excited_fraction_without_decay_or_light_is_zero():
    assert calculate_excited_fraction(0.0, 0.0) == 0.0


def test_resonant_rate_at_rest():
    """On resonance, at rest and with no field the weights sum to one: R = (γ/2)·s."""
    light = CoolingLight.for_transition(RB87, detuning=0.0, polarization=1)
    rate = calculate_rate_coefficients(
        np.array([RB87.saturation_intensity]), np.array([1.0, 0.0, 0.0]), light,
        np.zeros((1, 3)), np.zeros((1, 3)), _rows(),
    )
    assert np.isclose(rate[0], 0.5 * RB87.gamma)


def test_doppler_shift_favours_counter_propagating_atoms():
    light = CoolingLight.for_transition(RB87, detuning=-RB87.linewidth, polarization=1)
    velocity = np.array([[-5.0, 0.0, 0.0], [5.0, 0.0, 0.0]])
    rate = calculate_rate_coefficients(
        np.full(2, RB87.saturation_intensity), np.array([1.0, 0.0, 0.0]), light,
        velocity, np.zeros((2, 3)), _rows(2),
    )
    assert rate[0] > rate[1]


def test_polarization_selects_zeeman_component():
    """In a field along the beam only σ+ (p=+1) or σ- (p=-1) light is absorbed."""
    b = np.array([[0.0, 0.0, 1e-2]])
    direction = np.array([0.0, 0.0, 1.0])
    intensity = np.array([RB87.saturation_intensity])
    detuning = BOHRMAG * 1e-2 / HBAR / (2 * PI)  # Zeeman shift of the σ+ line, in Hz
    plus = CoolingLight.for_transition(RB87, detuning=detuning, polarization=1)
    minus = CoolingLight.for_transition(RB87, detuning=detuning, polarization=-1)
    r_plus = calculate_rate_coefficients(intensity, direction, plus, np.zeros((1, 3)), b, _rows())
    r_minus = calculate_rate_coefficients(intensity, direction, minus, np.zeros((1, 3)), b, _rows())
    assert np.isclose(r_plus[0], 0.5 * RB87.gamma)
    assert r_minus[0] < 1e-3 * r_plus[0]


def test_zero_linewidth_gives_zero_rate():
    rows = _rows()
    rows[:, 1] = 0.0
    light = CoolingLight.for_transition(RB87, detuning=0.0, polarization=1)
    rate = calculate_rate_coefficients(
        np.array([1.0]), np.array([1.0, 0.0, 0.0]), light, np.zeros((1, 3)), np.zeros((1, 3)), rows
    )
    assert rate[0] == 0.0


def _sim(beams):
    sim = Simulation(SimulationConfig(timestep=1e-6, integrator="euler", gravity=None, partition=False, seed=1))
    for beam, light in beams:
        sim.add_beam(beam, light)
    return sim


def test_radiation_force_single_resonant_beam():
    light = CoolingLight.for_transition(RB87, detuning=0.0, polarization=1)
    sim = _sim([(_beam(), light)])
    atom = sim.add_atom((0, 0, 0), (0, 0, 0), mass=87 * AMU, transition=RB87)
    sim.step()

    w = sim.world
    pushing = w.storage(Force).data[atom] - w.storage(RandKick).data[atom]
    # R = πΓ, so ρ_ee = 1/4.
    expected = HBAR * light.wavenumber * RB87.gamma * 0.25
    np.testing.assert_allclose(pushing, [expected, 0.0, 0.0], rtol=1e-9)
    population = w.get(atom, TwoLevelPopulation)
    assert np.isclose(population.excited, 0.25)
    assert np.isclose(population.ground, 0.75)


def test_no_light_gives_no_force():
    sim = _sim([])
    atom = sim.add_atom((0, 0, 0), (1.0, 0, 0), mass=87 * AMU, transition=RB87)
    sim.step()
    np.testing.assert_array_equal(sim.world.storage(Force).data[atom], 0.0)
    assert sim.world.get(atom, TwoLevelPopulation).excited == 0.0
    assert sim.world.resource(LaserSamples).rates.shape == (1, 0)


def test_red_detuned_molasses_damps_motion():
    detuning = -2 * RB87.linewidth
    beams = [
        (_beam((1.0, 0.0, 0.0)), CoolingLight.for_transition(RB87, detuning, 1)),
        (_beam((-1.0, 0.0, 0.0)), CoolingLight.for_transition(RB87, detuning, 1)),
    ]
    sim = _sim(beams)
    moving_right = sim.add_atom((0, 0, 0), (3.0, 0, 0), mass=87 * AMU, transition=RB87)
    moving_left = sim.add_atom((0, 0, 0), (-3.0, 0, 0), mass=87 * AMU, transition=RB87)
    sim.step()

    w = sim.world
    net = w.storage(Force).data - w.storage(RandKick).data
    assert net[moving_right, 0] < 0.0
    assert net[moving_left, 0] > 0.0
    assert np.isclose(net[moving_right, 0], -net[moving_left, 0])


def test_emission_kick_magnitude_without_fluctuations():
    light = CoolingLight.for_transition(RB87, detuning=0.0, polarization=1)
    config = SimulationConfig(
        timestep=1e-6, integrator="euler", gravity=None, partition=False, emission_fluctuations=False, seed=7
    )
    sim = Simulation(config)
    sim.add_beam(_beam(), light)
    atoms = sim.add_atoms(np.zeros((5, 3)), np.zeros((5, 3)), mass=87 * AMU, transition=RB87)
    sim.step()

    kicks = sim.world.storage(RandKick).data[atoms]
    photons = RB87.gamma * 0.25 * config.timestep
    expected = RB87.recoil_momentum * np.sqrt(photons) / config.timestep
    np.testing.assert_allclose(np.linalg.norm(kicks, axis=1), expected, rtol=1e-9)
    # Directions differ between atoms.
    assert not np.allclose(kicks[0], kicks[1])


def test_emission_is_reproducible_with_seed():
    light = CoolingLight.for_transition(RB87, detuning=0.0, polarization=1)

    def run():
        sim = _sim([(_beam(), light)])
        sim.add_atoms(np.zeros((3, 3)), np.zeros((3, 3)), mass=87 * AMU, transition=RB87)
        sim.run(5)
        return sim.snapshot().velocities

    np.testing.assert_array_equal(run(), run())


def test_atoms_without_field_sampler_see_zero_field():
    """Atoms assembled by hand, without a MagneticFieldSampler, still scatter light."""
    light = CoolingLight.for_transition(RB87, detuning=0.0, polarization=1)
    sim = _sim([(_beam(), light)])
    atoms = [
        sim.add_entity(Atom(), Position(), Velocity(), Mass(87 * AMU), Force(), RandKick(), RB87, TwoLevelPopulation())
        for _ in range(100)
    ]
    sim.step()

    w = sim.world
    assert not any(w.has(a, MagneticFieldSampler) for a in atoms)
    pushing = w.storage(Force).data[atoms] - w.storage(RandKick).data[atoms]
    expected = HBAR * light.wavenumber * RB87.gamma * 0.25
    np.testing.assert_allclose(pushing, np.tile([expected, 0.0, 0.0], (100, 1)), rtol=1e-9)
