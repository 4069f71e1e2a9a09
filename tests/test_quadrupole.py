import numpy as np
from coldatom_sim.atom import Atom, Position
from coldatom_sim.ecs import DispatcherBuilder, Timestep, World
from coldatom_sim.magnetic import (
    MagneticFieldMagnitude,
    MagneticFieldSampler,
    PrecalculatedMagneticFieldGrid,
    QuadrupoleField3D,
    add_magnetic_systems,
    calculate_field,
)


def test_quadrupole_field_value():
    """Field at (1,1,1) of a unit-gradient z quadrupole centred at (0,1,0)."""
    field = calculate_field(np.array([1.0, 1.0, 1.0]), np.array([0.0, 1.0, 0.0]), 1.0, np.array([0.0, 0.0, 1.0]))
    np.testing.assert_allclose(field, [1.0, 0.0, -2.0])


def test_quadrupole_direction_is_normalized():
    quad = QuadrupoleField3D(gradient=1.0, direction=(0.0, 0.0, 5.0))
    np.testing.assert_allclose(quad.direction, [0.0, 0.0, 1.0])


def test_gauss_per_cm_conversion():
    quad = QuadrupoleField3D.gauss_per_cm(15.0, (0, 0, 1))
    assert np.isclose(quad.gradient, 0.15)


def test_field_is_zero_at_centre():
    field = calculate_field(np.zeros((1, 3)), np.zeros(3), 2.0, np.array([1.0, 0.0, 0.0]))
    np.testing.assert_allclose(field, 0.0)


def _sampled_field(sources, atom_positions):
    world = World()
    world.insert_resource(Timestep(1e-6))
    for centre, quad in sources:
        world.create_entity(Position(centre), quad)
    atoms = [
        world.create_entity(Atom(), Position(p), MagneticFieldSampler(), MagneticFieldMagnitude())
        for p in atom_positions
    ]
    world.register(QuadrupoleField3D)
    world.register(PrecalculatedMagneticFieldGrid)
    dispatcher = add_magnetic_systems(DispatcherBuilder()).build()
    dispatcher.setup(world)
    dispatcher.dispatch(world)
    return (
        world.storage(MagneticFieldSampler).data[atoms],
        world.storage(MagneticFieldMagnitude).data[atoms],
    )


def test_fields_of_several_sources_sum():
    a = ((0.0, 0.0, 0.0), QuadrupoleField3D(1.0, (0, 0, 1)))
    b = ((0.0, 1.0, 0.0), QuadrupoleField3D(0.5, (1, 0, 0)))
    pos = (0.3, -0.2, 0.7)
    field, magnitude = _sampled_field([a, b], [pos])
    expected = (
        calculate_field(np.array(pos), np.zeros(3), 1.0, np.array([0.0, 0.0, 1.0]))
        + calculate_field(np.array(pos), np.array([0.0, 1.0, 0.0]), 0.5, np.array([1.0, 0.0, 0.0]))
    )
    np.testing.assert_allclose(field[0], expected)
    np.testing.assert_allclose(magnitude[0], np.linalg.norm(expected))


def test_source_order_does_not_change_field():
    rng = np.random.default_rng(3)
    sources = [
        (tuple(rng.normal(size=3)), QuadrupoleField3D(float(rng.uniform(0.1, 2.0)), tuple(rng.normal(size=3))))
        for _ in range(5)
    ]
    positions = [tuple(p) for p in rng.normal(size=(20, 3))]
    forward, _ = _sampled_field(sources, positions)
    backward, _ = _sampled_field(sources[::-1], positions)
    np.testing.assert_allclose(forward, backward, rtol=1e-12, atol=1e-15)


def test_large_population_matches_closed_form():
    """Bx = g·x, By = g·y, Bz = -2g·z about the node, for every row of a large cloud."""
    pos = np.random.default_rng(5).normal(scale=1e-2, size=(50000, 3))
    centre = np.array([1e-3, -2e-3, 5e-4])
    field = calculate_field(pos, centre, 0.15, np.array([0.0, 0.0, 1.0]))
    delta = pos - centre
    np.testing.assert_allclose(field, 0.15 * delta * np.array([1.0, 1.0, -2.0]), rtol=1e-12, atol=1e-18)
