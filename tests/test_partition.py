import numpy as np
import pytest
from coldatom_sim import Detector, Simulation, SimulationConfig
from coldatom_sim.constants import SENTINEL_ID
from coldatom_sim.errors import ConfigurationError
from coldatom_sim.partition import (
    BoxID,
    PartitionParameters,
    VelocityHashmap,
    build_cells,
    pos_to_id,
)


@pytest.mark.parametrize(
    "pos, expected",
    [
        ((0.0, 0.0, 0.0), 555),
        ((1.0, 0.0, 0.0), 555),
        ((2.0, 0.0, 0.0), 556),
        ((9.9, 0.0, 0.0), 559),
        ((-9.9, 0.0, 0.0), 550),
        ((10.1, 0.0, 0.0), SENTINEL_ID),
        ((-9.9, -9.9, -9.9), 0),
        ((0.0, 0.0, 10.0), SENTINEL_ID),
        ((0.0, -10.5, 0.0), SENTINEL_ID),
    ],
)
def test_pos_to_id(pos, expected):
    assert int(pos_to_id(np.array(pos), 10, 2.0)) == expected


def test_pos_to_id_vectorized_matches_single():
    rng = np.random.default_rng(0)
    pos = rng.uniform(-12, 12, size=(200, 3))
    ids = pos_to_id(pos, 10, 2.0)
    assert ids.dtype == np.int64
    for p, i in zip(pos, ids):
        assert int(pos_to_id(p, 10, 2.0)) == i


def test_zero_box_number_raises():
    with pytest.raises(ConfigurationError):
        pos_to_id(np.zeros(3), 0, 1.0)


def test_invalid_parameters_raise():
    with pytest.raises(ConfigurationError):
        PartitionParameters(box_number=0)
    with pytest.raises(ConfigurationError):
        PartitionParameters(box_width=-1.0)


def test_build_cells_skips_sentinel():
    ids = np.array([5, SENTINEL_ID, 5, 7])
    vel = np.arange(12, dtype=float).reshape(4, 3)
    cells = build_cells(ids, vel, 2.0)
    assert sorted(cells) == [5, 7]
    assert cells[5].particle_number == 2
    np.testing.assert_array_equal(cells[5].velocities, vel[[0, 2]])
    assert cells[7].volume == 8.0
    assert cells[7].density == 1.0 / 8.0


def _sim(**kwargs):
    config = SimulationConfig(timestep=1e-6, integrator="euler", gravity=None, box_number=10, box_width=2.0, **kwargs)
    return Simulation(config)


def test_partition_system_assigns_ids_and_cells():
    sim = _sim()
    inside = sim.add_atoms([[0.0, 0.0, 0.0], [0.5, 0.5, 0.5], [2.5, 0.0, 0.0]], np.zeros((3, 3)), mass=1.0)
    outside = sim.add_atom((50.0, 0.0, 0.0), (0, 0, 0), mass=1.0)
    sim.step()

    hashmap = sim.world.resource(VelocityHashmap)
    assert sorted(hashmap.cells) == [555, 556]
    assert hashmap.cells[555].particle_number == 2
    assert hashmap.particle_number == 3
    # BoxID is attached through the command queue on the first tick.
    assert sim.world.get(outside, BoxID).id == SENTINEL_ID
    assert sim.world.get(int(inside[2]), BoxID).id == 556


def test_atom_outside_extent_is_never_counted():
    sim = _sim()
    sim.add_atom((100.0, 100.0, 100.0), (1.0, 0, 0), mass=1.0)
    sim.run(3)
    assert sim.world.resource(VelocityHashmap).cells == {}


def test_rescale_targets_density():
    sim = _sim(rescale_interval=1, target_density=1.0)
    rng = np.random.default_rng(1)
    pos = rng.uniform(-1.0, 1.0, size=(64, 3))
    sim.add_atoms(pos, np.zeros((64, 3)), mass=1.0)
    sim.step()

    occupancy = 64 / np.unique(pos_to_id(pos, 10, 2.0)).size
    width = 2.0 * (1.0 / occupancy) ** (1.0 / 3.0)
    extent = (pos.max(axis=0) - pos.min(axis=0)).max()
    params = sim.world.resource(PartitionParameters)
    assert np.isclose(params.box_width, width)
    assert params.box_number == int(np.ceil(extent / params.box_width))


def test_rescale_skipped_without_occupied_cells():
    sim = _sim(rescale_interval=1)
    sim.add_atom((100.0, 0, 0), (0, 0, 0), mass=1.0)
    sim.step()
    assert sim.world.resource(PartitionParameters) == PartitionParameters(box_number=10, box_width=2.0)


def test_rescale_after_detector_absorbs_every_atom():
    """Cells built this tick are occupied, but every atom has just been absorbed."""
    sim = _sim(rescale_interval=1)
    sim.add_entity(Detector(centre=(0, 0, 0), range=(5.0, 5.0, 5.0)))
    sim.add_atoms(np.zeros((3, 3)), np.zeros((3, 3)), mass=1.0)
    sim.step()
    assert sim.detector_output.count == 3
    assert sim.atom_count == 0
    assert sim.world.resource(PartitionParameters) == PartitionParameters(box_number=10, box_width=2.0)
    sim.step()
