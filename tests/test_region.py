import numpy as np
import pytest
from coldatom_sim import Cuboid, Simulation, SimulationConfig, Sphere, VolumeType
from coldatom_sim.atom import Position
from coldatom_sim.destructor import ToBeDestroyed
from coldatom_sim.errors import ConfigurationError


def _sim():
    return Simulation(SimulationConfig(timestep=1e-3, integrator="euler", gravity=None, partition=False))


def test_atoms_leaving_inclusive_volume_are_deleted():
    sim = _sim()
    sim.add_entity(Position((0, 0, 0)), Cuboid(half_width=(1.0, 1.0, 1.0)))
    kept = sim.add_atom((0.0, 0.0, 0.0), (0.0, 0.0, 0.0), mass=1.0)
    lost = sim.add_atom((5.0, 0.0, 0.0), (0.0, 0.0, 0.0), mass=1.0)
    sim.step()
    assert sim.world.is_alive(kept)
    assert not sim.world.is_alive(lost)
    assert sim.snapshot().entities.tolist() == [kept]


def test_exclusive_volume_removes_atoms_inside():
    sim = _sim()
    sim.add_entity(Position((0, 0, 0)), Sphere(radius=0.5, vol_type=VolumeType.EXCLUSIVE))
    inside = sim.add_atom((0.1, 0.1, 0.1), (0.0, 0.0, 0.0), mass=1.0)
    outside = sim.add_atom((1.0, 0.0, 0.0), (0.0, 0.0, 0.0), mass=1.0)
    sim.step()
    assert not sim.world.is_alive(inside)
    assert sim.world.is_alive(outside)


def test_union_of_inclusive_volumes():
    sim = _sim()
    sim.add_entity(Position((0, 0, 0)), Sphere(radius=1.0))
    sim.add_entity(Position((10, 0, 0)), Cuboid(half_width=(1.0, 1.0, 1.0)))
    atoms = sim.add_atoms([[0.5, 0, 0], [10.5, 0, 0], [5.0, 0, 0]], np.zeros((3, 3)), mass=1.0)
    sim.step()
    assert [sim.world.is_alive(int(a)) for a in atoms] == [True, True, False]


def test_no_volumes_keeps_everything():
    sim = _sim()
    atom = sim.add_atom((1e3, 0, 0), (0, 0, 0), mass=1.0)
    sim.run(2)
    assert sim.world.is_alive(atom)


def test_marked_entities_are_deleted_the_same_tick():
    sim = _sim()
    atom = sim.add_atom((0, 0, 0), (0, 0, 0), mass=1.0)
    sim.world.insert(atom, ToBeDestroyed())
    sim.step()
    assert not sim.world.is_alive(atom)
    assert sim.atom_count == 0


def test_invalid_shapes_raise():
    with pytest.raises(ConfigurationError):
        Sphere(radius=0.0)
    with pytest.raises(ConfigurationError):
        Cuboid(half_width=(1.0, 0.0, 1.0))
