from dataclasses import dataclass

import numpy as np
import pytest
from coldatom_sim.atom import Force, Position
from coldatom_sim.ecs import DispatcherBuilder, Step, System, Timestep, World
from coldatom_sim.errors import ConfigurationError, SchedulingError


@dataclass
class Log:
    entries: list


class Record(System):
    writes_resources = (Log,)

    def __init__(self, tag):
        self.tag = tag

    def run(self, ctx):
        ctx.resource_mut(Log).entries.append(self.tag)


class Push(System):
    """Accumulate a constant into Force."""
    reads = (Position,)
    accumulates = (Force,)

    def __init__(self, value):
        self.value = np.asarray(value, dtype=float)

    def run(self, ctx):
        atoms = ctx.entities_with(Position, Force)
        ctx.accumulate(Force, atoms, np.tile(self.value, (atoms.size, 1)))


class Mover(System):
    reads = (Force,)
    writes = (Position,)

    def run(self, ctx):
        atoms = ctx.entities_with(Position, Force)
        ctx.write(Position, atoms, ctx.read(Position, atoms) + ctx.read(Force, atoms))


def _world():
    world = World()
    world.insert_resource(Timestep(1e-3))
    world.insert_resource(Log([]))
    return world


def test_dependencies_order_execution():
    world = _world()
    builder = DispatcherBuilder()
    builder.with_system(Record("c"), "c", ["b"])
    builder.with_system(Record("a"), "a", [])
    builder.with_system(Record("b"), "b", ["a"])
    dispatcher = builder.build()
    dispatcher.setup(world)
    dispatcher.dispatch(world)
    assert world.resource(Log).entries == ["a", "b", "c"]
    assert dispatcher.stages == [["a"], ["b"], ["c"]]


def test_step_advances_each_tick():
    world = _world()
    dispatcher = DispatcherBuilder().with_system(Record("a"), "a").build()
    dispatcher.setup(world)
    for _ in range(3):
        dispatcher.dispatch(world)
    assert world.resource(Step).n == 3
    assert world.resource(Log).entries == ["a", "a", "a"]


def test_independent_systems_share_a_stage():
    builder = DispatcherBuilder()
    builder.with_system(Push((1, 0, 0)), "push_x", [])
    builder.with_system(Push((0, 1, 0)), "push_y", [])
    builder.with_system(Mover(), "move", ["push_x", "push_y"])
    assert builder.build().stages == [["push_x", "push_y"], ["move"]]


def test_conflicting_writers_are_separated():
    builder = DispatcherBuilder()
    builder.with_system(Push((1, 0, 0)), "push", [])
    builder.with_system(Mover(), "move", [])
    assert builder.build().stages == [["push"], ["move"]]


@pytest.mark.parametrize("workers", [1, 4])
def test_accumulators_sum_partials(workers):
    world = _world()
    atoms = [world.create_entity(Position(), Force()) for _ in range(3)]
    builder = DispatcherBuilder()
    builder.with_system(Push((1, 0, 0)), "push_x", [])
    builder.with_system(Push((0, 2, 0)), "push_y", [])
    builder.with_system(Push((0, 0, 3)), "push_z", [])
    with builder.build(workers=workers) as dispatcher:
        dispatcher.setup(world)
        dispatcher.dispatch(world)
    np.testing.assert_allclose(world.storage(Force).data[atoms], [[1, 2, 3]] * 3)


def test_unknown_dependency_raises():
    builder = DispatcherBuilder().with_system(Record("a"), "a", ["missing"])
    with pytest.raises(ConfigurationError):
        builder.build()


def test_cycle_raises():
    builder = DispatcherBuilder()
    builder.with_system(Record("a"), "a", ["b"])
    builder.with_system(Record("b"), "b", ["a"])
    with pytest.raises(ConfigurationError, match="cycle"):
        builder.build()


def test_duplicate_name_raises():
    builder = DispatcherBuilder().with_system(Record("a"), "a")
    with pytest.raises(ConfigurationError):
        builder.with_system(Record("a"), "a")


def test_missing_resource_raises_at_setup():
    world = World()
    world.insert_resource(Timestep(1e-3))
    dispatcher = DispatcherBuilder().with_system(Record("a"), "a").build()
    with pytest.raises(ConfigurationError, match="Log"):
        dispatcher.setup(world)


def test_missing_timestep_raises_at_setup():
    world = World()
    world.insert_resource(Log([]))
    dispatcher = DispatcherBuilder().with_system(Record("a"), "a").build()
    with pytest.raises(ConfigurationError):
        dispatcher.setup(world)


def test_unregistered_component_raises_at_setup():
    world = _world()
    dispatcher = DispatcherBuilder().with_system(Mover(), "move").build()
    with pytest.raises(ConfigurationError, match="not registered"):
        dispatcher.setup(world)


def test_dispatch_before_setup_raises():
    dispatcher = DispatcherBuilder().with_system(Record("a"), "a").build()
    with pytest.raises(ConfigurationError):
        dispatcher.dispatch(_world())


class Sneaky(System):
    reads = (Position,)

    def run(self, ctx):
        atoms = ctx.entities_with(Position)
        ctx.write(Position, atoms, 0.0)


class ResourceThief(System):
    def run(self, ctx):
        ctx.resource(Log)


def test_undeclared_write_raises_scheduling_error():
    world = _world()
    world.create_entity(Position())
    dispatcher = DispatcherBuilder().with_system(Sneaky(), "sneaky").build()
    dispatcher.setup(world)
    with pytest.raises(SchedulingError):
        dispatcher.dispatch(world)


def test_undeclared_resource_raises_scheduling_error():
    world = _world()
    dispatcher = DispatcherBuilder().with_system(ResourceThief(), "thief").build()
    dispatcher.setup(world)
    with pytest.raises(SchedulingError):
        dispatcher.dispatch(world)


def test_invalid_timestep():
    with pytest.raises(ConfigurationError):
        Timestep(0.0)
