# MIT License (see LICENSE)
"""
Dependency-ordered system scheduler.

Systems are registered by name together with the names of the systems they
depend on. `DispatcherBuilder.build()` resolves this DAG once into an
ordered list of stages:

    stage 0:  clear_forces, clear_magnetic_field
    stage 1:  magnetics_quadrupole, magnetics_grid
    stage 2:  magnetics_magnitude
    ...

A system lands in the first stage after all of its dependencies. Two
systems whose access sets conflict (one writes what the other reads or
writes) are never placed in the same stage; the later-registered one is
pushed down. With more than one worker, systems in one stage run
concurrently on a thread pool. Per-atom parallelism lives inside the
systems themselves, in numba kernels.

Shared accumulators (Force, MagneticFieldSampler, ...) are declared as
`accumulates`. Each accumulating system writes into a private zeroed
partial-sum buffer; the dispatcher adds every partial into the arena at
stage end in registration order. Accumulation is therefore associative and
never last-write-wins.

After each stage the world's lazy command queue is applied. After the last
stage the Step resource is advanced.
"""
from __future__ import annotations
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, ClassVar, Iterable, Type, TypeVar

import numpy as np

from ..errors import ConfigurationError, SchedulingError
from ..profiler import Profiler
from .world import Component, DenseStorage, Entity, LazyUpdate, World

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Timestep:
    """Fixed integration timestep in seconds."""
    delta: float = 1e-6

    def __post_init__(self) -> None:
        if not self.delta > 0:
            raise ConfigurationError(f"Timestep must be positive, got {self.delta}")


@dataclass(frozen=True)
class Step:
    """Number of completed ticks."""
    n: int = 0


class System:
    """
    A per-tick function over declared components and resources.

    Subclasses declare their access sets as class attributes and implement
    `run`. The declarations drive both stage placement and the checks made
    by SystemContext.
    """
    reads: ClassVar[tuple[type, ...]] = ()
    writes: ClassVar[tuple[type, ...]] = ()
    accumulates: ClassVar[tuple[type, ...]] = ()
    reads_resources: ClassVar[tuple[type, ...]] = ()
    writes_resources: ClassVar[tuple[type, ...]] = ()

    def setup(self, world: World) -> None:
        """Hook called once by Dispatcher.setup(), after validation."""

    def run(self, ctx: "SystemContext") -> None:
        raise NotImplementedError

    @property
    def components(self) -> set[type]:
        return set(self.reads) | set(self.writes) | set(self.accumulates)



class SystemContext:
    """
    The view of the world handed to one system for one tick.

    Only the components and resources the system declared are reachable.
    Accumulated contributions are kept in private buffers until the
    dispatcher merges them.
    """

    def __init__(self, system: System, world: World) -> None:
        self._system = system
        self._world = world
        self._partials: dict[type, tuple[np.ndarray, np.ndarray]] = {}

    @property
    def lazy(self) -> LazyUpdate:
        return self._world.lazy

    @property
    def dt(self) -> float:
        return self._world.resource(Timestep).delta

    @property
    def step(self) -> int:
        return self._world.resource(Step).n

    def _check(self, ctype: type, allowed: Iterable[type], verb: str) -> None:
        if ctype not in allowed:
            raise SchedulingError(
                f"{type(self._system).__name__} cannot {verb} {ctype.__name__}: not declared"
            )

    def entities_with(self, *ctypes: Type[Component], without: Iterable[Type[Component]] = ()) -> np.ndarray:
        declared = self._system.components
        for ctype in ctypes:
            self._check(ctype, declared, "join on")
        without = tuple(without)
        for ctype in without:
            self._check(ctype, declared, "join on")
        return self._world.entities_with(*ctypes, without=without)

    def read(self, ctype: Type[Component], entities: np.ndarray) -> np.ndarray:
        """Copy of the arena rows of `ctype` for the given entities."""
        self._check(ctype, self._system.components, "read")
        return self._dense(ctype).data[entities].copy()

    def write(self, ctype: Type[Component], entities: np.ndarray, values: np.ndarray) -> None:
        """Overwrite arena rows; requires exclusive write access."""
        self._check(ctype, self._system.writes, "write")
        self._dense(ctype).data[entities] = values

    def accumulate(self, ctype: Type[Component], entities: np.ndarray, values: np.ndarray) -> None:
        """
        Add a contribution into this system's partial sum for `ctype`.

        Contributions for entities that do not carry `ctype` are dropped.
        """
        self._check(ctype, self._system.accumulates, "accumulate into")
        storage = self._dense(ctype)
        entities = np.asarray(entities, dtype=np.int64)
        values = np.broadcast_to(values, entities.shape + storage.data.shape[1:])
        inside = entities < storage.capacity
        entities, values = entities[inside], values[inside]
        if ctype not in self._partials:
            self._partials[ctype] = (np.zeros_like(storage.data), np.zeros(storage.capacity, dtype=bool))
        buf, touched = self._partials[ctype]
        buf[entities] += values
        touched[entities] = True

    def components(self, ctype: Type[T]) -> list[tuple[Entity, T]]:
        """All (entity, component) pairs of a declared map-stored type."""
        self._check(ctype, self._system.components, "read")
        return self._world.components(ctype)

    def get(self, entity: Entity, ctype: Type[T]) -> T | None:
        self._check(ctype, self._system.components, "read")
        return self._world.get(entity, ctype)

    def resource(self, rtype: Type[T]) -> T:
        if rtype not in (Timestep, Step):
            self._check(rtype, set(self._system.reads_resources) | set(self._system.writes_resources), "read")
        return self._world.resource(rtype)

    def resource_mut(self, rtype: Type[T]) -> T:
        self._check(rtype, self._system.writes_resources, "write")
        return self._world.resource(rtype)

    def replace_resource(self, resource: Any) -> None:
        self._check(type(resource), self._system.writes_resources, "write")
        self._world.insert_resource(resource)

    def _dense(self, ctype: type) -> DenseStorage:
        storage = self._world.storage(ctype)
        if not isinstance(storage, DenseStorage):
            raise TypeError(f"{ctype.__name__} is not a dense component")
        return storage

    def merge_into(self, world: World) -> None:
        """Add the accumulated partial sums into the world arenas."""
        for ctype, (buf, touched) in self._partials.items():
            storage = world.storage(ctype)
            n = min(touched.shape[0], storage.capacity)
            sel = np.flatnonzero(touched[:n] & storage.mask[:n])
            storage.data[sel] += buf[sel]
        self._partials.clear()


@dataclass
class _Entry:
    name: str
    system: System
    deps: tuple[str, ...]


def _conflicts(a: System, b: System) -> bool:
    """True when a and b may not share a stage."""
    if set(a.writes) & b.components or set(b.writes) & a.components:
        return True
    res_a = set(a.reads_resources) | set(a.writes_resources)
    res_b = set(b.reads_resources) | set(b.writes_resources)
    return bool(set(a.writes_resources) & res_b or set(b.writes_resources) & res_a)


class DispatcherBuilder:
    """
    Collects systems and their dependencies, then resolves them into stages.

    Example:
        builder = DispatcherBuilder()
        builder.with_system(ClearForceSystem(), "clear_forces", [])
        builder.with_system(ApplyGravitationalForceSystem(), "gravity", ["clear_forces"])
        builder.with_system(EulerIntegrationSystem(), "integrate", ["gravity"])
        dispatcher = builder.build()
    """

    def __init__(self) -> None:
        self._entries: list[_Entry] = []

    def with_system(self, system: System, name: str, deps: Iterable[str] = ()) -> "DispatcherBuilder":
        if any(e.name == name for e in self._entries):
            raise ConfigurationError(f"Duplicate system name '{name}'")
        self._entries.append(_Entry(name=name, system=system, deps=tuple(deps)))
        return self

    def has_system(self, name: str) -> bool:
        return any(e.name == name for e in self._entries)

    @property
    def names(self) -> list[str]:
        return [e.name for e in self._entries]

    def _topological_order(self) -> list[_Entry]:
        by_name = {e.name: e for e in self._entries}
        for e in self._entries:
            for d in e.deps:
                if d not in by_name:
                    raise ConfigurationError(f"System '{e.name}' depends on unknown system '{d}'")

        # Kahn's algorithm; ties broken by registration order.
        indegree = {e.name: len(set(e.deps)) for e in self._entries}
        dependents: dict[str, list[str]] = {e.name: [] for e in self._entries}
        for e in self._entries:
            for d in set(e.deps):
                dependents[d].append(e.name)

        rank = {e.name: i for i, e in enumerate(self._entries)}
        ready = sorted((n for n, k in indegree.items() if k == 0), key=rank.__getitem__)
        order: list[_Entry] = []
        while ready:
            name = ready.pop(0)
            order.append(by_name[name])
            for child in dependents[name]:
                indegree[child] -= 1
                if indegree[child] == 0:
                    ready.append(child)
            ready.sort(key=rank.__getitem__)

        if len(order) != len(self._entries):
            stuck = sorted(n for n, k in indegree.items() if k > 0)
            raise ConfigurationError(f"Dependency cycle among systems: {stuck}")
        return order

    def build(self, workers: int = 1, profiler: Profiler | None = None) -> "Dispatcher":
        stage_of: dict[str, int] = {}
        stages: list[list[_Entry]] = []
        for entry in self._topological_order():
            s = max((stage_of[d] + 1 for d in entry.deps), default=0)
            while s < len(stages) and any(_conflicts(entry.system, o.system) for o in stages[s]):
                s += 1
            if s == len(stages):
                stages.append([])
            stages[s].append(entry)
            stage_of[entry.name] = s

        logger.info(
            "Dispatcher built: %d systems in %d stages", len(self._entries), len(stages)
        )
        for i, stage in enumerate(stages):
            logger.debug("stage %d: %s", i, ", ".join(e.name for e in stage))
        return Dispatcher(stages, workers=workers, profiler=profiler)


class Dispatcher:
    """
    Runs every registered system exactly once per tick, stage by stage.

    Call `setup(world)` once before the first `dispatch(world)`; setup
    validates that every declared component is registered and every
    declared resource is present, so configuration errors surface before
    the run starts.
    """

    def __init__(self, stages: list[list[_Entry]], workers: int = 1, profiler: Profiler | None = None) -> None:
        self._stages = stages
        if workers < 1:
            raise ConfigurationError(f"workers must be >= 1, got {workers}")
        self.workers = int(workers)
        self.profiler = profiler
        self._stage_executor: ThreadPoolExecutor | None = None
        self._is_setup = False

    @property
    def stages(self) -> list[list[str]]:
        """System names per stage, in execution order."""
        return [[e.name for e in stage] for stage in self._stages]

    def systems(self) -> Iterable[tuple[str, System]]:
        for stage in self._stages:
            for e in stage:
                yield e.name, e.system

    def setup(self, world: World) -> None:
        if not world.has_resource(Timestep):
            raise ConfigurationError("Resource Timestep is missing")
        if not world.has_resource(Step):
            world.insert_resource(Step(0))

        for name, system in self.systems():
            for ctype in system.components:
                if not world.is_registered(ctype):
                    raise ConfigurationError(
                        f"System '{name}' needs component {ctype.__name__}, which is not registered"
                    )
            for ctype in system.accumulates:
                if not isinstance(world.storage(ctype), DenseStorage):
                    raise ConfigurationError(f"Accumulate target {ctype.__name__} must be a dense component")
            for rtype in set(system.reads_resources) | set(system.writes_resources):
                if not world.has_resource(rtype):
                    raise ConfigurationError(
                        f"System '{name}' needs resource {rtype.__name__}, which is missing"
                    )
        for _, system in self.systems():
            system.setup(world)
        self._is_setup = True

    def _run_one(self, entry: _Entry, world: World) -> SystemContext:
        ctx = SystemContext(entry.system, world)
        if self.profiler is not None:
            with self.profiler.section(entry.name):
                entry.system.run(ctx)
        else:
            entry.system.run(ctx)
        return ctx

    def dispatch(self, world: World) -> None:
        """Advance the world by one tick."""
        if not self._is_setup:
            raise ConfigurationError("Dispatcher.setup(world) must be called before dispatch")

        for stage in self._stages:
            if len(stage) > 1 and self.workers > 1:
                if self._stage_executor is None:
                    self._stage_executor = ThreadPoolExecutor(
                        max_workers=max(len(s) for s in self._stages), thread_name_prefix="coldatom-stage"
                    )
                futures = [self._stage_executor.submit(self._run_one, e, world) for e in stage]
                # result() re-raises any exception from the system unchanged.
                contexts = [f.result() for f in futures]
            else:
                contexts = [self._run_one(e, world) for e in stage]

            for ctx in contexts:
                ctx.merge_into(world)
            world.maintain()

        step = world.resource(Step)
        world.insert_resource(Step(step.n + 1))

    def close(self) -> None:
        """Shut down the stage threads."""
        if self._stage_executor is not None:
            self._stage_executor.shutdown(wait=True)
            self._stage_executor = None

    def __enter__(self) -> "Dispatcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
