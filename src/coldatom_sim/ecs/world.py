# MIT License (see LICENSE)
"""
Typed entity/component store.

Entities are plain integers. Each component type owns one storage arena,
and an entity "has" a component exactly when the arena holds a row for it.
There is no class hierarchy of entities: an atom is simply an entity with
Position, Velocity, Mass, Force, ... attached, and a laser beam is an
entity with GaussianBeam and CoolingLight attached.

Two storage kinds are provided:
- DenseStorage: a numpy arena indexed by entity id plus a presence mask.
  Used for per-particle data so that systems operate on (N, 3) arrays.
- MapStorage: a dict of component objects. Used for rare, structured
  components such as field sources and detectors.

Structural edits requested while systems run (insert, remove, delete) are
queued on `World.lazy` and applied by `World.maintain()` between stages.
"""
from __future__ import annotations
import logging
import threading
from dataclasses import fields
from typing import Any, ClassVar, Iterable, Type, TypeVar

import numpy as np

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

Entity = int
T = TypeVar("T")


class Component:
    """Base class for map-stored components (one Python object per entity)."""
    dense: ClassVar[bool] = False


class DenseComponent(Component):
    """
    Base class for components stored in a numpy arena.

    Subclasses are dataclasses with a single data field. `width` is the
    number of columns (0 for pure markers, 1 for scalars, 3 for vectors) and
    `dtype` the arena dtype.
    """
    dense: ClassVar[bool] = True
    width: ClassVar[int] = 3
    dtype: ClassVar[Any] = np.float64

    def to_row(self) -> Any:
        """Return the arena row for this component."""
        if self.width == 0:
            return None
        return getattr(self, fields(self)[0].name)

    @classmethod
    def from_row(cls, row: Any) -> "DenseComponent":
        """Rebuild a component instance from an arena row."""
        if cls.width == 0:
            return cls()
        if cls.width == 1:
            return cls(row.item())
        return cls(np.array(row, dtype=cls.dtype))


class DenseStorage:
    """
    Numpy arena for one DenseComponent type.

    Rows are addressed by entity id. Width-1 components are stored as a 1D
    array, wider ones as (capacity, width).
    """

    def __init__(self, ctype: Type[DenseComponent], capacity: int = 64) -> None:
        self.ctype = ctype
        self.mask = np.zeros(capacity, dtype=bool)
        self.data = np.zeros(self._shape(capacity), dtype=ctype.dtype)

    def _shape(self, capacity: int) -> tuple[int, ...]:
        if self.ctype.width == 1:
            return (capacity,)
        return (capacity, self.ctype.width)

    @property
    def capacity(self) -> int:
        return self.mask.shape[0]

    def ensure_capacity(self, n: int) -> None:
        """Grow the arena (by doubling) so that ids < n are addressable."""
        if n <= self.capacity:
            return
        new_cap = self.capacity
        while new_cap < n:
            new_cap *= 2
        mask = np.zeros(new_cap, dtype=bool)
        mask[: self.capacity] = self.mask
        data = np.zeros(self._shape(new_cap), dtype=self.ctype.dtype)
        data[: self.capacity] = self.data
        self.mask, self.data = mask, data

    def insert(self, entity: Entity, component: DenseComponent) -> None:
        self.ensure_capacity(entity + 1)
        row = component.to_row()
        if row is not None:
            self.data[entity] = row
        self.mask[entity] = True

    def insert_rows(self, entities: np.ndarray, rows: np.ndarray | None) -> None:
        """Vectorized insert: attach the component to many entities at once."""
        entities = np.asarray(entities, dtype=np.int64)
        if entities.size == 0:
            return
        self.ensure_capacity(int(entities.max()) + 1)
        if rows is not None and self.ctype.width > 0:
            self.data[entities] = rows
        self.mask[entities] = True

    def remove(self, entity: Entity) -> None:
        if entity < self.capacity:
            self.mask[entity] = False
            self.data[entity] = 0

    def contains(self, entity: Entity) -> bool:
        return entity < self.capacity and bool(self.mask[entity])

    def get(self, entity: Entity) -> DenseComponent | None:
        if not self.contains(entity):
            return None
        return self.ctype.from_row(self.data[entity])

    def indices(self) -> np.ndarray:
        return np.flatnonzero(self.mask)

    def presence(self, n: int) -> np.ndarray:
        """Presence mask truncated or padded to length n."""
        out = np.zeros(n, dtype=bool)
        m = min(n, self.capacity)
        out[:m] = self.mask[:m]
        return out

    def __len__(self) -> int:
        return int(np.count_nonzero(self.mask))


class MapStorage:
    """Dict-backed storage for sparse, structured components."""

    def __init__(self, ctype: Type[Component]) -> None:
        self.ctype = ctype
        self.items: dict[Entity, Component] = {}

    def insert(self, entity: Entity, component: Component) -> None:
        self.items[entity] = component

    def remove(self, entity: Entity) -> None:
        self.items.pop(entity, None)

    def contains(self, entity: Entity) -> bool:
        return entity in self.items

    def get(self, entity: Entity) -> Component | None:
        return self.items.get(entity)

    def indices(self) -> np.ndarray:
        return np.array(sorted(self.items), dtype=np.int64)

    def presence(self, n: int) -> np.ndarray:
        out = np.zeros(n, dtype=bool)
        keys = [e for e in self.items if e < n]
        out[keys] = True
        return out

    def __len__(self) -> int:
        return len(self.items)


class LazyUpdate:
    """
    Command queue for structural edits.

    Systems running inside a stage must not add or remove components while
    other systems may be reading the arenas. Instead they queue edits here;
    the dispatcher applies them atomically after the stage completes.
    """

    def __init__(self) -> None:
        self._commands: list[tuple] = []
        self._lock = threading.Lock()

    def insert(self, entity: Entity, component: Component) -> None:
        with self._lock:
            self._commands.append(("insert", entity, component))

    def insert_rows(self, ctype: Type[DenseComponent], entities: np.ndarray, rows: np.ndarray | None) -> None:
        with self._lock:
            self._commands.append(("insert_rows", ctype, np.array(entities, dtype=np.int64),
                                   None if rows is None else np.array(rows)))

    def remove(self, entity: Entity, ctype: Type[Component]) -> None:
        with self._lock:
            self._commands.append(("remove", entity, ctype))

    def delete(self, entity: Entity) -> None:
        with self._lock:
            self._commands.append(("delete", entity))

    def __len__(self) -> int:
        return len(self._commands)

    def drain(self) -> list[tuple]:
        with self._lock:
            commands, self._commands = self._commands, []
        return commands


class World:
    """
    Container for entities, component storages and global resources.

    Example:
        world = World()
        atom = world.create_entity(Position((0, 0, 0)), Velocity((1, 0, 0)), Mass(1e-25))
        positions = world.storage(Position).data[world.entities_with(Position)]
    """

    def __init__(self) -> None:
        self._storages: dict[type, DenseStorage | MapStorage] = {}
        self._resources: dict[type, Any] = {}
        self._alive = np.zeros(64, dtype=bool)
        self._next_id = 0
        self.lazy = LazyUpdate()

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    def register(self, ctype: Type[Component]) -> None:
        """Create the storage for a component type (idempotent)."""
        if ctype in self._storages:
            return
        if not (isinstance(ctype, type) and issubclass(ctype, Component)):
            raise TypeError(f"{ctype!r} is not a Component type")
        if ctype.dense:
            storage = DenseStorage(ctype, capacity=max(64, self._alive.shape[0]))
        else:
            storage = MapStorage(ctype)
        self._storages[ctype] = storage

    def is_registered(self, ctype: type) -> bool:
        return ctype in self._storages

    def storage(self, ctype: Type[Component]) -> DenseStorage | MapStorage:
        try:
            return self._storages[ctype]
        except KeyError:
            raise ConfigurationError(f"Component {ctype.__name__} is not registered") from None

    def create_entity(self, *components: Component) -> Entity:
        """Allocate a new entity id and attach the given components."""
        entity = self._next_id
        self._next_id += 1
        if entity >= self._alive.shape[0]:
            alive = np.zeros(2 * self._alive.shape[0], dtype=bool)
            alive[: self._alive.shape[0]] = self._alive
            self._alive = alive
        self._alive[entity] = True
        for c in components:
            self.insert(entity, c)
        return entity

    def create_entities(self, n: int) -> np.ndarray:
        """Allocate n consecutive entity ids with no components attached."""
        start = self._next_id
        ids = np.arange(start, start + n, dtype=np.int64)
        self._next_id += n
        if self._next_id > self._alive.shape[0]:
            cap = self._alive.shape[0]
            while cap < self._next_id:
                cap *= 2
            alive = np.zeros(cap, dtype=bool)
            alive[: self._alive.shape[0]] = self._alive
            self._alive = alive
        self._alive[start:self._next_id] = True
        return ids

    def is_alive(self, entity: Entity) -> bool:
        return 0 <= entity < self._next_id and bool(self._alive[entity])

    def insert(self, entity: Entity, component: Component) -> None:
        if not self.is_alive(entity):
            raise ValueError(f"Entity {entity} does not exist")
        ctype = type(component)
        self.register(ctype)
        self._storages[ctype].insert(entity, component)

    def insert_rows(self, ctype: Type[DenseComponent], entities: np.ndarray, rows: np.ndarray | None = None) -> None:
        """Attach a dense component to many entities from an array of rows."""
        self.register(ctype)
        self._storages[ctype].insert_rows(entities, rows)

    def remove(self, entity: Entity, ctype: Type[Component]) -> None:
        if ctype in self._storages:
            self._storages[ctype].remove(entity)

    def get(self, entity: Entity, ctype: Type[T]) -> T | None:
        if ctype not in self._storages:
            return None
        return self._storages[ctype].get(entity)

    def has(self, entity: Entity, ctype: Type[Component]) -> bool:
        return ctype in self._storages and self._storages[ctype].contains(entity)

    def delete_entity(self, entity: Entity) -> None:
        """Remove every component of an entity and retire its id."""
        if not self.is_alive(entity):
            return
        for storage in self._storages.values():
            storage.remove(entity)
        self._alive[entity] = False

    def entities_with(self, *ctypes: Type[Component], without: Iterable[Type[Component]] = ()) -> np.ndarray:
        """
        Sorted ids of live entities that carry every type in `ctypes` and
        none of the types in `without`.
        """
        n = self._next_id
        mask = self._alive[:n].copy()
        for ctype in ctypes:
            if ctype not in self._storages:
                return np.zeros(0, dtype=np.int64)
            mask &= self._storages[ctype].presence(n)
        for ctype in without:
            if ctype in self._storages:
                mask &= ~self._storages[ctype].presence(n)
        return np.flatnonzero(mask).astype(np.int64)

    def components(self, ctype: Type[T]) -> list[tuple[Entity, T]]:
        """(entity, component) pairs of a map-stored type, ordered by entity id."""
        storage = self.storage(ctype)
        if isinstance(storage, DenseStorage):
            return [(int(e), storage.get(int(e))) for e in storage.indices()]
        return [(e, storage.items[e]) for e in sorted(storage.items)]

    @property
    def entity_count(self) -> int:
        return int(np.count_nonzero(self._alive[: self._next_id]))

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    def insert_resource(self, resource: Any) -> None:
        self._resources[type(resource)] = resource

    def resource(self, rtype: Type[T]) -> T:
        try:
            return self._resources[rtype]
        except KeyError:
            raise ConfigurationError(f"Resource {rtype.__name__} is missing") from None

    def has_resource(self, rtype: type) -> bool:
        return rtype in self._resources

    def remove_resource(self, rtype: type) -> None:
        self._resources.pop(rtype, None)

    # ------------------------------------------------------------------
    # Command queue
    # ------------------------------------------------------------------

    def maintain(self) -> int:
        """Apply all queued structural edits in submission order."""
        commands = self.lazy.drain()
        for cmd in commands:
            kind = cmd[0]
            if kind == "insert":
                _, entity, component = cmd
                if self.is_alive(entity):
                    self.insert(entity, component)
            elif kind == "insert_rows":
                _, ctype, entities, rows = cmd
                keep = self._alive[entities]
                self.insert_rows(ctype, entities[keep], None if rows is None else rows[keep])
            elif kind == "remove":
                _, entity, ctype = cmd
                self.remove(entity, ctype)
            elif kind == "delete":
                self.delete_entity(cmd[1])
        if commands:
            logger.debug("Applied %d queued structural edits", len(commands))
        return len(commands)
