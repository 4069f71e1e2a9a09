# MIT License (see LICENSE)
"""
Entity/component store and system scheduler.

This subpackage provides:
    - World: entities, component arenas, resources and the lazy command queue.
    - DispatcherBuilder / Dispatcher: dependency-ordered, staged execution
      of systems with partial-sum accumulation.

Typical usage:
    from coldatom_sim.ecs import World, DispatcherBuilder, Timestep

    world = World()
    world.insert_resource(Timestep(1e-5))
    dispatcher = builder.build()
    dispatcher.setup(world)
    dispatcher.dispatch(world)
"""
from .world import Component, DenseComponent, DenseStorage, MapStorage, LazyUpdate, World, Entity
from .dispatcher import (
    Dispatcher,
    DispatcherBuilder,
    Step,
    System,
    SystemContext,
    Timestep,
)

__all__ = [
    # Store
    "World",
    "Entity",
    "Component",
    "DenseComponent",
    "DenseStorage",
    "MapStorage",
    "LazyUpdate",
    # Scheduling
    "System",
    "SystemContext",
    "Dispatcher",
    "DispatcherBuilder",
    # Resources
    "Timestep",
    "Step",
]
