# MIT License (see LICENSE)
"""
The simulation facade and its configuration.

Simulation owns a World and a Dispatcher wired with the standard tick:

    1. Reset accumulators (Force, RandKick, MagneticFieldSampler).
    2. Sample magnetic sources, then the field magnitude.
    3. Gravity, laser intensities, rate coefficients, populations,
       radiation pressure, emission kicks, dipole force.
    4. Sum RandKick into Force.
    5. Integrate (symplectic Euler or velocity Verlet).
    6. Spatial partition, detectors, simulation volumes, destruction.

Structure:
    - User creates a Simulation from a SimulationConfig.
    - User adds field sources, beams and atoms.
    - User calls sim.step() or sim.run(n) and inspects sim.snapshot().
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Callable

import numpy as np

from .atom import Atom, AtomicTransition, Force, Mass, Position, RandKick, Velocity
from .constants import G_STANDARD
from .core.forces import ApplyGravitationalForceSystem, ClearForceSystem, SumRandKickSystem
from .core.integrators import (
    EulerIntegrationSystem,
    VelocityVerletIntegratePositionSystem,
    VelocityVerletIntegrateVelocitySystem,
)
from .destructor import DeleteToBeDestroyedEntitiesSystem
from .detector import DetectingAtomSystem, DetectorOutput
from .ecs.dispatcher import Dispatcher, DispatcherBuilder, Step, Timestep
from .ecs.world import Component, Entity, World
from .errors import ConfigurationError
from .laser import (
    LASER_FORCE_SYSTEMS,
    CircularMask,
    CoolingLight,
    DipoleLight,
    GaussianBeam,
    GaussianReferenceFrame,
    LaserSamples,
    Polarizability,
    RandomSource,
    TwoLevelPopulation,
    add_laser_systems,
)
from .magnetic import MagneticFieldMagnitude, MagneticFieldSampler, add_magnetic_systems
from .partition import (
    BuildSpatialPartitionSystem,
    PartitionParameters,
    RescalePartitionCellSystem,
    VelocityHashmap,
)
from .profiler import Profiler
from .sim_region import RegionSystem
from .util import f64, setup_logging

logger = logging.getLogger(__name__)

INTEGRATORS = ("euler", "verlet")


@dataclass
class SimulationConfig:
    """
    Global simulation parameters.

    Attributes:
        timestep: Integration timestep in seconds.
        integrator: "euler" (symplectic Euler) or "verlet" (velocity Verlet).
        gravity: Gravitational acceleration in m/s², or None to disable it.
        box_number: Partition cells per axis.
        box_width: Partition cell edge in m.
        target_density: Desired atoms per occupied partition cell.
        rescale_interval: Rescale the partition every this many ticks; 0 disables.
        partition: Build the spatial partition every tick.
        emission_fluctuations: Poisson-distributed photon numbers for emission kicks.
        workers: Threads running the systems of one stage concurrently. Per-atom
                 kernels are parallelised by numba independently of this;
                 more than one worker needs a thread-safe numba threading
                 layer (tbb or omp).
        seed: Seed of the shared random generator.
        log_level: Configure the package logger at this level; None leaves logging alone.
        log_file: Optional rotating log file, used with log_level.
    """
    timestep: float = 1e-6
    integrator: str = "verlet"
    gravity: tuple[float, float, float] | None = (0.0, 0.0, -G_STANDARD)
    box_number: int = 100
    box_width: float = 1e-3
    target_density: float = 30.0
    rescale_interval: int = 0
    partition: bool = True
    emission_fluctuations: bool = True
    workers: int = 1
    seed: int | None = None
    log_level: str | None = None
    log_file: str | None = None

    def __post_init__(self) -> None:
        if self.integrator not in INTEGRATORS:
            raise ConfigurationError(
                f"Unknown integrator '{self.integrator}', expected one of {INTEGRATORS}"
            )
        if not self.timestep > 0:
            raise ConfigurationError(f"Timestep must be positive, got {self.timestep}")
        if self.workers < 1:
            raise ConfigurationError(f"workers must be >= 1, got {self.workers}")
        if self.rescale_interval < 0:
            raise ConfigurationError(f"rescale_interval must be >= 0, got {self.rescale_interval}")
        if self.gravity is not None:
            self.gravity = tuple(float(g) for g in self.gravity)
            if len(self.gravity) != 3:
                raise ConfigurationError(f"Gravity must be a 3-vector, got {self.gravity}")
        # Validates the partition geometry.
        self.partition_parameters()

    def partition_parameters(self) -> PartitionParameters:
        return PartitionParameters(
            box_number=self.box_number, box_width=self.box_width, target_density=self.target_density
        )


def default_dispatcher_builder(config: SimulationConfig) -> DispatcherBuilder:
    """Register the standard tick for `config`; callers may add systems before building."""
    builder = DispatcherBuilder()
    builder.with_system(ClearForceSystem(), "clear_forces", [])
    add_magnetic_systems(builder)

    force_systems = list(LASER_FORCE_SYSTEMS)
    if config.gravity is not None:
        builder.with_system(ApplyGravitationalForceSystem(config.gravity), "gravity", ["clear_forces"])
        force_systems.append("gravity")
    add_laser_systems(builder, ["clear_forces", "magnetics_magnitude"], config.emission_fluctuations)
    builder.with_system(SumRandKickSystem(), "sum_rand_kick", ["clear_forces", "laser_emission"])
    force_systems.append("sum_rand_kick")

    if config.integrator == "euler":
        builder.with_system(EulerIntegrationSystem(), "integrate", force_systems)
        last = "integrate"
    else:
        builder.with_system(VelocityVerletIntegrateVelocitySystem(), "integrate_velocity", force_systems)
        builder.with_system(VelocityVerletIntegratePositionSystem(), "integrate_position", ["integrate_velocity"])
        last = "integrate_position"

    if config.partition:
        builder.with_system(BuildSpatialPartitionSystem(), "partition_build", [last])
        if config.rescale_interval:
            builder.with_system(
                RescalePartitionCellSystem(config.rescale_interval), "partition_rescale", ["partition_build"]
            )
    builder.with_system(DetectingAtomSystem(), "detector", [last])
    builder.with_system(RegionSystem(), "simulation_region", [last])
    builder.with_system(DeleteToBeDestroyedEntitiesSystem(), "destroy", ["simulation_region", "detector"])
    return builder


@dataclass(frozen=True)
class Snapshot:
    """
    Read-only view of the atoms after a tick.

    With velocity Verlet, `velocities` lag `positions` by one tick.
    """
    step: int
    time: float
    entities: np.ndarray
    positions: np.ndarray
    velocities: np.ndarray

    def __len__(self) -> int:
        return int(self.entities.size)


class Simulation:
    """
    Cold-atom simulation world.

    Example:
        sim = Simulation(SimulationConfig(timestep=1e-4, integrator="euler"))
        sim.add_atom((0, 0, 0), (0, 0, 0), mass=87 * AMU)
        sim.run(100)
        print(sim.snapshot().positions)
    """

    def __init__(
        self,
        config: SimulationConfig | None = None,
        builder: DispatcherBuilder | None = None,
        profiler: Profiler | None = None,
    ) -> None:
        self.config = config or SimulationConfig()
        if self.config.log_level is not None:
            setup_logging(self.config.log_level, log_file=self.config.log_file)
        self.world = World()
        self.profiler = profiler
        builder = builder or default_dispatcher_builder(self.config)
        self.dispatcher: Dispatcher = builder.build(workers=self.config.workers, profiler=profiler)

        self.world.insert_resource(Timestep(self.config.timestep))
        self.world.insert_resource(Step(0))
        self.world.insert_resource(LaserSamples())
        self.world.insert_resource(RandomSource(self.config.seed))
        self.world.insert_resource(self.config.partition_parameters())
        self.world.insert_resource(VelocityHashmap())
        self.world.insert_resource(DetectorOutput())
        for _, system in self.dispatcher.systems():
            for ctype in system.components:
                self.world.register(ctype)
        self._is_setup = False
        logger.info(
            "Simulation created: integrator=%s dt=%.3e workers=%d",
            self.config.integrator, self.config.timestep, self.config.workers,
        )

    # ------------------------------------------------------------------
    # Building the world
    # ------------------------------------------------------------------

    def add_entity(self, *components: Component) -> Entity:
        """Create a source entity (field, detector, volume) from components."""
        return self.world.create_entity(*components)

    def add_beam(
        self,
        beam: GaussianBeam,
        light: CoolingLight | DipoleLight | None = None,
        mask: CircularMask | None = None,
    ) -> Entity:
        """Create a beam entity with its reference frame and optional light and mask."""
        components: list[Component] = [beam, GaussianReferenceFrame.for_beam(beam)]
        if light is not None:
            components.append(light)
        if mask is not None:
            components.append(mask)
        return self.world.create_entity(*components)

    def add_atoms(
        self,
        positions,
        velocities,
        mass,
        transition: AtomicTransition | None = None,
        polarizability: Polarizability | None = None,
    ) -> np.ndarray:
        """
        Create N atoms with the full particle component set.

        Args:
            positions, velocities: Arrays of shape (N, 3).
            mass: Scalar or array of shape (N,), in kg.
            transition: Optical transition shared by the atoms; without it
                        the atoms do not interact with cooling light.
            polarizability: Dipole prefactor shared by the atoms.

        Returns:
            The new entity ids.

        Raises:
            ConfigurationError: if a mass is not strictly positive.
            ValueError: if the array shapes disagree.
        """
        pos = f64(positions).reshape(-1, 3)
        vel = f64(velocities).reshape(-1, 3)
        n = pos.shape[0]
        if vel.shape[0] != n:
            raise ValueError(f"Got {n} positions but {vel.shape[0]} velocities")
        masses = np.broadcast_to(f64(mass), (n,)).copy()
        if not np.all(masses > 0):
            raise ConfigurationError("Atom masses must be positive")

        ids = self.world.create_entities(n)
        w = self.world
        w.insert_rows(Atom, ids)
        w.insert_rows(Position, ids, pos)
        w.insert_rows(Velocity, ids, vel)
        w.insert_rows(Mass, ids, masses)
        w.insert_rows(Force, ids, np.zeros((n, 3)))
        w.insert_rows(RandKick, ids, np.zeros((n, 3)))
        w.insert_rows(MagneticFieldSampler, ids, np.zeros((n, 3)))
        w.insert_rows(MagneticFieldMagnitude, ids, np.zeros(n))
        if transition is not None:
            w.insert_rows(AtomicTransition, ids, np.tile(transition.to_row(), (n, 1)))
            w.insert_rows(TwoLevelPopulation, ids, np.tile(TwoLevelPopulation().to_row(), (n, 1)))
        if polarizability is not None:
            w.insert_rows(Polarizability, ids, np.full(n, polarizability.prefactor))
        logger.debug("Added %d atoms", n)
        return ids

    def add_atom(self, position, velocity, mass: float, **kwargs) -> Entity:
        """Create one atom; keyword arguments as for add_atoms."""
        return int(self.add_atoms([position], [velocity], mass, **kwargs)[0])

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    def setup(self) -> None:
        """Validate the world against the dispatcher; called by the first step."""
        self.dispatcher.setup(self.world)
        self._is_setup = True
        logger.info("Dispatcher stages: %s", self.dispatcher.stages)

    def step(self) -> None:
        """Advance the simulation by one tick."""
        if not self._is_setup:
            self.setup()
        self.dispatcher.dispatch(self.world)

    def run(self, n: int, stop_when: Callable[["Simulation"], bool] | None = None) -> int:
        """
        Run up to n ticks, stopping early once `stop_when(self)` is true.

        Returns:
            The number of ticks run.
        """
        for i in range(n):
            if stop_when is not None and stop_when(self):
                logger.info("Stop condition met after %d ticks", i)
                return i
            self.step()
        return n

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @property
    def step_count(self) -> int:
        return self.world.resource(Step).n

    @property
    def time(self) -> float:
        return self.step_count * self.config.timestep

    @property
    def atom_count(self) -> int:
        return int(self.world.entities_with(Atom, Position, Velocity).size)

    @property
    def detector_output(self) -> DetectorOutput:
        return self.world.resource(DetectorOutput)

    def snapshot(self) -> Snapshot:
        """Positions and velocities of every atom still in the simulation."""
        atoms = self.world.entities_with(Atom, Position, Velocity)
        pos = self.world.storage(Position).data[atoms]
        vel = self.world.storage(Velocity).data[atoms]
        for arr in (atoms, pos, vel):
            arr.setflags(write=False)
        return Snapshot(step=self.step_count, time=self.time, entities=atoms, positions=pos, velocities=vel)

    def close(self) -> None:
        self.dispatcher.close()
        if self.profiler is not None:
            for name, stats in self.profiler.stats.summary().items():
                logger.info("%s: %s", name, stats)

    def __enter__(self) -> "Simulation":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def no_atoms_left(sim: Simulation) -> bool:
    """Stop condition for run(): true once every atom has been removed."""
    return sim.atom_count == 0
