# MIT License (see LICENSE)
"""
coldatom_sim - A cold-atom simulation kernel.

Atoms are entities in an entity/component store; per-tick systems sample
magnetic fields and laser beams, accumulate forces and integrate the
equations of motion, scheduled by a dependency-ordered dispatcher.

Main entry points:
    - Simulation, SimulationConfig: the world, its tick and parameters.
    - AtomicTransition: optical transition data for laser-driven atoms.
    - QuadrupoleField3D, PrecalculatedMagneticFieldGrid: magnetic sources.
    - GaussianBeam, CoolingLight, DipoleLight: laser beams.

Submodules:
    - ecs: World, components, dispatcher.
    - core: Forces and integrators.
    - magnetic, laser: Field sources and light forces.
    - partition, detector, sim_region, destructor: per-tick bookkeeping.
    - io: JSON configuration.

Example:
    from coldatom_sim import Simulation, SimulationConfig

    sim = Simulation(SimulationConfig(timestep=1e-3, integrator="euler"))
    sim.add_atom((0, 0, 0), (0, 0, 0), mass=1.4e-25)
    sim.run(100)
"""
from .atom import AtomicTransition
from .detector import Detector, DetectorOutput, RingDetector
from .errors import ConfigurationError, SchedulingError
from .laser import CircularMask, CoolingLight, DipoleLight, GaussianBeam, Polarizability
from .magnetic import PrecalculatedMagneticFieldGrid, QuadrupoleField3D
from .sim_region import Cuboid, Sphere, VolumeType
from .simulation import Simulation, SimulationConfig, Snapshot, no_atoms_left

__all__ = [
    # Simulation
    "Simulation",
    "SimulationConfig",
    "Snapshot",
    "no_atoms_left",
    # Atoms and sources
    "AtomicTransition",
    "QuadrupoleField3D",
    "PrecalculatedMagneticFieldGrid",
    "GaussianBeam",
    "CircularMask",
    "CoolingLight",
    "DipoleLight",
    "Polarizability",
    # Detection and volumes
    "Detector",
    "RingDetector",
    "DetectorOutput",
    "Cuboid",
    "Sphere",
    "VolumeType",
    # Errors
    "ConfigurationError",
    "SchedulingError",
]
