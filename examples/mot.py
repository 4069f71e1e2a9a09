# examples/mot.py
"""
Three-dimensional magneto-optical trap for rubidium 87.

Six counter-propagating red-detuned beams in a quadrupole field capture
a thermal cloud; atoms that wander out of the capture volume are removed.
"""
import numpy as np

from coldatom_sim import (
    AtomicTransition,
    CoolingLight,
    Cuboid,
    GaussianBeam,
    Simulation,
    SimulationConfig,
)
from coldatom_sim.atom import Position
from coldatom_sim.constants import AMU, BOHRMAG, C
from coldatom_sim.core import temperature
from coldatom_sim.magnetic import QuadrupoleField3D

RB87 = AtomicTransition(
    frequency=C / 780.241e-9,
    linewidth=6.065e6,
    saturation_intensity=16.69,
    mup=BOHRMAG,
    mum=-BOHRMAG,
    muz=0.0,
)

config = SimulationConfig(timestep=1e-6, gravity=None, seed=1, log_level="INFO")
sim = Simulation(config)

sim.add_entity(Position((0.0, 0.0, 0.0)), QuadrupoleField3D.gauss_per_cm(15.0, (0.0, 0.0, 1.0)))
sim.add_entity(Position((0.0, 0.0, 0.0)), Cuboid(half_width=(5e-3, 5e-3, 5e-3)))

detuning = -12e6
for axis in range(3):
    for sign in (1.0, -1.0):
        direction = np.zeros(3)
        direction[axis] = sign
        # The axial pair has opposite handedness to the radial pairs.
        polarization = -1 if axis == 2 else 1
        beam = GaussianBeam.from_peak_intensity(
            (0.0, 0.0, 0.0), direction, peak_intensity=RB87.saturation_intensity, e_radius=5e-3
        )
        sim.add_beam(beam, CoolingLight.for_transition(RB87, detuning, polarization))

rng = np.random.default_rng(7)
n = 500
positions = rng.normal(scale=5e-4, size=(n, 3))
velocities = rng.normal(scale=0.3, size=(n, 3))
sim.add_atoms(positions, velocities, mass=87 * AMU, transition=RB87)

with sim:
    for block in range(10):
        sim.run(200)
        snap = sim.snapshot()
        print(
            f"t={1e3 * snap.time:6.2f} ms  atoms={sim.atom_count:4d}  "
            f"rms r={1e3 * np.sqrt(np.mean(snap.positions ** 2)):.3f} mm  "
            f"T={1e6 * temperature(sim.world):8.1f} uK"
        )
