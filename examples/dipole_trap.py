# examples/dipole_trap.py
"""
Strontium 88 atoms held against gravity by a crossed 1064 nm dipole trap.
"""
import numpy as np

from coldatom_sim import AtomicTransition, DipoleLight, GaussianBeam, Polarizability, Simulation, SimulationConfig
from coldatom_sim.constants import AMU, C
from coldatom_sim.laser import calculate_rayleigh_range

SR88 = AtomicTransition(frequency=C / 460.7e-9, linewidth=32e6, saturation_intensity=430.0)
WAVELENGTH = 1064e-9
E_RADIUS = 60e-6

sim = Simulation(SimulationConfig(timestep=1e-5, seed=3))
for direction in ((1.0, 0.0, 0.0), (0.0, 1.0, 0.0)):
    beam = GaussianBeam(
        intersection=(0.0, 0.0, 0.0),
        direction=direction,
        e_radius=E_RADIUS,
        power=10.0,
        rayleigh_range=calculate_rayleigh_range(WAVELENGTH, E_RADIUS),
    )
    sim.add_beam(beam, DipoleLight(WAVELENGTH))

rng = np.random.default_rng(0)
positions = rng.normal(scale=1e-5, size=(200, 3))
velocities = rng.normal(scale=0.02, size=(200, 3))
sim.add_atoms(
    positions, velocities, mass=88 * AMU, polarizability=Polarizability.calculate_for(WAVELENGTH, SR88)
)

sim.run(2000)
snap = sim.snapshot()
print("t:", snap.time)
print("rms position (um):", 1e6 * np.sqrt(np.mean(snap.positions ** 2, axis=0)))
print("mean z (um):", 1e6 * snap.positions[:, 2].mean())
