# examples/minimal_freefall.py
from coldatom_sim import Simulation, SimulationConfig
from coldatom_sim.constants import AMU

sim = Simulation(SimulationConfig(timestep=1e-4, integrator="verlet"))
sim.add_atom(position=(0.0, 0.0, 0.0), velocity=(0.0, 0.0, 0.0), mass=87 * AMU)

t_end = 0.1
while sim.time < t_end:
    sim.step()

snap = sim.snapshot()
print("t:", snap.time)
print("pos:", snap.positions[0])
print("vel:", snap.velocities[0])
