"""
Microbenchmark: time per step vs number of atoms in a six-beam MOT.
Run:
  python benchmarks/bench_steps.py
"""
import time
import numpy as np
from coldatom_sim import AtomicTransition, CoolingLight, GaussianBeam, Simulation, SimulationConfig
from coldatom_sim.atom import Position
from coldatom_sim.constants import AMU, BOHRMAG, C
from coldatom_sim.magnetic import QuadrupoleField3D
from coldatom_sim.profiler import Profiler

RB87 = AtomicTransition(
    frequency=C / 780.241e-9, linewidth=6.065e6, saturation_intensity=16.69, mup=BOHRMAG, mum=-BOHRMAG
)


def run(n: int, steps: int = 200, workers: int = 1):
    prof = Profiler()
    sim = Simulation(SimulationConfig(timestep=1e-6, gravity=None, seed=12345, workers=workers), profiler=prof)

    sim.add_entity(Position((0.0, 0.0, 0.0)), QuadrupoleField3D.gauss_per_cm(15.0, (0.0, 0.0, 1.0)))
    for axis in range(3):
        for sign in (1.0, -1.0):
            direction = np.zeros(3)
            direction[axis] = sign
            beam = GaussianBeam.from_peak_intensity((0, 0, 0), direction, RB87.saturation_intensity, 5e-3)
            sim.add_beam(beam, CoolingLight.for_transition(RB87, -12e6, -1 if axis == 2 else 1))

    rng = np.random.default_rng(12345)  # determinism
    sim.add_atoms(rng.normal(scale=5e-4, size=(n, 3)), rng.normal(scale=0.3, size=(n, 3)), 87 * AMU, RB87)

    # warmup
    sim.run(10)

    t0 = time.perf_counter()
    sim.run(steps)
    t1 = time.perf_counter()
    sim.close()

    per_step = (t1 - t0) / steps
    return per_step, prof.stats.summary()


if __name__ == "__main__":
    for n in [100, 1000, 10000, 50000]:
        per_step, summary = run(n)
        print(f"N={n:6d}  step={1e3*per_step:8.3f} ms  steps/s={1/per_step:8.1f}")
        # print the heaviest systems
        for k in ["laser_intensity", "laser_rates", "laser_emission", "partition_build", "integrate_position"]:
            if k in summary:
                print(" ", k, summary[k])
        print()
