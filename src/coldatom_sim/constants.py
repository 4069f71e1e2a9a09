# MIT License (see LICENSE)
"""
Physical constants used throughout the simulation.

All values are in SI units (CODATA 2018). Species-specific transition data
is not tabulated here; callers attach an AtomicTransition to each atom.
"""
from __future__ import annotations

import numpy as np

# Reduced Planck constant, J·s
HBAR: float = 1.054571817e-34

# Speed of light in vacuum, m/s
C: float = 2.99792458e8

# Boltzmann constant, J/K
BOLTZCONST: float = 1.380649e-23

# Atomic mass unit, kg
AMU: float = 1.66053906660e-27

# Bohr magneton, J/T
BOHRMAG: float = 9.2740100783e-24

# Standard acceleration of gravity, m/s²
G_STANDARD: float = 9.80665

PI: float = float(np.pi)

# Reserved cell id for positions outside the spatial partition.
SENTINEL_ID: int = int(np.iinfo(np.int64).max)
