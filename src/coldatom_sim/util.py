# MIT License (see LICENSE)
"""
Utility functions for vector math, logging setup and numeric helpers.

Vectors are numpy arrays of shape (3,); per-particle data is stored as
(N, 3) float64 arrays so that kernels vectorize over the population.
"""
from __future__ import annotations
import logging
import logging.handlers
import os

import numpy as np

logger = logging.getLogger(__name__)


def f64(x) -> np.ndarray:
    """
    Convert any array-like to a float64 numpy array.

    Used throughout the codebase to ensure consistent numeric precision
    and allow tuple/list inputs for positions and velocities.
    """
    return np.array(x, dtype=np.float64)


def vec3(x) -> np.ndarray:
    """Convert to a float64 3-vector, raising ValueError for any other shape."""
    v = f64(x)
    if v.shape != (3,):
        raise ValueError(f"Expected a 3-vector, got shape {v.shape}")
    return v


def norm(v: np.ndarray) -> float:
    """Magnitude (length) of a 3-vector."""
    return float(np.sqrt(np.dot(v, v)))


def unit(v: np.ndarray, eps: float = 1e-12) -> np.ndarray:
    """
    Return a unit (normalized) vector in the same direction as v.

    Raises ValueError for vectors shorter than eps, since a direction is
    meaningless there.
    """
    v = vec3(v)
    n = norm(v)
    if n < eps:
        raise ValueError("Cannot normalize a zero-length vector")
    return v / n


def row_norms(a: np.ndarray) -> np.ndarray:
    """Euclidean norm of every row of an (N, 3) array."""
    return np.sqrt(np.einsum("ij,ij->i", a, a))


def perpendicular_basis(direction: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """
    Two unit vectors completing `direction` into a right-handed orthonormal frame.

    The first transverse vector is built from whichever cartesian axis is
    least aligned with `direction`.
    """
    d = unit(direction)
    helper = np.zeros(3, dtype=np.float64)
    helper[int(np.argmin(np.abs(d)))] = 1.0
    x = np.cross(d, helper)
    x /= norm(x)
    y = np.cross(d, x)
    return x, y


def random_unit_vectors(rng: np.random.Generator, n: int) -> np.ndarray:
    """Draw n isotropically distributed unit vectors as an (n, 3) array."""
    v = rng.normal(size=(n, 3))
    lengths = row_norms(v)
    # A zero-length draw has probability zero; keep it finite regardless.
    lengths[lengths == 0.0] = 1.0
    return v / lengths[:, None]


def setup_logging(level: str = "INFO", fmt: str | None = None, log_file: str | None = None) -> None:
    """
    Configure the package logger with a console handler and optional rotating file.

    Only the `coldatom_sim` logger is touched, so embedding applications keep
    control of the root logger.
    """
    pkg_logger = logging.getLogger("coldatom_sim")
    pkg_logger.setLevel(level.upper())
    if pkg_logger.hasHandlers():
        pkg_logger.handlers.clear()

    formatter = logging.Formatter(fmt or "%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    pkg_logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        # Rotates at 1MB, keeps 5 backups.
        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=1024 * 1024, backupCount=5
        )
        file_handler.setFormatter(formatter)
        pkg_logger.addHandler(file_handler)

    logger.debug("Logging configured at level %s", level.upper())
