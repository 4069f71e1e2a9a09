# MIT License (see LICENSE)
"""
JSON serialization and deserialization of simulation configuration.

JSON Schema Overview:
---------------------
{
  "timestep": float,               # Seconds, default: 1e-6
  "integrator": string,            # "euler" or "verlet", default: "verlet"
  "gravity": [gx, gy, gz] | null,  # m/s², default: [0, 0, -9.80665]; null disables
  "partition": {                   # Optional
    "enabled": bool,               # Default: true
    "box_number": int,             # Cells per axis, default: 100
    "box_width": float,            # m, default: 1e-3
    "target_density": float,       # Atoms per occupied cell, default: 30
    "rescale_interval": int        # Ticks, 0 disables, default: 0
  },
  "emission_fluctuations": bool,   # Default: true
  "workers": int,                  # Default: 1
  "seed": int | null,              # Default: null
  "logging": {                     # Optional
    "level": string | null,        # e.g. "INFO"; null leaves logging alone
    "file": string | null          # Rotating log file
  }
}
"""
from __future__ import annotations
import json
from typing import Any

from ..simulation import SimulationConfig


def load_config_raw(path: str) -> dict[str, Any]:
    """Load raw JSON data from a config file without validation."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def config_from_json(data: dict[str, Any]) -> SimulationConfig:
    """
    Build a SimulationConfig from a parsed JSON document.

    Missing keys take the SimulationConfig defaults.

    Raises:
        ConfigurationError: if a value fails validation.
        ValueError: for unknown top-level keys.
    """
    known = {"timestep", "integrator", "gravity", "partition", "emission_fluctuations",
             "workers", "seed", "logging"}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

    defaults = SimulationConfig()
    part = data.get("partition", {})
    log = data.get("logging", {})
    gravity = data.get("gravity", defaults.gravity)
    seed = data.get("seed", defaults.seed)

    return SimulationConfig(
        timestep=float(data.get("timestep", defaults.timestep)),
        integrator=data.get("integrator", defaults.integrator),
        gravity=None if gravity is None else tuple(gravity),
        box_number=int(part.get("box_number", defaults.box_number)),
        box_width=float(part.get("box_width", defaults.box_width)),
        target_density=float(part.get("target_density", defaults.target_density)),
        rescale_interval=int(part.get("rescale_interval", defaults.rescale_interval)),
        partition=bool(part.get("enabled", defaults.partition)),
        emission_fluctuations=bool(data.get("emission_fluctuations", defaults.emission_fluctuations)),
        workers=int(data.get("workers", defaults.workers)),
        seed=None if seed is None else int(seed),
        log_level=log.get("level", defaults.log_level),
        log_file=log.get("file", defaults.log_file),
    )


def config_to_json(config: SimulationConfig) -> dict[str, Any]:
    """Serialize a SimulationConfig; config_from_json restores an equal config."""
    return {
        "timestep": config.timestep,
        "integrator": config.integrator,
        "gravity": None if config.gravity is None else list(config.gravity),
        "partition": {
            "enabled": config.partition,
            "box_number": config.box_number,
            "box_width": config.box_width,
            "target_density": config.target_density,
            "rescale_interval": config.rescale_interval,
        },
        "emission_fluctuations": config.emission_fluctuations,
        "workers": config.workers,
        "seed": config.seed,
        "logging": {"level": config.log_level, "file": config.log_file},
    }


def load_config(path: str) -> SimulationConfig:
    """
    Load and validate a SimulationConfig from a JSON file.

    Raises:
        FileNotFoundError: If the file cannot be found.
        json.JSONDecodeError: If the file is not valid JSON.
        ConfigurationError: If a value fails validation.
    """
    return config_from_json(load_config_raw(path))


def save_config(config: SimulationConfig, path: str, indent: int = 2) -> None:
    """Save a SimulationConfig to a JSON file on disk."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config_to_json(config), f, indent=indent)
