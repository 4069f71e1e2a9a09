# MIT License (see LICENSE)
"""
Input/Output utilities for simulation configuration.

Typical usage:
    from coldatom_sim.io import load_config, save_config

    config = load_config("mot.json")
    save_config(config, "output.json")
"""
from .json_io import (
    config_from_json,
    config_to_json,
    load_config,
    load_config_raw,
    save_config,
)

__all__ = [
    # Loading
    "load_config",
    "load_config_raw",
    # Saving
    "save_config",
    # Serialization
    "config_to_json",
    "config_from_json",
]
