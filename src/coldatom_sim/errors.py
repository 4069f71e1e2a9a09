# MIT License (see LICENSE)
"""
Exception types raised by the simulation kernel.

Configuration problems are detected while the world and dispatcher are
being set up, so a run never starts with an invalid setup. Faults inside a
running system are not caught or retried; they propagate unchanged.
"""
from __future__ import annotations


class ConfigurationError(ValueError):
    """
    Invalid setup: bad parameter, unmet system dependency, dependency cycle,
    missing resource or unregistered component.
    """


class SchedulingError(RuntimeError):
    """A system accessed a component or resource it did not declare."""
