# MIT License (see LICENSE)
"""
Simple profiling utilities for performance measurement.

Measures the wall time of each dispatched system (and of whole ticks)
without external dependencies. Systems in the same stage run on separate
threads, so samples are recorded under a lock.

Example:
    profiler = Profiler()
    sim = Simulation(config, profiler=profiler)
    sim.run(1000)
    print(profiler.stats.summary())
"""
from __future__ import annotations
import threading
import time
from dataclasses import dataclass, field


@dataclass
class ProfileStats:
    """
    Accumulates timing samples for named sections.

    Stores raw timing data and provides summary statistics (count, mean, max).
    """
    samples: dict[str, list[float]] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def add(self, name: str, dt: float) -> None:
        """Record a timing sample (in seconds) for a named section."""
        with self._lock:
            self.samples.setdefault(name, []).append(dt)

    def summary(self) -> dict[str, dict[str, float]]:
        """
        Compute summary statistics for all recorded sections.

        Returns:
            Dict mapping section name to stats dict with keys:
            - 'n': sample count
            - 'mean_ms': average time in milliseconds
            - 'max_ms': maximum time in milliseconds
            - 'total_ms': summed time in milliseconds
        """
        with self._lock:
            items = [(name, list(times)) for name, times in self.samples.items()]
        out = {}
        for name, times in items:
            n = len(times)
            out[name] = {
                "n": n,
                "mean_ms": 1e3 * (sum(times) / n),
                "max_ms": 1e3 * max(times),
                "total_ms": 1e3 * sum(times),
            }
        return out


class Profiler:
    """
    Context-manager based profiler for timing code sections.

    Usage:
        profiler = Profiler()
        with profiler.section("magnetics_quadrupole"):
            run_system()

        stats = profiler.stats.summary()
    """

    def __init__(self) -> None:
        self.stats = ProfileStats()

    def section(self, name: str):
        """
        Return a context manager that times the enclosed code.

        Args:
            name: Identifier for this timed section.
        """
        profiler = self

        class _Section:
            def __enter__(self):
                self.t0 = time.perf_counter()

            def __exit__(self, exc_type, exc, tb):
                elapsed = time.perf_counter() - self.t0
                profiler.stats.add(name, elapsed)

        return _Section()
