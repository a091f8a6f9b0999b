from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from time import perf_counter


@dataclass(slots=True)
class Latency:
    """Elapsed wall time of a clustering pass."""

    ms: float = 0.0

    @property
    def seconds(self) -> float:
        return self.ms / 1000


@contextmanager
def measure_latency() -> Iterator[Latency]:
    """Yield a Latency that is filled in when the block exits, even on error."""
    start = perf_counter()
    latency = Latency()
    try:
        yield latency
    finally:
        latency.ms = (perf_counter() - start) * 1000
