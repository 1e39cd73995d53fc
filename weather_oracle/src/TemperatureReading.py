"""TemperatureReading: A single observation produced by one provider."""

from __future__ import annotations

import time
from dataclasses import dataclass, field


def now_ms() -> int:
    """Return the current Unix time in milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class TemperatureReading:
    """Temperature reported by a single weather provider.

    :ivar source: Name of the provider that produced the reading.
    :ivar temperature: Temperature in degrees Fahrenheit.
    :ivar observed_at_ms: Unix time (ms) at which the reading was taken.
    """

    source: str
    temperature: float
    observed_at_ms: int = field(default_factory=now_ms)

    def __str__(self) -> str:
        return f"{self.source}={self.temperature:.1f}F"
