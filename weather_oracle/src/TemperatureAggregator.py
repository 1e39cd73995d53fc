"""TemperatureAggregator: Quorum-and-median aggregation of provider readings.

Algorithm:
    1. Drop absent readings (provider failed)
    2. Drop implausible readings outside [-50F, 130F]
    3. Return None if fewer than min_sources (at least 2) readings remain
    4. Return the median of the remaining readings

A single provider can never decide a market on its own: the quorum is at
least two regardless of how many providers are configured.

.. code-block:: python

    >>> aggregator = TemperatureAggregator()
    >>> readings = [
    ...     TemperatureReading("openweathermap", 68.0),
    ...     TemperatureReading("openmeteo", 70.0),
    ...     TemperatureReading("tomorrow", 71.0),
    ... ]
    >>> aggregator.aggregate(readings).median_fahrenheit
    70.0
    >>> aggregator.aggregate([readings[0], None, None]) is None
    True
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from statistics import median as _median

from .TemperatureReading import TemperatureReading

logger = logging.getLogger(__name__)

# Plausible surface temperatures for the supported cities, in Fahrenheit.
MIN_PLAUSIBLE_F = -50.0
MAX_PLAUSIBLE_F = 130.0

# Minimum number of agreeing providers before a value is trusted.
MIN_QUORUM = 2


@dataclass(frozen=True)
class AggregatedTemperature:
    """Trusted temperature computed from several providers.

    :ivar median_fahrenheit: Median of the valid readings.
    :ivar source_count: Number of valid readings used.
    :ivar readings: Valid readings, in provider order.
    """

    median_fahrenheit: float
    source_count: int
    readings: tuple[TemperatureReading, ...]

    @property
    def sources(self) -> list[str]:
        """Names of the providers that contributed a reading."""
        return [r.source for r in self.readings]


class TemperatureAggregator:
    """Combines readings from multiple providers into one temperature.

    :ivar min_sources: Minimum valid readings required (quorum).
    :ivar min_temperature: Lowest plausible temperature (inclusive).
    :ivar max_temperature: Highest plausible temperature (inclusive).
    """

    def __init__(
        self,
        min_sources: int = MIN_QUORUM,
        min_temperature: float = MIN_PLAUSIBLE_F,
        max_temperature: float = MAX_PLAUSIBLE_F,
    ) -> None:
        """Initialize the aggregator.

        :param min_sources: Minimum number of valid readings (default: 2).
        :param min_temperature: Lower plausibility bound in F (default: -50).
        :param max_temperature: Upper plausibility bound in F (default: 130).
        :raises ValueError: If parameters are invalid.
        """
        if min_sources < MIN_QUORUM:
            raise ValueError(f"min_sources must be at least {MIN_QUORUM}")
        if min_temperature >= max_temperature:
            raise ValueError("min_temperature must be below max_temperature")

        self.min_sources = min_sources
        self.min_temperature = min_temperature
        self.max_temperature = max_temperature

    def is_plausible(self, temperature: float) -> bool:
        """Check a temperature against the plausibility range."""
        return self.min_temperature <= temperature <= self.max_temperature

    def valid_readings(
        self, readings: Sequence[TemperatureReading | None]
    ) -> list[TemperatureReading]:
        """Filter out absent and implausible readings, keeping order.

        :param readings: Readings as returned by the providers.
        :returns: Readings that may take part in aggregation.
        """
        valid: list[TemperatureReading] = []
        for reading in readings:
            if reading is None:
                continue
            if not self.is_plausible(reading.temperature):
                logger.warning(
                    f"[{reading.source}] Discarding implausible reading "
                    f"{reading.temperature}F"
                )
                continue
            valid.append(reading)
        return valid

    def aggregate(
        self, readings: Sequence[TemperatureReading | None]
    ) -> AggregatedTemperature | None:
        """Aggregate provider readings into a single median temperature.

        :param readings: Readings (or None for failed providers).
        :returns: AggregatedTemperature, or None if the quorum is not met.

        .. code-block:: python

            >>> agg = TemperatureAggregator()
            >>> agg.aggregate([TemperatureReading("a", 60.0), TemperatureReading("b", 70.0)])
            AggregatedTemperature(median_fahrenheit=65.0, source_count=2, ...)
        """
        valid = self.valid_readings(readings)

        if len(valid) < self.min_sources:
            return None

        return AggregatedTemperature(
            median_fahrenheit=float(_median(r.temperature for r in valid)),
            source_count=len(valid),
            readings=tuple(valid),
        )
