"""WeatherService: Concurrent provider fan-out and temperature aggregation.

Architecture:
    - One task per configured fetcher, all started at once
    - A semaphore bounds how many providers are queried concurrently
    - Each provider call is bounded by provider_timeout
    - The whole fan-out is bounded by aggregation_timeout; providers still
      running at that point are cancelled and count as absent
    - Results are normalised to "reading or None" and handed to the
      TemperatureAggregator
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from .TemperatureAggregator import AggregatedTemperature, TemperatureAggregator

if TYPE_CHECKING:
    from .City import City
    from .fetchers import BaseFetcher
    from .TemperatureReading import TemperatureReading

logger = logging.getLogger(__name__)


class WeatherService:
    """Fetches a city's temperature from every provider and aggregates it.

    :ivar fetchers: Dict mapping source names to fetcher instances.
    :ivar aggregator: Quorum/median aggregator.
    :ivar provider_timeout: Timeout for one provider, retries included.
    :ivar aggregation_timeout: Timeout for the whole fan-out.
    :ivar max_concurrency: Maximum providers queried at the same time.
    """

    DEFAULT_PROVIDER_TIMEOUT = 35.0
    DEFAULT_AGGREGATION_TIMEOUT = 45.0

    # Headroom over the slowest fetcher's retry budget, and over provider_timeout.
    PROVIDER_TIMEOUT_MARGIN = 1.0
    AGGREGATION_TIMEOUT_MARGIN = 10.0

    def __init__(
        self,
        fetchers: dict[str, BaseFetcher],
        aggregator: TemperatureAggregator | None = None,
        provider_timeout: float | None = None,
        aggregation_timeout: float | None = None,
        max_concurrency: int | None = None,
    ) -> None:
        """Initialize the weather service.

        By default the provider timeout covers the slowest fetcher's full
        retry budget (at least 35s) and the aggregation timeout covers the
        provider timeout (at least 45s).

        :param fetchers: Dict mapping source names to fetcher instances.
        :param aggregator: Aggregator to use (default: quorum of 2).
        :param provider_timeout: Seconds allowed per provider.
        :param aggregation_timeout: Seconds allowed for all providers together.
        :param max_concurrency: Concurrent provider limit (default: all).
        :raises ValueError: If timeouts or concurrency are not positive.
        """
        if provider_timeout is None:
            provider_timeout = self.provider_timeout_for(fetchers.values())
        if aggregation_timeout is None:
            aggregation_timeout = max(
                self.DEFAULT_AGGREGATION_TIMEOUT,
                provider_timeout + self.AGGREGATION_TIMEOUT_MARGIN,
            )
        if provider_timeout <= 0 or aggregation_timeout <= 0:
            raise ValueError("timeouts must be positive")
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if aggregation_timeout < provider_timeout:
            logger.warning(
                f"aggregation_timeout ({aggregation_timeout}s) is shorter than "
                f"provider_timeout ({provider_timeout}s); slow providers will be "
                "cancelled before their last retry"
            )

        self.fetchers = fetchers
        self.aggregator = aggregator or TemperatureAggregator()
        self.provider_timeout = provider_timeout
        self.aggregation_timeout = aggregation_timeout
        self.max_concurrency = max_concurrency or max(1, len(fetchers))

    @classmethod
    def provider_timeout_for(cls, fetchers: Iterable[BaseFetcher]) -> float:
        """Per-provider timeout that lets every fetcher use all its attempts.

        :param fetchers: Fetchers the service will query.
        :returns: Slowest retry budget plus a margin, at least 35s.
        """
        budgets = [fetcher.request_budget for fetcher in fetchers]
        if not budgets:
            return cls.DEFAULT_PROVIDER_TIMEOUT
        return max(cls.DEFAULT_PROVIDER_TIMEOUT, max(budgets) + cls.PROVIDER_TIMEOUT_MARGIN)

    async def fetch_all(self, city: City) -> list[TemperatureReading | None]:
        """Query every provider for a city.

        :param city: City to fetch.
        :returns: One entry per fetcher, in fetcher order; None where the
            provider failed, timed out or was cancelled.
        """
        if not self.fetchers:
            return []

        semaphore = asyncio.Semaphore(self.max_concurrency)
        tasks = [
            asyncio.create_task(self._fetch_single(fetcher, city, semaphore))
            for fetcher in self.fetchers.values()
        ]

        _, pending = await asyncio.wait(tasks, timeout=self.aggregation_timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning(
                f"{city.value}: aggregation timeout after {self.aggregation_timeout}s, "
                f"{len(pending)} provider(s) cancelled"
            )
            await asyncio.gather(*pending, return_exceptions=True)

        results: list[TemperatureReading | None] = []
        for task in tasks:
            if task.cancelled():
                results.append(None)
            else:
                results.append(task.result())
        return results

    async def aggregate_temperature(self, city: City) -> AggregatedTemperature | None:
        """Fetch and aggregate the current temperature for a city.

        :param city: City to resolve.
        :returns: AggregatedTemperature, or None if the quorum was not met.
        """
        readings = await self.fetch_all(city)
        valid = self.aggregator.valid_readings(readings)

        logger.info(
            f"Weather fetch for {city.value}: "
            f"{len(valid)}/{len(self.fetchers)} sources succeeded"
        )
        for reading in valid:
            logger.debug(f"  {reading.source}: {reading.temperature}F")

        result = self.aggregator.aggregate(valid)
        if result is None:
            logger.error(
                f"FALLBACK TRIGGERED: Only {len(valid)}/{len(self.fetchers)} "
                f"sources for {city.value} (need {self.aggregator.min_sources})"
            )
            return None

        logger.info(
            f"{city.value}: {result.median_fahrenheit:.2f}F "
            f"(median of [{', '.join(str(r) for r in result.readings)}])"
        )
        return result

    async def _fetch_single(
        self,
        fetcher: BaseFetcher,
        city: City,
        semaphore: asyncio.Semaphore,
    ) -> TemperatureReading | None:
        """Fetch one provider with timeout.

        :param fetcher: Fetcher instance to use.
        :param city: City to fetch.
        :param semaphore: Concurrency limiter shared by the fan-out.
        :returns: Reading or None on failure.
        """
        async with semaphore:
            try:
                return await asyncio.wait_for(
                    fetcher.fetch(city),
                    timeout=self.provider_timeout,
                )
            except asyncio.TimeoutError:
                logger.warning(f"[{fetcher.name}] Timeout fetching {city.value}")
                return None
            except Exception as e:
                logger.warning(f"[{fetcher.name}] Error fetching {city.value}: {e}")
                return None
