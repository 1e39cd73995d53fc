"""ResolutionScheduler: One-shot, deadline-driven market resolution jobs.

Each market gets exactly one job, keyed by condition id, that fires at
``resolution_time + grace_period`` (default 60 seconds, giving the weather
providers time to report the deadline instant). Job lifecycle:

    SCHEDULED --(fire time reached)--> FIRING --> COMPLETED
        |
        +--(cancel_resolution)--> CANCELLED

Firing runs aggregate -> decide -> submit -> confirm. Whatever the result,
the job leaves the table afterwards and is never re-scheduled: a market that
failed to resolve needs manual intervention.

Scheduling the same condition id twice:
    - a job that has not fired yet is replaced (old timer cancelled)
    - a job that is already firing wins; the new request is rejected

All table access happens on the event loop between await points, so each
schedule, cancel and completion step is atomic with respect to the others.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Callable

from .MarketDiscovery import utc_now
from .ResolutionSubmitter import ResolutionResult, determine_outcome

if TYPE_CHECKING:
    from .MarketConfig import MarketConfig
    from .ResolutionSubmitter import ResolutionSubmitter
    from .WeatherService import WeatherService

logger = logging.getLogger(__name__)

DEFAULT_GRACE_PERIOD = timedelta(seconds=60)

# Longest single sleep; the wall clock is re-read after each one.
MAX_SLEEP_SECONDS = 60.0


class JobState(str, Enum):
    """Lifecycle state of a scheduled job."""

    SCHEDULED = "scheduled"
    FIRING = "firing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(eq=False)
class ScheduledJob:
    """A pending resolution owned by the scheduler.

    :ivar market: Market to resolve.
    :ivar fire_at: UTC instant at which resolution starts.
    :ivar state: Current lifecycle state.
    :ivar task: Task running the job.
    :ivar result: Resolution record once the market resolved.
    """

    market: MarketConfig
    fire_at: datetime
    state: JobState = JobState.SCHEDULED
    task: asyncio.Task | None = field(default=None, repr=False)
    result: ResolutionResult | None = None

    @property
    def condition_id(self) -> str:
        return self.market.condition_id


class ResolutionScheduler:
    """Holds the pending-jobs table and fires each job once.

    :ivar weather_service: Source of aggregated temperatures.
    :ivar submitter: On-chain resolution submitter.
    :ivar grace_period: Delay after the resolution time before firing.
    :ivar now_fn: Wall clock returning aware UTC datetimes.
    """

    def __init__(
        self,
        weather_service: WeatherService,
        submitter: ResolutionSubmitter,
        grace_period: timedelta = DEFAULT_GRACE_PERIOD,
        now_fn: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the scheduler.

        :param weather_service: Aggregates provider temperatures for a city.
        :param submitter: Resolves markets on-chain.
        :param grace_period: Delay after resolution time (default: 60s).
        :param now_fn: Callable returning the current UTC time.
        :raises ValueError: If grace_period is negative.
        """
        if grace_period < timedelta(0):
            raise ValueError("grace_period must not be negative")

        self.weather_service = weather_service
        self.submitter = submitter
        self.grace_period = grace_period
        self.now_fn = now_fn
        self._jobs: dict[str, ScheduledJob] = {}

    def schedule_resolution(self, market: MarketConfig) -> ScheduledJob | None:
        """Register a one-shot resolution job for a market.

        Must be called from within the running event loop. Returns
        immediately; the job fires once the wall clock reaches
        ``market.resolution_time + grace_period``.

        :param market: Market to resolve.
        :returns: The new job, or None if a job for the same market is
            already firing.
        """
        condition_id = market.condition_id
        existing = self._jobs.get(condition_id)

        if existing is not None:
            if existing.state is not JobState.SCHEDULED:
                logger.warning(
                    f"Resolution for {condition_id} is already in progress, "
                    "ignoring new schedule request"
                )
                return None
            self._cancel_job(existing)
            logger.warning(
                f"Replacing pending resolution for {condition_id} "
                f"(was {existing.fire_at.isoformat()})"
            )

        job = ScheduledJob(market=market, fire_at=market.resolution_time + self.grace_period)
        job.task = asyncio.get_running_loop().create_task(
            self._run_job(job), name=f"resolve-{condition_id}"
        )
        self._jobs[condition_id] = job

        logger.info(
            f"Scheduled resolution for {condition_id} "
            f"({market.city.value} {market.bracket}) at {job.fire_at.isoformat()}"
        )
        return job

    def cancel_resolution(self, condition_id: str) -> bool:
        """Cancel a job that has not started firing.

        :param condition_id: Market whose job should be cancelled.
        :returns: True if a pending job was found and cancelled.
        """
        job = self._jobs.get(condition_id)
        if job is None or job.state is not JobState.SCHEDULED:
            return False

        self._cancel_job(job)
        del self._jobs[condition_id]
        logger.info(f"Cancelled resolution for {condition_id}")
        return True

    def get_scheduled_markets(self) -> list[str]:
        """Condition ids currently held by the scheduler (pending or firing)."""
        return list(self._jobs.keys())

    def get_job(self, condition_id: str) -> ScheduledJob | None:
        """Look up the job for a market, if any."""
        return self._jobs.get(condition_id)

    async def shutdown(self) -> None:
        """Cancel all pending jobs and wait for in-flight resolutions."""
        in_flight: list[asyncio.Task] = []
        for condition_id, job in list(self._jobs.items()):
            if job.state is JobState.SCHEDULED:
                self._cancel_job(job)
                del self._jobs[condition_id]
            elif job.task is not None:
                in_flight.append(job.task)

        if in_flight:
            logger.info(f"Waiting for {len(in_flight)} in-flight resolution(s)")
            await asyncio.gather(*in_flight, return_exceptions=True)

    def _cancel_job(self, job: ScheduledJob) -> None:
        job.state = JobState.CANCELLED
        if job.task is not None:
            job.task.cancel()

    async def _sleep_until(self, fire_at: datetime) -> None:
        """Sleep until the wall clock reaches fire_at."""
        while True:
            remaining = (fire_at - self.now_fn()).total_seconds()
            if remaining <= 0:
                return
            await asyncio.sleep(min(remaining, MAX_SLEEP_SECONDS))

    async def _run_job(self, job: ScheduledJob) -> None:
        """Wait for the fire time, then resolve the market exactly once."""
        await self._sleep_until(job.fire_at)

        # From here on the job can no longer be cancelled.
        job.state = JobState.FIRING
        try:
            job.result = await self._resolve(job.market)
        except Exception as e:
            logger.error(
                f"Resolution error for {job.condition_id} "
                f"({job.market.city.value} {job.market.bracket}): {e}",
                exc_info=True,
            )
        finally:
            job.state = JobState.COMPLETED
            if self._jobs.get(job.condition_id) is job:
                del self._jobs[job.condition_id]

    async def _resolve(self, market: MarketConfig) -> ResolutionResult | None:
        """Aggregate the temperature and submit the resolution.

        :param market: Market to resolve.
        :returns: ResolutionResult, or None if the quorum was not met.
        """
        logger.info(f"Running scheduled resolution for market {market.condition_id}")

        weather = await self.weather_service.aggregate_temperature(market.city)
        if weather is None:
            logger.error(
                f"RESOLUTION FAILED: Could not aggregate weather for {market.city.value}"
            )
            logger.error(f"Manual intervention required for market {market.condition_id}")
            return None

        temperature = weather.median_fahrenheit
        outcome = determine_outcome(temperature, market.lower_bound, market.upper_bound)
        tx_hash = await self.submitter.resolve_market(
            condition_id=market.condition_id,
            temperature=temperature,
            lower_bound=market.lower_bound,
            upper_bound=market.upper_bound,
        )

        result = ResolutionResult(
            condition_id=market.condition_id,
            temperature=temperature,
            outcome=outcome,
            tx_hash=tx_hash,
        )
        logger.info(
            f"Market {market.condition_id} resolved successfully: "
            f"{market.city.value} {temperature:.2f}F in {market.bracket} -> "
            f"{outcome.value} (tx {tx_hash}, sources={weather.source_count})"
        )
        return result
