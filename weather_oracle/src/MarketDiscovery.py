"""MarketDiscovery: Rebuilds the set of unresolved markets from chain history.

Every ``MarketCreated`` event from genesis to the chain head is decoded into
a MarketConfig. Markets are skipped when:

    - their resolution time has already passed (resolved or abandoned)
    - the city code is unknown
    - the question id is malformed or describes an empty bracket

Skipping one market never aborts the scan. Only an unreachable event source
fails discovery as a whole (DiscoveryError).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable

from web3 import Web3

from .MarketConfig import MarketConfig, to_bytes32_hex
from .QuestionId import decode_question_id

if TYPE_CHECKING:
    from web3.contract import AsyncContract

    from .ResolutionScheduler import ResolutionScheduler

logger = logging.getLogger(__name__)


class DiscoveryError(Exception):
    """Raised when the market event log cannot be read."""

    pass


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class MarketDiscovery:
    """Discovers pending markets from MarketFactory events.

    :ivar contract: MarketFactory contract, or None when not configured.
    :ivar now_fn: Clock used to drop markets whose time has passed.
    """

    def __init__(
        self,
        contract: AsyncContract | None,
        now_fn: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize market discovery.

        :param contract: MarketFactory contract (read-only use).
        :param now_fn: Callable returning the current UTC time.
        """
        self.contract = contract
        self.now_fn = now_fn

    async def discover_markets(self) -> list[MarketConfig]:
        """Scan the full event history for markets awaiting resolution.

        :returns: Pending markets, in event log order.
        :raises DiscoveryError: If the event log cannot be queried.
        """
        if self.contract is None:
            logger.warning("MARKET_FACTORY_ADDRESS not set - cannot discover markets")
            return []

        logger.info(f"Querying MarketCreated events from factory {self.contract.address}")

        try:
            events = await self.contract.events.MarketCreated.get_logs(
                from_block=0, to_block="latest"
            )
        except Exception as e:
            raise DiscoveryError(f"Failed to query MarketCreated events: {e}") from e

        logger.info(f"Found {len(events)} MarketCreated event(s)")

        now = self.now_fn()
        markets: list[MarketConfig] = []
        for event in events:
            market = self._market_from_event(event, now)
            if market is None:
                continue
            markets.append(market)
            logger.info(
                f"Discovered market: {market.city.value} "
                f"[{market.lower_bound}F - {market.upper_bound}F] "
                f"resolves {market.resolution_time.isoformat()}"
            )

        return markets

    def _market_from_event(self, event: Any, now: datetime) -> MarketConfig | None:
        """Decode a single MarketCreated event.

        :param event: Event log entry with ``args``.
        :param now: Current time for the staleness check.
        :returns: MarketConfig, or None if the market must be skipped.
        """
        try:
            args = event["args"]
            condition_id = to_bytes32_hex(args["conditionId"])
            question_id = to_bytes32_hex(args["questionId"])
            decoded = decode_question_id(question_id)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed MarketCreated event: {e}")
            return None

        short_id = f"{condition_id[:10]}..."

        if decoded.resolution_time <= now:
            logger.debug(
                f"Skipping past market {short_id} "
                f"(resolution was {decoded.resolution_time.isoformat()})"
            )
            return None

        try:
            city = decoded.city
        except ValueError:
            logger.warning(f"Unknown city ID {decoded.city_code} in market {short_id}")
            return None

        market_address = args.get("market")
        try:
            return MarketConfig(
                condition_id=condition_id,
                question_id=question_id,
                city=city,
                resolution_time=decoded.resolution_time,
                lower_bound=decoded.lower_bound,
                upper_bound=decoded.upper_bound,
                market_address=(
                    Web3.to_checksum_address(market_address) if market_address else None
                ),
            )
        except ValueError as e:
            logger.warning(f"Skipping market {short_id}: {e}")
            return None

    async def discover_and_schedule(self, scheduler: ResolutionScheduler) -> int:
        """Discover markets and schedule each one for resolution.

        Discovery failures are logged and never propagate: startup continues
        with zero scheduled markets.

        :param scheduler: Scheduler receiving the markets.
        :returns: Number of markets scheduled.
        """
        try:
            markets = await self.discover_markets()
        except DiscoveryError as e:
            logger.warning(f"Market discovery failed, continuing with no markets: {e}")
            return 0

        scheduled = 0
        for market in markets:
            if scheduler.schedule_resolution(market) is not None:
                scheduled += 1

        logger.info(f"Discovered and scheduled {scheduled} market(s)")
        return scheduled
