"""WeatherOracle: Main orchestrator for weather market resolution.

This module wires together discovery, scheduling, temperature aggregation
and on-chain submission.

Architecture:
    - All collaborators are built from explicit constructor arguments
    - At startup a health check reports wallet balance and, in development,
      live provider connectivity
    - MarketCreated history is scanned and every pending market is scheduled
    - Manually configured markets are scheduled alongside discovered ones
    - Each market resolves once, at its resolution time plus a grace period
    - Missing chain configuration is reported but never stops the process
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from decimal import Decimal

from .City import City
from .ContractUtility import ContractUtility
from .fetchers import BaseFetcher, get_available_fetchers, get_fetcher
from .MarketConfig import MarketConfig
from .MarketDiscovery import MarketDiscovery, utc_now
from .ResolutionScheduler import DEFAULT_GRACE_PERIOD, ResolutionScheduler
from .ResolutionSubmitter import ResolutionError, ResolutionSubmitter
from .TemperatureAggregator import TemperatureAggregator
from .WeatherService import WeatherService

logger = logging.getLogger(__name__)

# Below this balance the oracle may not afford resolution gas.
LOW_BALANCE_ETH = Decimal("0.01")

DEFAULT_SOURCES = ["openweathermap", "openmeteo", "tomorrow"]


class WeatherOracle:
    """Main orchestrator for weather market resolution.

    :ivar sources: Names of the weather providers in use.
    :ivar environment: Deployment environment ("development", "production", "test").
    :ivar status_period: Seconds between scheduled-markets status lines.
    :ivar scheduler: Pending resolution jobs.
    """

    def __init__(
        self,
        sources: list[str] | None = None,
        api_keys: dict[str, str] | None = None,
        rpc_url: str | None = None,
        private_key: str | None = None,
        factory_address: str | None = None,
        min_sources: int = 2,
        fetch_timeout: float = 10.0,
        aggregation_timeout: float | None = None,
        grace_period: timedelta = DEFAULT_GRACE_PERIOD,
        markets: list[MarketConfig] | None = None,
        environment: str = "production",
        status_period: int = 300,
        fetchers: dict[str, BaseFetcher] | None = None,
    ) -> None:
        """Initialize the weather oracle.

        :param sources: Provider names (default: openweathermap, openmeteo, tomorrow).
        :param api_keys: Dict mapping provider names to API keys.
        :param rpc_url: RPC endpoint; without it discovery and submission are off.
        :param private_key: 0x-prefixed oracle signing key.
        :param factory_address: 0x-prefixed MarketFactory address.
        :param min_sources: Provider quorum (default: 2).
        :param fetch_timeout: Per-attempt HTTP timeout (default: 10.0).
        :param aggregation_timeout: Timeout for one aggregation (default:
            provider timeout plus 10s, at least 45.0).
        :param grace_period: Delay after resolution time (default: 60s).
        :param markets: Manually configured markets to schedule.
        :param environment: Deployment environment (default: production).
        :param status_period: Seconds between status log lines (default: 300).
        :param fetchers: Pre-built fetchers, overriding sources/api_keys.
        :raises ValueError: If sources are unknown or configuration is invalid.
        """
        self.api_keys = api_keys or {}
        self.environment = environment
        self.status_period = max(1, status_period)
        self.markets = list(markets or [])

        if fetchers is None:
            sources = sources or list(DEFAULT_SOURCES)
            available = get_available_fetchers()
            invalid = [s for s in sources if s not in available]
            if invalid:
                raise ValueError(f"Unknown sources: {invalid}. Available: {available}")
            fetchers = {
                source: get_fetcher(
                    source, api_key=self.api_keys.get(source), timeout=fetch_timeout
                )
                for source in sources
            }
        self.fetchers = fetchers
        self.sources = list(fetchers.keys())

        for source, fetcher in self.fetchers.items():
            if fetcher.requires_api_key and not fetcher.has_api_key:
                logger.warning(f"[{source}] API key not configured, source will be skipped")

        self.weather_service = WeatherService(
            fetchers=self.fetchers,
            aggregator=TemperatureAggregator(min_sources=min_sources),
            aggregation_timeout=aggregation_timeout,
        )

        # Chain access is optional so the health-check path survives
        # missing configuration.
        self.contract_utility: ContractUtility | None = None
        factory = None
        if rpc_url:
            self.contract_utility = ContractUtility(rpc_url, private_key=private_key)
            if factory_address:
                factory = self.contract_utility.get_market_factory(factory_address)
            else:
                logger.warning("MARKET_FACTORY_ADDRESS not set - discovery and resolution disabled")
            if not private_key:
                logger.warning("ORACLE_PRIVATE_KEY not set - resolutions will fail")
        else:
            logger.warning("RPC URL not set - discovery and resolution disabled")

        self.discovery = MarketDiscovery(factory)
        self.submitter = ResolutionSubmitter(
            w3=self.contract_utility.w3 if self.contract_utility else None,
            contract=factory,
            account_address=(
                self.contract_utility.account_address if self.contract_utility else None
            ),
        )
        self.scheduler = ResolutionScheduler(
            weather_service=self.weather_service,
            submitter=self.submitter,
            grace_period=grace_period,
        )

        logger.info(
            f"WeatherOracle initialized: sources={self.sources}, "
            f"min_sources={min_sources}, grace_period={grace_period.total_seconds():.0f}s, "
            f"manual_markets={len(self.markets)}, "
            f"provider_timeout={self.weather_service.provider_timeout}s, "
            f"aggregation_timeout={self.weather_service.aggregation_timeout}s"
        )

    async def health_check(self) -> None:
        """Report wallet balance and, in development, provider connectivity.

        Problems are logged as warnings; nothing here raises.
        """
        logger.info("=== Oracle Service Health Check ===")

        try:
            balance = await self.submitter.check_wallet_balance()
        except ResolutionError as e:
            logger.warning(f"Skipping wallet balance check: {e}")
        except Exception as e:
            logger.warning(f"Wallet balance check failed: {e}")
        else:
            logger.info(f"Oracle wallet balance: {balance} ETH")
            if balance < LOW_BALANCE_ETH:
                logger.warning("Low wallet balance - may not have enough for gas")

        if self.environment == "development":
            logger.info("Testing weather API connectivity...")
            test_city = City.NYC
            weather = await self.weather_service.aggregate_temperature(test_city)
            if weather:
                logger.info(
                    f"Weather test passed: {test_city.value} = "
                    f"{weather.median_fahrenheit}F ({weather.source_count} sources)"
                )
            else:
                logger.warning("Weather test failed - check API keys")

        logger.info("=== Health Check Complete ===")

    def schedule_manual_markets(self) -> int:
        """Schedule configured markets that have not reached their time yet.

        :returns: Number of markets scheduled.
        """
        now = utc_now()
        scheduled = 0
        for market in self.markets:
            if market.resolution_time <= now:
                logger.warning(
                    f"Skipping configured market {market.short_id}: "
                    f"resolution time {market.resolution_time.isoformat()} has passed"
                )
                continue
            if self.scheduler.schedule_resolution(market) is not None:
                scheduled += 1
        return scheduled

    async def start(self) -> int:
        """Run the health check and schedule all known markets.

        :returns: Number of markets scheduled.
        """
        await self.health_check()
        scheduled = await self.discovery.discover_and_schedule(self.scheduler)
        scheduled += self.schedule_manual_markets()
        logger.info(f"Oracle service initialized and ready ({scheduled} market(s) scheduled)")
        return scheduled

    async def run(self) -> None:
        """Run the oracle until cancelled."""
        try:
            await self.start()
            logger.info("Oracle service running. Press Ctrl+C to stop.")
            while True:
                logger.info(f"Scheduled markets: {self.scheduler.get_scheduled_markets()}")
                await asyncio.sleep(self.status_period)
        finally:
            await self.scheduler.shutdown()
            await BaseFetcher.close_shared_client()
