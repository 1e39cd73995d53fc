"""Unit tests for the WeatherOracle orchestrator."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from weather_oracle.src.City import City
from weather_oracle.src.fetchers import BaseFetcher
from weather_oracle.src.MarketConfig import MarketConfig
from weather_oracle.src.TemperatureReading import TemperatureReading
from weather_oracle.src.WeatherOracle import WeatherOracle


class FixedFetcher(BaseFetcher):
    def __init__(self, name: str, temperature: float):
        super().__init__()
        self.name = name
        self.temperature = temperature

    async def fetch(self, city: City) -> TemperatureReading | None:
        return TemperatureReading(self.name, self.temperature, observed_at_ms=0)


def market(n: int, resolves_at: datetime) -> MarketConfig:
    return MarketConfig(
        condition_id="0x" + f"{n:064x}",
        question_id="0x" + "00" * 32,
        city=City.CHICAGO,
        resolution_time=resolves_at,
        lower_bound=60,
        upper_bound=65,
    )


def oracle(**kwargs) -> WeatherOracle:
    fetchers = {
        "a": FixedFetcher("a", 61.0),
        "b": FixedFetcher("b", 62.0),
        "c": FixedFetcher("c", 63.0),
    }
    return WeatherOracle(fetchers=fetchers, environment="test", **kwargs)


class TestWeatherOracleInit:
    """Test orchestrator construction."""

    def test_unknown_source_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown sources"):
            WeatherOracle(sources=["openmeteo", "weatherchannel"])

    def test_builds_named_fetchers(self) -> None:
        weather_oracle = WeatherOracle(
            sources=["openmeteo", "tomorrow"], api_keys={"tomorrow": "k"}, fetch_timeout=4.0
        )
        assert weather_oracle.sources == ["openmeteo", "tomorrow"]
        assert weather_oracle.fetchers["tomorrow"].api_key == "k"
        assert weather_oracle.fetchers["openmeteo"].timeout == 4.0

    def test_default_timeouts(self) -> None:
        weather_oracle = WeatherOracle(sources=["openmeteo", "tomorrow"], api_keys={"tomorrow": "k"})
        assert weather_oracle.weather_service.provider_timeout == 35.0
        assert weather_oracle.weather_service.aggregation_timeout == 45.0

    def test_long_fetch_timeout_keeps_every_retry(self) -> None:
        """Three 30s attempts plus backoff fit inside both outer timeouts."""
        weather_oracle = WeatherOracle(
            sources=["openmeteo", "tomorrow"], api_keys={"tomorrow": "k"}, fetch_timeout=30.0
        )
        service = weather_oracle.weather_service
        for fetcher in weather_oracle.fetchers.values():
            assert fetcher.request_budget == 91.5
            assert service.provider_timeout >= fetcher.request_budget
        assert service.provider_timeout == 92.5
        assert service.aggregation_timeout == 102.5

    def test_explicit_aggregation_timeout_kept(self) -> None:
        weather_oracle = oracle(aggregation_timeout=60.0)
        assert weather_oracle.weather_service.aggregation_timeout == 60.0

    def test_missing_key_warned(self, caplog) -> None:
        with caplog.at_level(logging.WARNING):
            WeatherOracle(sources=["openmeteo", "openweathermap"])
        assert "[openweathermap] API key not configured" in caplog.text

    def test_without_chain_config(self) -> None:
        weather_oracle = oracle()
        assert weather_oracle.contract_utility is None
        assert weather_oracle.discovery.contract is None
        assert weather_oracle.submitter.contract is None


class TestWeatherOracleStart:
    """Test startup scheduling."""

    def test_schedules_future_manual_markets(self) -> None:
        now = datetime.now(timezone.utc)
        weather_oracle = oracle(
            markets=[
                market(1, now + timedelta(hours=1)),
                market(2, now - timedelta(hours=1)),
            ]
        )

        async def scenario():
            scheduled = await weather_oracle.start()
            pending = weather_oracle.scheduler.get_scheduled_markets()
            await weather_oracle.scheduler.shutdown()
            return scheduled, pending

        scheduled, pending = asyncio.run(scenario())

        assert scheduled == 1
        assert pending == ["0x" + f"{1:064x}"]

    def test_low_balance_warned(self, caplog) -> None:
        weather_oracle = oracle()
        weather_oracle.submitter.check_wallet_balance = AsyncMock(return_value=Decimal("0.001"))

        with caplog.at_level(logging.WARNING):
            asyncio.run(weather_oracle.health_check())

        assert "Low wallet balance" in caplog.text

    def test_development_weather_check(self, caplog) -> None:
        weather_oracle = oracle()
        weather_oracle.environment = "development"

        with caplog.at_level(logging.INFO):
            asyncio.run(weather_oracle.health_check())

        assert "Weather test passed: NYC = 62.0F (3 sources)" in caplog.text
