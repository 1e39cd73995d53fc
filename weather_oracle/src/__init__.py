"""
Weather Oracle - Temperature Market Resolution Module

This module provides on-chain resolution of temperature-bracket markets:
- City: Supported cities and their on-chain codes
- TemperatureAggregator: Quorum and median over provider readings
- WeatherService: Concurrent provider fan-out with timeouts
- MarketDiscovery: Pending markets from the MarketCreated event log
- ResolutionScheduler: One-shot resolution jobs per market
- ResolutionSubmitter: Outcome decision and transaction submission
- WeatherOracle: Main orchestrator
- fetchers: Modular weather provider implementations
"""

from .City import CITIES, City, CityInfo
from .MarketConfig import MarketConfig
from .MarketDiscovery import DiscoveryError, MarketDiscovery
from .QuestionId import DecodedQuestion, decode_question_id, encode_question_id
from .ResolutionScheduler import JobState, ResolutionScheduler, ScheduledJob
from .ResolutionSubmitter import (
    Outcome,
    ResolutionError,
    ResolutionResult,
    ResolutionSubmitter,
    determine_outcome,
)
from .TemperatureAggregator import AggregatedTemperature, TemperatureAggregator
from .TemperatureReading import TemperatureReading
from .WeatherOracle import WeatherOracle
from .WeatherService import WeatherService

__all__ = [
    "AggregatedTemperature",
    "CITIES",
    "City",
    "CityInfo",
    "DecodedQuestion",
    "DiscoveryError",
    "JobState",
    "MarketConfig",
    "MarketDiscovery",
    "Outcome",
    "ResolutionError",
    "ResolutionResult",
    "ResolutionScheduler",
    "ResolutionSubmitter",
    "ScheduledJob",
    "TemperatureAggregator",
    "TemperatureReading",
    "WeatherOracle",
    "WeatherService",
    "decode_question_id",
    "determine_outcome",
    "encode_question_id",
]
