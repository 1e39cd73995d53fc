"""
Temperature fetchers for multiple weather providers.

This module provides a unified interface for fetching the current
temperature of a market city from independent weather APIs.

Usage:
    from weather_oracle.src.City import City
    from weather_oracle.src.fetchers import get_fetcher, get_available_fetchers

    # Get list of available fetchers
    available = get_available_fetchers()
    # ['openmeteo', 'openweathermap', 'tomorrow']

    # Create a fetcher instance
    fetcher = get_fetcher("openmeteo")
    reading = await fetcher.fetch(City.NYC)

    # For fetchers requiring API keys
    fetcher = get_fetcher("tomorrow", api_key="your-api-key")
"""

# Import base classes and utilities
from .base import (
    FETCHER_REGISTRY,
    BaseFetcher,
    FetcherConfigError,
    FetcherError,
    FetcherHTTPError,
    get_available_fetchers,
    get_fetcher,
    is_retryable_status,
    register_fetcher,
    retry_budget,
)

# Import all fetcher implementations to trigger registration
from .openmeteo import OpenMeteoFetcher
from .openweathermap import OpenWeatherMapFetcher
from .tomorrow import TomorrowFetcher

__all__ = [
    # Base classes
    "BaseFetcher",
    "FetcherError",
    "FetcherConfigError",
    "FetcherHTTPError",
    # Registry functions
    "register_fetcher",
    "get_fetcher",
    "get_available_fetchers",
    "is_retryable_status",
    "retry_budget",
    "FETCHER_REGISTRY",
    # Fetcher implementations
    "OpenMeteoFetcher",
    "OpenWeatherMapFetcher",
    "TomorrowFetcher",
]
