"""Base fetcher interface and shared HTTP client management.

All temperature fetchers inherit from BaseFetcher and implement the fetch()
method. A shared httpx.AsyncClient is used across all fetchers to avoid
connection overhead; a client can also be injected per fetcher (tests,
custom transports).

Every request made through ``_get`` follows the same retry policy:

    - at most ``max_attempts`` attempts (default 3)
    - exponential backoff between attempts: backoff_base * 2^attempt
    - only network errors, timeouts, HTTP 429 and HTTP 5xx are retried
    - any other non-2xx response fails immediately

.. code-block:: python

    @register_fetcher
    class MyFetcher(BaseFetcher):
        name = "myfetcher"

        async def fetch(self, city: City) -> TemperatureReading | None:
            response = await self._get("https://api.example.com/now")
            return self._reading(response.json()["temp_f"])
"""

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from typing import Any, ClassVar

import httpx

from ..City import City
from ..TemperatureReading import TemperatureReading, now_ms

logger = logging.getLogger(__name__)


class FetcherError(Exception):
    """Base exception for fetcher errors."""

    pass


class FetcherConfigError(FetcherError):
    """Raised when fetcher configuration is invalid (e.g., missing API key)."""

    pass


class FetcherHTTPError(FetcherError):
    """Raised when HTTP request fails.

    :ivar status_code: HTTP status code from the failed request.
    """

    def __init__(self, status_code: int, message: str):
        """Initialize the HTTP error.

        :param status_code: HTTP status code.
        :param message: Error message from response.
        """
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}")

    @property
    def retryable(self) -> bool:
        """Rate limiting and server errors are worth another attempt."""
        return is_retryable_status(self.status_code)


def is_retryable_status(status_code: int) -> bool:
    """Check whether an HTTP status should be retried.

    :param status_code: HTTP status code.
    :returns: True for 429 and 5xx responses.
    """
    return status_code == 429 or status_code >= 500


class BaseFetcher(ABC):
    """Abstract base class for temperature fetchers.

    Subclasses must implement:
        - name: Class variable identifying the source (e.g., "openmeteo")
        - fetch(): Async method returning a reading for a city

    :cvar name: Unique identifier for this fetcher.
    :cvar requires_api_key: Whether the provider rejects keyless requests.
    :cvar DEFAULT_TIMEOUT: Default per-attempt HTTP timeout in seconds.
    :cvar DEFAULT_MAX_ATTEMPTS: Default number of attempts per request.
    :cvar DEFAULT_BACKOFF_BASE: Delay before the first retry in seconds.
    :ivar api_key: Optional API key for authenticated endpoints.
    :ivar timeout: Per-attempt request timeout in seconds.
    """

    # Class-level shared HTTP client
    _shared_client: ClassVar[httpx.AsyncClient | None] = None

    # Fetcher identification
    name: ClassVar[str] = ""
    requires_api_key: ClassVar[bool] = False

    DEFAULT_TIMEOUT = 10.0
    DEFAULT_MAX_ATTEMPTS = 3
    DEFAULT_BACKOFF_BASE = 0.5
    BACKOFF_MAX = 8.0

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        max_attempts: int | None = None,
        backoff_base: float | None = None,
    ):
        """Initialize the fetcher.

        :param api_key: Optional API key for authenticated endpoints.
        :param timeout: Per-attempt request timeout in seconds (default: 10).
        :param client: Optional HTTP client; the shared client is used if None.
        :param max_attempts: Attempts per request including the first (default: 3).
        :param backoff_base: Delay before the first retry (default: 0.5s).
        :raises ValueError: If max_attempts is less than 1.
        """
        self.api_key = api_key
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self.client = client
        self.max_attempts = (
            self.DEFAULT_MAX_ATTEMPTS if max_attempts is None else max_attempts
        )
        self.backoff_base = (
            self.DEFAULT_BACKOFF_BASE if backoff_base is None else backoff_base
        )
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @property
    def has_api_key(self) -> bool:
        """Check if this fetcher has an API key configured."""
        return self.api_key is not None and len(self.api_key) > 0

    @property
    def request_budget(self) -> float:
        """Worst-case seconds one ``_get`` may take, retries and backoff included."""
        return retry_budget(self.timeout, self.max_attempts, self.backoff_base)

    @classmethod
    def get_shared_client(cls) -> httpx.AsyncClient:
        """Get or create the shared HTTP client.

        The client is shared across all fetcher instances to reuse connections.

        :returns: Shared httpx.AsyncClient instance.
        """
        if cls._shared_client is None or cls._shared_client.is_closed:
            cls._shared_client = httpx.AsyncClient(
                timeout=httpx.Timeout(30.0, connect=10.0),
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
                follow_redirects=True,
            )
        return cls._shared_client

    @classmethod
    async def close_shared_client(cls) -> None:
        """Close the shared HTTP client."""
        if cls._shared_client is not None and not cls._shared_client.is_closed:
            await cls._shared_client.aclose()
            cls._shared_client = None

    @abstractmethod
    async def fetch(self, city: City) -> TemperatureReading | None:
        """Fetch the current temperature for a city.

        Implementations must not raise: transport and parsing failures are
        logged and reported as None.

        :param city: City to fetch the temperature for.
        :returns: Reading in Fahrenheit, or None if the fetch failed.
        """
        pass

    def _require_api_key(self) -> str:
        """Return the configured API key.

        :raises FetcherConfigError: If the key is missing.
        """
        if not self.api_key:
            raise FetcherConfigError("API key required but not provided")
        return self.api_key

    def _reading(self, temperature: float) -> TemperatureReading:
        """Wrap a temperature into a reading attributed to this fetcher."""
        return TemperatureReading(
            source=self.name, temperature=temperature, observed_at_ms=now_ms()
        )

    @staticmethod
    def _parse_temperature(value: Any) -> float:
        """Validate a temperature value taken from a provider response.

        :param value: Raw JSON value.
        :returns: Temperature as float.
        :raises TypeError: If the value is not a number.
        :raises ValueError: If the value is NaN or infinite.
        """
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"temperature is not numeric: {value!r}")
        temperature = float(value)
        if not math.isfinite(temperature):
            raise ValueError(f"temperature is not finite: {value!r}")
        return temperature

    def _backoff_delay(self, attempt: int) -> float:
        """Delay before retrying after the given (0-based) attempt."""
        return min(self.backoff_base * (2**attempt), self.BACKOFF_MAX)

    async def _get(
        self,
        url: str,
        *,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """Make an HTTP GET request with retry and exponential backoff.

        :param url: Request URL.
        :param params: Optional query parameters.
        :param headers: Optional request headers.
        :returns: httpx.Response object.
        :raises FetcherHTTPError: On a non-retryable status, or a retryable
            one after the last attempt.
        :raises FetcherError: On network/timeout errors after the last attempt.
        """
        client = self.client or self.get_shared_client()
        last_error: FetcherError | None = None

        for attempt in range(self.max_attempts):
            try:
                response = await client.get(
                    url,
                    params=params,
                    headers=headers,
                    timeout=self.timeout,
                )
            except httpx.TimeoutException as e:
                last_error = FetcherError(f"Request timeout: {e}")
            except httpx.RequestError as e:
                last_error = FetcherError(f"Request failed: {e}")
            else:
                if response.is_success:
                    return response
                logger.debug(
                    "HTTP GET %s failed with status %s: %s",
                    url,
                    response.status_code,
                    response.text[:200],
                )
                last_error = FetcherHTTPError(response.status_code, response.text[:200])
                if not last_error.retryable:
                    raise last_error

            if attempt + 1 < self.max_attempts:
                delay = self._backoff_delay(attempt)
                logger.debug(
                    "[%s] attempt %d/%d failed (%s), retrying in %.2fs",
                    self.name,
                    attempt + 1,
                    self.max_attempts,
                    last_error,
                    delay,
                )
                await asyncio.sleep(delay)

        assert last_error is not None
        raise last_error


def retry_budget(
    timeout: float,
    max_attempts: int = BaseFetcher.DEFAULT_MAX_ATTEMPTS,
    backoff_base: float = BaseFetcher.DEFAULT_BACKOFF_BASE,
) -> float:
    """Longest time a request can take when every attempt times out.

    :param timeout: Per-attempt timeout in seconds.
    :param max_attempts: Attempts per request (default: 3).
    :param backoff_base: Delay before the first retry (default: 0.5s).
    :returns: Attempts times timeout, plus the backoff between attempts.

    .. code-block:: python

        >>> retry_budget(10.0)
        31.5
    """
    backoff = sum(
        min(backoff_base * (2**attempt), BaseFetcher.BACKOFF_MAX)
        for attempt in range(max_attempts - 1)
    )
    return max_attempts * timeout + backoff


# Registry of available fetchers (populated by subclass imports)
FETCHER_REGISTRY: dict[str, type[BaseFetcher]] = {}


def register_fetcher(cls: type[BaseFetcher]) -> type[BaseFetcher]:
    """Decorator to register a fetcher class in the global registry.

    :param cls: Fetcher class to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If fetcher has no name defined.
    """
    if not cls.name:
        raise ValueError(f"Fetcher {cls.__name__} must define a 'name' class variable")
    FETCHER_REGISTRY[cls.name] = cls
    return cls


def get_fetcher(name: str, api_key: str | None = None, **kwargs: Any) -> BaseFetcher:
    """Get a fetcher instance by name.

    :param name: Fetcher name (e.g., "openmeteo", "tomorrow").
    :param api_key: Optional API key.
    :param kwargs: Extra keyword arguments for the fetcher constructor.
    :returns: Fetcher instance.
    :raises ValueError: If fetcher name is unknown.
    """
    if name not in FETCHER_REGISTRY:
        available = ", ".join(sorted(FETCHER_REGISTRY.keys()))
        raise ValueError(f"Unknown fetcher '{name}'. Available: {available}")
    return FETCHER_REGISTRY[name](api_key=api_key, **kwargs)


def get_available_fetchers() -> list[str]:
    """Get list of available fetcher names.

    :returns: Sorted list of registered fetcher names.
    """
    return sorted(FETCHER_REGISTRY.keys())
