"""Tomorrow.io fetcher.

Endpoint: https://api.tomorrow.io/v4/weather/realtime?location={LAT},{LON}&units=imperial
Lookup: Coordinates
API Key: Required (apikey query parameter)
Rate Limit: 25 requests/hour on the free plan, so 429s are common
"""

import logging

from ..City import City
from ..TemperatureReading import TemperatureReading
from .base import BaseFetcher, FetcherError, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class TomorrowFetcher(BaseFetcher):
    """Fetcher for the Tomorrow.io realtime weather API.

    API key is REQUIRED.
    """

    name = "tomorrow"
    requires_api_key = True
    BASE_URL = "https://api.tomorrow.io/v4/weather/realtime"

    async def fetch(self, city: City) -> TemperatureReading | None:
        """Fetch the current temperature from Tomorrow.io.

        :param city: City to look up.
        :returns: Reading in Fahrenheit or None on failure.
        """
        info = city.info
        location = f"{info.lat},{info.lon}"

        try:
            api_key = self._require_api_key()
            response = await self._get(
                self.BASE_URL,
                params={"location": location, "apikey": api_key, "units": "imperial"},
            )
            data = response.json()
            # Payload shape: {"data": {"time": ..., "values": {"temperature": ...}}}
            temperature = self._parse_temperature(data["data"]["values"]["temperature"])

        except FetcherError as e:
            logger.warning(f"[tomorrow] Failed to fetch ({location}): {e}")
            return None
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"[tomorrow] Failed to parse response for ({location}): {e}")
            return None

        logger.debug(f"[tomorrow] ({location}) = {temperature}F")
        return self._reading(temperature)
