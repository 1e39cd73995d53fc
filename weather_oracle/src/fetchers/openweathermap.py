"""OpenWeatherMap fetcher.

Endpoint: https://api.openweathermap.org/data/2.5/weather?q={CITY}&units=imperial
Lookup: City name
API Key: Required (appid query parameter)
"""

import logging

from ..City import City
from ..TemperatureReading import TemperatureReading
from .base import BaseFetcher, FetcherError, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class OpenWeatherMapFetcher(BaseFetcher):
    """Fetcher for the OpenWeatherMap current weather API.

    Looks cities up by name rather than coordinates.
    API key is REQUIRED.
    """

    name = "openweathermap"
    requires_api_key = True
    BASE_URL = "https://api.openweathermap.org/data/2.5/weather"

    async def fetch(self, city: City) -> TemperatureReading | None:
        """Fetch the current temperature from OpenWeatherMap.

        :param city: City to look up.
        :returns: Reading in Fahrenheit or None on failure.
        """
        city_name = city.info.name

        try:
            api_key = self._require_api_key()
            response = await self._get(
                self.BASE_URL,
                params={"q": city_name, "appid": api_key, "units": "imperial"},
            )
            data = response.json()
            temperature = self._parse_temperature(data["main"]["temp"])

        except FetcherError as e:
            logger.warning(f"[openweathermap] Failed to fetch {city_name}: {e}")
            return None
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"[openweathermap] Failed to parse response for {city_name}: {e}")
            return None

        logger.debug(f"[openweathermap] {city_name} = {temperature}F")
        return self._reading(temperature)
