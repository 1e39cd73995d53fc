"""Open-Meteo fetcher.

Endpoint: https://api.open-meteo.com/v1/forecast?latitude={LAT}&longitude={LON}&current=temperature_2m
Lookup: Coordinates
API Key: Not required
"""

import logging

from ..City import City
from ..TemperatureReading import TemperatureReading
from .base import BaseFetcher, FetcherError, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class OpenMeteoFetcher(BaseFetcher):
    """Fetcher for the Open-Meteo forecast API.

    Free and keyless; reads the ``current.temperature_2m`` field.
    """

    name = "openmeteo"
    BASE_URL = "https://api.open-meteo.com/v1/forecast"

    async def fetch(self, city: City) -> TemperatureReading | None:
        """Fetch the current temperature from Open-Meteo.

        :param city: City to look up.
        :returns: Reading in Fahrenheit or None on failure.
        """
        info = city.info
        location = f"({info.lat}, {info.lon})"
        params = {
            "latitude": info.lat,
            "longitude": info.lon,
            "current": "temperature_2m",
            "temperature_unit": "fahrenheit",
        }

        try:
            response = await self._get(self.BASE_URL, params=params)
            data = response.json()
            temperature = self._parse_temperature(data["current"]["temperature_2m"])

        except FetcherError as e:
            logger.warning(f"[openmeteo] Failed to fetch {location}: {e}")
            return None
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"[openmeteo] Failed to parse response for {location}: {e}")
            return None

        logger.debug(f"[openmeteo] {location} = {temperature}F")
        return self._reading(temperature)
