"""City: Closed set of cities that temperature markets resolve against.

On-chain question ids carry a one-byte city code; the mapping below must
stay in sync with the MarketFactory encoding:

    0 -> NYC, 1 -> CHICAGO, 2 -> MIAMI, 3 -> AUSTIN

.. code-block:: python

    >>> City.from_code(1)
    <City.CHICAGO: 'CHICAGO'>
    >>> City.CHICAGO.info.name
    'Chicago'
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class CityInfo:
    """Display name and coordinates used by the weather providers.

    :ivar name: City name as understood by name-based providers.
    :ivar lat: Latitude in decimal degrees.
    :ivar lon: Longitude in decimal degrees.
    """

    name: str
    lat: float
    lon: float


class City(str, Enum):
    """A city a market can be opened for."""

    NYC = "NYC"
    CHICAGO = "CHICAGO"
    MIAMI = "MIAMI"
    AUSTIN = "AUSTIN"

    @property
    def info(self) -> CityInfo:
        """Return the coordinates and display name for this city."""
        return CITIES[self]

    @property
    def code(self) -> int:
        """Return the on-chain city code."""
        return CITY_CODES_BY_CITY[self]

    @classmethod
    def from_code(cls, code: int) -> City:
        """Map an on-chain city code to a City.

        :param code: City code from the question id.
        :returns: Matching City.
        :raises ValueError: If the code is not known.
        """
        try:
            return CITY_CODES[code]
        except KeyError:
            raise ValueError(f"Unknown city code {code}") from None

    @classmethod
    def parse(cls, value: str | int) -> City:
        """Parse a city from its name (case-insensitive) or numeric code.

        :param value: City name such as "nyc" or a city code.
        :returns: Matching City.
        :raises ValueError: If the value does not name a known city.
        """
        if isinstance(value, int) and not isinstance(value, bool):
            return cls.from_code(value)
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            available = ", ".join(c.value for c in cls)
            raise ValueError(f"Unknown city '{value}'. Available: {available}") from None


CITIES: dict[City, CityInfo] = {
    City.NYC: CityInfo(name="New York City", lat=40.7128, lon=-74.0060),
    City.CHICAGO: CityInfo(name="Chicago", lat=41.8781, lon=-87.6298),
    City.MIAMI: CityInfo(name="Miami", lat=25.7617, lon=-80.1918),
    City.AUSTIN: CityInfo(name="Austin", lat=30.2672, lon=-97.7431),
}

CITY_CODES: dict[int, City] = {
    0: City.NYC,
    1: City.CHICAGO,
    2: City.MIAMI,
    3: City.AUSTIN,
}

CITY_CODES_BY_CITY: dict[City, int] = {city: code for code, city in CITY_CODES.items()}
