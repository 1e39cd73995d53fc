"""MarketConfig: A temperature-bracket market awaiting resolution.

Markets come from two places: the MarketFactory event log (see
MarketDiscovery) and manual configuration (see MarketConfig.from_dict).

.. code-block:: python

    >>> market = MarketConfig.from_dict({
    ...     "conditionId": "0x" + "ab" * 32,
    ...     "city": "miami",
    ...     "resolutionTime": 1700000000,
    ...     "lowerBound": 70,
    ...     "upperBound": 80,
    ... })
    >>> market.bracket
    '[70F, 80F)'
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from .City import City
from .QuestionId import MARKET_TYPE_TEMPERATURE, encode_question_id


def to_bytes32_hex(value: bytes | str) -> str:
    """Normalise a bytes32 value to a lowercase 0x-prefixed hex string.

    :param value: Raw bytes or hex string.
    :returns: 0x-prefixed 64-character hex string.
    :raises ValueError: If the value is not exactly 32 bytes.
    """
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str):
        text = value[2:] if value.lower().startswith("0x") else value
        try:
            raw = bytes.fromhex(text)
        except ValueError:
            raise ValueError(f"Invalid bytes32 hex: {value!r}") from None
    else:
        raise ValueError(f"Invalid bytes32 value: {value!r}")
    if len(raw) != 32:
        raise ValueError(f"Expected 32 bytes, got {len(raw)}")
    return "0x" + raw.hex()


def parse_timestamp(value: int | float | str | datetime) -> datetime:
    """Parse a resolution time into an aware UTC datetime.

    :param value: Unix seconds, ISO-8601 string or datetime.
    :returns: Timezone-aware UTC datetime.
    :raises ValueError: If the value cannot be parsed.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        dt = datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            dt = datetime.fromtimestamp(int(text), tz=timezone.utc)
        else:
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            dt = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Invalid resolution time: {value!r}")

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_bound(value: Any, name: str) -> int:
    """Parse a bracket bound, which must be a whole number of degrees.

    :param value: Integer, integral float or integer string.
    :param name: Field name for error messages.
    :returns: Bound as int.
    :raises ValueError: If the value is not an integral number.
    """
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ValueError(f"{name} must be an integer, got {value!r}")


@dataclass(frozen=True)
class MarketConfig:
    """A market the oracle must resolve.

    :ivar condition_id: 0x-prefixed bytes32 condition id (unique key).
    :ivar question_id: 0x-prefixed bytes32 packed question id.
    :ivar city: City the market resolves against.
    :ivar resolution_time: Nominal resolution instant (UTC).
    :ivar lower_bound: Inclusive lower bracket bound, degrees F.
    :ivar upper_bound: Exclusive upper bracket bound, degrees F.
    :ivar market_address: Market contract address, if known.
    """

    condition_id: str
    question_id: str
    city: City
    resolution_time: datetime
    lower_bound: int
    upper_bound: int
    market_address: str | None = None

    def __post_init__(self) -> None:
        if self.lower_bound >= self.upper_bound:
            raise ValueError(
                f"Empty bracket for {self.condition_id}: "
                f"lower_bound {self.lower_bound} >= upper_bound {self.upper_bound}"
            )
        if self.resolution_time.tzinfo is None:
            raise ValueError("resolution_time must be timezone-aware")

    @property
    def bracket(self) -> str:
        """Human-readable half-open bracket."""
        return f"[{self.lower_bound}F, {self.upper_bound}F)"

    @property
    def short_id(self) -> str:
        """Abbreviated condition id for log lines."""
        return f"{self.condition_id[:10]}..."

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MarketConfig:
        """Build a market from a manual configuration entry.

        Accepts camelCase or snake_case keys. If no question id is given,
        one is packed from the market fields.

        :param data: Market entry, e.g. from a JSON markets file.
        :returns: New MarketConfig.
        :raises ValueError: If the entry is not an object or a field is
            missing or invalid.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Market entry must be an object, got {type(data).__name__}")

        def pick(*keys: str) -> Any:
            for key in keys:
                if key in data and data[key] is not None:
                    return data[key]
            raise ValueError(f"Market entry missing '{keys[0]}': {data}")

        condition_id = to_bytes32_hex(pick("conditionId", "condition_id"))
        city = City.parse(pick("city"))
        resolution_time = parse_timestamp(pick("resolutionTime", "resolution_time"))
        lower_bound = parse_bound(pick("lowerBound", "lower_bound"), "lowerBound")
        upper_bound = parse_bound(pick("upperBound", "upper_bound"), "upperBound")

        raw_question_id = data.get("questionId", data.get("question_id"))
        if raw_question_id:
            question_id = to_bytes32_hex(raw_question_id)
        else:
            question_id = encode_question_id(
                MARKET_TYPE_TEMPERATURE,
                city.code,
                lower_bound,
                upper_bound,
                int(resolution_time.timestamp()),
            )

        return cls(
            condition_id=condition_id,
            question_id=question_id,
            city=city,
            resolution_time=resolution_time,
            lower_bound=lower_bound,
            upper_bound=upper_bound,
            market_address=data.get("marketAddress", data.get("market_address")),
        )
