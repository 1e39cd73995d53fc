"""QuestionId: Packing and unpacking of temperature market question ids.

A question id is a 256-bit big-endian word laid out as follows:

    bits 224-255  market type (0x01 = temperature)
    bits 192-223  city field, only the low byte (192-199) is used
    bits 160-191  lower bound, int32, degrees F
    bits 128-159  upper bound, int32, degrees F
    bits  64-127  resolution time, uint64, Unix seconds
    bits   0-63   nonce, uint64

.. code-block:: python

    >>> qid = encode_question_id(1, 1, -100, 800, 1700000000, 0)
    >>> decoded = decode_question_id(qid)
    >>> decoded.city, decoded.lower_bound, decoded.upper_bound
    (<City.CHICAGO: 'CHICAGO'>, -100, 800)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from .City import City

MARKET_TYPE_TEMPERATURE = 1

_UINT8_MASK = 0xFF
_UINT32_MASK = 0xFFFFFFFF
_UINT64_MASK = 0xFFFFFFFFFFFFFFFF
_INT32_MAX = 2**31 - 1
_INT32_MIN = -(2**31)


def to_signed_int32(value: int) -> int:
    """Interpret a raw 32-bit field as a two's-complement int32.

    :param value: Unsigned 32-bit value.
    :returns: Signed value.
    """
    return value - 2**32 if value > _INT32_MAX else value


def question_id_to_int(question_id: bytes | str | int) -> int:
    """Normalise a question id to an integer.

    :param question_id: Raw bytes, hex string (with or without 0x) or int.
    :returns: The id as a non-negative integer below 2**256.
    :raises ValueError: If the value is not a valid 256-bit word.
    """
    if isinstance(question_id, bool):
        raise ValueError(f"Invalid question id: {question_id!r}")
    if isinstance(question_id, (bytes, bytearray)):
        if len(question_id) > 32:
            raise ValueError(f"Question id longer than 32 bytes: {len(question_id)}")
        value = int.from_bytes(question_id, "big")
    elif isinstance(question_id, str):
        text = question_id[2:] if question_id.lower().startswith("0x") else question_id
        try:
            value = int(text, 16)
        except ValueError:
            raise ValueError(f"Invalid question id: {question_id!r}") from None
    elif isinstance(question_id, int):
        value = question_id
    else:
        raise ValueError(f"Invalid question id type: {type(question_id).__name__}")

    if value < 0 or value >= 2**256:
        raise ValueError("Question id must fit in 256 bits")
    return value


@dataclass(frozen=True)
class DecodedQuestion:
    """Fields unpacked from a question id.

    :ivar market_type: Market type tag.
    :ivar city_code: One-byte city code.
    :ivar lower_bound: Inclusive lower bracket bound, degrees F.
    :ivar upper_bound: Exclusive upper bracket bound, degrees F.
    :ivar resolution_time: Resolution instant (UTC).
    :ivar nonce: Disambiguating nonce.
    """

    market_type: int
    city_code: int
    lower_bound: int
    upper_bound: int
    resolution_time: datetime
    nonce: int

    @property
    def city(self) -> City:
        """City for the decoded code.

        :raises ValueError: If the code is not known.
        """
        return City.from_code(self.city_code)


def decode_question_id(question_id: bytes | str | int) -> DecodedQuestion:
    """Unpack a question id into its fields.

    :param question_id: Question id as bytes, hex string or int.
    :returns: DecodedQuestion.
    :raises ValueError: If the id is malformed or the timestamp is out of range.
    """
    value = question_id_to_int(question_id)

    timestamp = (value >> 64) & _UINT64_MASK
    try:
        resolution_time = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        raise ValueError(f"Resolution timestamp out of range: {timestamp}") from None

    return DecodedQuestion(
        market_type=(value >> 224) & _UINT32_MASK,
        city_code=(value >> 192) & _UINT8_MASK,
        lower_bound=to_signed_int32((value >> 160) & _UINT32_MASK),
        upper_bound=to_signed_int32((value >> 128) & _UINT32_MASK),
        resolution_time=resolution_time,
        nonce=value & _UINT64_MASK,
    )


def encode_question_id(
    market_type: int,
    city_code: int,
    lower_bound: int,
    upper_bound: int,
    resolution_time: int,
    nonce: int = 0,
) -> str:
    """Pack market parameters into a question id.

    :param market_type: Market type tag (uint32).
    :param city_code: City code (uint8).
    :param lower_bound: Lower bracket bound (int32).
    :param upper_bound: Upper bracket bound (int32).
    :param resolution_time: Resolution time in Unix seconds (uint64).
    :param nonce: Nonce (uint64).
    :returns: 0x-prefixed 32-byte hex string.
    :raises ValueError: If a field does not fit its width.
    """
    for field_name, field_value, upper in (
        ("market_type", market_type, _UINT32_MASK),
        ("city_code", city_code, _UINT8_MASK),
        ("resolution_time", resolution_time, _UINT64_MASK),
        ("nonce", nonce, _UINT64_MASK),
    ):
        if not 0 <= field_value <= upper:
            raise ValueError(f"{field_name} out of range: {field_value}")
    for field_name, field_value in (("lower_bound", lower_bound), ("upper_bound", upper_bound)):
        if not _INT32_MIN <= field_value <= _INT32_MAX:
            raise ValueError(f"{field_name} out of int32 range: {field_value}")

    value = (
        (market_type << 224)
        | (city_code << 192)
        | ((lower_bound & _UINT32_MASK) << 160)
        | ((upper_bound & _UINT32_MASK) << 128)
        | (resolution_time << 64)
        | nonce
    )
    return "0x" + value.to_bytes(32, "big").hex()
