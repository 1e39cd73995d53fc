"""Unit tests for MarketConfig and its parsing helpers."""

from datetime import datetime, timedelta, timezone

import pytest

from weather_oracle.src.City import City
from weather_oracle.src.MarketConfig import (
    MarketConfig,
    parse_bound,
    parse_timestamp,
    to_bytes32_hex,
)
from weather_oracle.src.QuestionId import decode_question_id

CONDITION_ID = "0x" + "ab" * 32
RESOLVES_AT = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)


def market(**overrides) -> MarketConfig:
    fields = dict(
        condition_id=CONDITION_ID,
        question_id="0x" + "00" * 32,
        city=City.NYC,
        resolution_time=RESOLVES_AT,
        lower_bound=70,
        upper_bound=80,
    )
    fields.update(overrides)
    return MarketConfig(**fields)


class TestBytes32Hex:
    """Test to_bytes32_hex."""

    def test_from_bytes(self) -> None:
        assert to_bytes32_hex(b"\xab" * 32) == CONDITION_ID

    def test_normalises_case_and_prefix(self) -> None:
        assert to_bytes32_hex("AB" * 32) == CONDITION_ID
        assert to_bytes32_hex("0X" + "AB" * 32) == CONDITION_ID

    def test_wrong_length(self) -> None:
        with pytest.raises(ValueError, match="Expected 32 bytes, got 31"):
            to_bytes32_hex(b"\x00" * 31)

    def test_invalid_hex(self) -> None:
        with pytest.raises(ValueError, match="Invalid bytes32 hex"):
            to_bytes32_hex("0xzz")

    def test_non_string_rejected(self) -> None:
        with pytest.raises(ValueError, match="Invalid bytes32 value: 5"):
            to_bytes32_hex(5)
        with pytest.raises(ValueError, match="Invalid bytes32 value: None"):
            to_bytes32_hex(None)


class TestParseTimestamp:
    """Test parse_timestamp."""

    def test_unix_seconds(self) -> None:
        assert parse_timestamp(1700000000) == RESOLVES_AT
        assert parse_timestamp("1700000000") == RESOLVES_AT

    def test_iso_with_z(self) -> None:
        assert parse_timestamp("2023-11-14T22:13:20Z") == RESOLVES_AT

    def test_iso_with_offset(self) -> None:
        assert parse_timestamp("2023-11-14T17:13:20-05:00") == RESOLVES_AT

    def test_naive_is_utc(self) -> None:
        assert parse_timestamp(datetime(2023, 11, 14, 22, 13, 20)) == RESOLVES_AT

    def test_invalid(self) -> None:
        with pytest.raises(ValueError):
            parse_timestamp("next tuesday")
        with pytest.raises(ValueError):
            parse_timestamp(True)  # type: ignore[arg-type]


class TestParseBound:
    """Test parse_bound."""

    def test_integers(self) -> None:
        assert parse_bound(70, "lowerBound") == 70
        assert parse_bound(-5, "lowerBound") == -5
        assert parse_bound(" 80 ", "upperBound") == 80

    def test_integral_float(self) -> None:
        bound = parse_bound(70.0, "lowerBound")
        assert bound == 70
        assert isinstance(bound, int)

    def test_fraction_rejected(self) -> None:
        with pytest.raises(ValueError, match="lowerBound must be an integer, got 70.5"):
            parse_bound(70.5, "lowerBound")
        with pytest.raises(ValueError, match="upperBound must be an integer"):
            parse_bound("80.5", "upperBound")

    def test_non_numbers_rejected(self) -> None:
        for value in (True, None, [70], float("nan"), float("inf")):
            with pytest.raises(ValueError, match="must be an integer"):
                parse_bound(value, "lowerBound")


class TestMarketConfig:
    """Test MarketConfig construction."""

    def test_bracket(self) -> None:
        assert market().bracket == "[70F, 80F)"

    def test_short_id(self) -> None:
        assert market().short_id == "0xabababab..."

    def test_empty_bracket_rejected(self) -> None:
        with pytest.raises(ValueError, match="Empty bracket"):
            market(lower_bound=80, upper_bound=80)

    def test_inverted_bracket_rejected(self) -> None:
        with pytest.raises(ValueError, match="Empty bracket"):
            market(lower_bound=90, upper_bound=80)

    def test_naive_time_rejected(self) -> None:
        with pytest.raises(ValueError, match="timezone-aware"):
            market(resolution_time=datetime(2023, 11, 14))

    def test_is_hashable(self) -> None:
        assert market() == market()
        assert len({market(), market()}) == 1


class TestMarketConfigFromDict:
    """Test MarketConfig.from_dict."""

    def test_camel_case(self) -> None:
        cfg = MarketConfig.from_dict({
            "conditionId": CONDITION_ID,
            "city": "miami",
            "resolutionTime": "2023-11-14T22:13:20Z",
            "lowerBound": 70,
            "upperBound": 80,
            "marketAddress": "0x0000000000000000000000000000000000000001",
        })

        assert cfg.city == City.MIAMI
        assert cfg.resolution_time == RESOLVES_AT
        assert cfg.market_address == "0x0000000000000000000000000000000000000001"

    def test_snake_case_and_city_code(self) -> None:
        cfg = MarketConfig.from_dict({
            "condition_id": CONDITION_ID,
            "city": 3,
            "resolution_time": 1700000000,
            "lower_bound": -10,
            "upper_bound": 0,
        })

        assert cfg.city == City.AUSTIN
        assert cfg.lower_bound == -10

    def test_packs_question_id(self) -> None:
        cfg = MarketConfig.from_dict({
            "conditionId": CONDITION_ID,
            "city": "CHICAGO",
            "resolutionTime": 1700000000,
            "lowerBound": -100,
            "upperBound": 800,
        })
        decoded = decode_question_id(cfg.question_id)

        assert decoded.city == City.CHICAGO
        assert decoded.lower_bound == -100
        assert decoded.upper_bound == 800
        assert decoded.resolution_time == RESOLVES_AT

    def test_explicit_question_id_kept(self) -> None:
        qid = "0x" + "01" * 32
        cfg = MarketConfig.from_dict({
            "conditionId": CONDITION_ID,
            "questionId": qid,
            "city": "nyc",
            "resolutionTime": 1700000000,
            "lowerBound": 0,
            "upperBound": 10,
        })
        assert cfg.question_id == qid

    def test_missing_field(self) -> None:
        with pytest.raises(ValueError, match="missing 'upperBound'"):
            MarketConfig.from_dict({
                "conditionId": CONDITION_ID,
                "city": "nyc",
                "resolutionTime": 1700000000,
                "lowerBound": 0,
            })

    def test_unknown_city(self) -> None:
        with pytest.raises(ValueError, match="Unknown city 'paris'"):
            MarketConfig.from_dict({
                "conditionId": CONDITION_ID,
                "city": "paris",
                "resolutionTime": 1700000000,
                "lowerBound": 0,
                "upperBound": 10,
            })

    def test_resolution_time_in_future(self) -> None:
        future = datetime.now(timezone.utc) + timedelta(days=1)
        cfg = MarketConfig.from_dict({
            "conditionId": CONDITION_ID,
            "city": "nyc",
            "resolutionTime": future.isoformat(),
            "lowerBound": 0,
            "upperBound": 10,
        })
        assert cfg.resolution_time == future

    def test_non_object_rejected(self) -> None:
        for entry in ([1], 1, "nyc", None):
            with pytest.raises(ValueError, match="Market entry must be an object"):
                MarketConfig.from_dict(entry)

    def test_non_string_condition_id(self) -> None:
        with pytest.raises(ValueError, match="Invalid bytes32 value"):
            MarketConfig.from_dict({
                "conditionId": 5,
                "city": "nyc",
                "resolutionTime": 1700000000,
                "lowerBound": 70,
                "upperBound": 80,
            })

    def test_fractional_bound_rejected(self) -> None:
        """A 70.5 bound is refused rather than truncated to 70."""
        with pytest.raises(ValueError, match="lowerBound must be an integer, got 70.5"):
            MarketConfig.from_dict({
                "conditionId": CONDITION_ID,
                "city": "nyc",
                "resolutionTime": 1700000000,
                "lowerBound": 70.5,
                "upperBound": 80,
            })

    def test_integral_float_bounds(self) -> None:
        cfg = MarketConfig.from_dict({
            "conditionId": CONDITION_ID,
            "city": "nyc",
            "resolutionTime": 1700000000,
            "lowerBound": 70.0,
            "upperBound": 80.0,
        })
        assert (cfg.lower_bound, cfg.upper_bound) == (70, 80)
        assert decode_question_id(cfg.question_id).lower_bound == 70
