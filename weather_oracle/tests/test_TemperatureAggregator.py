"""Unit tests for TemperatureAggregator."""

import pytest

from weather_oracle.src.TemperatureAggregator import (
    AggregatedTemperature,
    TemperatureAggregator,
)
from weather_oracle.src.TemperatureReading import TemperatureReading


def readings(*temps: float | None) -> list[TemperatureReading | None]:
    """Build readings named s0, s1, ... (None stays None)."""
    return [
        None if t is None else TemperatureReading(f"s{i}", t, observed_at_ms=0)
        for i, t in enumerate(temps)
    ]


class TestTemperatureAggregatorInit:
    """Test TemperatureAggregator initialization."""

    def test_default_values(self) -> None:
        """Defaults: quorum of 2, plausible range [-50, 130]."""
        agg = TemperatureAggregator()
        assert agg.min_sources == 2
        assert agg.min_temperature == -50.0
        assert agg.max_temperature == 130.0

    def test_quorum_below_two_rejected(self) -> None:
        """A single source must never be enough."""
        with pytest.raises(ValueError, match="min_sources must be at least 2"):
            TemperatureAggregator(min_sources=1)

    def test_inverted_range_rejected(self) -> None:
        with pytest.raises(ValueError, match="min_temperature must be below"):
            TemperatureAggregator(min_temperature=100, max_temperature=0)


class TestTemperatureAggregatorMedian:
    """Test median computation."""

    def test_median_odd(self) -> None:
        """[60, 65, 70] -> 65."""
        result = TemperatureAggregator().aggregate(readings(60, 65, 70))

        assert result is not None
        assert result.median_fahrenheit == 65
        assert result.source_count == 3

    def test_median_even(self) -> None:
        """[60, 70] -> 65.0 (mean of the middle values)."""
        result = TemperatureAggregator().aggregate(readings(60, 70))

        assert result is not None
        assert result.median_fahrenheit == 65.0
        assert result.source_count == 2

    def test_median_unsorted_input(self) -> None:
        """Order of providers does not affect the median."""
        result = TemperatureAggregator().aggregate(readings(71, 68, 70))

        assert result is not None
        assert result.median_fahrenheit == 70.0

    def test_outlier_provider_does_not_move_median(self) -> None:
        """One wildly wrong (but plausible) provider is outvoted."""
        result = TemperatureAggregator().aggregate(readings(70, 71, 125))

        assert result is not None
        assert result.median_fahrenheit == 71.0

    def test_negative_temperatures(self) -> None:
        result = TemperatureAggregator().aggregate(readings(-10, -12, -11))

        assert result is not None
        assert result.median_fahrenheit == -11.0

    def test_readings_kept_in_source_order(self) -> None:
        """Valid readings are returned in provider order, not sorted."""
        result = TemperatureAggregator().aggregate(readings(71, None, 68, 70))

        assert result is not None
        assert result.sources == ["s0", "s2", "s3"]
        assert [r.temperature for r in result.readings] == [71, 68, 70]


class TestTemperatureAggregatorQuorum:
    """Test quorum handling."""

    def test_empty_readings(self) -> None:
        assert TemperatureAggregator().aggregate([]) is None

    def test_all_absent(self) -> None:
        assert TemperatureAggregator().aggregate(readings(None, None, None)) is None

    def test_single_valid_of_three(self) -> None:
        """One valid reading among three providers does not meet quorum."""
        assert TemperatureAggregator().aggregate(readings(70, None, None)) is None

    def test_two_valid_of_three(self) -> None:
        result = TemperatureAggregator().aggregate(readings(70, None, 72))

        assert result is not None
        assert result.median_fahrenheit == 71.0
        assert result.source_count == 2

    def test_custom_quorum(self) -> None:
        agg = TemperatureAggregator(min_sources=3)
        assert agg.aggregate(readings(70, 71)) is None
        assert agg.aggregate(readings(70, 71, 72)) is not None


class TestTemperatureAggregatorPlausibility:
    """Test the plausible range filter."""

    def test_out_of_range_dropped(self) -> None:
        """Readings outside [-50, 130] are ignored."""
        result = TemperatureAggregator().aggregate(readings(70, 72, 999))

        assert result is not None
        assert result.median_fahrenheit == 71.0
        assert result.source_count == 2

    def test_out_of_range_can_break_quorum(self) -> None:
        assert TemperatureAggregator().aggregate(readings(70, -60, 131)) is None

    def test_bounds_are_inclusive(self) -> None:
        agg = TemperatureAggregator()
        assert agg.is_plausible(-50.0)
        assert agg.is_plausible(130.0)
        assert not agg.is_plausible(-50.1)
        assert not agg.is_plausible(130.1)

    def test_valid_readings_filters_absent_and_implausible(self) -> None:
        valid = TemperatureAggregator().valid_readings(readings(None, 200, 65))
        assert [r.source for r in valid] == ["s2"]


class TestAggregatedTemperature:
    """Test AggregatedTemperature properties."""

    def test_sources_property(self) -> None:
        result = AggregatedTemperature(
            median_fahrenheit=70.0,
            source_count=2,
            readings=(
                TemperatureReading("openmeteo", 69.0, 0),
                TemperatureReading("tomorrow", 71.0, 0),
            ),
        )
        assert result.sources == ["openmeteo", "tomorrow"]

    def test_is_immutable(self) -> None:
        result = TemperatureAggregator().aggregate(readings(60, 70))
        with pytest.raises(AttributeError):
            result.median_fahrenheit = 0.0  # type: ignore[misc]
