"""Tests for the null-safe numeric helpers and the percent normalizer."""

import logging
import math

import pytest

from climatology_engine.numeric_helpers import (
    count_at_least,
    maximum,
    mean,
    minimum,
    round2,
    to_number,
    total,
)
from climatology_engine.percent import is_out_of_range_percent, normalize_percent


class TestNullSafeAggregates:
    """Test cases for mean, total, minimum and maximum."""

    def test_ignores_missing_and_non_finite_values(self):
        values = [1.0, None, 3.0, math.nan, math.inf, -math.inf]

        assert mean(values) == 2.0
        assert total(values) == 4.0
        assert minimum(values) == 1.0
        assert maximum(values) == 3.0

    @pytest.mark.parametrize("values", [[], [None], [None, math.nan, math.inf]])
    def test_all_null_input_gives_none(self, values):
        assert mean(values) is None
        assert total(values) is None
        assert minimum(values) is None
        assert maximum(values) is None

    def test_booleans_are_not_numbers(self):
        assert mean([True, 2.0]) == 2.0
        assert total([False]) is None

    def test_numeric_text_is_accepted(self):
        assert total(["1,000", 2]) == 1002.0
        assert mean(["n/a", "4"]) == 4.0

    def test_total_is_independent_of_order(self):
        values = [0.1] * 10 + [1e16, -1e16]

        assert total(values) == total(list(reversed(values)))

    def test_count_at_least_is_inclusive(self):
        assert count_at_least([2.5, 2.49, None, 3.0, math.nan], 2.5) == 2


class TestRound2:
    """Test cases for two-decimal rounding."""

    def test_rounds_half_up(self):
        assert round2(0.125) == 0.13
        assert round2(-0.125) == -0.12
        assert round2(30) == 30.0

    def test_negative_zero_is_normalized(self):
        result = round2(-0.001)

        assert result == 0.0
        assert math.copysign(1.0, result) == 1.0
        assert math.copysign(1.0, round2(-0.0)) == 1.0

    @pytest.mark.parametrize("value", [None, math.nan, math.inf, "abc"])
    def test_invalid_input_gives_none(self, value):
        assert round2(value) is None

    @pytest.mark.parametrize(
        "value", [0.0, 1.0, 2.675, -3.14159, 1234.5678, 0.005, -0.015, 99.999]
    )
    def test_idempotent(self, value):
        assert round2(round2(value)) == round2(value)

    def test_to_number(self):
        assert to_number(" 12.5 ") == 12.5
        assert to_number("") is None
        assert to_number(True) is None
        assert to_number(math.nan) is None


class TestLargeValues:
    """Test cases for values at the edge of the float range."""

    def test_huge_integers_are_not_numbers(self):
        assert to_number(10**400) is None
        assert total([10**400, 2]) == 2.0

    def test_overflowing_sum(self):
        assert total([1e308, 1e308]) == math.inf
        assert mean([1e308, 1e308]) == math.inf
        assert round2(total([1e308, 1e308])) is None

    def test_round2_keeps_values_too_large_to_scale(self):
        assert round2(1e307) == 1e307
        assert round2(round2(1e307)) == round2(1e307)
        assert round2(-1e307) == -1e307


class TestPercentNormalizer:
    """Test cases for normalize_percent."""

    def test_fraction_passes_through(self):
        assert normalize_percent(0.5) == 0.5
        assert normalize_percent(1) == 1.0

    def test_whole_percentage_is_divided(self):
        assert normalize_percent(84) == 0.84
        assert normalize_percent(100) == 1.0
        assert normalize_percent("84") == 0.84

    def test_trailing_percent_sign_is_always_divided(self):
        assert normalize_percent("12%") == 0.12
        assert normalize_percent(" 0.5 %") == 0.005

    def test_values_above_100_pass_through(self):
        assert normalize_percent(150) == 150
        assert is_out_of_range_percent(150)

    @pytest.mark.parametrize("value", [None, "", "abc", "%", True, math.nan])
    def test_unparseable_gives_none(self, value):
        assert normalize_percent(value) is None

    def test_in_range_values_are_not_flagged(self):
        assert not is_out_of_range_percent(0.5)
        assert not is_out_of_range_percent(None)
        assert not is_out_of_range_percent("60%")

    def test_out_of_range_value_is_logged_once(self, caplog):
        with caplog.at_level(logging.WARNING, logger="climatology_engine.percent"):
            assert normalize_percent(150) == 150
            assert is_out_of_range_percent(150)

        warnings = [
            record for record in caplog.records if record.levelno == logging.WARNING
        ]
        assert len(warnings) == 1
        assert "150" in warnings[0].getMessage()
