"""Tests for record merging."""

import pytest

from climatology_engine.models import MonthlyAggregate, MonthlyRecordSet, RecordPair
from climatology_engine.record_merger import (
    merge_aggregate_records,
    merge_max,
    merge_min,
    merge_monthly_records,
)


class TestMergeMax:
    """Test cases for merge_max."""

    def test_precise_date_replaces_bare_year_on_equal_values(self):
        merged = merge_max(RecordPair(40, "2001"), RecordPair(40, "4th Jan 2001"))

        assert merged == RecordPair(40, "4th Jan 2001")

    def test_precise_date_is_kept_on_equal_values(self):
        merged = merge_max(RecordPair(40, "4th Jan 2001"), RecordPair(40, "9th Jan 2005"))

        assert merged == RecordPair(40, "4th Jan 2001")

    def test_missing_date_is_replaced(self):
        assert merge_max(RecordPair(40, ""), RecordPair(40, "1st Jan 2000")) == RecordPair(
            40, "1st Jan 2000"
        )

    def test_bare_year_does_not_replace_precise_date(self):
        merged = merge_max(RecordPair(40, "4th Jan 2001"), RecordPair(40, "2001"))

        assert merged == RecordPair(40, "4th Jan 2001")

    def test_higher_value_wins(self):
        assert merge_max(RecordPair(38, "1st Jul 1990"), RecordPair(41, "2nd Jul 2022")) == (
            RecordPair(41, "2nd Jul 2022")
        )

    def test_no_regression(self):
        existing = RecordPair(41, "2nd Jul 2022")

        assert merge_max(existing, RecordPair(38, "1st Jul 1990")) == existing

    @pytest.mark.parametrize(
        "existing, incoming, expected",
        [
            (None, RecordPair(5, "1st Jan 2000"), RecordPair(5, "1st Jan 2000")),
            (RecordPair(5, "1st Jan 2000"), None, RecordPair(5, "1st Jan 2000")),
            (RecordPair(), RecordPair(5, "1st Jan 2000"), RecordPair(5, "1st Jan 2000")),
            (RecordPair(5, "1st Jan 2000"), RecordPair(), RecordPair(5, "1st Jan 2000")),
            (None, None, RecordPair()),
        ],
    )
    def test_missing_sides(self, existing, incoming, expected):
        assert merge_max(existing, incoming) == expected

    def test_idempotent(self):
        existing = RecordPair(40, "2001")
        incoming = RecordPair(40, "4th Jan 2001")
        once = merge_max(existing, incoming)

        assert merge_max(once, incoming) == once
        assert merge_max(once, once) == once


class TestMergeMin:
    """Test cases for merge_min."""

    def test_lower_value_wins(self):
        assert merge_min(RecordPair(-5, "3rd Feb 1991"), RecordPair(-12.5, "7th Feb 2012")) == (
            RecordPair(-12.5, "7th Feb 2012")
        )

    def test_no_regression(self):
        existing = RecordPair(-12.5, "7th Feb 2012")

        assert merge_min(existing, RecordPair(-5, "3rd Feb 1991")) == existing

    def test_equal_values_fill_imprecise_date(self):
        assert merge_min(RecordPair(-3, "1987"), RecordPair(-3, "11th Jan 1987")) == (
            RecordPair(-3, "11th Jan 1987")
        )


class TestMergeRecordSets:
    """Test cases for merge_monthly_records and merge_aggregate_records."""

    def test_without_existing_records(self):
        incoming = MonthlyRecordSet(high_tmax=RecordPair(20, "1st Mar 2020"))

        assert merge_monthly_records(None, incoming) is incoming

    def test_merges_each_pair_in_its_direction(self):
        existing = MonthlyRecordSet(
            high_tmax=RecordPair(25, "2nd Mar 1990"),
            low_tmin=RecordPair(-8, "3rd Mar 1990"),
            max_24h_precip=RecordPair(30, "1990"),
            max_24h_snow=RecordPair(),
        )
        incoming = MonthlyRecordSet(
            high_tmax=RecordPair(22, "5th Mar 2020"),
            low_tmin=RecordPair(-10, "6th Mar 2020"),
            max_24h_precip=RecordPair(30, "7th Mar 1990"),
            max_24h_snow=RecordPair(4.1, "8th Mar 2020"),
        )

        merged = merge_monthly_records(existing, incoming)

        assert merged.high_tmax == RecordPair(25, "2nd Mar 1990")
        assert merged.low_tmin == RecordPair(-10, "6th Mar 2020")
        assert merged.max_24h_precip == RecordPair(30, "7th Mar 1990")
        assert merged.max_24h_snow == RecordPair(4.1, "8th Mar 2020")

    def test_aggregate_keeps_incoming_statistics(self):
        existing = MonthlyAggregate(
            year=2020,
            month_index=5,
            valid_days=10,
            record_high_tmax=RecordPair(28, "4th May 2020"),
            record_max_24h_rain=RecordPair(12, "9th May 2020"),
        )
        incoming = MonthlyAggregate(
            year=2020,
            month_index=5,
            valid_days=31,
            record_high_tmax=RecordPair(26, "20th May 2020"),
            record_max_24h_rain=RecordPair(15, "21st May 2020"),
        )

        merged = merge_aggregate_records(existing, incoming)

        assert merged.valid_days == 31
        assert merged.record_high_tmax == RecordPair(28, "4th May 2020")
        assert merged.record_max_24h_rain == RecordPair(15, "21st May 2020")
        assert merge_aggregate_records(None, incoming) is incoming
