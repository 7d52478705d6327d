"""Tests for the climatology database against in-memory SQLite."""

from climate_models.climate_models import ClimateDatabase
from climatology_engine.models import (
    ClimatologyWindow,
    ClimoMonthRow,
    CountKind,
    Metric,
    MonthlyAggregate,
    RecordPair,
)
from climatology_engine.window_builder import ANNUAL_LABEL, MASTER_TITLE, compute_window
from climatology_engine.variables import MONTH_NAMES


def make_aggregate(year=2020, month_index=1, mean_tmax=5.0, **records):
    return MonthlyAggregate(
        year=year,
        month_index=month_index,
        means={Metric.MEAN_TMAX: mean_tmax, Metric.PERCENT_POSSIBLE_SUNSHINE: 45.0},
        totals={Metric.TOTAL_PRECIPITATION: 60.0},
        day_counts={CountKind.WET_DAYS: 12},
        valid_days=31,
        **records,
    )


def make_window(title=MASTER_TITLE, high_tmax=RecordPair(15, "3rd Jan 2000")):
    rows = [
        ClimoMonthRow(label=name, mean_tmax=float(position), n_years=2)
        for position, name in enumerate(MONTH_NAMES)
    ]
    rows[0] = rows[0]._replace(record_high_tmax=high_tmax)

    return ClimatologyWindow(
        start_year=2000,
        end_year=2001,
        rows=rows,
        annual_row=ClimoMonthRow(label=ANNUAL_LABEL, mean_tmax=5.5),
        title=title,
    )


class TestMonthlyAggregates:
    """Test cases for the monthly aggregate table."""

    def test_round_trip(self, database: ClimateDatabase):
        database.upsert_monthly_aggregates(
            [
                make_aggregate(
                    2020, 2, record_high_tmax=RecordPair(14.2, "20th Feb 2020")
                ),
                make_aggregate(2019, 12),
            ]
        )

        stored = database.read_monthly_aggregates()

        assert [(aggregate.year, aggregate.month_index) for aggregate in stored] == [
            (2019, 12),
            (2020, 2),
        ]
        february = stored[1]
        assert february.mean(Metric.MEAN_TMAX) == 5.0
        assert february.mean(Metric.PERCENT_POSSIBLE_SUNSHINE) == 0.45
        assert february.mean(Metric.MEAN_TMIN) is None
        assert february.total(Metric.TOTAL_PRECIPITATION) == 60.0
        assert february.count(CountKind.WET_DAYS) == 12
        assert february.valid_days == 31
        assert february.record_high_tmax == RecordPair(14.2, "20th Feb 2020")
        assert february.record_low_tmin == RecordPair()

    def test_duplicates_in_one_batch_keep_the_last(self, database: ClimateDatabase):
        written = database.upsert_monthly_aggregates(
            [make_aggregate(mean_tmax=5.0), make_aggregate(mean_tmax=7.0)]
        )

        stored = database.read_monthly_aggregates()

        assert len(written) == 1
        assert len(stored) == 1
        assert stored[0].mean(Metric.MEAN_TMAX) == 7.0

    def test_reupsert_overwrites_statistics_and_merges_records(
        self, database: ClimateDatabase
    ):
        database.upsert_monthly_aggregates(
            [
                make_aggregate(
                    mean_tmax=5.0,
                    record_high_tmax=RecordPair(12, "2020"),
                    record_low_tmin=RecordPair(-9, "9th Jan 2020"),
                )
            ]
        )

        written = database.upsert_monthly_aggregates(
            [
                make_aggregate(
                    mean_tmax=6.0,
                    record_high_tmax=RecordPair(12, "4th Jan 2020"),
                    record_low_tmin=RecordPair(-3, "1st Jan 2020"),
                )
            ]
        )

        stored = database.read_monthly_aggregates()

        assert len(stored) == 1
        assert stored[0].mean(Metric.MEAN_TMAX) == 6.0
        assert stored[0].record_high_tmax == RecordPair(12, "4th Jan 2020")
        assert stored[0].record_low_tmin == RecordPair(-9, "9th Jan 2020")
        assert written[0].record_low_tmin == RecordPair(-9, "9th Jan 2020")

    def test_empty_upsert(self, database: ClimateDatabase):
        assert database.upsert_monthly_aggregates([]) == []
        assert database.read_monthly_aggregates() == []


class TestClimatologyTables:
    """Test cases for the climatology row table."""

    def test_replace_window_twice_keeps_one_copy(self, database: ClimateDatabase):
        database.replace_window(make_window())
        database.replace_window(make_window(high_tmax=RecordPair(16, "5th Jan 2001")))

        rows = database.read_window_rows(MASTER_TITLE)

        assert len(rows) == 13
        assert [row.label for row in rows[:12]] == list(MONTH_NAMES)
        assert rows[12].label == ANNUAL_LABEL
        assert rows[0].record_high_tmax == RecordPair(16, "5th Jan 2001")
        assert rows[11].mean_tmax == 11.0

    def test_read_existing_records_skips_annual_row(self, database: ClimateDatabase):
        database.replace_window(make_window())

        records = database.read_existing_records(MASTER_TITLE)

        assert sorted(records) == list(range(1, 13))
        assert records[1].high_tmax == RecordPair(15, "3rd Jan 2000")
        assert records[2].high_tmax == RecordPair()

    def test_unknown_title(self, database: ClimateDatabase):
        assert database.read_window_rows("Climatology_1900_1929") == []
        assert database.read_existing_records(MASTER_TITLE) == {}

    def test_titles(self, database: ClimateDatabase):
        database.replace_window(make_window())
        database.replace_window(make_window(title="Climatology_2000_2001"))

        assert list(database.get_titles()) == [MASTER_TITLE, "Climatology_2000_2001"]

    def test_computed_window_round_trip(self, database: ClimateDatabase):
        window = compute_window(
            [
                make_aggregate(2000, 1, mean_tmax=4.0, record_high_tmax=RecordPair(11, "7th Jan 2000")),
                make_aggregate(2001, 1, mean_tmax=6.0),
            ],
            2000,
            2001,
        )

        database.replace_window(window)

        assert database.read_window_rows(window.title) == window.all_rows()
