"""Climatology Window Construction

This module turns the monthly aggregate history of a station into
climatology tables: one row per month plus an annual row, computed over a
range of years. Three kinds of tables are produced:

- Fixed windows: base-aligned periods such as 1961-1990 and 1991-2020,
  titled "Climatology_<start>_<end>"
- Custom windows: any requested range, titled "Climatology (<start>-<end>)"
- Master table: every available year, titled "Climatology Master". Its
  records are merged with the records already persisted for that table so
  they never regress between runs

Month Row Computation:
- Means of the thirteen monthly statistics across the years of the window.
  Percent possible sunshine is normalized before averaging
- N: number of years with an aggregate for the month
- Warmest / coldest: highest mean Tmax and lowest mean Tmin among the years
- Wettest: highest monthly precipitation total and its year, earliest year
  on ties
- Records: the best of the aggregates' own record pairs, improved by the
  record buckets limited to the window's years when buckets are given

Annual Row Computation:
The annual row is derived from the twelve month rows only. Intensity columns
(temperatures, dew point, humidity, percent sunshine) are averaged; total
columns (rain, snow, precipitation, their day counts, sunshine hours) are
summed, so annual sunshine hours are the yearly total rather than the
average of the month rows used by older tables. N and warmest take the
maximum, coldest the minimum and wettest the maximum of the month rows.
The annual row carries no wettest year and no records.

The builder is stateless: every call recomputes its tables from the full
input.

Example:
    builder = ClimatologyTableConstructor(EngineConfig())

    windows = builder.fixed_windows(aggregates, record_buckets=buckets)
    master = builder.master(aggregates, existing_records=persisted, record_buckets=buckets)
"""

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from climatology_engine.config import EngineConfig
from climatology_engine.models import (
    ClimatologyWindow,
    ClimoMonthRow,
    CountKind,
    Metric,
    MonthlyAggregate,
    MonthlyDailyRecordBucket,
    MonthlyRecordSet,
    RecordPair,
)
from climatology_engine.numeric_helpers import maximum, mean, minimum, round2, total
from climatology_engine.percent import normalize_percent
from climatology_engine.record_merger import merge_monthly_records
from climatology_engine.record_tracker import reduce_bucket
from climatology_engine.variables import MONTH_NAMES

MASTER_TITLE = "Climatology Master"
ANNUAL_LABEL = "Annual (from monthly means)"

INTENSITY_COLUMNS = (
    "mean_tmax",
    "mean_tmin",
    "mean_temperature",
    "mean_dew_point",
    "mean_relative_humidity",
    "mean_percent_sunshine",
)

TOTAL_COLUMNS = (
    "mean_rain",
    "mean_rainy_days",
    "mean_snowfall",
    "mean_snowy_days",
    "mean_precipitation",
    "mean_wet_days",
    "mean_sunshine_hours",
)


def fixed_window_title(start_year: int, end_year: int) -> str:
    return f"Climatology_{start_year}_{end_year}"


def custom_window_title(start_year: int, end_year: int) -> str:
    return f"Climatology ({start_year}-{end_year})"


def build_windows(
    min_year: int,
    max_year: int,
    base_start_year: int,
    window_years: int,
    step_years: int,
    max_windows: int = 50,
) -> List[Tuple[int, int]]:
    """Enumerate the base-aligned windows that fit the observed years.

    The first window starts at the first year base_start_year + k * step_years
    that is not before min_year. Windows are emitted while their end does not
    pass max_year; generation stops once a start passes max_year or
    max_windows windows were produced.

    Args:
        min_year (int): First observed year.
        max_year (int): Last observed year.
        base_start_year (int): Alignment year of the windows.
        window_years (int): Window length in years.
        step_years (int): Distance between window starts.
        max_windows (int): Upper bound on the number of windows.

    Returns:
        List[Tuple[int, int]]: Inclusive (start, end) year pairs. Empty for
            non-positive window or step lengths.

    Example:
        build_windows(1950, 2020, 1961, 30, 30) -> [(1961, 1990), (1991, 2020)]
    """
    if window_years <= 0 or step_years <= 0 or max_windows <= 0:
        return []

    # ceil((min_year - base_start_year) / step_years) in integer arithmetic
    k = -((base_start_year - min_year) // step_years)

    windows: List[Tuple[int, int]] = []
    while len(windows) < max_windows:
        start = base_start_year + k * step_years
        end = start + window_years - 1
        if start > max_year:
            break
        if end <= max_year:
            windows.append((start, end))
        k += 1

    return windows


def available_year_range(
    aggregates: Sequence[MonthlyAggregate],
) -> Optional[Tuple[int, int]]:
    """Return (first year, last year) of the aggregates or None when empty."""
    if not aggregates:
        return None

    years = [aggregate.year for aggregate in aggregates]

    return min(years), max(years)


def _best_pair(
    pairs: Sequence[RecordPair], highest: bool, require_positive: bool = False
) -> RecordPair:
    # pairs are in year order, so the first of equal values is the earliest
    best = RecordPair()
    for pair in pairs:
        if pair.value is None or (require_positive and not pair.value > 0):
            continue
        if (
            best.value is None
            or (highest and pair.value > best.value)
            or (not highest and pair.value < best.value)
        ):
            best = pair

    return best


class ClimatologyTableConstructor:
    """Builds climatology tables from monthly aggregates.

    Attributes:
        config (EngineConfig): Window parameters.
        logger: Configured logger for table construction monitoring.
    """

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self.config = config or EngineConfig()

        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s - %(levelname)s - %(message)s",
        )
        self.logger = logging.getLogger(name=self.__class__.__name__)

    def __bucket_by_month(
        self, aggregates: Sequence[MonthlyAggregate], start_year: int, end_year: int
    ) -> Dict[int, List[MonthlyAggregate]]:
        """Group the aggregates inside [start_year, end_year] by month.

        Each month holds at most one aggregate per year, the last one given,
        and is ordered by year.
        """
        by_key: Dict[Tuple[int, int], MonthlyAggregate] = {}
        for aggregate in aggregates:
            if start_year <= aggregate.year <= end_year:
                by_key[(aggregate.month_index, aggregate.year)] = aggregate

        buckets: Dict[int, List[MonthlyAggregate]] = {
            month: [] for month in range(1, 13)
        }
        for month, year in sorted(by_key):
            buckets[month].append(by_key[(month, year)])

        return buckets

    def __wettest(
        self, bucket: Sequence[MonthlyAggregate]
    ) -> Tuple[Optional[float], Optional[int]]:
        wettest_total: Optional[float] = None
        wettest_year: Optional[int] = None
        for aggregate in bucket:
            value = aggregate.total(Metric.TOTAL_PRECIPITATION)
            if value is None:
                continue
            if wettest_total is None or value > wettest_total:
                wettest_total, wettest_year = value, aggregate.year

        return round2(wettest_total), wettest_year

    def __records(
        self,
        month: int,
        bucket: Sequence[MonthlyAggregate],
        start_year: int,
        end_year: int,
        record_buckets: Optional[Mapping[int, MonthlyDailyRecordBucket]],
        existing_records: Optional[Mapping[int, MonthlyRecordSet]],
    ) -> MonthlyRecordSet:
        records = MonthlyRecordSet(
            high_tmax=_best_pair(
                [aggregate.record_high_tmax for aggregate in bucket], highest=True
            ),
            low_tmin=_best_pair(
                [aggregate.record_low_tmin for aggregate in bucket], highest=False
            ),
            max_24h_precip=_best_pair(
                [aggregate.record_max_24h_precip for aggregate in bucket],
                highest=True,
                require_positive=True,
            ),
            max_24h_snow=_best_pair(
                [aggregate.record_max_24h_snow for aggregate in bucket],
                highest=True,
                require_positive=True,
            ),
        )

        if record_buckets is not None:
            records = merge_monthly_records(
                records, reduce_bucket(record_buckets.get(month), start_year, end_year)
            )

        if existing_records:
            records = merge_monthly_records(existing_records.get(month), records)

        return records

    def __month_row(
        self, month: int, bucket: Sequence[MonthlyAggregate], records: MonthlyRecordSet
    ) -> ClimoMonthRow:
        def means_of(metric: Metric) -> Optional[float]:
            return round2(mean([aggregate.mean(metric) for aggregate in bucket]))

        def totals_of(metric: Metric) -> Optional[float]:
            return round2(mean([aggregate.total(metric) for aggregate in bucket]))

        def counts_of(kind: CountKind) -> Optional[float]:
            return round2(mean([aggregate.count(kind) for aggregate in bucket]))

        wettest_total, wettest_year = self.__wettest(bucket)

        return ClimoMonthRow(
            label=MONTH_NAMES[month - 1],
            mean_tmax=means_of(Metric.MEAN_TMAX),
            mean_tmin=means_of(Metric.MEAN_TMIN),
            mean_temperature=means_of(Metric.MEAN_TEMPERATURE),
            mean_dew_point=means_of(Metric.MEAN_DEW_POINT),
            mean_relative_humidity=means_of(Metric.MEAN_RELATIVE_HUMIDITY),
            mean_rain=totals_of(Metric.TOTAL_RAIN),
            mean_rainy_days=counts_of(CountKind.RAINY_DAYS),
            mean_snowfall=totals_of(Metric.TOTAL_SNOWFALL),
            mean_snowy_days=counts_of(CountKind.SNOWY_DAYS),
            mean_precipitation=totals_of(Metric.TOTAL_PRECIPITATION),
            mean_wet_days=counts_of(CountKind.WET_DAYS),
            mean_sunshine_hours=totals_of(Metric.TOTAL_SUNSHINE_HOURS),
            mean_percent_sunshine=round2(
                mean(
                    [
                        normalize_percent(aggregate.mean(Metric.PERCENT_POSSIBLE_SUNSHINE))
                        for aggregate in bucket
                    ]
                )
            ),
            n_years=len(bucket) or None,
            warmest_mean_tmax=round2(
                maximum([aggregate.mean(Metric.MEAN_TMAX) for aggregate in bucket])
            ),
            coldest_mean_tmin=round2(
                minimum([aggregate.mean(Metric.MEAN_TMIN) for aggregate in bucket])
            ),
            wettest_total=wettest_total,
            wettest_year=wettest_year,
            record_high_tmax=records.high_tmax,
            record_low_tmin=records.low_tmin,
            record_max_24h_precip=records.max_24h_precip,
            record_max_24h_snow=records.max_24h_snow,
        )

    def __annual_row(self, rows: Sequence[ClimoMonthRow]) -> ClimoMonthRow:
        values: Dict[str, Optional[float]] = {}
        for column in INTENSITY_COLUMNS:
            values[column] = round2(mean([getattr(row, column) for row in rows]))
        for column in TOTAL_COLUMNS:
            values[column] = round2(total([getattr(row, column) for row in rows]))

        n_years = maximum([row.n_years for row in rows])

        return ClimoMonthRow(
            label=ANNUAL_LABEL,
            n_years=int(n_years) if n_years is not None else None,
            warmest_mean_tmax=round2(maximum([row.warmest_mean_tmax for row in rows])),
            coldest_mean_tmin=round2(minimum([row.coldest_mean_tmin for row in rows])),
            wettest_total=round2(maximum([row.wettest_total for row in rows])),
            **values,
        )

    def window(
        self,
        aggregates: Sequence[MonthlyAggregate],
        start_year: int,
        end_year: int,
        record_buckets: Optional[Mapping[int, MonthlyDailyRecordBucket]] = None,
        existing_records: Optional[Mapping[int, MonthlyRecordSet]] = None,
        title: Optional[str] = None,
    ) -> ClimatologyWindow:
        """Compute the climatology table of one year range.

        Args:
            aggregates (Sequence[MonthlyAggregate]): Full aggregate history.
                Aggregates outside [start_year, end_year] are ignored.
            start_year (int): First year of the window (inclusive).
            end_year (int): Last year of the window (inclusive).
            record_buckets (Mapping[int, MonthlyDailyRecordBucket] | None):
                Daily record candidates by month. When given, the candidates
                inside the window can improve the aggregates' records.
            existing_records (Mapping[int, MonthlyRecordSet] | None): Persisted
                records by month to merge the computed records with.
            title (str | None): Table title. Defaults to the custom window title.

        Returns:
            ClimatologyWindow: Twelve month rows and the annual row, or no rows
                at all when the window holds no aggregates.
        """
        title = title or custom_window_title(start_year, end_year)
        buckets = self.__bucket_by_month(aggregates, start_year, end_year)

        if not any(buckets.values()):
            self.logger.info(f"No monthly aggregates for {title}.")
            return ClimatologyWindow(
                start_year=start_year, end_year=end_year, rows=[], title=title
            )

        rows = []
        for month in range(1, 13):
            records = self.__records(
                month,
                buckets[month],
                start_year,
                end_year,
                record_buckets,
                existing_records,
            )
            rows.append(self.__month_row(month, buckets[month], records))

        return ClimatologyWindow(
            start_year=start_year,
            end_year=end_year,
            rows=rows,
            annual_row=self.__annual_row(rows),
            title=title,
        )

    def fixed_windows(
        self,
        aggregates: Sequence[MonthlyAggregate],
        record_buckets: Optional[Mapping[int, MonthlyDailyRecordBucket]] = None,
    ) -> List[ClimatologyWindow]:
        """Compute every configured fixed window that fits the available years."""
        year_range = available_year_range(aggregates)
        if year_range is None:
            return []

        spans = build_windows(
            year_range[0],
            year_range[1],
            self.config.base_start_year,
            self.config.window_years,
            self.config.step_years,
            self.config.max_windows,
        )
        self.logger.info(f"Building {len(spans)} fixed windows: {spans}")

        return [
            self.window(
                aggregates,
                start,
                end,
                record_buckets=record_buckets,
                title=fixed_window_title(start, end),
            )
            for start, end in spans
        ]

    def master(
        self,
        aggregates: Sequence[MonthlyAggregate],
        existing_records: Optional[Mapping[int, MonthlyRecordSet]] = None,
        record_buckets: Optional[Mapping[int, MonthlyDailyRecordBucket]] = None,
    ) -> ClimatologyWindow:
        """Compute the all-years table, merging records with persisted ones.

        Returns:
            ClimatologyWindow: The master table. Without aggregates its year
                range is (0, 0) and it holds no rows.
        """
        year_range = available_year_range(aggregates) or (0, 0)

        return self.window(
            aggregates,
            year_range[0],
            year_range[1],
            record_buckets=record_buckets,
            existing_records=existing_records,
            title=MASTER_TITLE,
        )


def compute_window(
    aggregates: Sequence[MonthlyAggregate],
    start_year: int,
    end_year: int,
    record_buckets: Optional[Mapping[int, MonthlyDailyRecordBucket]] = None,
    existing_records: Optional[Mapping[int, MonthlyRecordSet]] = None,
    title: Optional[str] = None,
) -> ClimatologyWindow:
    """Compute one climatology window with the default configuration."""
    return ClimatologyTableConstructor().window(
        aggregates, start_year, end_year, record_buckets, existing_records, title
    )


def compute_fixed_windows(
    aggregates: Sequence[MonthlyAggregate],
    config: Optional[EngineConfig] = None,
    record_buckets: Optional[Mapping[int, MonthlyDailyRecordBucket]] = None,
) -> List[ClimatologyWindow]:
    """Compute every fixed window of config that fits the available years."""
    return ClimatologyTableConstructor(config).fixed_windows(aggregates, record_buckets)


def compute_master(
    aggregates: Sequence[MonthlyAggregate],
    existing_records: Optional[Mapping[int, MonthlyRecordSet]] = None,
    record_buckets: Optional[Mapping[int, MonthlyDailyRecordBucket]] = None,
) -> ClimatologyWindow:
    """Compute the master table with the default configuration."""
    return ClimatologyTableConstructor().master(
        aggregates, existing_records, record_buckets
    )
