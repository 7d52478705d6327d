"""Climatology Engine Data Model

This module defines the in-memory entities exchanged between the components of
the climatology engine. They are plain dataclasses and NamedTuples: the
engine never persists them itself, the aggregate store maps them onto tables.

Entities:
- DailyObservation: one station-day of Open-Meteo daily variables
- RecordPair: an extreme value together with the day it occurred
- DailyRecordPoint / MonthlyDailyRecordBucket: record candidates for one month of the year
- MonthlyRecordSet: the four record pairs carried by a climatology row
- MonthlyAggregate: one (year, month) reduced to means, totals and day counts
- ClimoMonthRow: one climatology table row with a fixed 27-cell layout
- ClimatologyWindow: twelve month rows plus an annual row for a year range

Invariants:
- RecordPair.date is None exactly when RecordPair.value is None
- MonthlyAggregate statistics are already rounded to two decimals
- ClimoMonthRow.to_cells() always returns 27 cells in the documented order
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, NamedTuple, Optional

from climatology_engine.variables import DailyVariable, month_name, parse_iso_date


class Metric(str, Enum):
    """Mean- and total-type statistics of a MonthlyAggregate."""

    MEAN_TMAX = "mean_tmax"
    MEAN_TMIN = "mean_tmin"
    MEAN_TEMPERATURE = "mean_temperature"
    MEAN_DEW_POINT = "mean_dew_point"
    MEAN_RELATIVE_HUMIDITY = "mean_relative_humidity"
    PERCENT_POSSIBLE_SUNSHINE = "percent_possible_sunshine"
    MEAN_PRESSURE_MSL = "mean_pressure_msl"
    MEAN_CLOUD_COVER = "mean_cloud_cover"
    MEAN_WIND_SPEED = "mean_wind_speed"
    TOTAL_RAIN = "total_rain"
    TOTAL_SNOWFALL = "total_snowfall"
    TOTAL_PRECIPITATION = "total_precipitation"
    TOTAL_SUNSHINE_HOURS = "total_sunshine_hours"


MEAN_METRICS = (
    Metric.MEAN_TMAX,
    Metric.MEAN_TMIN,
    Metric.MEAN_TEMPERATURE,
    Metric.MEAN_DEW_POINT,
    Metric.MEAN_RELATIVE_HUMIDITY,
    Metric.PERCENT_POSSIBLE_SUNSHINE,
    Metric.MEAN_PRESSURE_MSL,
    Metric.MEAN_CLOUD_COVER,
    Metric.MEAN_WIND_SPEED,
)

TOTAL_METRICS = (
    Metric.TOTAL_RAIN,
    Metric.TOTAL_SNOWFALL,
    Metric.TOTAL_PRECIPITATION,
    Metric.TOTAL_SUNSHINE_HOURS,
)


class CountKind(str, Enum):
    """Day counts of a MonthlyAggregate."""

    RAINY_DAYS = "rainy_days"
    SNOWY_DAYS = "snowy_days"
    WET_DAYS = "wet_days"


@dataclass(frozen=True)
class DailyObservation:
    """One station-day of daily variables.

    Attributes:
        iso_date (str): Observation day as YYYY-MM-DD.
        variables (Mapping[str, float | None]): Values keyed by Open-Meteo
            daily variable name. Missing values are None.
    """

    iso_date: str
    variables: Mapping[str, Optional[float]] = field(default_factory=dict)

    def has(self, variable: DailyVariable) -> bool:
        return variable.value in self.variables

    def value(self, variable: DailyVariable) -> Optional[float]:
        """Return the finite value of variable or None."""
        raw = self.variables.get(variable.value)
        if raw is None or isinstance(raw, bool):
            return None
        try:
            number = float(raw)
        except (TypeError, ValueError):
            return None

        return number if math.isfinite(number) else None


@dataclass(frozen=True)
class RecordPair:
    """An extreme value and the formatted date it occurred on."""

    value: Optional[float] = None
    date: Optional[str] = None

    def __post_init__(self) -> None:
        if self.value is None and self.date is not None:
            object.__setattr__(self, "date", None)

    @property
    def is_empty(self) -> bool:
        return self.value is None


@dataclass(frozen=True)
class DailyRecordPoint:
    value: float
    iso_date: str

    @property
    def year(self) -> Optional[int]:
        """Year of iso_date, None when the date is malformed."""
        day = parse_iso_date(self.iso_date)

        return day.year if day else None


@dataclass
class MonthlyDailyRecordBucket:
    """Record candidates for one month of the year across all ingested years."""

    tmax: List[DailyRecordPoint] = field(default_factory=list)
    tmin: List[DailyRecordPoint] = field(default_factory=list)
    precip: List[DailyRecordPoint] = field(default_factory=list)
    snow: List[DailyRecordPoint] = field(default_factory=list)

    def copy(self) -> "MonthlyDailyRecordBucket":
        return MonthlyDailyRecordBucket(
            tmax=list(self.tmax),
            tmin=list(self.tmin),
            precip=list(self.precip),
            snow=list(self.snow),
        )

    def __len__(self) -> int:
        return len(self.tmax) + len(self.tmin) + len(self.precip) + len(self.snow)


@dataclass(frozen=True)
class MonthlyRecordSet:
    high_tmax: RecordPair = field(default_factory=RecordPair)
    low_tmin: RecordPair = field(default_factory=RecordPair)
    max_24h_precip: RecordPair = field(default_factory=RecordPair)
    max_24h_snow: RecordPair = field(default_factory=RecordPair)


@dataclass(frozen=True)
class MonthlyAggregate:
    """Statistics of one calendar month of one year.

    Attributes:
        year (int): Calendar year.
        month_index (int): Month of the year, 1..12.
        means (Dict[Metric, float | None]): Mean-type statistics.
        totals (Dict[Metric, float | None]): Total-type statistics.
        day_counts (Dict[CountKind, int]): Days reaching the configured thresholds.
        record_high_tmax (RecordPair): Highest daily maximum temperature.
        record_low_tmin (RecordPair): Lowest daily minimum temperature.
        record_max_24h_precip (RecordPair): Wettest day by precipitation.
        record_max_24h_snow (RecordPair): Snowiest day.
        record_max_24h_rain (RecordPair): Wettest day by rain.
        valid_days (int | None): Days with usable data.
    """

    year: int
    month_index: int
    means: Dict[Metric, Optional[float]] = field(default_factory=dict)
    totals: Dict[Metric, Optional[float]] = field(default_factory=dict)
    day_counts: Dict[CountKind, int] = field(default_factory=dict)
    record_high_tmax: RecordPair = field(default_factory=RecordPair)
    record_low_tmin: RecordPair = field(default_factory=RecordPair)
    record_max_24h_precip: RecordPair = field(default_factory=RecordPair)
    record_max_24h_snow: RecordPair = field(default_factory=RecordPair)
    record_max_24h_rain: RecordPair = field(default_factory=RecordPair)
    valid_days: Optional[int] = None

    @property
    def month_name(self) -> str:
        return month_name(self.month_index)

    @property
    def key(self) -> str:
        return f"{self.year}|{self.month_name.strip().lower()}"

    def mean(self, metric: Metric) -> Optional[float]:
        return self.means.get(metric)

    def total(self, metric: Metric) -> Optional[float]:
        return self.totals.get(metric)

    def count(self, kind: CountKind) -> Optional[int]:
        return self.day_counts.get(kind)

    @property
    def records(self) -> MonthlyRecordSet:
        return MonthlyRecordSet(
            high_tmax=self.record_high_tmax,
            low_tmin=self.record_low_tmin,
            max_24h_precip=self.record_max_24h_precip,
            max_24h_snow=self.record_max_24h_snow,
        )


class ClimoMonthRow(NamedTuple):
    """One row of a climatology table.

    The cell order produced by to_cells() is the column contract of the
    climatology tables: label, thirteen statistics, N years, warmest and
    coldest monthly means, wettest monthly total and its year, then four
    record pairs as value/date cells.
    """

    label: str
    mean_tmax: Optional[float] = None
    mean_tmin: Optional[float] = None
    mean_temperature: Optional[float] = None
    mean_dew_point: Optional[float] = None
    mean_relative_humidity: Optional[float] = None
    mean_rain: Optional[float] = None
    mean_rainy_days: Optional[float] = None
    mean_snowfall: Optional[float] = None
    mean_snowy_days: Optional[float] = None
    mean_precipitation: Optional[float] = None
    mean_wet_days: Optional[float] = None
    mean_sunshine_hours: Optional[float] = None
    mean_percent_sunshine: Optional[float] = None
    n_years: Optional[int] = None
    warmest_mean_tmax: Optional[float] = None
    coldest_mean_tmin: Optional[float] = None
    wettest_total: Optional[float] = None
    wettest_year: Optional[int] = None
    record_high_tmax: RecordPair = RecordPair()
    record_low_tmin: RecordPair = RecordPair()
    record_max_24h_precip: RecordPair = RecordPair()
    record_max_24h_snow: RecordPair = RecordPair()

    @property
    def records(self) -> MonthlyRecordSet:
        return MonthlyRecordSet(
            high_tmax=self.record_high_tmax,
            low_tmin=self.record_low_tmin,
            max_24h_precip=self.record_max_24h_precip,
            max_24h_snow=self.record_max_24h_snow,
        )

    def to_cells(self) -> List[Any]:
        cells: List[Any] = list(self[:19])
        for pair in self[19:]:
            cells.extend([pair.value, pair.date])

        return cells


CLIMO_COLUMNS = (
    "Month",
    "Mean Tmax",
    "Mean Tmin",
    "Mean Temp",
    "Mean Dew Point",
    "Mean RH",
    "Mean Rainfall",
    "Mean Rainy Days",
    "Mean Snowfall",
    "Mean Snowy Days",
    "Mean Monthly Precip",
    "Mean Wet Days",
    "Mean Sunshine Hours",
    "Mean % Possible Sunshine",
    "N (years)",
    "Warmest Monthly Mean Tmax",
    "Coldest Monthly Mean Tmin",
    "Wettest Monthly Total",
    "Wettest Monthly Total Year",
    "Record High Tmax",
    "Record High Tmax Date",
    "Record Low Tmin",
    "Record Low Tmin Date",
    "Record Max 24h Precip",
    "Record Max 24h Precip Date",
    "Record Max 24h Snow",
    "Record Max 24h Snow Date",
)


@dataclass(frozen=True)
class ClimatologyWindow:
    start_year: int
    end_year: int
    rows: List[ClimoMonthRow] = field(default_factory=list)
    annual_row: Optional[ClimoMonthRow] = None
    title: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.rows

    def all_rows(self) -> List[ClimoMonthRow]:
        return self.rows + ([self.annual_row] if self.annual_row else [])
