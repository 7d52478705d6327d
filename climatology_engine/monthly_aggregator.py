"""Monthly Aggregation of Daily Weather Observations

This module reduces daily observations into one MonthlyAggregate per calendar
month. It is the first stage of the climatology pipeline; its output is the
unit persisted by the aggregate store and consumed by the window builder.

Aggregation Rules:
- Temperatures, dew point, relative humidity, pressure, cloud cover and wind
  speed: mean over the finite daily values
- Rain, snowfall and precipitation: monthly totals
- Sunshine: total sunshine_duration converted from seconds to hours
- Percent possible sunshine: total sunshine_duration / total daylight_duration
- Rainy, snowy and wet days: days at or above the configured thresholds
- Records: highest tmax, lowest tmin and the largest positive daily rain,
  snowfall and precipitation, earliest date first on ties
- Valid days: finite values of the first valid-day priority variable present
  in the month, otherwise the number of observations

Every statistic is rounded with round2. Observations are processed in date
order, so the same observations in any order give an identical aggregate.

Example:
    constructor = MonthlyTableConstructor(EngineConfig())
    aggregates = constructor.main(year=2020, observations=observations)

    march = aggregate_month(2020, 3, march_observations, EngineConfig())
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from climatology_engine.config import EngineConfig
from climatology_engine.models import (
    CountKind,
    DailyObservation,
    DailyRecordPoint,
    Metric,
    MonthlyAggregate,
)
from climatology_engine.numeric_helpers import (
    count_at_least,
    mean,
    round2,
    total,
)
from climatology_engine.record_tracker import pick_max, pick_min
from climatology_engine.variables import DailyVariable, parse_iso_date

SECONDS_PER_HOUR = 3600

MEAN_SOURCES = {
    Metric.MEAN_TMAX: DailyVariable.TEMPERATURE_MAX,
    Metric.MEAN_TMIN: DailyVariable.TEMPERATURE_MIN,
    Metric.MEAN_TEMPERATURE: DailyVariable.TEMPERATURE_MEAN,
    Metric.MEAN_DEW_POINT: DailyVariable.DEW_POINT_MEAN,
    Metric.MEAN_RELATIVE_HUMIDITY: DailyVariable.RELATIVE_HUMIDITY_MEAN,
    Metric.MEAN_PRESSURE_MSL: DailyVariable.PRESSURE_MSL_MEAN,
    Metric.MEAN_CLOUD_COVER: DailyVariable.CLOUD_COVER_MEAN,
    Metric.MEAN_WIND_SPEED: DailyVariable.WIND_SPEED_MEAN,
}

TOTAL_SOURCES = {
    Metric.TOTAL_RAIN: DailyVariable.RAIN_SUM,
    Metric.TOTAL_SNOWFALL: DailyVariable.SNOWFALL_SUM,
    Metric.TOTAL_PRECIPITATION: DailyVariable.PRECIPITATION_SUM,
}


def _column(
    observations: Sequence[DailyObservation], variable: DailyVariable
) -> List[Optional[float]]:
    return [observation.value(variable) for observation in observations]


def _points(
    observations: Sequence[DailyObservation], variable: DailyVariable
) -> List[DailyRecordPoint]:
    return [
        DailyRecordPoint(value=value, iso_date=observation.iso_date)
        for observation in observations
        if (value := observation.value(variable)) is not None
    ]


def _valid_days(
    observations: Sequence[DailyObservation], priority: Iterable[DailyVariable]
) -> int:
    for variable in priority:
        if any(observation.has(variable) for observation in observations):
            return sum(
                1 for value in _column(observations, variable) if value is not None
            )

    return len(observations)


def aggregate_month(
    year: int,
    month_index: int,
    observations: Iterable[DailyObservation],
    config: Optional[EngineConfig] = None,
) -> MonthlyAggregate:
    """Reduce the daily observations of one calendar month.

    Args:
        year (int): Calendar year of the month.
        month_index (int): Month of the year, 1..12.
        observations (Iterable[DailyObservation]): Observations of that month.
            Observations with a malformed date are skipped.
        config (EngineConfig | None): Thresholds and valid-day priority.
            Defaults to EngineConfig().

    Returns:
        MonthlyAggregate: Aggregate of the month. Metrics without any finite
            value are None; an empty month gives zero counts and zero valid days.
    """
    config = config or EngineConfig()

    rows = sorted(
        (
            observation
            for observation in observations
            if parse_iso_date(observation.iso_date) is not None
        ),
        key=lambda observation: observation.iso_date,
    )

    means: Dict[Metric, Optional[float]] = {
        metric: round2(mean(_column(rows, variable)))
        for metric, variable in MEAN_SOURCES.items()
    }
    totals: Dict[Metric, Optional[float]] = {
        metric: round2(total(_column(rows, variable)))
        for metric, variable in TOTAL_SOURCES.items()
    }

    sunshine_seconds = total(_column(rows, DailyVariable.SUNSHINE_DURATION))
    daylight_seconds = total(_column(rows, DailyVariable.DAYLIGHT_DURATION))

    totals[Metric.TOTAL_SUNSHINE_HOURS] = (
        round2(sunshine_seconds / SECONDS_PER_HOUR)
        if sunshine_seconds is not None
        else None
    )
    means[Metric.PERCENT_POSSIBLE_SUNSHINE] = (
        round2(sunshine_seconds / daylight_seconds)
        if sunshine_seconds is not None and daylight_seconds
        else None
    )

    day_counts = {
        CountKind.RAINY_DAYS: count_at_least(
            _column(rows, DailyVariable.RAIN_SUM), config.rain_threshold_mm
        ),
        CountKind.SNOWY_DAYS: count_at_least(
            _column(rows, DailyVariable.SNOWFALL_SUM), config.snow_threshold_cm
        ),
        CountKind.WET_DAYS: count_at_least(
            _column(rows, DailyVariable.PRECIPITATION_SUM),
            config.precipitation_threshold_mm,
        ),
    }

    return MonthlyAggregate(
        year=year,
        month_index=month_index,
        means=means,
        totals=totals,
        day_counts=day_counts,
        record_high_tmax=pick_max(_points(rows, DailyVariable.TEMPERATURE_MAX)),
        record_low_tmin=pick_min(_points(rows, DailyVariable.TEMPERATURE_MIN)),
        record_max_24h_precip=pick_max(
            _points(rows, DailyVariable.PRECIPITATION_SUM), require_positive=True
        ),
        record_max_24h_snow=pick_max(
            _points(rows, DailyVariable.SNOWFALL_SUM), require_positive=True
        ),
        record_max_24h_rain=pick_max(
            _points(rows, DailyVariable.RAIN_SUM), require_positive=True
        ),
        valid_days=_valid_days(rows, config.valid_day_priority),
    )


class MonthlyTableConstructor:
    """Builds the monthly aggregate table of one year from daily observations.

    Observations are placed in a pandas DataFrame to parse their dates and
    group them by month. Each month group is then reduced with
    aggregate_month(). Observations with a malformed date or a date outside
    the requested year are dropped before grouping.

    Attributes:
        config (EngineConfig): Thresholds and valid-day priority.
        logger: Configured logger for aggregation monitoring.

    Example:
        constructor = MonthlyTableConstructor(EngineConfig())
        aggregates = constructor.main(year=2020, observations=observations)
        print([aggregate.month_name for aggregate in aggregates])
    """

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self.config = config or EngineConfig()

        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s - %(levelname)s - %(message)s",
        )
        self.logger = logging.getLogger(name=self.__class__.__name__)

    def __frame(self, observations: Sequence[DailyObservation]) -> pd.DataFrame:
        """Index observations by parsed date.

        Returns:
            pd.DataFrame: One row per observation with the columns 'position'
                (index into observations) and 'date' (datetime, NaT when the
                date is malformed).
        """
        data = pd.DataFrame(
            {
                "position": range(len(observations)),
                "date": [
                    (
                        observation.iso_date
                        if parse_iso_date(observation.iso_date)
                        else None
                    )
                    for observation in observations
                ],
            }
        )
        data["date"] = pd.to_datetime(data["date"], format="%Y-%m-%d", errors="coerce")

        return data

    def __trim_data(self, data: pd.DataFrame, year: int) -> pd.DataFrame:
        trimmed = data[data["date"].notna() & (data["date"].dt.year == year)].copy()

        dropped = len(data) - len(trimmed)
        if dropped:
            self.logger.info(
                f"Dropped {dropped} observations with malformed dates or outside {year}."
            )

        return trimmed

    def main(
        self, year: int, observations: Iterable[DailyObservation]
    ) -> List[MonthlyAggregate]:
        """Aggregate one year of daily observations by calendar month.

        Args:
            year (int): Year to aggregate.
            observations (Iterable[DailyObservation]): Daily observations,
                in any order.

        Returns:
            List[MonthlyAggregate]: Aggregates from January to December for
                every month with at least one observation.
        """
        observations = list(observations)
        if not observations:
            return []

        data = self.__trim_data(self.__frame(observations), year)
        data["month"] = data["date"].dt.month

        aggregates = []
        for month, group in data.groupby("month", sort=True):
            month_rows = [observations[position] for position in group["position"]]
            aggregates.append(
                aggregate_month(year, int(month), month_rows, self.config)
            )

        self.logger.info(f"Aggregated {len(aggregates)} months of {year}.")

        return aggregates