"""Record candidate accumulation and reduction.

accumulate() collects, per month of the year, every finite daily maximum
temperature, minimum temperature, precipitation and snowfall value together
with its date. It returns new buckets and leaves the buckets it was given
untouched, so several ingestion batches can be folded into one accumulator:

    buckets = accumulate(None, observations_1990)
    buckets = accumulate(buckets, observations_1991)

pick_max() and pick_min() reduce a list of candidates to a RecordPair. When
several candidates share the extreme value the earliest date wins, whatever
the order of the candidates.
"""

import logging
from typing import Callable, Dict, Iterable, Mapping, Optional, Sequence

from climatology_engine.models import (
    DailyObservation,
    DailyRecordPoint,
    MonthlyDailyRecordBucket,
    MonthlyRecordSet,
    RecordPair,
)
from climatology_engine.numeric_helpers import round2
from climatology_engine.variables import (
    DailyVariable,
    format_record_date,
    parse_iso_date,
)

logger = logging.getLogger(__name__)

RecordBuckets = Dict[int, MonthlyDailyRecordBucket]

TRACKED_VARIABLES = (
    ("tmax", DailyVariable.TEMPERATURE_MAX),
    ("tmin", DailyVariable.TEMPERATURE_MIN),
    ("precip", DailyVariable.PRECIPITATION_SUM),
    ("snow", DailyVariable.SNOWFALL_SUM),
)


def accumulate(
    existing: Optional[Mapping[int, MonthlyDailyRecordBucket]],
    observations: Iterable[DailyObservation],
) -> RecordBuckets:
    """Add the record candidates of observations to a copy of existing.

    Args:
        existing (Mapping[int, MonthlyDailyRecordBucket] | None): Buckets from
            earlier batches keyed by month of the year (1..12).
        observations (Iterable[DailyObservation]): New daily observations.
            Observations with a malformed date are skipped.

    Returns:
        Dict[int, MonthlyDailyRecordBucket]: Updated buckets keyed by month.
    """
    buckets: RecordBuckets = {
        month: bucket.copy() for month, bucket in (existing or {}).items()
    }

    skipped = 0
    for observation in observations:
        day = parse_iso_date(observation.iso_date)
        if day is None:
            skipped += 1
            continue

        bucket = buckets.setdefault(day.month, MonthlyDailyRecordBucket())
        for attribute, variable in TRACKED_VARIABLES:
            value = observation.value(variable)
            if value is not None:
                getattr(bucket, attribute).append(
                    DailyRecordPoint(value=value, iso_date=observation.iso_date)
                )

    if skipped:
        logger.debug(f"Skipped {skipped} observations with malformed dates.")

    return buckets


def _pick(
    points: Sequence[DailyRecordPoint],
    is_better: Callable[[float, float], bool],
    start_year: Optional[int],
    end_year: Optional[int],
    require_positive: bool,
) -> RecordPair:
    best: Optional[DailyRecordPoint] = None
    for point in points:
        year = point.year
        if year is None:
            continue
        if start_year is not None and year < start_year:
            continue
        if end_year is not None and year > end_year:
            continue
        if require_positive and not point.value > 0:
            continue
        if (
            best is None
            or is_better(point.value, best.value)
            or (point.value == best.value and point.iso_date < best.iso_date)
        ):
            best = point

    if best is None:
        return RecordPair()

    return RecordPair(
        value=round2(best.value), date=format_record_date(parse_iso_date(best.iso_date))
    )


def pick_max(
    points: Sequence[DailyRecordPoint],
    start_year: Optional[int] = None,
    end_year: Optional[int] = None,
    require_positive: bool = False,
) -> RecordPair:
    """Pick the highest candidate, earliest date first on ties.

    Args:
        points (Sequence[DailyRecordPoint]): Candidates. Candidates with a
            malformed date are skipped.
        start_year (int | None): Ignore candidates before this year.
        end_year (int | None): Ignore candidates after this year.
        require_positive (bool): Ignore candidates that are not > 0.

    Returns:
        RecordPair: The rounded value and its formatted date, or an empty pair.
    """
    return _pick(points, lambda a, b: a > b, start_year, end_year, require_positive)


def pick_min(
    points: Sequence[DailyRecordPoint],
    start_year: Optional[int] = None,
    end_year: Optional[int] = None,
    require_positive: bool = False,
) -> RecordPair:
    """Pick the lowest candidate, earliest date first on ties."""
    return _pick(points, lambda a, b: a < b, start_year, end_year, require_positive)


def reduce_bucket(
    bucket: Optional[MonthlyDailyRecordBucket],
    start_year: Optional[int] = None,
    end_year: Optional[int] = None,
) -> MonthlyRecordSet:
    """Reduce one month's candidates to its four record pairs."""
    if bucket is None:
        return MonthlyRecordSet()

    return MonthlyRecordSet(
        high_tmax=pick_max(bucket.tmax, start_year, end_year),
        low_tmin=pick_min(bucket.tmin, start_year, end_year),
        max_24h_precip=pick_max(
            bucket.precip, start_year, end_year, require_positive=True
        ),
        max_24h_snow=pick_max(bucket.snow, start_year, end_year, require_positive=True),
    )
