"""Merging of persisted record extremes with new candidates.

A persisted record only ever improves. For every record pair the merger
keeps the more extreme value; on equal values it keeps the persisted date
unless that date is imprecise (missing or a bare year such as "2001") and the
candidate carries a full date such as "4th Jan 2001". All merges are
idempotent:

    merge_max(merge_max(a, b), b) == merge_max(a, b)
"""

import operator
from dataclasses import replace
from typing import Callable, Optional

from climatology_engine.models import MonthlyAggregate, MonthlyRecordSet, RecordPair
from climatology_engine.variables import is_imprecise_date


def _merge(
    existing: Optional[RecordPair],
    incoming: Optional[RecordPair],
    is_more_extreme: Callable[[float, float], bool],
) -> RecordPair:
    existing = existing or RecordPair()
    incoming = incoming or RecordPair()

    if incoming.value is None:
        return existing
    if existing.value is None:
        return incoming
    if incoming.value != existing.value:
        return incoming if is_more_extreme(incoming.value, existing.value) else existing

    if is_imprecise_date(existing.date) and not is_imprecise_date(incoming.date):
        return incoming

    return existing


def merge_max(
    existing: Optional[RecordPair], incoming: Optional[RecordPair]
) -> RecordPair:
    """Merge a heat or wet record, keeping the higher value."""
    return _merge(existing, incoming, operator.gt)


def merge_min(
    existing: Optional[RecordPair], incoming: Optional[RecordPair]
) -> RecordPair:
    """Merge a cold record, keeping the lower value."""
    return _merge(existing, incoming, operator.lt)


def merge_monthly_records(
    existing: Optional[MonthlyRecordSet], incoming: MonthlyRecordSet
) -> MonthlyRecordSet:
    """Merge the four record pairs of a climatology row.

    Args:
        existing (MonthlyRecordSet | None): Records read from the store for
            this month, if any.
        incoming (MonthlyRecordSet): Records computed in the current run.

    Returns:
        MonthlyRecordSet: Records that are never worse than existing.
    """
    if existing is None:
        return incoming

    return MonthlyRecordSet(
        high_tmax=merge_max(existing.high_tmax, incoming.high_tmax),
        low_tmin=merge_min(existing.low_tmin, incoming.low_tmin),
        max_24h_precip=merge_max(existing.max_24h_precip, incoming.max_24h_precip),
        max_24h_snow=merge_max(existing.max_24h_snow, incoming.max_24h_snow),
    )


def merge_aggregate_records(
    existing: Optional[MonthlyAggregate], incoming: MonthlyAggregate
) -> MonthlyAggregate:
    """Carry persisted records of the same (year, month) into a rebuilt aggregate.

    Statistics always come from incoming. Only the record pairs are merged.
    """
    if existing is None:
        return incoming

    return replace(
        incoming,
        record_high_tmax=merge_max(existing.record_high_tmax, incoming.record_high_tmax),
        record_low_tmin=merge_min(existing.record_low_tmin, incoming.record_low_tmin),
        record_max_24h_precip=merge_max(
            existing.record_max_24h_precip, incoming.record_max_24h_precip
        ),
        record_max_24h_snow=merge_max(
            existing.record_max_24h_snow, incoming.record_max_24h_snow
        ),
        record_max_24h_rain=merge_max(
            existing.record_max_24h_rain, incoming.record_max_24h_rain
        ),
    )
