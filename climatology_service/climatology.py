"""Climatology Table Service

This module rebuilds the climatology tables of a station from its persisted
monthly aggregates.

Table Operations:
- Reads all monthly aggregates from the database
- Reads the records already persisted in the master table
- Writes the master table over all available years, with records merged so
  they never regress; a requested sub-range is written as a custom table
- Writes every fixed window (e.g. 1961-1990, 1991-2020) that fits the data

Record Sources:
Records start from the record pairs stored with the monthly aggregates. When
daily record candidates from an ingestion run are supplied, they can improve
those records but never replace them, so a run that ingested only some years
keeps the records of windows outside those years.

Usage:
    python -m climatology_service.climatology

Example (after an ingestion run):
    buckets = run_ingestion(config, database, engine_config)
    run_climatology(database, engine_config, record_buckets=buckets)
"""

import logging
from typing import List, Optional

from climate_models.climate_models import ClimateDatabase
from climatology_engine.config import EngineConfig
from climatology_engine.record_tracker import RecordBuckets
from climatology_engine.window_builder import (
    MASTER_TITLE,
    ClimatologyTableConstructor,
)

logger = logging.getLogger(name="Climatology Service")


def run_climatology(
    database: ClimateDatabase,
    engine_config: Optional[EngineConfig] = None,
    record_buckets: Optional[RecordBuckets] = None,
    start_year: Optional[int] = None,
    end_year: Optional[int] = None,
) -> List[str]:
    """Rebuild and persist the climatology tables.

    Args:
        database (ClimateDatabase): Store holding the monthly aggregates.
        engine_config (EngineConfig | None): Window parameters.
        record_buckets (RecordBuckets | None): Daily record candidates by month.
        start_year (int | None): First year of a custom table.
        end_year (int | None): Last year of a custom table.

    Returns:
        List[str]: Titles of the tables written, in writing order. Tables
            without rows are not written.
    """
    builder = ClimatologyTableConstructor(engine_config)
    aggregates = database.read_monthly_aggregates()

    if not aggregates:
        logger.info("No monthly aggregates stored. Nothing to build.")
        return []

    if start_year is not None or end_year is not None:
        first_year = min(aggregate.year for aggregate in aggregates)
        last_year = max(aggregate.year for aggregate in aggregates)
        primary = builder.window(
            aggregates,
            start_year if start_year is not None else first_year,
            end_year if end_year is not None else last_year,
            record_buckets=record_buckets,
        )
    else:
        primary = builder.master(
            aggregates,
            existing_records=database.read_existing_records(MASTER_TITLE),
            record_buckets=record_buckets,
        )

    titles = []
    for window in [primary] + builder.fixed_windows(aggregates, record_buckets):
        if window.is_empty:
            logger.info(f"Skipping {window.title}: no data in {window.start_year}-{window.end_year}.")
            continue
        database.replace_window(window)
        titles.append(window.title)

    return titles


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    database = ClimateDatabase()

    try:
        logger.info("Starting climatology job...")

        engine_config = EngineConfig(create_from_file=True)

        titles = run_climatology(database, engine_config)

        logger.info(f"Climatology tables written: {titles}")

    except Exception as e:
        logger.exception(f"Climatology job failed: {e}")

    finally:
        database.close()
