"""Climatology Ingestion Service

This module ingests the configured history of daily observations for one
station, one calendar year at a time, and keeps the monthly aggregate table
up to date.

Ingestion Operations:
- Clamps the configured history range to each calendar year
- Retrieves the daily observations of that year from the OpenMeteo Archive API
- Aggregates them into monthly aggregates
- Accumulates daily record candidates of every month across all years
- Upserts the monthly aggregates; persisted record pairs are merged, never lost

The accumulated record candidates are returned so that the climatology service
can build its tables from daily records in the same run.

Usage:
    This module is designed to run as a scheduled job.

Example:
    python -m ingestion_service.ingest

Configuration:
    History range, location and metrics come from the "openmeteo" section and
    thresholds from the "climatology" section of config/config.json.
"""

import logging
from typing import Callable, List, Optional

from climate_models.climate_models import ClimateDatabase
from climatology_engine.config import EngineConfig
from climatology_engine.models import DailyObservation
from climatology_engine.monthly_aggregator import MonthlyTableConstructor
from climatology_engine.record_tracker import RecordBuckets, accumulate
from openmeteo_client.openmeteo_client import (
    OpenMeteoClientConfig,
    fetch_observations,
)

logger = logging.getLogger(name="Ingestion Service")


def run_ingestion(
    config: OpenMeteoClientConfig,
    database: ClimateDatabase,
    engine_config: Optional[EngineConfig] = None,
    fetch: Callable[[OpenMeteoClientConfig], List[DailyObservation]] = fetch_observations,
    record_buckets: Optional[RecordBuckets] = None,
) -> RecordBuckets:
    """Ingest the configured history year by year.

    Args:
        config (OpenMeteoClientConfig): History range, location and metrics.
        database (ClimateDatabase): Store for the monthly aggregates.
        engine_config (EngineConfig | None): Thresholds and valid-day priority.
        fetch (Callable): Retrieves the observations of a one-year configuration.
        record_buckets (RecordBuckets | None): Candidates from earlier batches.

    Returns:
        RecordBuckets: Record candidates of all ingested years by month.
    """
    constructor = MonthlyTableConstructor(engine_config)
    buckets: RecordBuckets = dict(record_buckets or {})

    for year in config.years:
        year_config = config.for_year(year)
        if year_config is None:
            continue

        logger.info(
            f"Ingesting {year_config.history_start_date} to {year_config.history_end_date}"
        )

        observations = fetch(year_config)
        aggregates = constructor.main(year=year, observations=observations)
        buckets = accumulate(buckets, observations)

        database.upsert_monthly_aggregates(aggregates)

    return buckets


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    database = ClimateDatabase()

    try:
        logger.info("Starting ingestion job...")

        database.create_tables()

        config = OpenMeteoClientConfig(create_from_file=True)
        engine_config = EngineConfig(create_from_file=True)

        run_ingestion(config, database, engine_config)

        logger.info("Ingestion completed successfully!")

    except Exception as e:
        logger.exception(f"Ingestion failed: {e}")

    finally:
        database.close()
