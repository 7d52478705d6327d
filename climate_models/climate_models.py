"""Climatology Data Models and Database Management

This module defines the SQLAlchemy ORM tables that persist monthly aggregates
and climatology tables, and the ClimateDatabase interface the services use to
read and write them.

Core Components:

Database Models:
- ClimateBase: Abstract base class with the shared primary key
- MonthlyAggregateTable: One row per (year, month name)
- ClimatologyRowTable: Rows of the climatology tables, keyed by title and row order

Database Management:
- DatabaseEngine: Connection configuration from a URL or POSTGRES_* variables
- ClimateDatabase: Upserts, reads and wholesale table replacement

Persistence Rules:
- Monthly aggregates are de-duplicated by (year, month name) before writing.
  Statistics of an existing row are overwritten, record pairs are merged with
  the persisted ones and never regress
- Climatology tables are replaced wholesale per title
- Percent possible sunshine is normalized when aggregates are read back

Database Configuration:
Without an explicit URL the engine connects to PostgreSQL through psycopg2
using the following environment variables:
- POSTGRES_USER: Database username
- POSTGRES_PASSWORD: Database password
- POSTGRES_HOST: Database server hostname
- POSTGRES_PORT: Database server port
- POSTGRES_DB: Target database name

Usage Patterns:
    database = ClimateDatabase()
    database.create_tables()
    database.upsert_monthly_aggregates(aggregates)

    history = database.read_monthly_aggregates()
    persisted = database.read_existing_records("Climatology Master")
    database.replace_window(window)
    database.close()
"""

import logging
import os
from abc import ABC, ABCMeta
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import (
    Column,
    Float,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    delete,
    select,
)
from sqlalchemy.orm import DeclarativeMeta, declarative_base, sessionmaker

from climatology_engine.models import (
    ClimatologyWindow,
    ClimoMonthRow,
    CountKind,
    Metric,
    MonthlyAggregate,
    MonthlyRecordSet,
    RecordPair,
)
from climatology_engine.numeric_helpers import to_number
from climatology_engine.percent import normalize_percent
from climatology_engine.record_merger import merge_aggregate_records
from climatology_engine.variables import month_index_from_name


class CombinedMeta(DeclarativeMeta, ABCMeta):
    """Combined metaclass for SQLAlchemy declarative base with abstract base class support."""

    pass


Base = declarative_base(metaclass=CombinedMeta)


class ClimateBase(Base, ABC):
    """Abstract base class for all climatology tables."""

    __abstract__ = True

    idx = Column(Integer, primary_key=True, autoincrement=True)


RECORD_NAMES = (
    "record_high_tmax",
    "record_low_tmin",
    "record_max_24h_precip",
    "record_max_24h_snow",
    "record_max_24h_rain",
)


class MonthlyAggregateTable(ClimateBase):
    """Monthly aggregates.

    Table Structure:
    - year and month_name identify a row (unique together)
    - One column per Metric and CountKind
    - A value and a date column per record pair
    """

    __tablename__ = "monthly_aggregates"

    year = Column(Integer, index=True, nullable=False)
    month_name = Column(String(length=16), nullable=False)
    month_index = Column(Integer, nullable=False)
    mean_tmax = Column(Float)
    mean_tmin = Column(Float)
    mean_temperature = Column(Float)
    mean_dew_point = Column(Float)
    mean_relative_humidity = Column(Float)
    percent_possible_sunshine = Column(Float)
    mean_pressure_msl = Column(Float)
    mean_cloud_cover = Column(Float)
    mean_wind_speed = Column(Float)
    total_rain = Column(Float)
    total_snowfall = Column(Float)
    total_precipitation = Column(Float)
    total_sunshine_hours = Column(Float)
    rainy_days = Column(Integer)
    snowy_days = Column(Integer)
    wet_days = Column(Integer)
    record_high_tmax = Column(Float)
    record_high_tmax_date = Column(String(length=32))
    record_low_tmin = Column(Float)
    record_low_tmin_date = Column(String(length=32))
    record_max_24h_precip = Column(Float)
    record_max_24h_precip_date = Column(String(length=32))
    record_max_24h_snow = Column(Float)
    record_max_24h_snow_date = Column(String(length=32))
    record_max_24h_rain = Column(Float)
    record_max_24h_rain_date = Column(String(length=32))
    valid_days = Column(Integer)

    __table_args__ = (
        UniqueConstraint(
            "year",
            "month_name",
            name="MonthlyAggregate-entry-unique-constraint",
        ),
    )


class ClimatologyRowTable(ClimateBase):
    """Rows of the climatology tables.

    Table Structure:
    - title names the table ("Climatology Master", "Climatology_1961_1990", ...)
    - row_order keeps the twelve month rows and the annual row in order
    - Remaining columns follow the ClimoMonthRow cell order
    """

    __tablename__ = "climatology_rows"

    title = Column(String(length=64), index=True, nullable=False)
    row_order = Column(Integer, nullable=False)
    label = Column(String(length=64), nullable=False)
    mean_tmax = Column(Float)
    mean_tmin = Column(Float)
    mean_temperature = Column(Float)
    mean_dew_point = Column(Float)
    mean_relative_humidity = Column(Float)
    mean_rain = Column(Float)
    mean_rainy_days = Column(Float)
    mean_snowfall = Column(Float)
    mean_snowy_days = Column(Float)
    mean_precipitation = Column(Float)
    mean_wet_days = Column(Float)
    mean_sunshine_hours = Column(Float)
    mean_percent_sunshine = Column(Float)
    n_years = Column(Integer)
    warmest_mean_tmax = Column(Float)
    coldest_mean_tmin = Column(Float)
    wettest_total = Column(Float)
    wettest_year = Column(Integer)
    record_high_tmax = Column(Float)
    record_high_tmax_date = Column(String(length=32))
    record_low_tmin = Column(Float)
    record_low_tmin_date = Column(String(length=32))
    record_max_24h_precip = Column(Float)
    record_max_24h_precip_date = Column(String(length=32))
    record_max_24h_snow = Column(Float)
    record_max_24h_snow_date = Column(String(length=32))

    __table_args__ = (
        UniqueConstraint(
            "title",
            "row_order",
            name="ClimatologyRow-entry-unique-constraint",
        ),
    )


class DatabaseEngine:
    """Database engine configuration.

    The connection URL is either given explicitly (e.g. "sqlite://" in tests)
    or built for PostgreSQL with the psycopg2 driver from environment
    variables.
    """

    __DIALECT = "postgresql"
    __DRIVER = "psycopg2"

    def __init__(self, url: Optional[str] = None) -> None:
        """Initialize DatabaseEngine with the given URL or the PostgreSQL environment."""
        if url is None:
            url = (
                f"{DatabaseEngine.__DIALECT}+{DatabaseEngine.__DRIVER}://"
                f"{os.getenv('POSTGRES_USER')}:{os.getenv('POSTGRES_PASSWORD')}"
                f"@{os.getenv('POSTGRES_HOST')}:{os.getenv('POSTGRES_PORT')}"
                f"/{os.getenv('POSTGRES_DB')}"
            )

        self.__engine = create_engine(url, echo=False)

    @property
    def get_engine(self):
        """SQLAlchemy database engine."""
        return self.__engine


def _pair(value, date) -> RecordPair:
    return RecordPair(value=to_number(value), date=date if date else None)


class ClimateDatabase:
    """Climatology Database Management Class

    Reads and writes monthly aggregates and climatology tables. All writes
    are committed as one transaction per call; a failing commit is logged,
    rolled back and re-raised.

    Attributes:
        logger: Configured logger instance for database operations
        DB_SESSION: SQLAlchemy session for database transactions

    Example:
        database = ClimateDatabase(url="sqlite://")
        database.create_tables()
        database.upsert_monthly_aggregates(aggregates)
        database.close()
    """

    def __init__(self, url: Optional[str] = None) -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s - %(levelname)s - %(message)s",
        )
        self.logger = logging.getLogger(name=self.__class__.__name__)

        self.__engine = DatabaseEngine(url).get_engine

        self.DB_SESSION = sessionmaker(bind=self.__engine)()

    def create_tables(self) -> None:
        """Create the climatology tables if they do not exist."""
        Base.metadata.create_all(self.__engine)

    def __commit(self, action: str) -> None:
        try:
            self.DB_SESSION.commit()
        except Exception as e:
            self.logger.error(f"Error during {action}: {e}")
            self.logger.info("Rolling back transaction...")
            self.DB_SESSION.rollback()
            raise

    def __to_aggregate(self, row: MonthlyAggregateTable) -> MonthlyAggregate:
        return MonthlyAggregate(
            year=row.year,
            month_index=row.month_index,
            means={
                Metric.MEAN_TMAX: row.mean_tmax,
                Metric.MEAN_TMIN: row.mean_tmin,
                Metric.MEAN_TEMPERATURE: row.mean_temperature,
                Metric.MEAN_DEW_POINT: row.mean_dew_point,
                Metric.MEAN_RELATIVE_HUMIDITY: row.mean_relative_humidity,
                Metric.PERCENT_POSSIBLE_SUNSHINE: normalize_percent(
                    row.percent_possible_sunshine
                ),
                Metric.MEAN_PRESSURE_MSL: row.mean_pressure_msl,
                Metric.MEAN_CLOUD_COVER: row.mean_cloud_cover,
                Metric.MEAN_WIND_SPEED: row.mean_wind_speed,
            },
            totals={
                Metric.TOTAL_RAIN: row.total_rain,
                Metric.TOTAL_SNOWFALL: row.total_snowfall,
                Metric.TOTAL_PRECIPITATION: row.total_precipitation,
                Metric.TOTAL_SUNSHINE_HOURS: row.total_sunshine_hours,
            },
            day_counts={
                CountKind.RAINY_DAYS: row.rainy_days,
                CountKind.SNOWY_DAYS: row.snowy_days,
                CountKind.WET_DAYS: row.wet_days,
            },
            record_high_tmax=_pair(row.record_high_tmax, row.record_high_tmax_date),
            record_low_tmin=_pair(row.record_low_tmin, row.record_low_tmin_date),
            record_max_24h_precip=_pair(
                row.record_max_24h_precip, row.record_max_24h_precip_date
            ),
            record_max_24h_snow=_pair(
                row.record_max_24h_snow, row.record_max_24h_snow_date
            ),
            record_max_24h_rain=_pair(
                row.record_max_24h_rain, row.record_max_24h_rain_date
            ),
            valid_days=row.valid_days,
        )

    def __fill_aggregate_row(
        self, row: MonthlyAggregateTable, aggregate: MonthlyAggregate
    ) -> None:
        row.year = aggregate.year
        row.month_name = aggregate.month_name
        row.month_index = aggregate.month_index
        for metric, value in {**aggregate.means, **aggregate.totals}.items():
            setattr(row, metric.value, value)
        for kind, count in aggregate.day_counts.items():
            setattr(row, kind.value, count)
        for name in RECORD_NAMES:
            pair: RecordPair = getattr(aggregate, name)
            setattr(row, name, pair.value)
            setattr(row, f"{name}_date", pair.date)
        row.valid_days = aggregate.valid_days

    def upsert_monthly_aggregates(
        self, aggregates: Iterable[MonthlyAggregate]
    ) -> List[MonthlyAggregate]:
        """Insert or update monthly aggregates keyed by (year, month name).

        Aggregates sharing a key are de-duplicated, the last one wins. For an
        existing row the statistics are overwritten and the record pairs are
        merged with the persisted ones.

        Args:
            aggregates (Iterable[MonthlyAggregate]): Aggregates to persist.

        Returns:
            List[MonthlyAggregate]: The aggregates as written, records merged.

        Raises:
            Exception: Any database error after the transaction was rolled back.
        """
        unique: Dict[str, MonthlyAggregate] = {}
        for aggregate in aggregates:
            unique[aggregate.key] = aggregate

        if not unique:
            return []

        years = {aggregate.year for aggregate in unique.values()}
        existing_rows = {
            f"{row.year}|{row.month_name.strip().lower()}": row
            for row in self.DB_SESSION.scalars(
                select(MonthlyAggregateTable).where(
                    MonthlyAggregateTable.year.in_(years)
                )
            ).all()
        }

        written = []
        updated = 0
        for key, aggregate in unique.items():
            row = existing_rows.get(key)
            if row is None:
                row = MonthlyAggregateTable()
                self.DB_SESSION.add(row)
                merged = aggregate
            else:
                merged = merge_aggregate_records(self.__to_aggregate(row), aggregate)
                updated += 1
            self.__fill_aggregate_row(row, merged)
            written.append(merged)

        self.__commit("writing monthly aggregates")

        self.logger.info(
            f"Upserted {len(written)} monthly aggregates ({updated} updated)."
        )

        return written

    def read_monthly_aggregates(self) -> List[MonthlyAggregate]:
        """Read every persisted monthly aggregate ordered by year and month."""
        rows = self.DB_SESSION.scalars(
            select(MonthlyAggregateTable).order_by(
                MonthlyAggregateTable.year, MonthlyAggregateTable.month_index
            )
        ).all()

        return [self.__to_aggregate(row) for row in rows]

    def read_window_rows(self, title: str) -> List[ClimoMonthRow]:
        """Read the stored rows of one climatology table in row order."""
        rows = self.DB_SESSION.scalars(
            select(ClimatologyRowTable)
            .where(ClimatologyRowTable.title == title)
            .order_by(ClimatologyRowTable.row_order)
        ).all()

        return [
            ClimoMonthRow(
                label=row.label,
                mean_tmax=row.mean_tmax,
                mean_tmin=row.mean_tmin,
                mean_temperature=row.mean_temperature,
                mean_dew_point=row.mean_dew_point,
                mean_relative_humidity=row.mean_relative_humidity,
                mean_rain=row.mean_rain,
                mean_rainy_days=row.mean_rainy_days,
                mean_snowfall=row.mean_snowfall,
                mean_snowy_days=row.mean_snowy_days,
                mean_precipitation=row.mean_precipitation,
                mean_wet_days=row.mean_wet_days,
                mean_sunshine_hours=row.mean_sunshine_hours,
                mean_percent_sunshine=normalize_percent(row.mean_percent_sunshine),
                n_years=row.n_years,
                warmest_mean_tmax=row.warmest_mean_tmax,
                coldest_mean_tmin=row.coldest_mean_tmin,
                wettest_total=row.wettest_total,
                wettest_year=row.wettest_year,
                record_high_tmax=_pair(row.record_high_tmax, row.record_high_tmax_date),
                record_low_tmin=_pair(row.record_low_tmin, row.record_low_tmin_date),
                record_max_24h_precip=_pair(
                    row.record_max_24h_precip, row.record_max_24h_precip_date
                ),
                record_max_24h_snow=_pair(
                    row.record_max_24h_snow, row.record_max_24h_snow_date
                ),
            )
            for row in rows
        ]

    def read_existing_records(self, title: str) -> Dict[int, MonthlyRecordSet]:
        """Read the persisted records of a climatology table keyed by month.

        Rows whose label is not a month name (e.g. the annual row) are skipped.
        """
        records: Dict[int, MonthlyRecordSet] = {}
        for row in self.read_window_rows(title):
            month_index = month_index_from_name(row.label)
            if month_index is not None:
                records[month_index] = row.records

        self.logger.info(f"Read existing records of {len(records)} months from {title}.")

        return records

    def replace_window(self, window: ClimatologyWindow) -> None:
        """Replace all stored rows of the window's title with its rows.

        Raises:
            Exception: Any database error after the transaction was rolled back.
        """
        self.DB_SESSION.execute(
            delete(ClimatologyRowTable).where(ClimatologyRowTable.title == window.title)
        )

        orm_objects = []
        for row_order, row in enumerate(window.all_rows()):
            values = row._asdict()
            for name in RECORD_NAMES[:4]:
                pair: RecordPair = values.pop(name)
                values[name] = pair.value
                values[f"{name}_date"] = pair.date
            orm_objects.append(
                ClimatologyRowTable(title=window.title, row_order=row_order, **values)
            )

        self.DB_SESSION.add_all(orm_objects)

        self.__commit(f"writing {window.title}")

        self.logger.info(f"Wrote {len(orm_objects)} rows to {window.title}.")

    def get_titles(self) -> Sequence[str]:
        """Titles of all stored climatology tables."""
        return self.DB_SESSION.scalars(
            select(ClimatologyRowTable.title).distinct().order_by(ClimatologyRowTable.title)
        ).all()

    def close(self) -> None:
        """Close the database session and release connections."""
        self.logger.info("Closing Database Session...")
        self.DB_SESSION.close()
