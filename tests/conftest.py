"""Shared fixtures for climatology tests."""

from datetime import date, timedelta
from typing import Callable, Dict, List, Optional

import pytest

from climate_models.climate_models import ClimateDatabase
from climatology_engine.models import DailyObservation


@pytest.fixture
def database():
    """In-memory SQLite ClimateDatabase with all tables created."""
    database = ClimateDatabase(url="sqlite://")
    database.create_tables()
    yield database
    database.close()


@pytest.fixture
def make_observation() -> Callable[..., DailyObservation]:
    def factory(iso_date: str, **variables: Optional[float]) -> DailyObservation:
        return DailyObservation(iso_date=iso_date, variables=dict(variables))

    return factory


@pytest.fixture
def synthetic_days() -> Callable[[date, date], List[DailyObservation]]:
    """Deterministic daily observations for a date range.

    temperature_2m_max cycles 10..16 with the day of the month (16 on days
    6, 13, 20, 27), precipitation_sum is 3.0 on every third day and 0.0 otherwise.
    """

    def factory(start: date, end: date) -> List[DailyObservation]:
        observations = []
        day = start
        while day <= end:
            variables: Dict[str, Optional[float]] = {
                "temperature_2m_max": 10.0 + day.day % 7,
                "temperature_2m_min": -1.0 * (day.day % 5),
                "precipitation_sum": 3.0 if day.day % 3 == 0 else 0.0,
                "rain_sum": 3.0 if day.day % 3 == 0 else 0.0,
                "snowfall_sum": 0.0,
                "sunshine_duration": 18000.0,
                "daylight_duration": 36000.0,
            }
            observations.append(
                DailyObservation(iso_date=day.isoformat(), variables=variables)
            )
            day += timedelta(days=1)

        return observations

    return factory
