"""Tests for the OpenMeteo archive client helpers that need no network."""

import math
from datetime import date

import pandas as pd
import pytest

from climatology_engine.variables import VariableIndex
from openmeteo_client.openmeteo_client import (
    OpenMeteoArchiveClient,
    OpenMeteoClient,
    OpenMeteoClientConfig,
    clamp_range_to_year,
    to_observations,
)


@pytest.fixture
def client():
    config = OpenMeteoClientConfig(
        kwargs={
            "history_start_date": "2020-01-01",
            "history_end_date": "2020-12-31",
            "latitude": 51.5,
            "longitude": -0.12,
            "metrics": ["temperature_2m_max"],
        }
    )
    return OpenMeteoArchiveClient(config)


class TestClampRangeToYear:
    """Test cases for clamp_range_to_year."""

    def test_partial_years(self):
        start, end = date(1991, 3, 15), date(1993, 6, 30)

        assert clamp_range_to_year(start, end, 1991) == (date(1991, 3, 15), date(1991, 12, 31))
        assert clamp_range_to_year(start, end, 1992) == (date(1992, 1, 1), date(1992, 12, 31))
        assert clamp_range_to_year(start, end, 1993) == (date(1993, 1, 1), date(1993, 6, 30))

    def test_year_outside_range(self):
        assert clamp_range_to_year(date(1991, 3, 15), date(1993, 6, 30), 1994) is None


class TestToObservations:
    """Test cases for to_observations."""

    def test_rows_become_observations(self):
        index = VariableIndex(["temperature_2m_max", "precipitation_sum", "snowfall_sum"])
        data = pd.DataFrame(
            {
                "date": ["2020-01-01", "2020-01-02"],
                "temperature_2m_max": [8.5, math.nan],
                "precipitation_sum": [0.0, 4.2],
                "latitude": [51.5, 51.5],
            }
        )

        observations = to_observations(data, index)

        assert [observation.iso_date for observation in observations] == [
            "2020-01-01",
            "2020-01-02",
        ]
        assert observations[0].variables == {
            "temperature_2m_max": 8.5,
            "precipitation_sum": 0.0,
            "snowfall_sum": None,
        }
        assert observations[1].variables["temperature_2m_max"] is None
        assert observations[1].variables["precipitation_sum"] == 4.2
        assert "latitude" not in observations[0].variables

    def test_empty_frame(self):
        assert to_observations(pd.DataFrame({"date": []}), VariableIndex(["rain_sum"])) == []


class TestRateLimiting:
    """Test cases for request time estimates and rate limit handling."""

    def test_request_time_estimate(self, client):
        assert client.get_request_time_estimate(31.3) == 0.0
        assert client.get_request_time_estimate(3130.0) == 5 * OpenMeteoClient.MINUTELY_BACKOFF
        assert client.get_request_time_estimate(6000.0) == OpenMeteoClient.HOURLY_BACKOFF
        assert client.get_request_time_estimate(25000.0) == 2 * OpenMeteoClient.DAILY_BACKOFF

    def test_handle_ratelimit_resets_usage(self, client, monkeypatch):
        sleeps = []
        monkeypatch.setattr(
            "openmeteo_client.openmeteo_client.sleep", lambda seconds: sleeps.append(seconds)
        )

        usage = client.handle_ratelimit(590.0, 1000.0, 1000.0, 31.3)

        assert usage == (0.0, 1000.0, 1000.0)
        assert sleeps == [OpenMeteoClient.MINUTELY_BACKOFF]

    def test_handle_ratelimit_below_limits(self, client, monkeypatch):
        monkeypatch.setattr(
            "openmeteo_client.openmeteo_client.sleep",
            lambda seconds: pytest.fail("unexpected backoff"),
        )

        assert client.handle_ratelimit(31.3, 31.3, 31.3, 31.3) == (31.3, 31.3, 31.3)
