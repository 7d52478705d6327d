"""End-to-end tests of the ingestion and climatology services."""

import pytest

from climatology_engine.config import EngineConfig
from climatology_engine.models import ClimatologyWindow, RecordPair
from climatology_engine.window_builder import MASTER_TITLE
from climatology_service.climatology import run_climatology
from ingestion_service.ingest import run_ingestion
from openmeteo_client.openmeteo_client import OpenMeteoClientConfig

pytestmark = pytest.mark.integration


@pytest.fixture
def client_config():
    return OpenMeteoClientConfig(
        kwargs={
            "history_start_date": "1991-01-01",
            "history_end_date": "1992-12-31",
            "latitude": 51.5,
            "longitude": -0.12,
            "timezone": "Europe/London",
            "metrics": [
                "temperature_2m_max",
                "temperature_2m_min",
                "precipitation_sum",
                "rain_sum",
                "snowfall_sum",
                "sunshine_duration",
                "daylight_duration",
            ],
        }
    )


@pytest.fixture
def engine_config():
    return EngineConfig(
        kwargs={"base_start_year": 1991, "window_years": 2, "step_years": 2}
    )


@pytest.fixture
def fake_fetch(synthetic_days):
    requested = []

    def fetch(year_config):
        requested.append(
            (year_config.history_start_date, year_config.history_end_date)
        )
        return synthetic_days(
            year_config.history_start_date, year_config.history_end_date
        )

    fetch.requested = requested
    return fetch


class TestIngestion:
    """Test cases for run_ingestion."""

    def test_ingests_year_by_year(
        self, client_config, engine_config, database, fake_fetch
    ):
        buckets = run_ingestion(client_config, database, engine_config, fetch=fake_fetch)

        assert [start.year for start, _ in fake_fetch.requested] == [1991, 1992]
        assert len(database.read_monthly_aggregates()) == 24
        assert sorted(buckets) == list(range(1, 13))
        assert len(buckets[1].tmax) == 62

    def test_reingest_is_idempotent(
        self, client_config, engine_config, database, fake_fetch
    ):
        run_ingestion(client_config, database, engine_config, fetch=fake_fetch)
        first = database.read_monthly_aggregates()

        run_ingestion(client_config, database, engine_config, fetch=fake_fetch)
        second = database.read_monthly_aggregates()

        assert len(second) == 24
        assert second == first


class TestClimatology:
    """Test cases for run_climatology."""

    def test_master_and_fixed_windows(
        self, client_config, engine_config, database, fake_fetch
    ):
        buckets = run_ingestion(client_config, database, engine_config, fetch=fake_fetch)

        titles = run_climatology(database, engine_config, record_buckets=buckets)

        assert titles == [MASTER_TITLE, "Climatology_1991_1992"]
        master = database.read_window_rows(MASTER_TITLE)
        assert len(master) == 13
        assert master[0].n_years == 2
        assert master[0].record_high_tmax == RecordPair(16, "6th Jan 1991")
        assert master[0].mean_wet_days == 10.0
        assert master[12].n_years == 2
        assert len(database.read_window_rows("Climatology_1991_1992")) == 13

    def test_records_from_stored_aggregates(
        self, client_config, engine_config, database, fake_fetch
    ):
        run_ingestion(client_config, database, engine_config, fetch=fake_fetch)

        run_climatology(database, engine_config)

        master = database.read_window_rows(MASTER_TITLE)
        assert master[0].record_high_tmax == RecordPair(16, "6th Jan 1991")
        assert master[0].record_max_24h_precip == RecordPair(3, "3rd Jan 1991")
        assert master[0].record_max_24h_snow == RecordPair()

    def test_master_records_never_regress(
        self, client_config, engine_config, database, fake_fetch
    ):
        buckets = run_ingestion(client_config, database, engine_config, fetch=fake_fetch)
        run_climatology(database, engine_config, record_buckets=buckets)

        window = database.read_window_rows(MASTER_TITLE)
        stored = database.read_monthly_aggregates()
        boosted = list(window)
        boosted[0] = boosted[0]._replace(record_high_tmax=RecordPair(40, "1991"))
        database.replace_window(
            ClimatologyWindow(
                start_year=1991,
                end_year=1992,
                rows=boosted[:12],
                annual_row=boosted[12],
                title=MASTER_TITLE,
            )
        )

        run_climatology(database, engine_config, record_buckets=buckets)

        master = database.read_window_rows(MASTER_TITLE)
        assert master[0].record_high_tmax == RecordPair(40, "1991")
        assert database.read_monthly_aggregates() == stored

    def test_partial_ingestion_keeps_records_of_other_windows(
        self, client_config, engine_config, database, fake_fetch
    ):
        run_ingestion(client_config, database, engine_config, fetch=fake_fetch)
        run_climatology(database, engine_config)
        config_1993 = OpenMeteoClientConfig(
            kwargs={
                "history_start_date": "1993-01-01",
                "history_end_date": "1993-12-31",
                "latitude": client_config.latitude,
                "longitude": client_config.longitude,
                "timezone": client_config.timezone,
                "metrics": client_config.metrics,
            }
        )

        buckets = run_ingestion(config_1993, database, engine_config, fetch=fake_fetch)
        run_climatology(database, engine_config, record_buckets=buckets)

        window = database.read_window_rows("Climatology_1991_1992")
        master = database.read_window_rows(MASTER_TITLE)
        assert window[0].record_high_tmax == RecordPair(16, "6th Jan 1991")
        assert window[0].record_max_24h_precip == RecordPair(3, "3rd Jan 1991")
        assert master[0].record_high_tmax == RecordPair(16, "6th Jan 1991")
        assert master[0].n_years == 3

    def test_custom_window(self, client_config, engine_config, database, fake_fetch):
        run_ingestion(client_config, database, engine_config, fetch=fake_fetch)

        titles = run_climatology(database, engine_config, start_year=1992)

        assert titles == ["Climatology (1992-1992)", "Climatology_1991_1992"]
        assert database.read_window_rows("Climatology (1992-1992)")[0].n_years == 1
        assert MASTER_TITLE not in database.get_titles()

    def test_nothing_stored(self, engine_config, database):
        assert run_climatology(database, engine_config) == []
        assert list(database.get_titles()) == []
