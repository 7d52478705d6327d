"""OpenMeteo Archive Client for Climatology Ingestion

This module retrieves historical daily weather observations for a single
station location from the OpenMeteo Historical Weather API and converts them
into DailyObservation records for the climatology engine.

Core Components:

Configuration Management:
- OpenMeteoClientConfig: configuration from JSON files and/or kwargs
- Parameter validation for dates, coordinates, timezone and daily variables
- VariableIndex built once from the configured metrics
- Per-year clamping of the requested history range

API Client Architecture:
- OpenMeteoClient: abstract base class with session, rate limiting and
  response processing
- OpenMeteoArchiveClient: historical observations with year-based chunking

Conversion:
- to_observations(): DataFrame rows to DailyObservation records
- fetch_observations(): configuration in, observations out

Rate Limiting System:
- Multi-tier rate limiting (600/min, 5,000/hour, 10,000/day)
- Automatic backoff with progressive delays (61s, 1h, 24h)
- API cost tracking (31.3 API units per location-year)

Session Configuration:
- Request caching with 24-hour expiration (requests_cache)
- Automatic retry with exponential backoff (retry_requests)

Usage Patterns:

Historical Data Retrieval:\n
    config = OpenMeteoClientConfig(
        create_from_file=True,
        kwargs={"history_start_date": "1991-01-01", "history_end_date": "latest"}
    )
    archive_client = OpenMeteoArchiveClient(config)
    historical_data = archive_client.main()
    observations = to_observations(historical_data, config.variable_index)

One Year of a Longer Range:\n
    year_config = config.for_year(2005)
    observations = fetch_observations(year_config)

Dependencies:
- openmeteo_requests: Official OpenMeteo SDK for API communication
- openmeteo_sdk: Response parsing and data extraction utilities
- pandas: Data manipulation and temporal operations
- numpy: Numerical array handling of response variables
- requests_cache: HTTP caching for performance optimization
- retry_requests: Automatic retry logic for resilient operations
"""

import json
import logging
import math
import os
from abc import ABC, abstractmethod
from dataclasses import InitVar, dataclass, field
from datetime import date, datetime, timedelta
from time import sleep
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import openmeteo_requests
import pandas as pd
import requests_cache
from openmeteo_sdk.VariablesWithTime import VariablesWithTime
from openmeteo_sdk.VariableWithValues import VariableWithValues
from openmeteo_sdk.WeatherApiResponse import WeatherApiResponse
from retry_requests import retry

from climatology_engine.models import DailyObservation
from climatology_engine.variables import VariableIndex


def clamp_range_to_year(
    start_date: date, end_date: date, year: int
) -> Optional[Tuple[date, date]]:
    """Intersect [start_date, end_date] with one calendar year.

    Returns:
        Optional[Tuple[date, date]]: The clamped range or None when the range
            does not touch the year.
    """
    start = max(start_date, date(year, 1, 1))
    end = min(end_date, date(year, 12, 31))

    return (start, end) if start <= end else None


@dataclass
class OpenMeteoClientConfig:
    """Configuration of the OpenMeteo archive client for one station.

    The configuration is read from the "openmeteo" section of the JSON
    configuration file, from kwargs, or from both with kwargs overriding the
    file.

    Attributes:
        history_start_date (date): First day of the history to retrieve.
        history_end_date (date): Last day of the history ("latest" = today - 2 days).
        latitude (float): Station latitude in decimal degrees.
        longitude (float): Station longitude in decimal degrees.
        timezone (str): Timezone used by the API to define days.
        metrics (List[str]): OpenMeteo daily variables to retrieve.
        variable_index (VariableIndex): Position of each metric in a response.

    Configuration File Schema:
        {
            "openmeteo": {
                "history_start_date": "YYYY-MM-DD",
                "history_end_date": "latest" | "YYYY-MM-DD",
                "latitude": float,
                "longitude": float,
                "timezone": str,
                "metrics": ["daily_metric1", "daily_metric2", ...]
            }
        }

    Example:
        config = OpenMeteoClientConfig(create_from_file=True)

        config = OpenMeteoClientConfig(
            create_from_file=False,
            kwargs={
                "history_start_date": "1991-01-01",
                "history_end_date": "latest",
                "latitude": 51.5,
                "longitude": -0.12,
                "metrics": ["temperature_2m_max", "precipitation_sum"]
            }
        )
    """

    history_start_date: date = field(init=False, metadata={"format": "YYYY-MM-DD"})
    history_end_date: date = field(init=False)
    latitude: float = field(init=False)
    longitude: float = field(init=False)
    timezone: str = field(init=False, default="auto")
    metrics: List[str] = field(init=False)
    variable_index: VariableIndex = field(init=False, repr=False)
    create_from_file: InitVar[bool] = field(default=False)
    config_file: InitVar[str | None] = field(default=None)
    kwargs: InitVar[Dict[str, Any] | None] = field(default=None)

    def __post_init__(
        self,
        create_from_file: bool,
        config_file: str | None,
        kwargs: Dict[str, Any] | None,
    ):
        """Initialize the configuration from file and/or kwargs.

        Args:
            create_from_file (bool): Whether to load the base configuration from file.
            config_file (str | None): Path to the JSON configuration file. If None and
                create_from_file=True, uses {cwd}/config/{CONFIG_FILE env var or config.json}
            kwargs (Dict[str, Any] | None): Parameter values or overrides.
                Required when create_from_file=False.

        Raises:
            ValueError: When create_from_file=False but kwargs is None
            ValueError: When parameter validation fails
        """
        if create_from_file:
            if not config_file:
                config_file = os.path.join(
                    os.getcwd(),
                    "config",
                    os.getenv("CONFIG_FILE", "config.json"),
                )

            config = self.__get_config(config_file)

            self.__set_all(config)

            if kwargs:
                self.__overwrite_kwargs(kwargs)

        else:
            if kwargs:
                self.__set_all(kwargs)
            else:
                raise ValueError("Kwargs are required when create_from_file=False.")

    def __get_config(self, config_file: str) -> Dict[str, Any]:
        with open(file=config_file, mode="r") as file:
            config = json.load(fp=file)

        return config.get("openmeteo", config)

    def __set_all(self, values: Dict[str, Any]) -> None:
        self.__set_history_start_date(values.get("history_start_date"))
        self.__set_history_end_date(values.get("history_end_date"))
        self.__set_coordinate("latitude", values.get("latitude"), 90.0)
        self.__set_coordinate("longitude", values.get("longitude"), 180.0)
        if values.get("timezone") is not None:
            self.__set_timezone(values.get("timezone"))
        self.__set_metrics(values.get("metrics"))

    def __parse_date(self, date_string: str) -> date:
        return datetime.strptime(date_string, "%Y-%m-%d").date()

    def __compute_end_date(self) -> date:
        """Latest day with archived data, 2 days before today."""
        return date.today() - timedelta(days=2)

    def __set_history_start_date(self, history_start_date: Any) -> None:
        if isinstance(history_start_date, str):
            self.history_start_date = self.__parse_date(history_start_date)
        elif isinstance(history_start_date, date):
            self.history_start_date = history_start_date
        else:
            raise ValueError(
                f"Parameter history_start_date expected {str} (YYYY-MM-DD) or {date} Received {type(history_start_date)} instead."
            )

    def __set_history_end_date(self, history_end_date: Any) -> None:
        """Validate and set history_end_date.

        Args:
            history_end_date (Any): "latest", a "YYYY-MM-DD" string or a date.

        Raises:
            ValueError: When history_end_date is not a string or date, or lies
                before history_start_date.
        """
        if isinstance(history_end_date, str):
            if history_end_date == "latest":
                end_date = self.__compute_end_date()
            else:
                end_date = self.__parse_date(history_end_date)
        elif isinstance(history_end_date, date):
            end_date = history_end_date
        else:
            raise ValueError(
                f"Parameter history_end_date expected {str} (\"latest\" or YYYY-MM-DD) or {date} Received {type(history_end_date)} instead."
            )

        if end_date < self.history_start_date:
            raise ValueError(
                f"Parameter history_end_date must not be before history_start_date. Got {end_date} < {self.history_start_date}"
            )

        self.history_end_date = end_date

    def __set_coordinate(self, name: str, value: Any, bound: float) -> None:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if -bound <= value <= bound:
                setattr(self, name, float(value))
            else:
                raise ValueError(
                    f"Parameter {name} must be between {-bound} and {bound}(incl.) Got {value}"
                )
        else:
            raise ValueError(
                f"Parameter {name} expected {float} Received {type(value)} instead."
            )

    def __set_timezone(self, timezone: Any) -> None:
        if isinstance(timezone, str) and timezone.strip():
            self.timezone = timezone.strip()
        else:
            raise ValueError(
                f"Parameter timezone expected a non-empty {str} Received {timezone!r} instead."
            )

    def __set_metrics(self, metrics: Any) -> None:
        """Validate metrics and build the variable index.

        Raises:
            ValueError: When metrics is not a non-empty list of supported daily
                variable names.
        """
        if isinstance(metrics, list) and metrics:
            self.variable_index = VariableIndex(metrics)
            self.metrics = self.variable_index.names
        else:
            raise ValueError(
                f"Parameter metrics expected a non-empty {list} Received {type(metrics)} instead."
            )

    def __overwrite_kwargs(self, kwargs: Dict[str, Any]) -> None:
        if kwargs.get("history_start_date"):
            self.__set_history_start_date(kwargs.get("history_start_date"))
        if kwargs.get("history_end_date") or kwargs.get("history_start_date"):
            self.__set_history_end_date(
                kwargs.get("history_end_date") or self.history_end_date
            )
        if kwargs.get("latitude") is not None:
            self.__set_coordinate("latitude", kwargs.get("latitude"), 90.0)
        if kwargs.get("longitude") is not None:
            self.__set_coordinate("longitude", kwargs.get("longitude"), 180.0)
        if kwargs.get("timezone"):
            self.__set_timezone(kwargs.get("timezone"))
        if kwargs.get("metrics"):
            self.__set_metrics(kwargs.get("metrics"))

    @property
    def years(self) -> List[int]:
        return list(range(self.history_start_date.year, self.history_end_date.year + 1))

    def for_year(self, year: int) -> Optional["OpenMeteoClientConfig"]:
        """Return a copy of this configuration limited to one calendar year.

        Returns:
            Optional[OpenMeteoClientConfig]: The clamped configuration or None
                when the configured history does not touch the year.
        """
        clamped = clamp_range_to_year(
            self.history_start_date, self.history_end_date, year
        )
        if clamped is None:
            return None

        return OpenMeteoClientConfig(
            create_from_file=False,
            kwargs={
                "history_start_date": clamped[0],
                "history_end_date": clamped[1],
                "latitude": self.latitude,
                "longitude": self.longitude,
                "timezone": self.timezone,
                "metrics": list(self.metrics),
            },
        )


class OpenMeteoClient(ABC, openmeteo_requests.Client):
    """Abstract base class for OpenMeteo API clients.

    Provides the cached and retrying HTTP session, multi-tier rate limiting and
    the conversion of API responses into DataFrames. Subclasses implement
    get_data() for their endpoint.

    Rate Limiting:
    - Minutely: 600 requests per minute (61 second backoff)
    - Hourly: 5,000 requests per hour (3,601 second backoff)
    - Daily: 10,000 requests per day (86,401 second backoff)

    Attributes:
        SESSION: Cached requests session with retry logic
        config: OpenMeteoClientConfig instance with API parameters
        logger: Configured logger for operation monitoring
    """

    SESSION = retry(
        requests_cache.CachedSession("/tmp/.cache", expire_after=86399),
        retries=10,
        backoff_factor=2,
    )

    MINUTELY_RATE_LIMIT = 600
    HOURLY_RATE_LIMIT = 5000
    DAILY_RATE_LIMIT = 10000
    MINUTELY_BACKOFF = 61
    HOURLY_BACKOFF = 3601
    DAILY_BACKOFF = 86401

    def __init__(self, config: OpenMeteoClientConfig):
        super().__init__(OpenMeteoClient.SESSION)  # type: ignore

        self.config = config

        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s - %(levelname)s - %(message)s",
        )
        self.logger = logging.getLogger(name=self.__class__.__name__)

        self.logger.info(f"Setting up {self.__class__.__name__}")

    @abstractmethod
    def get_data(self, url: str) -> List[WeatherApiResponse]:
        """Retrieve the API responses for the configured request.

        Args:
            url (str): OpenMeteo API endpoint to query.

        Returns:
            List[WeatherApiResponse]: One response per request chunk.
        """
        pass

    def get_request_time_estimate(self, api_units: float) -> float:
        """Estimate the backoff time in seconds needed for a batch costing api_units.

        Every full quota of the largest exceeded tier costs one backoff of that tier.
        """
        for limit, backoff in (
            (OpenMeteoClient.DAILY_RATE_LIMIT, OpenMeteoClient.DAILY_BACKOFF),
            (OpenMeteoClient.HOURLY_RATE_LIMIT, OpenMeteoClient.HOURLY_BACKOFF),
            (OpenMeteoClient.MINUTELY_RATE_LIMIT, OpenMeteoClient.MINUTELY_BACKOFF),
        ):
            if api_units > limit:
                return float(int(api_units / limit) * backoff)

        return 0.0

    def handle_ratelimit(
        self,
        minutely_usage: float,
        hourly_usage: float,
        daily_usage: float,
        fractional_api_cost: float,
    ) -> Tuple[float, float, float]:
        """Back off when the next request would exceed a rate limit.

        Args:
            minutely_usage (float): API units used in the current minute window.
            hourly_usage (float): API units used in the current hour window.
            daily_usage (float): API units used in the current day window.
            fractional_api_cost (float): Cost of the next request in API units.

        Returns:
            Tuple[float, float, float]: Usage counters, reset for every window
                that triggered a backoff.

        Note:
            This method blocks during backoff periods using sleep().
        """
        if minutely_usage + fractional_api_cost >= OpenMeteoClient.MINUTELY_RATE_LIMIT:
            self.logger.info(
                f"Minutely rate limit hit. Backing off for {str(timedelta(seconds=OpenMeteoClient.MINUTELY_BACKOFF))}."
            )
            sleep(OpenMeteoClient.MINUTELY_BACKOFF)
            minutely_usage = 0.0
        if hourly_usage + fractional_api_cost >= OpenMeteoClient.HOURLY_RATE_LIMIT:
            self.logger.info(
                f"Hourly rate limit hit. Backing off for {str(timedelta(seconds=OpenMeteoClient.HOURLY_BACKOFF))}."
            )
            sleep(OpenMeteoClient.HOURLY_BACKOFF)
            minutely_usage = 0.0
            hourly_usage = 0.0
        if daily_usage + fractional_api_cost >= OpenMeteoClient.DAILY_RATE_LIMIT:
            self.logger.info(
                f"Daily rate limit hit. Backing off for {str(timedelta(seconds=OpenMeteoClient.DAILY_BACKOFF))}."
            )
            sleep(OpenMeteoClient.DAILY_BACKOFF)
            minutely_usage = 0.0
            hourly_usage = 0.0
            daily_usage = 0.0

        return (minutely_usage, hourly_usage, daily_usage)

    def extract_variable(
        self, variable_index: int, variables: VariablesWithTime
    ) -> np.ndarray:
        """Extract one daily variable from a response.

        Raises:
            TypeError: When the response holds no values at variable_index.
        """
        variable = variables.Variables(variable_index)

        if isinstance(variable, VariableWithValues):
            values = variable.ValuesAsNumpy()
        else:
            raise TypeError(
                f"Error during variable extraction. Expected type: {VariableWithValues} Got: {type(variable)} instead."
            )

        return values

    def process_response(
        self, response: WeatherApiResponse, config: OpenMeteoClientConfig
    ) -> pd.DataFrame:
        """Convert one API response into a daily DataFrame.

        Columns are named through config.variable_index, so column names and
        response positions always agree.

        Returns:
            pd.DataFrame: Columns 'date', one column per metric, 'latitude'
                and 'longitude'.

        Raises:
            TypeError: When the response has no daily section.
        """
        daily = response.Daily()

        if isinstance(daily, VariablesWithTime):
            daily_data = {
                "date": pd.date_range(
                    start=pd.to_datetime(
                        daily.Time() + response.UtcOffsetSeconds(), unit="s", utc=True
                    ),
                    end=pd.to_datetime(
                        daily.TimeEnd() + response.UtcOffsetSeconds(), unit="s", utc=True
                    ),
                    freq=pd.Timedelta(seconds=daily.Interval()),
                    inclusive="left",
                )
            }

            for position, variable in config.variable_index:
                daily_data[variable.value] = self.extract_variable(
                    position, daily
                ).tolist()

        else:
            raise TypeError(
                f"Error during processing response. Expected type: {VariablesWithTime} Got: {type(daily)} instead."
            )

        data = pd.DataFrame(daily_data)

        data["latitude"] = response.Latitude()
        data["longitude"] = response.Longitude()

        return data

    def _main(self, url: str) -> pd.DataFrame:
        """Retrieve, process and concatenate all responses of get_data().

        Returns:
            pd.DataFrame: Daily rows with 'date' formatted as YYYY-MM-DD.
        """
        frames = [
            self.process_response(response=response, config=self.config)
            for response in self.get_data(url)
        ]
        data = pd.concat(frames, axis=0) if frames else pd.DataFrame({"date": []})

        data["date"] = pd.to_datetime(data["date"]).dt.strftime("%Y-%m-%d")

        data = data.drop_duplicates(subset="date").reset_index(drop=True)

        self.logger.info(f"{self.__class__.__name__} exited successfully.")

        return data


class OpenMeteoArchiveClient(OpenMeteoClient):
    """OpenMeteo Archive API client for historical daily observations.

    Requests are split into calendar years; partial years at both ends of the
    configured range are clamped to the range.

    Attributes:
        URL (str): OpenMeteo Archive API endpoint URL
        FRACTIONAL_API_COST (float): API cost per location-year request (31.3)

    Example:
        config = OpenMeteoClientConfig(
            create_from_file=True,
            kwargs={"history_start_date": "2020-01-01", "history_end_date": "2023-12-31"}
        )
        client = OpenMeteoArchiveClient(config)
        historical_data = client.main()
    """

    URL = "https://archive-api.open-meteo.com/v1/archive"

    FRACTIONAL_API_COST = 31.3

    def get_data(self, url: str) -> List[WeatherApiResponse]:
        """Retrieve the configured history in yearly chunks with rate limiting."""
        responses = []

        years = self.config.years
        time_estimate = self.get_request_time_estimate(
            OpenMeteoArchiveClient.FRACTIONAL_API_COST * len(years)
        )

        self.logger.info(
            f"Processing {len(years)} requests costing an estimated {OpenMeteoArchiveClient.FRACTIONAL_API_COST * len(years)} API calls.\nThis will take ~ {str(timedelta(seconds=time_estimate))}"
        )

        minutely_usage = 0.0
        hourly_usage = 0.0
        daily_usage = 0.0

        for year in years:
            start_date, end_date = clamp_range_to_year(
                self.config.history_start_date, self.config.history_end_date, year
            )
            fractional_query_params = {
                "latitude": self.config.latitude,
                "longitude": self.config.longitude,
                "start_date": start_date,
                "end_date": end_date,
                "daily": self.config.metrics,
                "timezone": self.config.timezone,
            }

            self.logger.info(
                f"Retrieving historic data for Lat.: {self.config.latitude}° (N), Lon.: {self.config.longitude}° (E) from {start_date} to {end_date}"
            )

            fractional_responses = self.weather_api(url, params=fractional_query_params)

            responses.extend(fractional_responses)

            minutely_usage, hourly_usage, daily_usage = self.handle_ratelimit(
                minutely_usage + OpenMeteoArchiveClient.FRACTIONAL_API_COST,
                hourly_usage + OpenMeteoArchiveClient.FRACTIONAL_API_COST,
                daily_usage + OpenMeteoArchiveClient.FRACTIONAL_API_COST,
                OpenMeteoArchiveClient.FRACTIONAL_API_COST,
            )

        return responses

    def main(self) -> pd.DataFrame:
        """Retrieve the configured history as a daily DataFrame."""
        data = self._main(url=OpenMeteoArchiveClient.URL)

        return data


def to_observations(
    data: pd.DataFrame, variable_index: VariableIndex
) -> List[DailyObservation]:
    """Convert daily rows into DailyObservation records.

    Every indexed variable becomes a key of the observation. Values missing
    from the frame, NaN or infinite become None.

    Args:
        data (pd.DataFrame): Daily rows with a 'date' column (YYYY-MM-DD).
        variable_index (VariableIndex): Variables to carry over.

    Returns:
        List[DailyObservation]: One observation per row, in row order.
    """
    observations = []
    for row in data.to_dict(orient="records"):
        variables: Dict[str, Optional[float]] = {}
        for _, variable in variable_index:
            value = row.get(variable.value)
            variables[variable.value] = (
                float(value)
                if isinstance(value, (int, float))
                and not isinstance(value, bool)
                and math.isfinite(value)
                else None
            )
        observations.append(
            DailyObservation(iso_date=str(row.get("date")), variables=variables)
        )

    return observations


def fetch_observations(config: OpenMeteoClientConfig) -> List[DailyObservation]:
    """Retrieve the configured history and convert it to observations."""
    data = OpenMeteoArchiveClient(config).main()

    return to_observations(data, config.variable_index)
