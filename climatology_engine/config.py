"""Configuration of the climatology engine.

EngineConfig holds the day-count thresholds, the valid-day priority and the
fixed window parameters. Like the Open-Meteo client configuration it can be
read from the "climatology" section of the JSON configuration file, built
from kwargs, or both, with kwargs overriding file values. Without any source
it falls back to the defaults below.

Configuration File Schema:
    {
        "climatology": {
            "rain_threshold_mm": float,
            "snow_threshold_cm": float,
            "precipitation_threshold_mm": float,
            "valid_day_priority": ["daily_variable", ...],
            "base_start_year": int,
            "window_years": int,
            "step_years": int,
            "max_windows": int
        }
    }
"""

import json
import os
from dataclasses import InitVar, dataclass, field
from typing import Any, Dict, List

from climatology_engine.variables import DailyVariable

RAIN_THRESHOLD_MM = 2.5
SNOW_THRESHOLD_CM = 0.254
PRECIPITATION_THRESHOLD_MM = 0.1
VALID_DAY_PRIORITY = [
    DailyVariable.PRECIPITATION_SUM,
    DailyVariable.TEMPERATURE_MAX,
]
BASE_START_YEAR = 1961
WINDOW_YEARS = 30
STEP_YEARS = 30
MAX_WINDOWS = 50


@dataclass
class EngineConfig:
    """Thresholds and window parameters of the climatology engine.

    Attributes:
        rain_threshold_mm (float): Minimum rain_sum for a rainy day.
        snow_threshold_cm (float): Minimum snowfall_sum for a snowy day.
        precipitation_threshold_mm (float): Minimum precipitation_sum for a wet day.
        valid_day_priority (List[DailyVariable]): Variables tried in order to
            count valid days. The first one present in a month is used; if none
            is present every row counts.
        base_start_year (int): Year the fixed windows are aligned to.
        window_years (int): Length of a fixed window in years.
        step_years (int): Distance between the starts of two fixed windows.
        max_windows (int): Upper bound on the number of generated windows.

    Example:
        config = EngineConfig()

        config = EngineConfig(create_from_file=True, kwargs={"window_years": 10})

        config = EngineConfig(kwargs={"rain_threshold_mm": 1.0})
    """

    rain_threshold_mm: float = field(init=False, default=RAIN_THRESHOLD_MM)
    snow_threshold_cm: float = field(init=False, default=SNOW_THRESHOLD_CM)
    precipitation_threshold_mm: float = field(
        init=False, default=PRECIPITATION_THRESHOLD_MM
    )
    valid_day_priority: List[DailyVariable] = field(
        init=False, default_factory=lambda: list(VALID_DAY_PRIORITY)
    )
    base_start_year: int = field(init=False, default=BASE_START_YEAR)
    window_years: int = field(init=False, default=WINDOW_YEARS)
    step_years: int = field(init=False, default=STEP_YEARS)
    max_windows: int = field(init=False, default=MAX_WINDOWS)
    create_from_file: InitVar[bool] = field(default=False)
    config_file: InitVar[str | None] = field(default=None)
    kwargs: InitVar[Dict[str, Any] | None] = field(default=None)

    def __post_init__(
        self,
        create_from_file: bool,
        config_file: str | None,
        kwargs: Dict[str, Any] | None,
    ):
        """Apply file and kwargs values on top of the defaults.

        Args:
            create_from_file (bool): Whether to read the "climatology" section
                of the configuration file.
            config_file (str | None): Path to the JSON configuration file. If None
                and create_from_file=True, uses {cwd}/config/{CONFIG_FILE env var or config.json}.
            kwargs (Dict[str, Any] | None): Values overriding file or defaults.

        Raises:
            ValueError: When a value has the wrong type or is out of range.
        """
        if create_from_file:
            if not config_file:
                config_file = os.path.join(
                    os.getcwd(),
                    "config",
                    os.getenv("CONFIG_FILE", "config.json"),
                )

            self.__apply(self.__get_config(config_file).get("climatology", {}))

        if kwargs:
            self.__apply(kwargs)

    def __get_config(self, config_file: str) -> Dict[str, Any]:
        with open(file=config_file, mode="r") as file:
            config = json.load(fp=file)

        return config

    def __apply(self, values: Dict[str, Any]) -> None:
        for name in (
            "rain_threshold_mm",
            "snow_threshold_cm",
            "precipitation_threshold_mm",
        ):
            if values.get(name) is not None:
                self.__set_threshold(name, values.get(name))
        if values.get("valid_day_priority") is not None:
            self.__set_valid_day_priority(values.get("valid_day_priority"))
        if values.get("base_start_year") is not None:
            self.__set_base_start_year(values.get("base_start_year"))
        for name in ("window_years", "step_years", "max_windows"):
            if values.get(name) is not None:
                self.__set_positive_int(name, values.get(name))

    def __set_threshold(self, name: str, value: Any) -> None:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if value >= 0:
                setattr(self, name, float(value))
            else:
                raise ValueError(f"Parameter {name} must be >=0. Got {value}")
        else:
            raise ValueError(
                f"Parameter {name} expected {float} Received {type(value)} instead."
            )

    def __set_valid_day_priority(self, priority: Any) -> None:
        if isinstance(priority, list):
            self.valid_day_priority = [
                (
                    variable
                    if isinstance(variable, DailyVariable)
                    else DailyVariable.from_name(str(variable))
                )
                for variable in priority
            ]
        else:
            raise ValueError(
                f"Parameter valid_day_priority expected {list} Received {type(priority)} instead."
            )

    def __set_base_start_year(self, base_start_year: Any) -> None:
        if isinstance(base_start_year, int) and not isinstance(base_start_year, bool):
            self.base_start_year = base_start_year
        else:
            raise ValueError(
                f"Parameter base_start_year expected {int} Received {type(base_start_year)} instead."
            )

    def __set_positive_int(self, name: str, value: Any) -> None:
        if isinstance(value, int) and not isinstance(value, bool):
            if value > 0:
                setattr(self, name, value)
            else:
                raise ValueError(f"Parameter {name} must be >0. Got {value}")
        else:
            raise ValueError(
                f"Parameter {name} expected {int} Received {type(value)} instead."
            )
