"""Daily variables, calendar labels and record date formatting.

DailyVariable enumerates the Open-Meteo daily variables the engine consumes.
VariableIndex maps each requested variable to its position in an API
response. It is built once from the configured metric list and handed to
every consumer, so the response order and the column names cannot drift
apart.

Record dates are rendered as labels such as "2nd Mar 2020". Older persisted
records sometimes only carry a bare year ("2001"); those are treated as
imprecise by the record merger.
"""

import re
from datetime import date, datetime
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Tuple


class DailyVariable(str, Enum):
    """Open-Meteo daily variables used for climatology."""

    TEMPERATURE_MAX = "temperature_2m_max"
    TEMPERATURE_MIN = "temperature_2m_min"
    TEMPERATURE_MEAN = "temperature_2m_mean"
    DEW_POINT_MEAN = "dew_point_2m_mean"
    RAIN_SUM = "rain_sum"
    SNOWFALL_SUM = "snowfall_sum"
    PRECIPITATION_SUM = "precipitation_sum"
    RELATIVE_HUMIDITY_MAX = "relative_humidity_2m_max"
    RELATIVE_HUMIDITY_MIN = "relative_humidity_2m_min"
    RELATIVE_HUMIDITY_MEAN = "relative_humidity_2m_mean"
    PRESSURE_MSL_MEAN = "pressure_msl_mean"
    SURFACE_PRESSURE_MEAN = "surface_pressure_mean"
    CLOUD_COVER_MEAN = "cloud_cover_mean"
    WIND_SPEED_MEAN = "wind_speed_10m_mean"
    DAYLIGHT_DURATION = "daylight_duration"
    SUNSHINE_DURATION = "sunshine_duration"

    @classmethod
    def from_name(cls, name: str) -> "DailyVariable":
        """Look up a variable by its Open-Meteo name.

        Raises:
            ValueError: When name is not a supported daily variable.
        """
        try:
            return cls(name)
        except ValueError:
            raise ValueError(
                f"Unsupported daily variable {name}. Expected one of {[variable.value for variable in cls]}"
            ) from None


DEFAULT_DAILY_VARIABLES: Tuple[DailyVariable, ...] = tuple(DailyVariable)


class VariableIndex:
    """Ordered mapping between daily variables and response positions.

    Attributes:
        variables (Tuple[DailyVariable, ...]): Variables in request order.

    Example:
        index = VariableIndex(["temperature_2m_max", "precipitation_sum"])
        index.position(DailyVariable.PRECIPITATION_SUM)  -> 1
        index.names  -> ["temperature_2m_max", "precipitation_sum"]
    """

    def __init__(self, variables: Iterable[DailyVariable | str]) -> None:
        ordered: List[DailyVariable] = []
        for variable in variables:
            if not isinstance(variable, DailyVariable):
                variable = DailyVariable.from_name(str(variable))
            if variable in ordered:
                raise ValueError(f"Daily variable {variable.value} requested twice.")
            ordered.append(variable)

        self.variables = tuple(ordered)
        self.__positions: Dict[DailyVariable, int] = {
            variable: position for position, variable in enumerate(self.variables)
        }

    @property
    def names(self) -> List[str]:
        return [variable.value for variable in self.variables]

    def position(self, variable: DailyVariable) -> int:
        """Return the response position of variable.

        Raises:
            KeyError: When variable was not requested.
        """
        return self.__positions[variable]

    def __contains__(self, variable: object) -> bool:
        return variable in self.__positions

    def __iter__(self) -> Iterator[Tuple[int, DailyVariable]]:
        return iter(enumerate(self.variables))

    def __len__(self) -> int:
        return len(self.variables)


MONTH_NAMES: Tuple[str, ...] = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

MONTH_ABBREVIATIONS: Tuple[str, ...] = tuple(name[:3] for name in MONTH_NAMES)

ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
BARE_YEAR_PATTERN = re.compile(r"^\s*\d{4}\s*$")


def month_name(month_index: int) -> str:
    return MONTH_NAMES[month_index - 1]


def month_index_from_name(name: str) -> Optional[int]:
    """Resolve a month name (any case, surrounding blanks allowed) to 1..12."""
    key = name.strip().lower()
    for position, candidate in enumerate(MONTH_NAMES, start=1):
        if candidate.lower() == key:
            return position

    return None


def parse_iso_date(iso_date: object) -> Optional[date]:
    """Strictly parse a YYYY-MM-DD string, returning None when malformed."""
    if not isinstance(iso_date, str) or not ISO_DATE_PATTERN.match(iso_date):
        return None
    try:
        return datetime.strptime(iso_date, "%Y-%m-%d").date()
    except ValueError:
        return None


def ordinal_suffix(day: int) -> str:
    if 11 <= day % 100 <= 13:
        return "th"

    return {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")


def format_record_date(day: date) -> str:
    """Render a date as a record label, e.g. "2nd Mar 2020"."""
    return f"{day.day}{ordinal_suffix(day.day)} {MONTH_ABBREVIATIONS[day.month - 1]} {day.year}"


def is_imprecise_date(label: Optional[str]) -> bool:
    """A record date is imprecise when it is missing or only names a year."""
    if label is None or not str(label).strip():
        return True

    return bool(BARE_YEAR_PATTERN.match(str(label)))
