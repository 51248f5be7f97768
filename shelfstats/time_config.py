from datetime import date, datetime, timezone as dt_timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pandas as pd

from shelfstats.exceptions import ConfigError


class TimeConfig:
    """
    Maps Unix timestamps to logical reading dates.

    A logical date is the calendar date in the configured time zone after
    shifting the timestamp back by the day-start offset, so with a 03:00 day
    start anything read at 02:30 still counts for the previous day. When no
    time zone is configured the machine's local zone is used.
    """

    def __init__(self, timezone: Optional[ZoneInfo] = None, day_start_minutes: int = 0):
        self.timezone = timezone
        self.day_start_minutes = day_start_minutes

    def __repr__(self):
        tz_name = self.timezone.key if self.timezone else "local"
        return f"TimeConfig(timezone={tz_name!r}, day_start_minutes={self.day_start_minutes})"

    @classmethod
    def from_strings(cls, timezone: Optional[str] = None, day_start_time: Optional[str] = None) -> "TimeConfig":
        """
        Build from optional setting strings (IANA zone name, day start as HH:MM).
        Blank values fall back to the local zone and a midnight day start.
        """
        tz = None
        if timezone and timezone.strip():
            try:
                tz = ZoneInfo(timezone.strip())
            except (ZoneInfoNotFoundError, ValueError) as e:
                raise ConfigError(
                    f"Invalid timezone: {timezone}. Example: Australia/Sydney",
                    details={"timezone": timezone},
                ) from e

        minutes = 0
        if day_start_time and day_start_time.strip():
            minutes = cls.parse_day_start_minutes(day_start_time.strip())

        return cls(tz, minutes)

    @staticmethod
    def parse_day_start_minutes(value: str) -> int:
        parts = value.split(":")
        if len(parts) != 2:
            raise ConfigError("Invalid day start time format. Use HH:MM (e.g., 03:00)", details={"value": value})
        try:
            hours = int(parts[0])
            minutes = int(parts[1])
        except ValueError as e:
            raise ConfigError(f"Invalid day start time: {value}", details={"value": value}) from e
        if not (0 <= hours <= 23) or not (0 <= minutes <= 59):
            raise ConfigError("Day start time must be between 00:00 and 23:59", details={"value": value})
        return hours * 60 + minutes

    @property
    def _offset_seconds(self) -> int:
        return self.day_start_minutes * 60

    def date_for_timestamp(self, timestamp: int) -> date:
        """Logical local date for a Unix timestamp."""
        shifted = int(timestamp) - self._offset_seconds
        if self.timezone is not None:
            return datetime.fromtimestamp(shifted, tz=self.timezone).date()
        return datetime.fromtimestamp(shifted, tz=dt_timezone.utc).astimezone().date()

    def format_date(self, timestamp: int) -> str:
        """Format a timestamp as YYYY-MM-DD under the configured zone and day start."""
        return self.date_for_timestamp(timestamp).isoformat()

    def logical_dates(self, timestamps: pd.Series) -> pd.Series:
        """
        Vectorised `date_for_timestamp` over a Series of Unix timestamps.
        Returns a Series of `datetime.date` objects aligned to the input index.
        """
        if timestamps.empty:
            return pd.Series([], index=timestamps.index, dtype=object)

        if self.timezone is None:
            return timestamps.map(self.date_for_timestamp)

        shifted = pd.to_datetime(timestamps.astype("int64") - self._offset_seconds, unit="s", utc=True)
        return shifted.dt.tz_convert(self.timezone).dt.date

    def today_date(self, now: int) -> date:
        """Today's logical date for the supplied current instant."""
        return self.date_for_timestamp(now)
