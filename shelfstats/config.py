from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from shelfstats.completion import CompletionConfig
from shelfstats.time_config import TimeConfig


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SHELFSTATS_",
        env_file=".env",
        extra="ignore",
    )

    # Paths
    statistics_db_path: Path = Path("data/statistics.sqlite3")
    # Library directory used to build the fingerprint index (optional)
    books_path: Optional[Path] = None
    output_dir: Path = Path("output")

    # --- TIME SETTINGS ---
    # IANA zone name, e.g. "Europe/Rome". Empty means the machine's local zone.
    timezone: Optional[str] = None
    # Logical day start as HH:MM, e.g. "03:00" counts 02:30 as the previous day
    day_start_time: Optional[str] = None

    # --- FILTERS ---
    # Per book per day minimums. A day passes if it meets either one when both are set.
    min_pages_per_day: Optional[int] = Field(default=None, ge=0)
    min_time_per_day: Optional[int] = Field(default=None, ge=0)  # seconds
    # Keep statistics for books that are not in the scanned library
    include_all_stats: bool = False

    # --- COMPLETION DETECTION ---
    min_completion_percentage: float = Field(default=0.75, ge=0.0, le=1.0)
    min_early_percentage: float = Field(default=0.20, ge=0.0, le=1.0)
    min_late_percentage: float = Field(default=0.02, ge=0.0, le=1.0)

    log_level: str = "INFO"

    def time_config(self) -> TimeConfig:
        return TimeConfig.from_strings(self.timezone, self.day_start_time)

    def completion_config(self) -> CompletionConfig:
        return CompletionConfig(
            min_completion_percentage=self.min_completion_percentage,
            min_early_percentage=self.min_early_percentage,
            min_late_percentage=self.min_late_percentage,
        )


settings = Settings()
