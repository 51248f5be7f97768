import json
import logging
import os
from pathlib import Path
from typing import Dict, Union

from shelfstats.models import BookCompletions, BookSessionStats, CalendarMonths, ReadingStats, YearRecap

logger = logging.getLogger(__name__)


class Exporter:
    """Writes the computed statistics as JSON files under one output directory."""

    def __init__(self, output_dir: Union[str, Path] = "output"):
        self.output_dir = Path(output_dir)

    def save_json(self, data, relative_path: str) -> Path:
        """Write `data` to `relative_path` inside the output directory."""
        path = self.output_dir / relative_path
        os.makedirs(path.parent, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        logger.debug("Saved %s", path)
        return path

    def export_statistics(self, stats: ReadingStats) -> Path:
        return self.save_json(stats.to_dict(), "statistics.json")

    def export_completions(self, completions: Dict[str, BookCompletions]) -> Path:
        data = {md5: completions[md5].to_dict() for md5 in sorted(completions)}
        return self.save_json(data, "completions.json")

    def export_book_stats(self, book_stats: Dict[str, BookSessionStats]) -> Path:
        data = {md5: book_stats[md5].to_dict() for md5 in sorted(book_stats)}
        return self.save_json(data, "books.json")

    def export_calendar(self, months: CalendarMonths) -> Path:
        """One file per month plus the list of available months, newest first."""
        for key, month in months.items():
            self.save_json(month.to_dict(), f"calendar/{key}.json")
        return self.save_json(sorted(months, reverse=True), "calendar/available_months.json")

    def export_recap(self, recaps: Dict[str, Dict[int, YearRecap]]) -> Path:
        """One file per year holding every scope."""
        years = sorted({year for by_year in recaps.values() for year in by_year}, reverse=True)
        for year in years:
            data = {scope: by_year[year].to_dict() for scope, by_year in recaps.items() if year in by_year}
            self.save_json(data, f"recap/{year}.json")
        return self.save_json(years, "recap/available_years.json")
