import sys
import time

from shelfstats.config import settings
from shelfstats.db import DatabaseManager
from shelfstats.exceptions import ShelfStatsError
from shelfstats.export import Exporter
from shelfstats.filters import filter_stats, filter_to_library
from shelfstats.library import md5_index, scan_library
from shelfstats.log_config import setup_logging
from shelfstats.reading_calendar import CalendarGenerator
from shelfstats.recap import RecapBuilder
from shelfstats.statistics import StatisticsCalculator


def run(now=None):
    time_config = settings.time_config()
    now = int(time.time()) if now is None else now

    # 1. Load Data
    print("Loading data...")
    stats_data = DatabaseManager(settings.statistics_db_path).load()

    # 2. Filter
    stats_data = filter_stats(
        stats_data, time_config,
        min_pages=settings.min_pages_per_day,
        min_time=settings.min_time_per_day,
    )

    library_items = []
    if settings.books_path:
        print(f"Scanning library at {settings.books_path}")
        library_items = scan_library(settings.books_path)
        if not settings.include_all_stats:
            stats_data = filter_to_library(stats_data, {item.md5 for item in library_items})
        stats_data = stats_data.tag_content_types(md5_index(library_items))

    # 3. Analyse
    print("Processing data...")
    stats_data = StatisticsCalculator.populate_completions(stats_data, time_config, settings.completion_config())
    stats = StatisticsCalculator.calculate_stats(stats_data, time_config, now)
    book_stats = StatisticsCalculator.calculate_all_session_stats(stats_data, time_config)
    months = CalendarGenerator.generate_calendar_months(stats_data, time_config, library_items)
    recaps = RecapBuilder(stats_data, time_config).build(library_items)

    # 4. Export
    print(f"\n[Exporting to {settings.output_dir}]")
    exporter = Exporter(settings.output_dir)
    for path in (
        exporter.export_statistics(stats),
        exporter.export_completions(stats_data.completions),
        exporter.export_book_stats(book_stats),
        exporter.export_calendar(months),
        exporter.export_recap(recaps),
    ):
        print(f"  ✓ Saved: {path}")


def main():
    print("--- ShelfStats Generator ---")
    setup_logging(settings.log_level)

    try:
        run()
    except ShelfStatsError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    print("\n--- Generation Complete ---")
    return 0


if __name__ == "__main__":
    sys.exit(main())
