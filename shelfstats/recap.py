import calendar
import logging
from typing import Dict, Iterable, List, Optional

import pandas as pd

from shelfstats import session
from shelfstats.models import (
    ContentType,
    LibraryItem,
    MonthRecap,
    RecapItem,
    StatisticsData,
    YearlySummary,
    YearRecap,
)
from shelfstats.processing import DataProcessor
from shelfstats.reading_calendar import parse_authors
from shelfstats.statistics import consecutive_runs
from shelfstats.time_config import TimeConfig

logger = logging.getLogger(__name__)

SCOPES = {
    'all': None,
    'books': ContentType.BOOK,
    'comics': ContentType.COMIC,
}


class RecapBuilder:
    """
    Builds the yearly recap: completions grouped by the month they ended in,
    with a summary of each year's reading.
    """

    def __init__(self, stats_data: StatisticsData, time_config: TimeConfig):
        self.stats_data = stats_data
        self.time_config = time_config

    def build(self, library_items: Iterable[LibraryItem] = ()) -> Dict[str, Dict[int, YearRecap]]:
        """Recaps per scope ("all", "books", "comics") and year, newest year first."""
        items = self._recap_items({item.md5: item for item in library_items})
        years = sorted({int(item.end_date[:4]) for item in items}, reverse=True)

        if not years:
            logger.info("No completions found, recap is empty")

        recaps = {}
        for scope, content_type in SCOPES.items():
            scope_items = [i for i in items if content_type is None or i.content_type == content_type]
            scope_data = (
                self.stats_data if content_type is None
                else self.stats_data.filtered_by_content_type(content_type)
            )
            df = DataProcessor(scope_data, self.time_config).process()
            month_time = df.groupby('year_month')['duration'].sum() if not df.empty else pd.Series(dtype='int64')

            recaps[scope] = {
                year: self._year_recap(year, scope_items, df, month_time)
                for year in years
            }

        return recaps

    def _recap_items(self, library_by_md5: Dict[str, LibraryItem]) -> List[RecapItem]:
        items = []
        for book in self.stats_data.iter_books():
            completions = self.stats_data.completions.get(book.md5)
            if completions is None:
                continue

            library_item = library_by_md5.get(book.md5)
            content_type = library_item.content_type if library_item else book.content_type
            for completion in completions.entries:
                items.append(RecapItem(
                    title=book.title or (library_item.title if library_item else ''),
                    authors=parse_authors(book.authors),
                    start_date=completion.start_date,
                    end_date=completion.end_date,
                    reading_time=completion.reading_time,
                    session_count=completion.session_count,
                    pages_read=completion.pages_read,
                    content_type=content_type,
                    item_path=library_item.item_path if library_item else None,
                    item_cover=library_item.cover_path if library_item else None,
                ))
        return items

    def _year_recap(self, year: int, items: List[RecapItem], df: pd.DataFrame, month_time: pd.Series) -> YearRecap:
        by_month: Dict[str, List[RecapItem]] = {}
        for item in items:
            if int(item.end_date[:4]) == year:
                by_month.setdefault(item.end_date[:7], []).append(item)

        monthly = []
        for key in sorted(by_month):
            month_items = sorted(by_month[key], key=lambda i: i.end_date, reverse=True)
            monthly.append(MonthRecap(
                month_key=key,
                books_finished=len(month_items),
                read_time=int(month_time.get(key, 0)),
                items=month_items,
            ))

        year_df = df[df['year'] == year] if not df.empty else df
        return YearRecap(year=year, monthly=monthly, summary=self._summary(year, monthly, year_df, month_time))

    @staticmethod
    def _summary(year: int, monthly: List[MonthRecap], year_df: pd.DataFrame, month_time: pd.Series) -> YearlySummary:
        total_books = sum(m.books_finished for m in monthly)
        total_time = int(year_df['duration'].sum()) if not year_df.empty else 0

        sessions = session.aggregate_session_durations(year_df) if not year_df.empty else []
        longest_session = max(sessions) if sessions else 0
        average_session = sum(sessions) // len(sessions) if sessions else 0

        reading_dates = sorted(year_df['date'].unique()) if not year_df.empty else []
        days_in_year = 366 if calendar.isleap(year) else 365
        active_days = len(reading_dates)

        runs = consecutive_runs(reading_dates)
        longest_streak = max(run[0] for run in runs) if runs else 0

        best_month: Optional[str] = None
        best_month_time: Optional[int] = None
        year_months = month_time[month_time.index.str.startswith(f"{year}-")] if not month_time.empty else month_time
        if not year_months.empty and year_months.max() > 0:
            # idxmax keeps the earliest month on ties
            best_month = str(year_months.sort_index().idxmax())
            best_month_time = int(year_months.max())

        return YearlySummary(
            total_books=total_books,
            total_time=total_time,
            longest_session_duration=longest_session,
            average_session_duration=average_session,
            active_days=active_days,
            active_days_percentage=float(round(active_days / days_in_year * 100)),
            longest_streak=longest_streak,
            best_month=best_month,
            best_month_time=best_month_time,
            completion_months_time=sum(m.read_time for m in monthly),
        )
