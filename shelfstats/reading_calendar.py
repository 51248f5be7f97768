import calendar
import logging
from datetime import date, timedelta
from typing import Dict, Iterable, List

import pandas as pd

from shelfstats.models import (
    CalendarEvent,
    CalendarItem,
    CalendarMonthData,
    CalendarMonths,
    ContentType,
    LibraryItem,
    MonthlyStats,
    StatisticsData,
)
from shelfstats.processing import DataProcessor
from shelfstats.time_config import TimeConfig

logger = logging.getLogger(__name__)

EVENT_COLORS = [
    '#3B82F6',  # Blue
    '#10B981',  # Green
    '#F59E0B',  # Yellow
    '#EF4444',  # Red
    '#8B5CF6',  # Purple
    '#F97316',  # Orange
    '#06B6D4',  # Cyan
    '#84CC16',  # Lime
    '#EC4899',  # Pink
    '#6366F1',  # Indigo
]


def title_color(title: str) -> str:
    """Stable colour for a book, from a 31-multiplier hash of its UTF-8 title."""
    value = 0
    for byte in title.encode('utf-8'):
        value = (value * 31 + byte) & 0xFFFFFFFF
    return EVENT_COLORS[value % len(EVENT_COLORS)]


def parse_authors(authors: str) -> List[str]:
    """Split a display string of authors on commas and semicolons."""
    if not authors:
        return []
    return [a.strip() for a in authors.replace(';', ',').split(',') if a.strip()]


def month_key(day: date) -> str:
    return f"{day.year}-{day.month:02d}"


def _next_month(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


class CalendarGenerator:
    """
    Builds the reading calendar: per-book runs of consecutive reading days,
    distributed into "YYYY-MM" buckets with monthly statistics.
    """

    @classmethod
    def generate_calendar_months(cls, stats_data: StatisticsData, time_config: TimeConfig,
                                 library_items: Iterable[LibraryItem] = ()) -> CalendarMonths:
        """Return the calendar payload keyed by "YYYY-MM", in month order."""
        df = DataProcessor(stats_data, time_config).with_books()
        library_by_md5 = {item.md5.lower(): item for item in library_items}

        calendar_events = []
        calendar_items: Dict[str, CalendarItem] = {}

        for md5, book_df in df.groupby('md5', sort=True):
            first = book_df.iloc[0]
            if md5 not in calendar_items:
                calendar_items[md5] = cls._calendar_item(first, library_by_md5.get(str(md5).lower()))

            calendar_events.extend(cls.create_calendar_events(md5, book_df))

        # Deterministic ordering: start date, then item title
        calendar_events.sort(key=lambda ev: (ev.start, calendar_items[ev.item_id].title))

        monthly_stats_map = cls.build_monthly_stats(stats_data, time_config)
        monthly_stats_books_map = cls.build_monthly_stats(
            stats_data.filtered_by_content_type(ContentType.BOOK), time_config
        )
        monthly_stats_comics_map = cls.build_monthly_stats(
            stats_data.filtered_by_content_type(ContentType.COMIC), time_config
        )

        months: Dict[str, CalendarMonthData] = {}
        for ev in calendar_events:
            start_date = date.fromisoformat(ev.start)
            end_exclusive = date.fromisoformat(ev.end) if ev.end else start_date + timedelta(days=1)

            # The event goes into every month it overlaps
            iter_date = start_date
            while iter_date < end_exclusive:
                key = month_key(iter_date)
                month = months.get(key)
                if month is None:
                    month = CalendarMonthData(
                        stats=monthly_stats_map.get(key, MonthlyStats()),
                        stats_books=monthly_stats_books_map.get(key, MonthlyStats()),
                        stats_comics=monthly_stats_comics_map.get(key, MonthlyStats()),
                    )
                    months[key] = month

                month.events.append(ev)
                month.books.setdefault(ev.item_id, calendar_items[ev.item_id])
                iter_date = _next_month(iter_date)

        logger.info("Generated calendar with %d events across %d months", len(calendar_events), len(months))
        return dict(sorted(months.items()))

    @staticmethod
    def _calendar_item(book_row: pd.Series, library_item) -> CalendarItem:
        if library_item is not None:
            content_type = library_item.content_type
        elif isinstance(book_row['content_type'], str) and book_row['content_type']:
            content_type = ContentType(book_row['content_type'])
        else:
            content_type = ContentType.BOOK

        title = book_row['title'] if isinstance(book_row['title'], str) else ''
        authors = book_row['authors'] if isinstance(book_row['authors'], str) else ''
        return CalendarItem(
            title=title,
            authors=parse_authors(authors),
            content_type=content_type,
            color=title_color(title),
            item_path=library_item.item_path if library_item else None,
            item_cover=library_item.cover_path if library_item else None,
        )

    @staticmethod
    def create_calendar_events(item_id: str, book_df: pd.DataFrame) -> List[CalendarEvent]:
        """
        Merge a book's reading days into runs of consecutive days, ignoring month boundaries.

        `total_pages_read` counts the page-visit records in the run, not distinct pages.
        """
        daily = book_df.groupby('date', sort=True).agg(
            read_time=('duration', 'sum'),
            records=('duration', 'size'),
        )
        if daily.empty:
            return []

        events = []
        days = list(daily.index)

        span_start = days[0]
        prev_day = days[0]
        span_time = int(daily.loc[days[0], 'read_time'])
        span_records = int(daily.loc[days[0], 'records'])

        for day in days[1:]:
            if day == prev_day + timedelta(days=1):
                # Same streak
                span_time += int(daily.loc[day, 'read_time'])
                span_records += int(daily.loc[day, 'records'])
            else:
                events.append(CalendarGenerator._event(item_id, span_start, prev_day, span_time, span_records))
                span_start = day
                span_time = int(daily.loc[day, 'read_time'])
                span_records = int(daily.loc[day, 'records'])
            prev_day = day

        events.append(CalendarGenerator._event(item_id, span_start, prev_day, span_time, span_records))
        return events

    @staticmethod
    def _event(item_id: str, start_date: date, end_date: date, read_time: int, records: int) -> CalendarEvent:
        end_exclusive = None if start_date == end_date else (end_date + timedelta(days=1)).isoformat()
        return CalendarEvent(
            start=start_date.isoformat(),
            end=end_exclusive,
            total_read_time=read_time,
            total_pages_read=records,
            item_id=item_id,
        )

    @staticmethod
    def build_monthly_stats(stats_data: StatisticsData, time_config: TimeConfig) -> Dict[str, MonthlyStats]:
        """Per-month reading statistics keyed by "YYYY-MM"."""
        df = DataProcessor(stats_data, time_config).process()
        if df.empty:
            return {}

        monthly_stats = {}
        for key, month_df in df.groupby('year_month', sort=True):
            year, month = (int(part) for part in key.split('-'))
            days_in_month = calendar.monthrange(year, month)[1]
            unique_days = month_df['date'].nunique()

            days_pct = round(unique_days * 100 / days_in_month) if days_in_month else 0

            monthly_stats[key] = MonthlyStats(
                books_read=int(month_df['id_book'].nunique()),
                pages_read=len(month_df),  # each page stat is one page read
                time_read=int(month_df['duration'].sum()),
                days_read_pct=max(0, min(100, days_pct)),
            )

        return monthly_stats
