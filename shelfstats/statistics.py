import logging
from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple

import pandas as pd

from shelfstats import session
from shelfstats.completion import CompletionConfig, ReadCompletionDetector
from shelfstats.models import (
    BookSessionStats,
    DailyStats,
    ReadingStats,
    StatBook,
    StatisticsData,
    StreakInfo,
    WeeklyStats,
)
from shelfstats.processing import DataProcessor
from shelfstats.time_config import TimeConfig

logger = logging.getLogger(__name__)


def consecutive_runs(sorted_dates: List[date]) -> List[Tuple[int, date, date]]:
    """(length, start, end) of every run of consecutive days in an ascending list of dates."""
    if not sorted_dates:
        return []

    runs = []
    run_start = sorted_dates[0]
    run_length = 1
    for prev_date, curr_date in zip(sorted_dates, sorted_dates[1:]):
        if curr_date == prev_date + timedelta(days=1):
            run_length += 1
        else:
            runs.append((run_length, run_start, prev_date))
            run_start = curr_date
            run_length = 1
    runs.append((run_length, run_start, sorted_dates[-1]))
    return runs


def calculate_session_stats(book: StatBook, page_stats: pd.DataFrame, time_config: TimeConfig) -> BookSessionStats:
    """Session statistics of one book from its page visits."""
    book_stats = page_stats[(page_stats['id_book'] == book.id) & (page_stats['duration'] > 0)]

    durations = session.session_durations(book_stats)
    session_count = len(durations)
    longest_session_duration = max(durations) if durations else None
    average_session_duration = sum(durations) // session_count if durations else None

    last_read_date = None
    if not book_stats.empty:
        last_read_date = time_config.format_date(int(book_stats['start_time'].max()))

    reading_speed = None
    if book.total_read_time and book.total_read_pages is not None and book.total_read_time > 0:
        reading_speed = book.total_read_pages * 3600.0 / book.total_read_time  # pages per hour

    return BookSessionStats(
        session_count=session_count,
        average_session_duration=average_session_duration,
        longest_session_duration=longest_session_duration,
        last_read_date=last_read_date,
        reading_speed=reading_speed,
    )


class StatisticsCalculator:
    """Reduces a statistics snapshot into global, weekly, daily, streak and completion figures."""

    @staticmethod
    def populate_completions(stats_data: StatisticsData, time_config: TimeConfig,
                             config: Optional[CompletionConfig] = None) -> StatisticsData:
        """Run completion detection for every book and return a snapshot carrying the results."""
        detector = ReadCompletionDetector(config or CompletionConfig(), time_config)
        completions = detector.detect_all_completions(stats_data)
        return StatisticsData(stats_data.books, stats_data.page_stats, completions)

    @classmethod
    def calculate_stats(cls, stats_data: StatisticsData, time_config: TimeConfig, now: int) -> ReadingStats:
        """
        Calculate reading statistics for the snapshot.

        Args:
            stats_data: snapshot, with completions already populated
            time_config: logical date mapping
            now: current Unix timestamp, used for the current streak
        """
        df = DataProcessor(stats_data, time_config).process()

        if df.empty:
            stats = ReadingStats()
            stats.total_completions, stats.books_completed, stats.most_completions = \
                cls.calculate_completion_stats(stats_data)
            return stats

        daily = df.groupby('date_str').agg(read_time=('duration', 'sum'), pages_read=('duration', 'size'))

        average_session_duration, longest_session_duration = session.session_metrics(df)
        total_completions, books_completed, most_completions = cls.calculate_completion_stats(stats_data)

        daily_activity = cls.build_daily_activity(daily)
        longest_streak, current_streak = cls.calculate_streaks(daily_activity, time_config.today_date(now))

        return ReadingStats(
            total_read_time=int(df['duration'].sum()),
            total_page_reads=len(df),
            longest_read_time_in_day=int(daily['read_time'].max()),
            most_pages_in_day=int(daily['pages_read'].max()),
            average_session_duration=average_session_duration,
            longest_session_duration=longest_session_duration,
            total_completions=total_completions,
            books_completed=books_completed,
            most_completions=most_completions,
            longest_streak=longest_streak,
            current_streak=current_streak,
            weeks=cls.build_weekly_stats(df),
            daily_activity=daily_activity,
        )

    @staticmethod
    def build_weekly_stats(df: pd.DataFrame) -> List[WeeklyStats]:
        """
        Weekly rollups keyed by ISO week of the logical date, newest first.
        Session metrics are recomputed from each week's own visits, so a session
        crossing midnight on Sunday is split between the two weeks.
        """
        weeks = []
        for (iso_year, iso_week), week_df in df.groupby(['iso_year', 'iso_week']):
            start_date = date.fromisocalendar(int(iso_year), int(iso_week), 1)
            end_date = start_date + timedelta(days=6)

            read_time = int(week_df['duration'].sum())
            pages_read = len(week_df)
            average_session_duration, longest_session_duration = session.session_metrics(week_df)

            weeks.append(WeeklyStats(
                start_date=start_date.isoformat(),
                end_date=end_date.isoformat(),
                read_time=read_time,
                pages_read=pages_read,
                avg_pages_per_day=pages_read / 7.0,
                avg_read_time_per_day=read_time / 7.0,
                longest_session_duration=longest_session_duration,
                average_session_duration=average_session_duration,
            ))

        weeks.sort(key=lambda w: w.start_date, reverse=True)
        return weeks

    @staticmethod
    def build_daily_activity(daily: pd.DataFrame) -> List[DailyStats]:
        """Daily activity for the heatmap, oldest first."""
        return [
            DailyStats(date=day, read_time=int(row.read_time), pages_read=int(row.pages_read))
            for day, row in daily.sort_index().iterrows()
        ]

    @staticmethod
    def calculate_streaks(daily_activity: List[DailyStats], today: date) -> Tuple[StreakInfo, StreakInfo]:
        """
        Longest and current reading streaks from daily activity.

        The longest streak is always reported. The current streak is the run
        ending on the last reading day, and only counts if that day is today or
        yesterday; it has no end date.
        """
        reading_dates = sorted({
            date.fromisoformat(day.date) for day in daily_activity if day.pages_read > 0
        })
        if not reading_dates:
            return StreakInfo(), StreakInfo()

        streaks = consecutive_runs(reading_dates)

        # Most recent run of maximum length wins ties
        length, start, end = max(reversed(streaks), key=lambda s: s[0])
        longest_streak = StreakInfo(length, start.isoformat(), end.isoformat())

        last_reading_date = reading_dates[-1]
        if (today - last_reading_date).days <= 1:
            length, start, _ = streaks[-1]
            current_streak = StreakInfo(length, start.isoformat(), None)
        else:
            current_streak = StreakInfo()

        return longest_streak, current_streak

    @staticmethod
    def calculate_completion_stats(stats_data: StatisticsData) -> Tuple[int, int, int]:
        """(total completions, books completed at least once, most completions of one book)"""
        total_completions = 0
        books_completed = 0
        most_completions = 0

        md5s = set(stats_data.books['md5'])
        for md5, completions in stats_data.completions.items():
            if md5 not in md5s or completions.total_completions == 0:
                continue
            total_completions += completions.total_completions
            books_completed += 1
            most_completions = max(most_completions, completions.total_completions)

        return total_completions, books_completed, most_completions

    @staticmethod
    def calculate_all_session_stats(stats_data: StatisticsData, time_config: TimeConfig) -> Dict[str, BookSessionStats]:
        """Per-book session statistics keyed by book MD5."""
        valid = stats_data.valid_page_stats()
        return {
            book.md5: calculate_session_stats(book, valid, time_config)
            for book in stats_data.iter_books()
        }
