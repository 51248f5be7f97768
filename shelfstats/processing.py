import logging

import pandas as pd

from shelfstats.models import StatisticsData
from shelfstats.time_config import TimeConfig

logger = logging.getLogger(__name__)


class DataProcessor:
    """
    Handles cleaning and date feature engineering of page visits.
    Works on a copy; the snapshot it was built from is never modified.
    """

    def __init__(self, stats_data: StatisticsData, time_config: TimeConfig):
        self.stats_data = stats_data
        self.time_config = time_config
        self.page_stats = None

    def process(self) -> pd.DataFrame:
        """Run the cleaning and enrichment pipeline and return the enriched page visits."""
        self._clean()
        self._enrich_data()
        return self.page_stats

    def _clean(self):
        """Drop invalid visits and sort for per-book walks."""
        df = self.stats_data.page_stats

        # Zero or negative durations are recording glitches
        invalid = int((df['duration'] <= 0).sum())
        if invalid:
            logger.debug("Ignoring %d page stats with non-positive duration", invalid)

        df = df[df['duration'] > 0].copy()
        df.sort_values(['id_book', 'start_time'], kind='mergesort', inplace=True)
        self.page_stats = df.reset_index(drop=True)

    def _enrich_data(self):
        """Add logical-date features."""
        df = self.page_stats
        df['date'] = self.time_config.logical_dates(df['start_time'])

        if df.empty:
            for col in ('date_str', 'year', 'year_month', 'iso_year', 'iso_week'):
                df[col] = pd.Series(dtype=object)
            return

        dt = pd.to_datetime(df['date'])
        iso = dt.dt.isocalendar()
        df['date_str'] = dt.dt.strftime('%Y-%m-%d')
        df['year'] = dt.dt.year
        df['year_month'] = dt.dt.strftime('%Y-%m')
        df['iso_year'] = iso['year'].astype(int)
        df['iso_week'] = iso['week'].astype(int)

    def with_books(self) -> pd.DataFrame:
        """
        Enriched page visits joined with their book rows.
        Inner join: visits of books missing from the book table are discarded.
        """
        if self.page_stats is None:
            self.process()

        books = self.stats_data.books[['id', 'title', 'authors', 'md5', 'content_type']]
        merged = self.page_stats.merge(books, left_on='id_book', right_on='id', how='inner')

        orphans = self.page_stats['id_book'].nunique() - merged['id_book'].nunique()
        if orphans > 0:
            logger.debug("Dropped page stats of %d books missing from the book table", orphans)

        return merged.drop(columns=['id'])
