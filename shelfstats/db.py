import logging
import shutil
import sqlite3
import tempfile
from pathlib import Path
from typing import Union

import pandas as pd

from shelfstats.exceptions import StatisticsDatabaseError
from shelfstats.models import BOOK_COLUMNS, PAGE_STAT_COLUMNS, StatisticsData

logger = logging.getLogger(__name__)

# KOReader view that rescales raw page numbers to the book's current pagination
PAGE_STAT_VIEW = "page_stat"
PAGE_STAT_TABLE = "page_stat_data"


class DatabaseManager:
    """
    Manages access to the KOReader statistics database.
    The file is copied to a temporary directory and the copy is opened
    read-only, so a database that KOReader is writing to is never touched.
    """

    def __init__(self, db_path: Union[str, Path] = "data/statistics.sqlite3"):
        self.db_path = Path(db_path)
        self.conn = None

    def connect(self, path: Path):
        """Open a read-only connection to the given database file."""
        try:
            self.conn = sqlite3.connect(f"{path.resolve().as_uri()}?mode=ro", uri=True)
        except sqlite3.Error as e:
            raise StatisticsDatabaseError(f"Error connecting to database: {e}", details={"path": str(path)}) from e

    def close(self):
        """Close the database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def load(self) -> StatisticsData:
        """Read books and page visits into a StatisticsData snapshot."""
        if not self.db_path.exists():
            raise StatisticsDatabaseError(
                f"Database file not found at {self.db_path}", details={"path": str(self.db_path)}
            )

        logger.info("Opening statistics database: %s", self.db_path)

        with tempfile.TemporaryDirectory() as temp_dir:
            temp_db_path = Path(temp_dir) / "statistics.sqlite3"
            try:
                shutil.copy2(self.db_path, temp_db_path)
            except OSError as e:
                raise StatisticsDatabaseError(
                    f"Failed to copy database from {self.db_path}: {e}", details={"path": str(self.db_path)}
                ) from e
            logger.debug("Copied database to temporary file %s", temp_db_path)

            self.connect(temp_db_path)
            try:
                books = self._read_books()
                page_stats = self._read_page_stats()
            except (sqlite3.Error, pd.errors.DatabaseError) as e:
                raise StatisticsDatabaseError(f"Error extracting data: {e}", details={"path": str(self.db_path)}) from e
            finally:
                self.close()

        stats_data = StatisticsData(books, page_stats)
        logger.info(
            "Found %d books and %d page stats in the statistics database",
            len(stats_data.books), len(stats_data.page_stats),
        )
        return stats_data

    def _has_view(self, name: str) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM sqlite_master WHERE type = 'view' AND name = ?", (name,)
        ).fetchone()
        return row is not None

    def _read_books(self) -> pd.DataFrame:
        books = pd.read_sql_query("SELECT * FROM book", self.conn)
        books = books.reindex(columns=BOOK_COLUMNS)

        books['id'] = pd.to_numeric(books['id'], errors='coerce')
        for col in ('pages', 'total_read_time', 'total_read_pages'):
            books[col] = pd.to_numeric(books[col], errors='coerce')

        malformed = books['id'].isna()
        if malformed.any():
            logger.warning("Skipping %d book rows without a valid id", int(malformed.sum()))
            books = books[~malformed].copy()

        books['id'] = books['id'].astype('int64')
        books['title'] = books['title'].fillna('').astype(str)
        books['authors'] = books['authors'].fillna('').astype(str)
        books['md5'] = books['md5'].fillna('').astype(str)
        books['content_type'] = None
        return books.reset_index(drop=True)

    def _read_page_stats(self) -> pd.DataFrame:
        source = PAGE_STAT_VIEW if self._has_view(PAGE_STAT_VIEW) else PAGE_STAT_TABLE
        logger.debug("Reading page stats from %s", source)

        page_stats = pd.read_sql_query(
            f"SELECT id_book, page, start_time, duration FROM {source}", self.conn
        )
        page_stats = page_stats.apply(pd.to_numeric, errors='coerce')

        malformed = page_stats[PAGE_STAT_COLUMNS].isna().any(axis=1)
        if malformed.any():
            logger.warning("Skipping %d malformed page stat rows", int(malformed.sum()))
            page_stats = page_stats[~malformed]

        return page_stats[PAGE_STAT_COLUMNS].astype('int64').reset_index(drop=True)
