import sqlite3
from zoneinfo import ZoneInfo

import pytest

from shelfstats.models import PageStat, StatBook, StatisticsData
from shelfstats.time_config import TimeConfig

DAY = 86400
JAN_1_2024 = 1704067200  # 2024-01-01 00:00:00 UTC, a Monday


@pytest.fixture
def utc():
    """Logical dates in UTC with a midnight day start."""
    return TimeConfig(ZoneInfo("UTC"))


@pytest.fixture
def read_pages():
    """
    Builds contiguous page visits: one visit per page, each `duration` seconds,
    starting at `start` and spaced `step` seconds apart (defaults to `duration`).
    """
    def _read_pages(book_id, pages, start, duration=60, step=None):
        step = step or duration
        return [
            PageStat(id_book=book_id, page=page, start_time=start + i * step, duration=duration)
            for i, page in enumerate(pages)
        ]
    return _read_pages


@pytest.fixture
def make_book():
    def _make_book(book_id=1, title="Book", pages=100, md5=None, **kwargs):
        return StatBook(id=book_id, title=title, pages=pages, md5=md5 or f"md5-{book_id}", **kwargs)
    return _make_book


@pytest.fixture
def make_stats():
    def _make_stats(books, page_stats):
        return StatisticsData.from_records(list(books), list(page_stats))
    return _make_stats


# --- SQLITE FIXTURE ---
BOOK_TABLE = """
CREATE TABLE book (
    id integer PRIMARY KEY autoincrement, title text, authors text, notes integer,
    last_open integer, highlights integer, pages integer, series text, language text,
    md5 text, total_read_time integer, total_read_pages integer
)
"""

PAGE_STAT_DATA_TABLE = """
CREATE TABLE page_stat_data (
    id_book integer, page integer NOT NULL DEFAULT 0, start_time integer NOT NULL DEFAULT 0,
    duration integer NOT NULL DEFAULT 0, total_pages integer NOT NULL DEFAULT 0,
    UNIQUE (id_book, page, start_time)
)
"""


@pytest.fixture
def statistics_db(tmp_path):
    """
    A small KOReader-style statistics database on disk with two books.
    Returns the path; tests can open it again to add rows.
    """
    path = tmp_path / "statistics.sqlite3"
    conn = sqlite3.connect(path)
    conn.execute(BOOK_TABLE)
    conn.execute(PAGE_STAT_DATA_TABLE)
    conn.executemany(
        "INSERT INTO book (id, title, authors, pages, md5, total_read_time, total_read_pages) "
        "VALUES (?, ?, ?, ?, ?, ?, ?)",
        [
            (1, "Dune", "Frank Herbert", 10, "aaa", 600, 10),
            (2, "Emma", "Jane Austen", 20, "bbb", 120, 2),
        ],
    )
    conn.executemany(
        "INSERT INTO page_stat_data (id_book, page, start_time, duration, total_pages) VALUES (?, ?, ?, ?, ?)",
        [(1, page, JAN_1_2024 + page * 60, 60, 10) for page in range(1, 11)]
        + [(2, 1, JAN_1_2024 + DAY, 60, 20), (2, 2, JAN_1_2024 + DAY + 60, 60, 20)],
    )
    conn.commit()
    conn.close()
    return path
