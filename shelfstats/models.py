from dataclasses import asdict, dataclass, field, fields
from datetime import date
from enum import Enum
from typing import Dict, Iterator, List, Optional

import pandas as pd

PAGE_STAT_COLUMNS = ["id_book", "page", "start_time", "duration"]
BOOK_COLUMNS = [
    "id", "title", "authors", "pages", "md5",
    "total_read_time", "total_read_pages", "content_type",
]


class ContentType(str, Enum):
    BOOK = "book"
    COMIC = "comic"


def _optional_int(value) -> Optional[int]:
    if value is None or pd.isna(value):
        return None
    return int(value)


def _text(value) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    return str(value)


@dataclass(frozen=True)
class PageStat:
    """One recorded page visit: a reader spent `duration` seconds on `page` starting at `start_time`."""
    id_book: int
    page: int
    start_time: int
    duration: int


@dataclass
class StatBook:
    """A book row of the reading-tracker database."""
    id: int
    title: str
    authors: str = ""
    md5: str = ""
    pages: Optional[int] = None
    total_read_time: Optional[int] = None
    total_read_pages: Optional[int] = None
    content_type: Optional[ContentType] = None

    @classmethod
    def from_row(cls, row) -> "StatBook":
        content_type = row.get("content_type")
        return cls(
            id=int(row["id"]),
            title=_text(row.get("title")),
            authors=_text(row.get("authors")),
            md5=_text(row.get("md5")),
            pages=_optional_int(row.get("pages")),
            total_read_time=_optional_int(row.get("total_read_time")),
            total_read_pages=_optional_int(row.get("total_read_pages")),
            content_type=ContentType(content_type) if isinstance(content_type, str) and content_type else None,
        )


def empty_page_stats() -> pd.DataFrame:
    return pd.DataFrame({col: pd.Series(dtype="int64") for col in PAGE_STAT_COLUMNS})


def page_stats_frame(page_stats) -> pd.DataFrame:
    """Build a page-stat DataFrame from an iterable of `PageStat`."""
    rows = [asdict(s) for s in page_stats]
    if not rows:
        return empty_page_stats()
    return pd.DataFrame(rows, columns=PAGE_STAT_COLUMNS).astype("int64")


def empty_books() -> pd.DataFrame:
    frame = pd.DataFrame({col: pd.Series(dtype=object) for col in BOOK_COLUMNS})
    frame["id"] = frame["id"].astype("int64")
    return frame


class StatisticsData:
    """
    Snapshot of the statistics database: book rows, raw page visits and the
    completions detected for each book (keyed by content fingerprint).

    Operations that narrow the data return a new snapshot and leave this one untouched.
    """

    def __init__(self, books: pd.DataFrame, page_stats: pd.DataFrame,
                 completions: Optional[Dict[str, "BookCompletions"]] = None):
        self.books = books.reset_index(drop=True)
        self.page_stats = page_stats.reset_index(drop=True)
        self.completions = dict(completions or {})

    @classmethod
    def from_records(cls, books: List[StatBook], page_stats: List[PageStat]) -> "StatisticsData":
        if books:
            books_df = pd.DataFrame([
                {**asdict(b), "content_type": b.content_type.value if b.content_type else None}
                for b in books
            ], columns=BOOK_COLUMNS)
        else:
            books_df = empty_books()

        return cls(books_df, page_stats_frame(page_stats))

    def __repr__(self):
        return f"StatisticsData(books={len(self.books)}, page_stats={len(self.page_stats)})"

    def copy(self) -> "StatisticsData":
        return StatisticsData(self.books.copy(), self.page_stats.copy(), self.completions)

    def iter_books(self) -> Iterator[StatBook]:
        for row in self.books.to_dict("records"):
            yield StatBook.from_row(row)

    def book_by_id(self, book_id: int) -> Optional[StatBook]:
        match = self.books[self.books["id"] == book_id]
        if match.empty:
            return None
        return StatBook.from_row(match.iloc[0].to_dict())

    def valid_page_stats(self) -> pd.DataFrame:
        """Page visits with a positive duration; everything else is ignored by every computation."""
        return self.page_stats[self.page_stats["duration"] > 0]

    def tag_content_types(self, md5_to_content_type: Dict[str, ContentType]) -> "StatisticsData":
        """
        Return a copy where each book carries the content type found for its MD5.
        Books not found in the map keep no content type.
        """
        books = self.books.copy()
        books["content_type"] = books["md5"].map(
            lambda md5: md5_to_content_type[md5].value if md5 in md5_to_content_type else None
        )
        return StatisticsData(books, self.page_stats.copy(), self.completions)

    def filtered_by_content_type(self, content_type: ContentType) -> "StatisticsData":
        """Return a copy limited to books of one content type and their page visits."""
        books = self.books[self.books["content_type"] == content_type.value].copy()
        ids_to_keep = set(books["id"])
        page_stats = self.page_stats[self.page_stats["id_book"].isin(ids_to_keep)].copy()
        md5s = set(books["md5"])
        completions = {md5: c for md5, c in self.completions.items() if md5 in md5s}
        return StatisticsData(books, page_stats, completions)


class _Serializable:
    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ReadCompletion(_Serializable):
    """One accepted read-through of a book."""
    start_date: str  # ISO yyyy-mm-dd
    end_date: str
    reading_time: int  # seconds
    session_count: int
    pages_read: int  # distinct pages visited

    def average_speed(self) -> Optional[float]:
        """Average reading speed in pages per hour"""
        if self.reading_time > 0 and self.pages_read > 0:
            return self.pages_read / (self.reading_time / 3600.0)
        return None

    def avg_session_duration(self) -> Optional[int]:
        if self.session_count > 0:
            return self.reading_time // self.session_count
        return None

    def calendar_length_days(self) -> int:
        start = date.fromisoformat(self.start_date)
        end = date.fromisoformat(self.end_date)
        return abs((end - start).days) + 1


@dataclass
class BookCompletions:
    entries: List[ReadCompletion] = field(default_factory=list)

    @property
    def total_completions(self) -> int:
        return len(self.entries)

    @property
    def last_completion_date(self) -> Optional[str]:
        return self.entries[-1].end_date if self.entries else None

    def has_completions(self) -> bool:
        return bool(self.entries)

    def to_dict(self) -> dict:
        return {
            "entries": [e.to_dict() for e in self.entries],
            "total_completions": self.total_completions,
            "last_completion_date": self.last_completion_date,
        }


@dataclass(frozen=True)
class StreakInfo(_Serializable):
    days: int = 0
    start_date: Optional[str] = None
    end_date: Optional[str] = None


@dataclass(frozen=True)
class DailyStats(_Serializable):
    date: str
    read_time: int
    pages_read: int


@dataclass(frozen=True)
class WeeklyStats(_Serializable):
    start_date: str
    end_date: str
    read_time: int
    pages_read: int
    avg_pages_per_day: float
    avg_read_time_per_day: float
    longest_session_duration: Optional[int]
    average_session_duration: Optional[int]


@dataclass
class ReadingStats:
    # Overall
    total_read_time: int = 0
    total_page_reads: int = 0
    longest_read_time_in_day: int = 0
    most_pages_in_day: int = 0

    # Sessions across all books
    average_session_duration: Optional[int] = None
    longest_session_duration: Optional[int] = None

    # Completions across all books
    total_completions: int = 0
    books_completed: int = 0
    most_completions: int = 0

    longest_streak: StreakInfo = field(default_factory=StreakInfo)
    current_streak: StreakInfo = field(default_factory=StreakInfo)

    weeks: List[WeeklyStats] = field(default_factory=list)
    daily_activity: List[DailyStats] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class BookSessionStats(_Serializable):
    session_count: int
    average_session_duration: Optional[int]
    longest_session_duration: Optional[int]
    last_read_date: Optional[str]
    reading_speed: Optional[float]  # pages per hour


@dataclass(frozen=True)
class CalendarEvent:
    """A run of consecutive reading days for one book."""
    start: str
    end: Optional[str]  # exclusive, None for single-day events
    total_read_time: int
    total_pages_read: int  # page-visit records in the span, not distinct pages
    item_id: str  # book MD5

    def to_dict(self) -> dict:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        if self.end is None:
            del data["end"]
        return data


@dataclass(frozen=True)
class CalendarItem:
    title: str
    authors: List[str]
    content_type: ContentType
    color: str
    item_path: Optional[str] = None
    item_cover: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "title": self.title,
            "authors": list(self.authors),
            "content_type": self.content_type.value,
            "color": self.color,
        }
        if self.item_path is not None:
            data["item_path"] = self.item_path
        if self.item_cover is not None:
            data["item_cover"] = self.item_cover
        return data


@dataclass(frozen=True)
class MonthlyStats(_Serializable):
    books_read: int = 0
    pages_read: int = 0
    time_read: int = 0
    days_read_pct: int = 0  # 0-100


@dataclass
class CalendarMonthData:
    events: List[CalendarEvent] = field(default_factory=list)
    books: Dict[str, CalendarItem] = field(default_factory=dict)
    stats: MonthlyStats = field(default_factory=MonthlyStats)
    stats_books: MonthlyStats = field(default_factory=MonthlyStats)
    stats_comics: MonthlyStats = field(default_factory=MonthlyStats)

    def to_dict(self) -> dict:
        return {
            "events": [e.to_dict() for e in self.events],
            "books": {item_id: item.to_dict() for item_id, item in sorted(self.books.items())},
            "stats": self.stats.to_dict(),
            "stats_books": self.stats_books.to_dict(),
            "stats_comics": self.stats_comics.to_dict(),
        }


# "YYYY-MM" -> month payload, kept in key order
CalendarMonths = Dict[str, CalendarMonthData]


@dataclass(frozen=True)
class LibraryItem:
    """A file found in the library directory, identified by its partial MD5."""
    id: str
    title: str
    file_path: str
    md5: str
    content_type: ContentType

    @property
    def item_path(self) -> str:
        prefix = "comics" if self.content_type == ContentType.COMIC else "books"
        return f"/{prefix}/{self.id}/"

    @property
    def cover_path(self) -> str:
        return f"/assets/covers/{self.id}.webp"


@dataclass
class RecapItem:
    title: str
    authors: List[str]
    start_date: str
    end_date: str
    reading_time: int
    session_count: int
    pages_read: int
    content_type: Optional[ContentType] = None
    item_path: Optional[str] = None
    item_cover: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["content_type"] = self.content_type.value if self.content_type else None
        return data


@dataclass
class MonthRecap:
    month_key: str  # YYYY-MM
    books_finished: int
    read_time: int  # seconds, from daily activity
    items: List[RecapItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "month_key": self.month_key,
            "books_finished": self.books_finished,
            "read_time": self.read_time,
            "items": [i.to_dict() for i in self.items],
        }


@dataclass(frozen=True)
class YearlySummary(_Serializable):
    total_books: int = 0
    total_time: int = 0  # seconds
    longest_session_duration: int = 0
    average_session_duration: int = 0
    active_days: int = 0
    active_days_percentage: float = 0.0
    longest_streak: int = 0
    best_month: Optional[str] = None  # YYYY-MM
    best_month_time: Optional[int] = None
    completion_months_time: int = 0  # seconds, months with at least one completion only


@dataclass
class YearRecap:
    year: int
    monthly: List[MonthRecap] = field(default_factory=list)
    summary: YearlySummary = field(default_factory=YearlySummary)

    def to_dict(self) -> dict:
        return {
            "year": self.year,
            "monthly": [m.to_dict() for m in self.monthly],
            "summary": self.summary.to_dict(),
        }
