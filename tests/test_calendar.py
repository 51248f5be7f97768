import pytest

from shelfstats.models import ContentType, LibraryItem
from shelfstats.reading_calendar import EVENT_COLORS, CalendarGenerator, parse_authors, title_color

DAY = 86400
JUL_30_2024 = 1722297600  # 2024-07-30 00:00:00 UTC


@pytest.fixture
def calendar_stats(make_book, make_stats, read_pages):
    """'Zeta' read Jul 30 to Aug 2 and again Aug 5; 'Alpha' read Aug 5 only."""
    visits = []
    for day in range(4):
        visits += read_pages(1, range(day * 10, day * 10 + 3), JUL_30_2024 + day * DAY)
    visits += read_pages(1, [50], JUL_30_2024 + 6 * DAY)
    visits += read_pages(2, [1, 2], JUL_30_2024 + 6 * DAY + 3600)
    books = [
        make_book(1, title="Zeta", authors="Ann Smith; Bob Jones", md5="zeta"),
        make_book(2, title="Alpha", md5="alpha"),
    ]
    return make_stats(books, visits)


def test_consecutive_days_merge_into_one_event(calendar_stats, utc):
    months = CalendarGenerator.generate_calendar_months(calendar_stats, utc)
    events = [ev for ev in months["2024-07"].events if ev.item_id == "zeta"]

    assert len(events) == 1
    event = events[0]
    assert event.start == "2024-07-30"
    assert event.end == "2024-08-03"  # exclusive
    assert event.total_pages_read == 12
    assert event.total_read_time == 720


def test_event_spanning_months_appears_in_both(calendar_stats, utc):
    months = CalendarGenerator.generate_calendar_months(calendar_stats, utc)

    assert list(months) == ["2024-07", "2024-08"]
    assert months["2024-07"].events[0] in months["2024-08"].events
    assert set(months["2024-07"].books) == {"zeta"}
    assert set(months["2024-08"].books) == {"zeta", "alpha"}


def test_single_day_event_has_no_end(calendar_stats, utc):
    months = CalendarGenerator.generate_calendar_months(calendar_stats, utc)
    single_day = [ev for ev in months["2024-08"].events if ev.start == "2024-08-05"]

    assert len(single_day) == 2
    assert all(ev.end is None for ev in single_day)
    assert "end" not in single_day[0].to_dict()


def test_events_ordered_by_start_then_title(calendar_stats, utc):
    months = CalendarGenerator.generate_calendar_months(calendar_stats, utc)
    order = [(ev.start, ev.item_id) for ev in months["2024-08"].events]

    assert order == [("2024-07-30", "zeta"), ("2024-08-05", "alpha"), ("2024-08-05", "zeta")]


def test_calendar_items(calendar_stats, utc):
    months = CalendarGenerator.generate_calendar_months(calendar_stats, utc)
    item = months["2024-07"].books["zeta"]

    assert item.title == "Zeta"
    assert item.authors == ["Ann Smith", "Bob Jones"]
    assert item.content_type == ContentType.BOOK
    assert item.color == title_color("Zeta")
    assert item.item_path is None


def test_library_items_supply_paths_and_content_type(calendar_stats, utc):
    library = [LibraryItem(id="c1", title="alpha", file_path="/lib/alpha.cbz", md5="alpha",
                           content_type=ContentType.COMIC)]
    months = CalendarGenerator.generate_calendar_months(calendar_stats, utc, library)
    item = months["2024-08"].books["alpha"]

    assert item.content_type == ContentType.COMIC
    assert item.item_path == "/comics/c1/"
    assert item.to_dict()["item_cover"] == "/assets/covers/c1.webp"


def test_monthly_stats(calendar_stats, utc):
    stats = CalendarGenerator.build_monthly_stats(calendar_stats, utc)

    july = stats["2024-07"]
    assert july.books_read == 1
    assert july.pages_read == 6
    assert july.time_read == 360
    assert july.days_read_pct == round(2 * 100 / 31)

    august = stats["2024-08"]
    assert august.books_read == 2
    assert august.pages_read == 9
    assert august.days_read_pct == round(3 * 100 / 31)


def test_monthly_stats_split_by_content_type(calendar_stats, utc):
    tagged = calendar_stats.tag_content_types({"zeta": ContentType.BOOK, "alpha": ContentType.COMIC})
    months = CalendarGenerator.generate_calendar_months(tagged, utc)

    august = months["2024-08"]
    assert august.stats_books.books_read == 1
    assert august.stats_comics.books_read == 1
    assert august.stats_comics.pages_read == 2
    assert months["2024-07"].stats_comics.pages_read == 0


def test_empty_calendar(make_stats, utc):
    assert CalendarGenerator.generate_calendar_months(make_stats([], []), utc) == {}


def test_title_color_is_stable():
    assert title_color("Zeta") == title_color("Zeta")
    assert title_color("") == EVENT_COLORS[0]
    assert title_color("Zeta") in EVENT_COLORS


def test_parse_authors():
    assert parse_authors("A, B;C ") == ["A", "B", "C"]
    assert parse_authors("") == []
