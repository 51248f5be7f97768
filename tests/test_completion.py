import pytest

from shelfstats.completion import CompletionConfig, ReadCompletionDetector
from shelfstats.models import BookCompletions, page_stats_frame

DAY = 86400
JAN_1_2024 = 1704067200


@pytest.fixture
def detector(utc):
    return ReadCompletionDetector(CompletionConfig(), utc)


def detect(detector, book, visits):
    return detector.detect_completions(book, page_stats_frame(visits))


def test_single_full_read(detector, make_book, read_pages):
    book = make_book(pages=100)
    result = detect(detector, book, read_pages(1, range(1, 101), JAN_1_2024))

    assert result.total_completions == 1
    completion = result.entries[0]
    assert completion.start_date == "2024-01-01"
    assert completion.end_date == "2024-01-01"
    assert completion.pages_read == 100
    assert completion.reading_time == 6000
    assert completion.session_count == 1


def test_two_full_reads_are_two_completions(detector, make_book, read_pages):
    book = make_book(pages=100)
    visits = (
        read_pages(1, range(1, 101), JAN_1_2024)
        + read_pages(1, range(1, 101), JAN_1_2024 + 30 * DAY)
    )
    result = detect(detector, book, visits)

    assert result.total_completions == 2
    assert [c.start_date for c in result.entries] == ["2024-01-01", "2024-01-31"]
    assert result.last_completion_date == "2024-01-31"


def test_abandoned_read_then_restart_is_one_completion(detector, make_book, read_pages):
    book = make_book(pages=100)
    visits = (
        read_pages(1, range(1, 51), JAN_1_2024)
        + read_pages(1, range(1, 101), JAN_1_2024 + 10 * DAY)
    )
    result = detect(detector, book, visits)

    assert result.total_completions == 1
    completion = result.entries[0]
    assert completion.start_date == "2024-01-01"
    assert completion.end_date == "2024-01-11"
    assert completion.pages_read == 100
    assert completion.session_count == 2


def test_rereading_a_chapter_does_not_split(detector, make_book, read_pages):
    book = make_book(pages=100)
    visits = (
        read_pages(1, range(1, 101), JAN_1_2024)
        + read_pages(1, range(1, 11), JAN_1_2024 + DAY)
    )
    result = detect(detector, book, visits)

    assert result.total_completions == 1
    assert result.entries[0].end_date == "2024-01-02"


@pytest.mark.parametrize("pages, expected", [
    (list(range(1, 71)) + list(range(95, 101)), 1),  # 76% coverage
    (list(range(1, 61)) + list(range(95, 101)), 0),  # 66% coverage
    (list(range(1, 99)), 1),  # reaches page 98, the late zone
    (list(range(1, 98)), 0),  # stops at page 97
    (list(range(20, 101)), 1),  # starts at page 20, the early zone
    (list(range(21, 101)), 0),  # starts at page 21
])
def test_completion_zones_and_coverage(detector, make_book, read_pages, pages, expected):
    book = make_book(pages=100)
    result = detect(detector, book, read_pages(1, pages, JAN_1_2024))
    assert result.total_completions == expected


def test_every_completion_covers_enough_pages(detector, make_book, read_pages):
    book = make_book(pages=100)
    visits = (
        read_pages(1, range(1, 101), JAN_1_2024)
        + read_pages(1, range(1, 40), JAN_1_2024 + DAY)
        + read_pages(1, range(1, 101), JAN_1_2024 + 5 * DAY)
    )
    result = detect(detector, book, visits)

    assert result.total_completions >= 1
    for completion in result.entries:
        assert completion.pages_read / book.pages >= 0.75


@pytest.mark.parametrize("pages", [0, -3, None])
def test_book_without_page_count_has_no_completions(detector, make_book, read_pages, pages):
    book = make_book(pages=pages)
    result = detect(detector, book, read_pages(1, range(1, 101), JAN_1_2024))
    assert result == BookCompletions()


def test_no_visits_has_no_completions(detector, make_book):
    assert detect(detector, make_book(), []).total_completions == 0


def test_zero_duration_visits_are_ignored(detector, make_book, read_pages):
    book = make_book(pages=100)
    result = detect(detector, book, read_pages(1, range(1, 101), JAN_1_2024, duration=0, step=60))
    assert result.total_completions == 0


def test_detection_is_deterministic(detector, make_book, read_pages):
    book = make_book(pages=100)
    df = page_stats_frame(
        read_pages(1, range(1, 101), JAN_1_2024) + read_pages(1, range(1, 101), JAN_1_2024 + 3 * DAY)
    )
    assert detector.detect_completions(book, df) == detector.detect_completions(book, df)


def test_visits_of_other_books_are_ignored(detector, make_book, read_pages):
    book = make_book(book_id=1, pages=100)
    visits = read_pages(2, range(1, 101), JAN_1_2024)
    assert detect(detector, book, visits).total_completions == 0


def test_detect_all_completions_keys_by_md5(detector, make_book, make_stats, read_pages):
    stats_data = make_stats(
        [make_book(1, md5="read"), make_book(2, md5="unread")],
        read_pages(1, range(1, 101), JAN_1_2024) + read_pages(2, range(1, 10), JAN_1_2024),
    )
    completions = detector.detect_all_completions(stats_data)

    assert list(completions) == ["read"]
    assert completions["read"].total_completions == 1


def test_custom_thresholds(utc, make_book, read_pages):
    relaxed = ReadCompletionDetector(CompletionConfig(min_completion_percentage=0.5), utc)
    book = make_book(pages=100)
    result = detect(relaxed, book, read_pages(1, list(range(1, 50)) + [100], JAN_1_2024))
    assert result.total_completions == 1
