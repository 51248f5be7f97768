from typing import List, Optional, Tuple

import pandas as pd

# Gap between one page visit ending and the next starting that still counts as the same session
SESSION_GAP_SECONDS = 300  # 5 minutes


def session_durations(page_stats: pd.DataFrame) -> List[int]:
    """
    Duration in seconds of each reading session for a single book, oldest first.

    Two consecutive page visits belong to the same session when the next one
    starts at most SESSION_GAP_SECONDS after the previous one ended.
    """
    df = page_stats[page_stats['duration'] > 0]
    if df.empty:
        return []

    df = df.sort_values('start_time', kind='mergesort')

    prev_end = (df['start_time'] + df['duration']).shift(1)
    gap = df['start_time'] - prev_end

    # New session on the first row or after a gap larger than the threshold
    new_session = gap.isna() | (gap > SESSION_GAP_SECONDS)
    session_id = new_session.cumsum()

    totals = df.groupby(session_id, sort=True)['duration'].sum()
    return [int(d) for d in totals]


def session_count(page_stats: pd.DataFrame) -> int:
    return len(session_durations(page_stats))


def aggregate_session_durations(page_stats: pd.DataFrame) -> List[int]:
    """Session durations across all books, each book segmented on its own."""
    valid = page_stats[page_stats['duration'] > 0]

    durations = []
    for _, book_stats in valid.groupby('id_book', sort=True):
        durations.extend(session_durations(book_stats))
    return durations


def session_metrics(page_stats: pd.DataFrame) -> Tuple[Optional[int], Optional[int]]:
    """
    (average_session_duration, longest_session_duration) over every book in `page_stats`.
    Both are None when there is no valid session.
    """
    sessions = aggregate_session_durations(page_stats)
    if not sessions:
        return None, None
    return sum(sessions) // len(sessions), max(sessions)
