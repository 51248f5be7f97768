import logging
from typing import Iterable, Optional

import pandas as pd

from shelfstats.models import StatisticsData
from shelfstats.time_config import TimeConfig

logger = logging.getLogger(__name__)


def filter_stats(stats_data: StatisticsData, time_config: TimeConfig,
                 min_pages: Optional[int] = None, min_time: Optional[int] = None) -> StatisticsData:
    """
    Keep only the (book, logical day) pairs with enough reading.

    A pair passes when it has at least `min_pages` page visits or at least
    `min_time` seconds. With both thresholds set either one is enough; with
    neither set the data is returned unchanged.
    """
    if min_pages is None and min_time is None:
        return stats_data.copy()

    df = stats_data.page_stats
    valid = df[df['duration'] > 0].copy()
    valid['date'] = time_config.logical_dates(valid['start_time'])

    # 1. Aggregate daily totals per book per day
    daily = valid.groupby(['id_book', 'date']).agg(
        pages=('duration', 'size'),
        time=('duration', 'sum'),
    )

    # 2. Identify valid (book, date) combinations
    pages_ok = daily['pages'] >= min_pages if min_pages is not None else None
    time_ok = daily['time'] >= min_time if min_time is not None else None
    if pages_ok is not None and time_ok is not None:
        keep = pages_ok | time_ok
    elif pages_ok is not None:
        keep = pages_ok
    else:
        keep = time_ok

    kept_pairs = daily.index[keep.to_numpy()]

    # 3. Filter page stats based on per-book-per-day validity
    pairs = pd.MultiIndex.from_arrays([valid['id_book'], valid['date']])
    mask = pairs.isin(kept_pairs)
    page_stats = valid[mask].drop(columns=['date'])

    logger.info(
        "Day filter kept %d of %d page stats (min pages: %s, min time: %s)",
        len(page_stats), len(df), min_pages, min_time,
    )
    return StatisticsData(stats_data.books.copy(), page_stats, stats_data.completions)


def filter_to_library(stats_data: StatisticsData, library_md5s: Iterable[str]) -> StatisticsData:
    """
    Keep only books whose MD5 belongs to the scanned library, with their page
    visits and completions. Drops statistics of deleted books or books kept elsewhere.
    """
    library_md5s = set(library_md5s)
    books = stats_data.books

    in_library = books['md5'].isin(library_md5s)
    for _, book in books[~in_library].iterrows():
        logger.debug(
            "Filtering out statistics for book not in library: '%s' by %s (md5: %s)",
            book['title'], book['authors'], book['md5'],
        )

    kept_books = books[in_library].copy()
    ids_to_keep = set(kept_books['id'])
    page_stats = stats_data.page_stats[stats_data.page_stats['id_book'].isin(ids_to_keep)].copy()
    completions = {md5: c for md5, c in stats_data.completions.items() if md5 in library_md5s}

    logger.info(
        "Filtered statistics to %d books present in library (%d excluded)",
        len(kept_books), len(books) - len(kept_books),
    )
    return StatisticsData(kept_books, page_stats, completions)
