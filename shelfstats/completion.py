"""
Reading completion detection.

Page visits of one book are walked in time order and grouped into reading
progressions. A progression counts as a completion when it covers at least
`min_completion_percentage` of the distinct pages and touches both the
beginning (first `min_early_percentage`) and the end (last
`min_late_percentage`) of the book.

A new progression is only started (a re-read) when all of these hold:

1. the current progression is already a valid completion,
2. the incoming page is back in the beginning of the book,
3. the visits from that page onwards would form a valid completion on their own.

Re-reading a chapter and carrying on does not split, because the tail lacks the
middle of the book. An abandoned read that is later restarted and finished
yields one completion, since the abandoned part never completed on its own.
Two full read-throughs yield two.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from shelfstats import session
from shelfstats.models import BookCompletions, ReadCompletion, StatBook, StatisticsData
from shelfstats.time_config import TimeConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionConfig:
    # Share of distinct pages that must be visited (0.0 - 1.0)
    min_completion_percentage: float = 0.75
    # Pages at or below this share of the book are its beginning
    min_early_percentage: float = 0.20
    # Pages within this share of the last page are its end
    min_late_percentage: float = 0.02

    def early_threshold(self, total_pages: int) -> float:
        return total_pages * self.min_early_percentage

    def late_threshold(self, total_pages: int) -> float:
        return total_pages * (1.0 - self.min_late_percentage)

    def is_completion(self, distinct_pages: int, min_page: int, max_page: int, total_pages: int) -> bool:
        """Completion predicate over a summary of the visited pages."""
        if total_pages <= 0 or distinct_pages == 0:
            return False
        if distinct_pages / total_pages < self.min_completion_percentage:
            return False
        return min_page <= self.early_threshold(total_pages) and max_page >= self.late_threshold(total_pages)


class ReadingProgression:
    """Page visits accumulated as one tentative read-through."""

    def __init__(self):
        self.positions: List[int] = []
        self.start_time: Optional[int] = None
        self.end_time: Optional[int] = None
        self.pages_visited = set()
        self.min_page: Optional[int] = None
        self.max_page: Optional[int] = None
        self.total_reading_time = 0

    def add_stat(self, position: int, page: int, start_time: int, duration: int):
        end_time = start_time + duration
        self.start_time = start_time if self.start_time is None else min(self.start_time, start_time)
        self.end_time = end_time if self.end_time is None else max(self.end_time, end_time)
        self.min_page = page if self.min_page is None else min(self.min_page, page)
        self.max_page = page if self.max_page is None else max(self.max_page, page)
        self.pages_visited.add(page)
        self.total_reading_time += duration
        self.positions.append(position)

    def is_empty(self) -> bool:
        return not self.positions

    def is_valid_completion(self, total_pages: int, config: CompletionConfig, log: bool = False) -> bool:
        """
        Check the completion predicate against the current contents.
        Set `log` for the final evaluation only; grouping calls this for every visit.
        """
        if self.is_empty():
            return False

        valid = config.is_completion(len(self.pages_visited), self.min_page, self.max_page, total_pages)
        if not valid and log and total_pages > 0:
            logger.debug(
                "Progression is not a completion: %.2f%% of pages (need %.2f%%), "
                "first page %s (early <= %.1f), last page %s (late >= %.1f)",
                len(self.pages_visited) / total_pages * 100,
                config.min_completion_percentage * 100,
                self.min_page, config.early_threshold(total_pages),
                self.max_page, config.late_threshold(total_pages),
            )
        return valid


class _TailSummary:
    """
    Distinct page count, lowest and highest page of `pages[i:]` for every i,
    so the lookahead of a split decision does not rebuild the tail each time.
    """

    def __init__(self, pages: np.ndarray):
        n = len(pages)
        self.distinct = np.zeros(n, dtype=np.int64)
        seen = set()
        for i in range(n - 1, -1, -1):
            seen.add(int(pages[i]))
            self.distinct[i] = len(seen)
        self.min_page = np.minimum.accumulate(pages[::-1])[::-1]
        self.max_page = np.maximum.accumulate(pages[::-1])[::-1]

    def would_complete(self, i: int, total_pages: int, config: CompletionConfig) -> bool:
        return config.is_completion(
            int(self.distinct[i]), int(self.min_page[i]), int(self.max_page[i]), total_pages
        )


class ReadCompletionDetector:
    """Detects completed read-throughs of books from their page visits."""

    def __init__(self, config: Optional[CompletionConfig] = None, time_config: Optional[TimeConfig] = None):
        self.config = config or CompletionConfig()
        self.time_config = time_config or TimeConfig()

    def detect_completions(self, book: StatBook, page_stats: pd.DataFrame) -> BookCompletions:
        """Detect reading completions for a single book."""
        book_stats = page_stats[(page_stats['id_book'] == book.id) & (page_stats['duration'] > 0)]
        return self._detect_for_book(book, book_stats)

    def _detect_for_book(self, book: StatBook, book_stats: pd.DataFrame) -> BookCompletions:
        logger.debug("Detecting completions for book: %s (pages: %s)", book.title, book.pages)

        if book_stats.empty:
            logger.debug("No valid page stats found for book %s", book.title)
            return BookCompletions()

        total_pages = book.pages or 0
        if total_pages <= 0:
            logger.debug("Book %s has no valid page count", book.title)
            return BookCompletions()

        sorted_stats = book_stats.sort_values('start_time', kind='mergesort').reset_index(drop=True)

        progressions = self.group_into_progressions(sorted_stats, total_pages)
        logger.debug("Found %d reading progressions for book %s", len(progressions), book.title)

        completions = []
        for progression in progressions:
            completion = self.evaluate_progression(progression, sorted_stats, total_pages)
            if completion is not None:
                completions.append(completion)

        logger.debug("Detected %d completions for book %s", len(completions), book.title)
        return BookCompletions(completions)

    def group_into_progressions(self, sorted_stats: pd.DataFrame, total_pages: int) -> List[ReadingProgression]:
        """
        Walk time-ordered visits and split them into progressions on re-reads.
        `sorted_stats` must be ordered by start time with a positional index.
        """
        pages = sorted_stats['page'].to_numpy(dtype=np.int64)
        starts = sorted_stats['start_time'].to_numpy(dtype=np.int64)
        durations = sorted_stats['duration'].to_numpy(dtype=np.int64)

        early_page_threshold = self.config.early_threshold(total_pages)
        tail = _TailSummary(pages)

        progressions = []
        current = ReadingProgression()

        for i in range(len(pages)):
            page = int(pages[i])

            should_split = (
                not current.is_empty()
                and current.is_valid_completion(total_pages, self.config)
                and page <= early_page_threshold
                and tail.would_complete(i, total_pages, self.config)
            )

            if should_split:
                logger.debug(
                    "Re-read detected: page %d is early (threshold: %.1f) and the remaining "
                    "visits form a completion, splitting", page, early_page_threshold,
                )
                progressions.append(current)
                current = ReadingProgression()

            current.add_stat(i, page, int(starts[i]), int(durations[i]))

        if not current.is_empty():
            progressions.append(current)

        return progressions

    def evaluate_progression(self, progression: ReadingProgression, sorted_stats: pd.DataFrame,
                             total_pages: int) -> Optional[ReadCompletion]:
        """Turn a progression into a completion record, or None if it doesn't qualify."""
        if not progression.is_valid_completion(total_pages, self.config, log=True):
            return None

        pages_covered = len(progression.pages_visited)
        session_count = session.session_count(sorted_stats.iloc[progression.positions])

        logger.debug(
            "Valid completion found: %.1f%% completion, %d sessions, %d pages",
            pages_covered / total_pages * 100, session_count, pages_covered,
        )

        return ReadCompletion(
            start_date=self.time_config.format_date(progression.start_time),
            end_date=self.time_config.format_date(progression.end_time),
            reading_time=progression.total_reading_time,
            session_count=session_count,
            pages_read=pages_covered,
        )

    def detect_all_completions(self, stats_data: StatisticsData) -> Dict[str, BookCompletions]:
        """Completions for every book with at least one, keyed by book MD5."""
        valid = stats_data.valid_page_stats()
        stats_by_book = {book_id: group for book_id, group in valid.groupby('id_book')}

        all_completions = {}
        book_count = 0
        for book in stats_data.iter_books():
            book_count += 1
            book_stats = stats_by_book.get(book.id, valid.iloc[0:0])
            completions = self._detect_for_book(book, book_stats)
            if completions.has_completions():
                all_completions[book.md5] = completions

        logger.info("Detected completions for %d books out of %d", len(all_completions), book_count)
        return all_completions
