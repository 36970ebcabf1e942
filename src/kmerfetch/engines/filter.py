"""
Repeat-threshold filtering of k-mer search results.
"""
from typing import Iterable, Generator
from warnings import warn_explicit
import logging

from kmerfetch import KmerfetchWarning
from kmerfetch.config import DEFAULT_REPEAT_THRESHOLD, check_positive_int
from kmerfetch.core.records import SearchHit

logger = logging.getLogger(__name__)


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class RepeatQueryWarning(KmerfetchWarning):
    """Issued for every query dropped because it matches too many reads."""


# Classes --------------------------------------------------------------------------------------------------------------
class RepeatFilter:
    """
    Streaming filter dropping queries whose match count reaches the repeat threshold.

    Calling the filter on a hit stream yields the retained hits unchanged while
    accumulating `total_matches` (sum of retained match counts) and `n_dropped`.

    Examples:
        >>> repeats = RepeatFilter(100)
        >>> list(repeats([SearchHit(b'q1', 3, 50), SearchHit(b'q2', 7, 150)]))
        [SearchHit(query_id=b'q1', position=3, match_count=50, line=b'')]
        >>> repeats.total_matches, repeats.n_dropped
        (50, 1)
    """
    __slots__ = ('threshold', 'total_matches', 'n_retained', 'n_dropped')

    def __init__(self, threshold: int = DEFAULT_REPEAT_THRESHOLD):
        self.threshold = check_positive_int(threshold, 'repeat threshold')
        self.total_matches = 0
        self.n_retained = 0
        self.n_dropped = 0

    def __repr__(self):
        return (f'{self.__class__.__name__}(threshold={self.threshold}, retained={self.n_retained}, '
                f'dropped={self.n_dropped}, matches={self.total_matches})')

    def __call__(self, hits: Iterable[SearchHit]) -> Generator[SearchHit, None, None]:
        threshold = self.threshold
        for hit in hits:
            if hit.match_count < threshold:
                self.total_matches += hit.match_count
                self.n_retained += 1
                yield hit
            else:
                self.n_dropped += 1
                # A fresh registry per drop: identical dropped lines are each reported
                warn_explicit(f'Dropping query with {hit.match_count} matches (repeat threshold {threshold}): '
                              f'{(hit.line or hit.query_id).decode(errors="replace")}', RepeatQueryWarning,
                              __file__, 0, module=__name__, registry={})
        logger.info('Retained %d queries (%d matches), dropped %d repetitive queries',
                    self.n_retained, self.total_matches, self.n_dropped)

    @property
    def summary(self) -> tuple[int, int]:
        """(total retained matches, dropped query count)"""
        return self.total_matches, self.n_dropped
