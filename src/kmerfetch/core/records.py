"""
Plain records exchanged between the external engines and the extraction core.
"""
from typing import NamedTuple, Iterable, Generator

import numpy as np


# Classes --------------------------------------------------------------------------------------------------------------
class SearchHit(NamedTuple):
    """
    One k-mer query result from the search engine.

    ``line`` keeps the original text so retained hits are passed on unchanged.
    """
    query_id: bytes
    position: int
    match_count: int
    line: bytes = b''


class ExtendedMatch(NamedTuple):
    """A read found by the extension engine: its record number and base sequence."""
    record_number: int
    bases: bytes


class Read(NamedTuple):
    """A FASTQ read; ``id`` excludes the leading '@'."""
    id: bytes
    bases: bytes
    quality: bytes


class MatchSet:
    """
    Deduplicated ExtendedMatch collection, ordered by record number.

    Built from one or more match streams; when a record number occurs more than
    once, the first occurrence wins.

    Examples:
        >>> matches = MatchSet([ExtendedMatch(7, b'AC'), ExtendedMatch(2, b'GT'), ExtendedMatch(7, b'AC')])
        >>> matches.record_numbers
        array([2, 7])
    """
    __slots__ = ('_numbers', '_bases')
    def __init__(self, *streams: Iterable[ExtendedMatch]):
        numbers, bases = [], []
        for stream in streams:
            for match in stream:
                numbers.append(match.record_number)
                bases.append(match.bases)
        self._numbers, self._bases = self._dedup(np.asarray(numbers, dtype=np.int64), bases)

    @staticmethod
    def _dedup(numbers: np.ndarray, bases: list[bytes]) -> tuple[np.ndarray, list[bytes]]:
        # np.unique returns the index of the first occurrence of each sorted unique value
        unique, first = np.unique(numbers, return_index=True)
        return unique, [bases[i] for i in first]

    def __len__(self) -> int: return len(self._numbers)
    def __bool__(self) -> bool: return len(self._numbers) > 0

    def __iter__(self) -> Generator[ExtendedMatch, None, None]:
        for number, bases in zip(self._numbers.tolist(), self._bases):
            yield ExtendedMatch(number, bases)

    @property
    def record_numbers(self) -> np.ndarray: return self._numbers

    def merge(self, other: Iterable[ExtendedMatch]) -> 'MatchSet':
        """Returns a new set holding the union of both, ``self`` taking precedence on duplicates."""
        return MatchSet(self, other)
