"""
Paired-read layout of a BWT read archive, as described by its ``-end-pos`` header.

Records are numbered from 0 in build order and split in two equal halves; record ``n``
of the first half is the mate of record ``n + half`` of the second half.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import numpy as np

from kmerfetch import KmerfetchError
from kmerfetch.utils.resources import jit


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class DataIntegrityError(KmerfetchError):
    """Raised when the archive and the search/extension results disagree."""

class LayoutInconsistency(DataIntegrityError):
    """Raised when the archive layout cannot describe a valid mate pairing."""


# Kernels --------------------------------------------------------------------------------------------------------------
@jit(nopython=True, cache=True, nogil=True)
def _mate_kernel(numbers: np.ndarray, half: int, out: np.ndarray):
    for i in range(numbers.shape[0]):
        n = numbers[i]
        out[i] = n + half if n < half else n - half


# Classes --------------------------------------------------------------------------------------------------------------
@dataclass(slots=True, frozen=True)
class ArchiveLayout:
    """
    Layout header of a read archive.

    Attributes:
        sequence_count: Number of input sequences.
        sub_sequence_count: Number of sub-sequences each sequence was split into.
        has_reverse_complement: 1 if reverse complements were added to the archive.

    Examples:
        >>> layout = ArchiveLayout(10, 1, 1)
        >>> layout.entry_count, layout.mate(5)
        (20, 15)
    """
    sequence_count: int
    sub_sequence_count: int = 1
    has_reverse_complement: int = 0

    HEADER_DTYPE = np.dtype([('sequence_count', '<u4'), ('sub_sequence_count', 'u1'), ('has_reverse_complement', 'u1')])
    SUFFIX = '-end-pos'

    @classmethod
    def from_bytes(cls, data: bytes) -> 'ArchiveLayout':
        if len(data) < cls.HEADER_DTYPE.itemsize:
            raise DataIntegrityError(f'Layout header needs {cls.HEADER_DTYPE.itemsize} bytes, got {len(data)}')
        header = np.frombuffer(data, dtype=cls.HEADER_DTYPE, count=1)[0]
        return cls(int(header['sequence_count']), int(header['sub_sequence_count']),
                   int(header['has_reverse_complement']))

    @classmethod
    def read(cls, path: Union[str, Path]) -> 'ArchiveLayout':
        """Reads the fixed-size header from an ``-end-pos`` file; trailing content is ignored."""
        with open(path, 'rb') as handle: return cls.from_bytes(handle.read(cls.HEADER_DTYPE.itemsize))

    def to_bytes(self) -> bytes:
        return np.array([(self.sequence_count, self.sub_sequence_count, self.has_reverse_complement)],
                        dtype=self.HEADER_DTYPE).tobytes()

    def write(self, path: Union[str, Path]) -> Path:
        (path := Path(path)).write_bytes(self.to_bytes())
        return path

    @property
    def entry_count(self) -> int:
        return self.sequence_count * self.sub_sequence_count * (self.has_reverse_complement + 1)

    @property
    def half(self) -> int:
        """Offset between mates; raises `LayoutInconsistency` unless the entry count is even and positive."""
        if (n := self.entry_count) <= 0 or n % 2:
            raise LayoutInconsistency(f'Entry count must be even and positive to pair reads, got {n} ({self})')
        return n // 2

    def mate(self, number: int) -> int:
        half = self.half
        if not 0 <= number < 2 * half:
            raise DataIntegrityError(f'Record {number} has no mate in an archive of {2 * half} entries')
        return number + half if number < half else number - half

    def mates(self, numbers: np.ndarray) -> np.ndarray:
        """Vectorised `mate` over an array of record numbers."""
        half = self.half
        numbers = np.asarray(numbers, dtype=np.int64)
        if numbers.size and (numbers.min() < 0 or numbers.max() >= 2 * half):
            bad = numbers[(numbers < 0) | (numbers >= 2 * half)][0]
            raise DataIntegrityError(f'Record {bad} has no mate in an archive of {2 * half} entries')
        out = np.empty_like(numbers)
        _mate_kernel(numbers, half, out)
        return out

    def check_records(self, n_records: int):
        """
        Verifies that an archive holding ``n_records`` lines matches this layout.

        Raises:
            LayoutInconsistency: If the counts differ.
        """
        if n_records != self.entry_count:
            raise LayoutInconsistency(
                f'Archive holds {n_records} records but the layout header describes {self.entry_count} ({self})'
            )
