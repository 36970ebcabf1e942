"""
Batched random-access extraction of FASTQ records from the identifier and quality archives.
"""
from typing import Iterable, Generator
import logging

from kmerfetch.config import BATCH_SIZE, check_positive_int
from kmerfetch.core.layout import DataIntegrityError
from kmerfetch.core.records import ExtendedMatch, Read
from kmerfetch.io.fastq import FastqWriter
from kmerfetch.utils.protocols import LineFetcher

logger = logging.getLogger(__name__)


# Classes --------------------------------------------------------------------------------------------------------------
class BatchedExtractor:
    """
    Joins (record number, bases) pairs with read identifiers and quality strings.

    Pairs are grouped into batches of at most ``batch_size``; each batch issues exactly one
    query per archive, with record numbers in input order, and the results are zipped
    positionally, so output order always equals input order.

    Examples:
        >>> with ColumnarArchive('reads-ids.gz') as ids, ColumnarArchive('reads-quals.gz') as quals:
        ...     extractor = BatchedExtractor(ids, quals)
        ...     with FastqWriter('hits.fastq') as out:
        ...         extractor.write(matches, out)
    """
    __slots__ = ('ids', 'qualities', 'batch_size', 'n_batches', 'n_records')

    def __init__(self, ids: LineFetcher, qualities: LineFetcher, batch_size: int = BATCH_SIZE):
        self.ids = ids
        self.qualities = qualities
        self.batch_size = check_positive_int(batch_size, 'batch size')
        self.n_batches = 0
        self.n_records = 0

    def __repr__(self): return f'{self.__class__.__name__}(batch_size={self.batch_size})'

    def __call__(self, matches: Iterable[ExtendedMatch]) -> Generator[Read, None, None]:
        """
        Yields one Read per input pair, in input order.

        Raises:
            DataIntegrityError: If an archive returns a different number of lines than requested.
        """
        numbers, bases = [], []
        for match in matches:
            numbers.append(match.record_number)
            bases.append(match.bases)
            if len(numbers) >= self.batch_size:
                yield from self._extract_batch(numbers, bases)
                numbers, bases = [], []
        if numbers: yield from self._extract_batch(numbers, bases)

    def _extract_batch(self, numbers: list[int], bases: list[bytes]) -> Generator[Read, None, None]:
        ids = self._fetch(self.ids, numbers, 'identifier')
        qualities = self._fetch(self.qualities, numbers, 'quality')
        self.n_batches += 1
        self.n_records += len(numbers)
        for id_, seq, quality in zip(ids, bases, qualities):
            yield Read(id_[1:] if id_.startswith(b'@') else id_, seq, quality)

    @staticmethod
    def _fetch(archive: LineFetcher, numbers: list[int], column: str) -> list[bytes]:
        lines = archive.fetch(numbers)
        if len(lines) != len(numbers):
            raise DataIntegrityError(
                f'The {column} archive returned {len(lines)} lines for {len(numbers)} requested records '
                f'(first requested: {numbers[0]}); the archive does not match the search results'
            )
        return lines

    def write(self, matches: Iterable[ExtendedMatch], writer: FastqWriter) -> int:
        """Extracts every pair into an open FastqWriter, returning the number of records written."""
        start = self.n_records
        for read in self(matches): writer.write_one(read)
        logger.info('Extracted %d reads in %d batches', self.n_records - start, self.n_batches)
        return self.n_records - start
