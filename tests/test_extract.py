import pytest

from kmerfetch.core.layout import DataIntegrityError
from kmerfetch.core.records import ExtendedMatch
from kmerfetch.engines.extract import BatchedExtractor
from kmerfetch.io.archive import ColumnarArchive
from kmerfetch.io.fastq import FastqReader, FastqWriter
from kmerfetch.utils.protocols import LineFetcher


class ListArchive:
    """In-memory line store recording every query."""
    def __init__(self, prefix: bytes, n: int, drop: int = 0):
        self._lines = [prefix + b'%d' % i for i in range(n)]
        self._drop = drop
        self.queries = []

    def fetch(self, record_numbers):
        self.queries.append(list(record_numbers))
        lines = [self._lines[i] for i in record_numbers if i < len(self._lines)]
        return lines[:len(lines) - self._drop]


class TestBatchedExtractor:
    def test_fake_archive_is_a_line_fetcher(self):
        assert isinstance(ListArchive(b'', 1), LineFetcher)

    def test_batches(self):
        n = 2500
        ids, quals = ListArchive(b'id', n), ListArchive(b'q', n)
        extractor = BatchedExtractor(ids, quals, batch_size=1000)
        # Reverse order: output must follow input, not record number
        matches = [ExtendedMatch(i, b'B%d' % i) for i in reversed(range(n))]
        reads = list(extractor(matches))
        assert [len(i) for i in ids.queries] == [1000, 1000, 500]
        assert [len(i) for i in quals.queries] == [1000, 1000, 500]
        assert ids.queries == quals.queries
        assert len(reads) == n
        assert [i.bases for i in reads] == [m.bases for m in matches]
        assert all(r.id == b'id%d' % m.record_number and r.quality == b'q%d' % m.record_number
                   for r, m in zip(reads, matches))
        assert extractor.n_batches == 3

    @pytest.mark.parametrize('n, batch_size, queries', [(0, 10, 0), (1, 10, 1), (10, 10, 1), (11, 10, 2),
                                                         (7, 1, 7)])
    def test_query_count(self, n, batch_size, queries):
        ids, quals = ListArchive(b'id', n), ListArchive(b'q', n)
        reads = list(BatchedExtractor(ids, quals, batch_size)(ExtendedMatch(i, b'A') for i in range(n)))
        assert len(reads) == n
        assert len(ids.queries) == len(quals.queries) == queries

    def test_default_batch_size(self):
        assert BatchedExtractor(ListArchive(b'', 0), ListArchive(b'', 0)).batch_size == 1000

    def test_short_identifier_archive(self):
        extractor = BatchedExtractor(ListArchive(b'id', 10, drop=1), ListArchive(b'q', 10), batch_size=4)
        with pytest.raises(DataIntegrityError, match="identifier archive returned 3 lines for 4"):
            list(extractor(ExtendedMatch(i, b'A') for i in range(8)))

    def test_short_quality_archive(self):
        extractor = BatchedExtractor(ListArchive(b'id', 10), ListArchive(b'q', 10, drop=2), batch_size=4)
        with pytest.raises(DataIntegrityError, match="quality archive"):
            list(extractor(ExtendedMatch(i, b'A') for i in range(2)))

    def test_record_beyond_archive(self):
        extractor = BatchedExtractor(ListArchive(b'id', 5), ListArchive(b'q', 5))
        with pytest.raises(DataIntegrityError):
            list(extractor([ExtendedMatch(2, b'A'), ExtendedMatch(9, b'C')]))

    def test_write_fastq(self, tmp_path, archive, reads):
        order = [7, 0, 19, 3, 4]
        out = tmp_path / 'hits.fastq'
        with ColumnarArchive(archive.ids) as ids, ColumnarArchive(archive.qualities) as quals, \
                FastqWriter(out) as writer:
            n = BatchedExtractor(ids, quals, batch_size=2).write((ExtendedMatch(i, reads[i].bases) for i in order),
                                                                 writer)
            assert ids.n_queries == quals.n_queries == 3
        assert n == len(order)
        with open(out, 'rb') as handle:
            assert list(FastqReader(handle)) == [reads[i] for i in order]
        assert out.read_bytes().startswith(b'@' + reads[7].id + b'\n' + reads[7].bases + b'\n+\n')

    def test_leading_at_stripped(self):
        ids = ListArchive(b'@id', 1)
        read = next(BatchedExtractor(ids, ListArchive(b'q', 1))([ExtendedMatch(0, b'A')]))
        assert read.id == b'id0'
