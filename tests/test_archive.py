import gzip

import numpy as np
import pytest

from kmerfetch.core.layout import DataIntegrityError
from kmerfetch.io.archive import ArchiveWriter, ColumnarArchive, index_path


@pytest.fixture
def lines():
    return [b'line-%d' % i for i in range(23)]


@pytest.fixture
def store(tmp_path, lines):
    path = tmp_path / 'col.gz'
    with ArchiveWriter(path, block_lines=5) as writer:
        writer.write(lines)
    return path


class TestArchiveWriter:
    def test_index(self, store):
        index = np.load(index_path(store))
        assert index[0] == 5
        assert index[1] == 23
        assert len(index) == 2 + 5 + 1  # header, 5 block starts, end offset
        assert index[-1] == store.stat().st_size

    def test_valid_gzip(self, store, lines):
        with gzip.open(store, 'rb') as handle:
            assert handle.read().splitlines() == lines

    def test_rejects_newlines(self, tmp_path):
        with pytest.raises(ValueError, match="newlines"):
            with ArchiveWriter(tmp_path / 'bad.gz') as writer:
                writer.write_one(b'a\nb')
        assert not index_path(tmp_path / 'bad.gz').exists()

    def test_empty(self, tmp_path):
        with ArchiveWriter(tmp_path / 'empty.gz'):
            pass
        with ColumnarArchive(tmp_path / 'empty.gz') as archive:
            assert len(archive) == 0
            assert archive.fetch([0, 1]) == []


class TestColumnarArchive:
    def test_len(self, store):
        assert len(ColumnarArchive(store)) == 23

    def test_request_order(self, store, lines):
        order = [22, 0, 7, 7, 13, 4, 5]
        with ColumnarArchive(store) as archive:
            assert archive.fetch(order) == [lines[i] for i in order]

    def test_numpy_request(self, store, lines):
        with ColumnarArchive(store) as archive:
            assert archive.fetch(np.array([3, 1])) == [lines[3], lines[1]]

    def test_out_of_range_skipped(self, store, lines):
        with ColumnarArchive(store) as archive:
            assert archive.fetch([1, 23, -1, 2]) == [lines[1], lines[2]]

    def test_query_count(self, store):
        with ColumnarArchive(store) as archive:
            archive.fetch([1])
            archive.fetch([])
            assert archive.n_queries == 2

    def test_small_cache(self, store, lines):
        with ColumnarArchive(store, cache_size=1) as archive:
            order = list(range(22, -1, -1)) + list(range(23))
            assert archive.fetch(order) == [lines[i] for i in order]

    def test_missing_index(self, tmp_path):
        (tmp_path / 'col.gz').write_bytes(gzip.compress(b'a\n'))
        with pytest.raises(DataIntegrityError, match="index"):
            ColumnarArchive(tmp_path / 'col.gz')

    def test_truncated_archive(self, store):
        store.write_bytes(store.read_bytes()[:-10])
        with ColumnarArchive(store) as archive, pytest.raises(DataIntegrityError, match="block 4"):
            archive.fetch([22])
