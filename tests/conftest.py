import pytest

from kmerfetch.core.layout import ArchiveLayout
from kmerfetch.core.records import Read
from kmerfetch.io.archive import ArchiveWriter
from kmerfetch.pipeline import ArchivePaths

BASES = b'ACGT'


def make_reads(n: int) -> list[Read]:
    reads = []
    for i in range(n):
        bases = bytes(BASES[(i + j) % 4] for j in range(8))
        reads.append(Read(b'read%d/%d' % (i % (n // 2 or 1), 1 + (i >= n // 2)), bases, bytes([33 + i % 40]) * 8))
    return reads


def write_archive(prefix, reads: list[Read], block_lines: int = 4) -> ArchivePaths:
    paths = ArchivePaths.from_prefix(prefix)
    with ArchiveWriter(paths.ids, block_lines=block_lines) as ids, \
            ArchiveWriter(paths.qualities, block_lines=block_lines) as quals:
        for read in reads:
            ids.write_one(read.id)
            quals.write_one(read.quality)
    ArchiveLayout(len(reads), 1, 0).write(paths.layout)
    return paths


@pytest.fixture
def reads():
    return make_reads(20)


@pytest.fixture
def archive(tmp_path, reads):
    return write_archive(tmp_path / 'reads', reads)
