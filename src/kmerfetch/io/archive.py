"""
Block-compressed, line-indexed column store for per-read fields (identifiers, quality strings).

Lines are grouped into blocks of a fixed number of lines; each block is written as an
independent gzip member, so the archive is also a valid gzip file (``zcat`` prints every
line). A sidecar ``.idx`` file holds the byte offset of every block, letting `ColumnarArchive`
decompress only the blocks holding the requested records.
"""
from collections import OrderedDict
from gzip import compress, decompress
from pathlib import Path
from typing import Union, Sequence, BinaryIO
import logging
import zlib

import numpy as np

from kmerfetch.core.layout import DataIntegrityError
from kmerfetch.io import BaseWriter

logger = logging.getLogger(__name__)


# Functions ------------------------------------------------------------------------------------------------------------
def index_path(path: Union[str, Path]) -> Path:
    path = Path(path)
    return path.with_name(path.name + '.idx')


# Classes --------------------------------------------------------------------------------------------------------------
class ArchiveWriter(BaseWriter):
    """
    Writes a columnar archive and its index.

    Examples:
        >>> with ArchiveWriter("reads-ids.gz") as w:
        ...     w.write(b'read1', b'read2')
    """
    __slots__ = ('_path', '_raw', '_block', '_block_lines', '_offsets', '_level')
    _BLOCK_LINES = 4096

    def __init__(self, file: Union[str, Path], block_lines: int = _BLOCK_LINES, compresslevel: int = 6,
                 mode: str = 'wb'):
        self._path = Path(file)
        # Blocks are gzipped here, so the underlying file must be opened uncompressed
        self._raw: BinaryIO = open(self._path, mode)
        super().__init__(self._raw)
        self._block: list[bytes] = []
        self._block_lines = block_lines
        self._offsets = [0]
        self._level = compresslevel

    @property
    def path(self) -> Path: return self._path

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type is None: self._flush_block()
            super().__exit__(exc_type, exc_val, exc_tb)
        finally:
            self._raw.close()
        if exc_type is None: self._write_index()

    def write_one(self, line: bytes):
        if b'\n' in line: raise ValueError(f'Archive lines cannot contain newlines: {line!r}')
        self._block.append(line)
        self.n_written += 1
        if len(self._block) >= self._block_lines: self._flush_block()

    def _flush_block(self):
        if not self._block: return
        self._block.append(b'')  # Terminates the last line
        data = compress(b'\n'.join(self._block), compresslevel=self._level)
        self._handle.write(data)
        self._offsets.append(self._offsets[-1] + len(data))
        self._block = []

    def _write_index(self):
        header = [self._block_lines, self.n_written]
        with open(index_path(self._path), 'wb') as handle:
            np.save(handle, np.asarray(header + self._offsets, dtype=np.int64))
        logger.debug('Wrote %d records in %d blocks to %s', self.n_written, len(self._offsets) - 1, self._path)


class ColumnarArchive:
    """
    Read-only random access to a columnar archive written by `ArchiveWriter`.

    `fetch` returns one line per valid requested record number, in request order;
    record numbers outside the archive yield nothing, so callers compare counts.

    Examples:
        >>> with ColumnarArchive("reads-ids.gz") as ids:
        ...     ids.fetch([12, 5, 40])
        [b'read12', b'read5', b'read40']
    """
    __slots__ = ('_path', '_handle', '_block_lines', '_n_records', '_offsets', '_cache', '_cache_size', 'n_queries')

    def __init__(self, file: Union[str, Path], cache_size: int = 8):
        self._path = Path(file)
        try:
            index = np.load(index_path(self._path))
        except (OSError, ValueError) as e:
            raise DataIntegrityError(f'Cannot read archive index for {self._path}: {e}') from e
        if index.ndim != 1 or len(index) < 3 or index[0] <= 0:
            raise DataIntegrityError(f'Malformed archive index for {self._path}')
        self._block_lines = int(index[0])
        self._n_records = int(index[1])
        self._offsets = index[2:]
        if len(self._offsets) - 1 != -(-self._n_records // self._block_lines):
            raise DataIntegrityError(f'Archive index for {self._path} does not match its record count')
        self._handle = None
        self._cache: OrderedDict[int, list[bytes]] = OrderedDict()
        self._cache_size = cache_size
        self.n_queries = 0

    def __repr__(self): return f'{self.__class__.__name__}({self._path}, records={self._n_records})'
    def __len__(self) -> int: return self._n_records
    def __enter__(self): return self
    def __exit__(self, exc_type, exc_val, exc_tb): self.close()

    @property
    def path(self) -> Path: return self._path

    def close(self):
        if self._handle is not None:
            self._handle.close()
            self._handle = None
        self._cache.clear()

    def _read_block(self, block: int) -> list[bytes]:
        if (lines := self._cache.get(block)) is not None:
            self._cache.move_to_end(block)
            return lines
        if self._handle is None: self._handle = open(self._path, 'rb')
        start, end = int(self._offsets[block]), int(self._offsets[block + 1])
        self._handle.seek(start)
        data = self._handle.read(end - start)
        try:
            lines = decompress(data).split(b'\n')[:-1]
        except (OSError, EOFError, zlib.error) as e:
            raise DataIntegrityError(f'Corrupt block {block} in {self._path}: {e}') from e
        expected = min(self._block_lines, self._n_records - block * self._block_lines)
        if len(lines) != expected:
            raise DataIntegrityError(f'Block {block} in {self._path} holds {len(lines)} lines, expected {expected}')
        self._cache[block] = lines
        if len(self._cache) > self._cache_size: self._cache.popitem(last=False)
        return lines

    def fetch(self, record_numbers: Sequence[int]) -> list[bytes]:
        """
        Retrieves lines by 0-based record number.

        Args:
            record_numbers: Record numbers in the order their lines should be returned.

        Returns:
            The requested lines in request order, skipping numbers outside the archive.
        """
        self.n_queries += 1
        n_records, block_lines = self._n_records, self._block_lines
        out = []
        for number in record_numbers:
            if not 0 <= number < n_records: continue
            block, offset = divmod(int(number), block_lines)
            out.append(self._read_block(block)[offset])
        return out
