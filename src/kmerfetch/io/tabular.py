from abc import abstractmethod
from typing import Generator, Optional

from kmerfetch.core.records import SearchHit, ExtendedMatch
from kmerfetch.io import BaseReader, BaseWriter, ParserError


# Classes --------------------------------------------------------------------------------------------------------------
class TabularReader(BaseReader):
    """
    Base class for readers of line-based tabular formats.

    Blank lines and ``#`` comments are skipped, as are rows with fewer than ``_min_cols`` fields.
    A ``None`` delimiter splits on runs of whitespace.
    """
    _delim: Optional[bytes] = b'\t'
    _min_cols: int = 1
    __slots__ = ()

    def _read_parts(self) -> Generator[tuple[list[bytes], bytes], None, None]:
        """Internal generator that yields (split line, stripped line)."""
        delim = self._delim
        min_cols = self._min_cols

        buf = bytearray()
        for chunk in self.read_chunks(self._CHUNK_SIZE):
            if not chunk:
                if buf:
                    line = bytes(buf).rstrip(b'\r\n')
                    if line.strip() and not line.startswith(b'#'):
                        parts = line.split(delim)
                        if len(parts) >= min_cols: yield parts, line
                break

            buf.extend(chunk)
            pos = 0
            while True:
                nl_pos = buf.find(b'\n', pos)
                if nl_pos == -1:
                    del buf[:pos]
                    break

                line = bytes(buf[pos:nl_pos]).rstrip(b'\r')
                pos = nl_pos + 1

                if not line.strip() or line.startswith(b'#'): continue
                parts = line.split(delim)
                if len(parts) < min_cols: continue
                yield parts, line

    def __iter__(self) -> Generator:
        parse = self.parse_row
        for parts, line in self._read_parts(): yield parse(parts, line)

    @abstractmethod
    def parse_row(self, parts: list[bytes], line: bytes):
        """
        Parses a single row split by delimiter.

        Args:
            parts: List of column bytes.
            line: The original line, without its line terminator.
        """
        pass


class SearchHitReader(TabularReader):
    """
    Reader for k-mer search results: ``queryId position matchCount ...`` separated by whitespace.
    Rows with fewer than 3 fields are ignored.

    Examples:
        >>> with Xopen("search.txt") as f:
        ...     for hit in SearchHitReader(f):
        ...         print(hit.query_id, hit.match_count)
    """
    _delim = None
    _min_cols = 3
    __slots__ = ()

    def parse_row(self, parts: list[bytes], line: bytes) -> SearchHit:
        try: return SearchHit(parts[0], int(parts[1]), int(parts[2]), line)
        except ValueError: raise ParserError(f'Malformed search hit: {line!r}')


class ExtendedMatchReader(TabularReader):
    """
    Reader for extension results: tab-separated rows whose last two columns are
    the record number and the base sequence; leading columns are ignored.
    """
    _min_cols = 2
    __slots__ = ()

    def parse_row(self, parts: list[bytes], line: bytes) -> ExtendedMatch:
        try: return ExtendedMatch(int(parts[-2]), parts[-1].strip())
        except ValueError: raise ParserError(f'Malformed extension result: {line!r}')


class SearchHitWriter(BaseWriter):
    """Writes search hits, reusing the original line when there is one."""
    __slots__ = ()
    def write_one(self, hit: SearchHit):
        self._handle.write((hit.line or b' '.join((hit.query_id, b'%d' % hit.position, b'%d' % hit.match_count))) + b'\n')
        self.n_written += 1


class ExtendedMatchWriter(BaseWriter):
    __slots__ = ()
    def write_one(self, match: ExtendedMatch):
        self._handle.write(b'%d\t%s\n' % (match.record_number, match.bases))
        self.n_written += 1


class LineWriter(BaseWriter):
    """Writes one value per line: record numbers for extension requests or k-mers for search queries."""
    __slots__ = ()
    def write_one(self, value):
        if isinstance(value, str): value = value.encode()
        elif not isinstance(value, bytes): value = b'%d' % value
        self._handle.write(value + b'\n')
        self.n_written += 1
