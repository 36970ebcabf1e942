from typing import Generator

from kmerfetch.core.records import Read
from kmerfetch.io import BaseReader, BaseWriter, ParserError


# Classes --------------------------------------------------------------------------------------------------------------
class FastqReader(BaseReader):
    """
    Reader for FASTQ format files.
    Optimized for standard 4-line FASTQ records. Wrapped FASTQ sequences are not supported.

    Examples:
        >>> with Xopen("reads.fastq.gz") as f:
        ...     for read in FastqReader(f):
        ...         print(read.id)
    """
    __slots__ = ()
    def __iter__(self) -> Generator[Read, None, None]:
        """
        Iterates over FASTQ records.

        Yields:
            Read tuples, with the full header line (minus '@') as the id.
        """
        buf = b""
        while True:
            chunk = self._handle.read(self._CHUNK_SIZE)
            if not chunk:
                if not buf.strip(): break
                # Ensure last line has a newline to simplify parsing logic
                if not buf.endswith(b'\n'): buf += b'\n'
            else:
                buf += chunk

            pos = 0
            n_len = len(buf)
            while pos < n_len:
                # Skip whitespace between records
                while pos < n_len and buf[pos] in (10, 13, 32, 9):
                    pos += 1
                if pos >= n_len: break

                if buf[pos] != 64:  # @
                    raise ParserError(f"Invalid FASTQ header at byte {pos}: expected '@'")

                # Find 4 newlines
                nl1 = buf.find(b'\n', pos)
                if nl1 == -1: break
                nl2 = buf.find(b'\n', nl1 + 1)
                if nl2 == -1: break
                nl3 = buf.find(b'\n', nl2 + 1)
                if nl3 == -1: break
                nl4 = buf.find(b'\n', nl3 + 1)
                if nl4 == -1: break

                if buf[nl2 + 1] != 43:  # +
                    raise ParserError(f"Invalid FASTQ separator at byte {nl2 + 1}: expected '+'")
                seq_bytes = buf[nl1 + 1:nl2].rstrip()
                qual_bytes = buf[nl3 + 1:nl4].rstrip()
                if len(seq_bytes) != len(qual_bytes):
                    raise ParserError(f"FASTQ record at byte {pos} has {len(seq_bytes)} bases "
                                      f"but {len(qual_bytes)} quality scores")
                yield Read(buf[pos + 1:nl1].rstrip(), seq_bytes, qual_bytes)
                pos = nl4 + 1

            if pos > 0: buf = buf[pos:]
            if not chunk:
                if buf.strip(): raise ParserError('FASTQ file is truncated')
                break


class FastqWriter(BaseWriter):
    """
    Writer for 4-line FASTQ records.

    Examples:
        >>> with FastqWriter("hits.fastq") as w:
        ...     w.write_one(Read(b'read1', b'ACGT', b'IIII'))
    """
    __slots__ = ()
    def write_one(self, read: Read):
        self._handle.write(b"@" + read.id + b"\n" + read.bases + b"\n+\n" + read.quality + b"\n")
        self.n_written += 1
