"""
Module for reading and writing the FASTQ and tabular files handled by kmerfetch.
"""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Union, Generator, BinaryIO, Iterator

from kmerfetch.core.layout import DataIntegrityError
from kmerfetch.utils import Xopen, ThreadedChunkWriter, read_ahead


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class ParserError(DataIntegrityError):
    """Raised when a record cannot be parsed."""


# Classes --------------------------------------------------------------------------------------------------------------
class BaseReader(ABC):
    """Abstract base class for readers iterating over records of an open binary handle."""
    _CHUNK_SIZE = 65536
    __slots__ = ('_handle',)
    def __init__(self, handle: BinaryIO):
        self._handle = handle

    @abstractmethod
    def __iter__(self) -> Generator: ...

    def read_chunks(self, chunk_size: int = None) -> Iterator[bytes]:
        """Yields chunks of the handle, prefetched by a background thread, ending with ``b''``."""
        return read_ahead(self._handle, chunk_size or self._CHUNK_SIZE)


class BaseWriter(ABC):
    """
    Abstract base class for file writers.

    Examples:
        >>> with FastqWriter("output.fastq") as w:
        ...     w.write(read1, read2)
    """
    __slots__ = ('_opener', '_handle', '_threaded', '_writer_wrapper', '_real_handle', 'n_written')
    def __init__(self, file: Union[str, Path, BinaryIO], mode: str = 'wb', threaded: bool = True):
        """
        Initializes the writer.

        Args:
            file: File path or binary handle; compression is inferred from the extension.
            mode: Open mode, ``'xb'`` refuses to overwrite an existing file.
            threaded: Write through a background thread.
        """
        self._opener = Xopen(file, mode=mode)
        self._handle = None
        self._threaded = threaded
        self._writer_wrapper = None
        self._real_handle = None
        self.n_written = 0

    def __enter__(self):
        """Opens the file and writes the header."""
        self._handle = self._opener.__enter__()
        if self._threaded:
            self._writer_wrapper = ThreadedChunkWriter(self._handle)
            self._real_handle = self._handle
            self._handle = self._writer_wrapper
        self.write_header()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Closes the file."""
        try:
            if self._writer_wrapper:
                self._writer_wrapper.close()
                self._handle = self._real_handle
                self._writer_wrapper = None
            if self._handle is not None: self._handle.flush()
        finally:
            self._opener.__exit__(exc_type, exc_val, exc_tb)

    def write(self, *items: Union[tuple, list]):
        """
        Writes multiple records; lists are unpacked.

        Args:
            *items: Records or lists of records.
        """
        for item in items:
            if isinstance(item, list):
                for sub_item in item: self.write_one(sub_item)
            else:
                self.write_one(item)

    @abstractmethod
    def write_one(self, item):
        """
        Writes a single item.

        Args:
            item: Record to write.
        """
        pass

    def write_header(self):
        """Writes the file header if applicable."""
        pass
