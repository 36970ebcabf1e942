"""
Module containing various utility functions and classes.
"""
from dataclasses import dataclass, fields
from importlib import import_module
from io import IOBase
from pathlib import Path
from sys import stdout
from typing import Union, BinaryIO, Any, Iterator
import threading
import queue
import os


# Classes --------------------------------------------------------------------------------------------------------------
class ThreadedChunkWriter:
    """
    File-like wrapper handing buffered writes to a background thread.

    Writes are joined into chunks of at least ``chunk_size`` bytes before being queued.
    The first error raised by the wrapped handle is re-raised by the next `write` or by `close`.
    """
    __slots__ = ('_handle', '_chunk_size', '_pending', '_queue', '_error', '_thread')

    def __init__(self, handle: BinaryIO, chunk_size: int = 65536, depth: int = 4):
        self._handle = handle
        self._chunk_size = chunk_size
        self._pending = bytearray()
        self._queue = queue.Queue(maxsize=depth)
        self._error = None
        self._thread = threading.Thread(target=self._drain, daemon=True)
        self._thread.start()

    def _drain(self):
        while (chunk := self._queue.get()) is not None:
            if self._error is not None: continue  # Keep consuming so `write` never blocks on a full queue
            try: self._handle.write(chunk)
            except Exception as e: self._error = e

    def _raise_pending_error(self):
        if self._error is not None: raise self._error

    def _enqueue(self):
        self._queue.put(bytes(self._pending))
        self._pending.clear()

    def write(self, data: bytes):
        self._raise_pending_error()
        self._pending += data
        if len(self._pending) >= self._chunk_size: self._enqueue()

    def close(self):
        if self._pending: self._enqueue()
        self._queue.put(None)
        self._thread.join()
        self._raise_pending_error()


class Xopen:
    """
    Opens a file with transparent compression.

    Reading sniffs gzip, bz2, xz or zstd from the magic bytes; writing picks the codec
    from the file extension. ``'-'`` writes to stdout and an open binary handle is used as is.

    Examples:
        >>> with Xopen("reads-ids.gz") as f:
        ...     content = f.read()
    """
    _MAGIC = ((b'\x1f\x8b', 'gzip'), (b'BZh', 'bz2'), (b'\xfd7zXZ\x00', 'lzma'), (b'\x28\xb5\x2f\xfd', 'zstandard'))
    _EXTENSIONS = {'.gz': 'gzip', '.bz2': 'bz2', '.xz': 'lzma', '.zst': 'zstandard'}
    _SNIFF_BYTES = max(len(magic) for magic, _ in _MAGIC)

    def __init__(self, file: Union[str, Path, BinaryIO], mode: str = 'rb'):
        self.file = file
        self.mode = mode if 'b' in mode else mode + 'b'
        self._owned: tuple[BinaryIO, ...] = ()  # Closed on exit, innermost last

    def __enter__(self) -> BinaryIO: return self._open()

    def __exit__(self, exc_type, exc_val, exc_tb):
        owned, self._owned = self._owned, ()
        for handle in reversed(owned): handle.close()

    @staticmethod
    def _codec_open(package: str):
        try: return import_module(package).open
        except ImportError: raise ModuleNotFoundError(f"Compression module '{package}' not installed.")

    def _open(self) -> BinaryIO:
        if isinstance(self.file, IOBase): return self.file
        if any(c in self.mode for c in 'wax'):
            if str(self.file) == '-': return stdout.buffer
            path = Path(self.file).expanduser()
            package = self._EXTENSIONS.get(path.suffix.lower())
            handle = self._codec_open(package)(path, self.mode) if package else open(path, self.mode)
            self._owned = (handle,)
            return handle

        raw = open(Path(self.file).expanduser(), 'rb')
        self._owned = (raw,)
        start = raw.read(self._SNIFF_BYTES)
        raw.seek(0)
        for magic, package in self._MAGIC:
            if start.startswith(magic):
                try: handle = self._codec_open(package)(raw, 'rb')
                except ModuleNotFoundError:
                    raw.close()
                    raise
                self._owned = (raw, handle)
                return handle
        return raw


@dataclass(slots=True, frozen=True, kw_only=True)
class Config:
    """
    Config parent class that can conveniently set attributes from CLI args
    """
    @classmethod
    def from_obj(cls, obj: Any, **overrides) -> 'Config':
        kwargs = {f.name: val for f in fields(cls) if (val := getattr(obj, f.name, None)) is not None}
        kwargs.update(overrides)
        return cls(**kwargs)


class LiteralFile(type(Path())):
    """
    A Path wrapper that evaluates to False if the file is missing or empty.
    Inherits from the concrete Path type (PosixPath/WindowsPath) to ensure correct instantiation.
    """
    _MIN_SIZE = 1

    def __bool__(self):
        try: return self.is_file() and self.stat().st_size >= self._MIN_SIZE
        except OSError: return False


# Functions ------------------------------------------------------------------------------------------------------------
def read_ahead(handle: BinaryIO, chunk_size: int = 65536, depth: int = 4) -> Iterator[bytes]:
    """
    Reads ``handle`` from a background thread, yielding its chunks and then a final ``b''``.
    Decompression of the next chunks overlaps with the caller's parsing of the current one.
    """
    chunks = queue.Queue(maxsize=depth)

    def _read():
        try:
            while chunk := handle.read(chunk_size): chunks.put(chunk)
            chunks.put(b'')
        except Exception as e:
            chunks.put(e)

    threading.Thread(target=_read, daemon=True).start()
    while True:
        if isinstance(item := chunks.get(), Exception): raise item
        yield item
        if not item: return


def path_key(path: Union[str, Path]) -> str:
    """
    Turns a file path into a flat identifier by replacing path separators.

    Examples:
        >>> path_key('/data/run1/reads')
        'data_run1_reads'
    """
    text = str(path).strip()
    for sep in {os.sep, os.altsep or os.sep, '/'}: text = text.replace(sep, '_')
    return text.strip('_.') or 'stdin'
