from typing import Protocol, runtime_checkable, Sequence


@runtime_checkable
class LineFetcher(Protocol):
    """Protocol for random-access line stores (e.g. ColumnarArchive): one line per requested record, in request order."""

    def fetch(self, record_numbers: Sequence[int]) -> list[bytes]: ...
