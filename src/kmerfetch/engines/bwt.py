"""
Wrappers for the external BWT engines: index construction, k-mer search, read extraction and BWT inversion.

The binaries default to the BEETL tool names and can be replaced per tool through
``KMERFETCH_<TOOL>`` environment variables (e.g. ``KMERFETCH_BEETL_SEARCH``).
"""
from pathlib import Path
from typing import Union
from shlex import split as shell_split
import logging

from kmerfetch.utils.external import ExternalProgram, ToolConfig

logger = logging.getLogger(__name__)
PathLike = Union[str, Path]


# Classes --------------------------------------------------------------------------------------------------------------
class BwtTool(ExternalProgram):
    """Base class for the BWT engines; ``_PROGRAM`` names the default binary."""
    _PROGRAM: str = None

    def __init__(self, config: ToolConfig = None, program: str = None):
        self._config = config or ToolConfig()
        super().__init__(program or self._PROGRAM, timeout=self._config.timeout)

    def _params(self) -> list[str]:
        params = self._build_params(self._config)
        if self._config.extra_args: params += shell_split(self._config.extra_args)
        return params


class BwtBuilder(BwtTool):
    """
    Builds the BWT of the sequence column written during ``init``.

    Examples:
        >>> BwtBuilder(ToolConfig(extra_args='--algorithm=ext')).build('reads-seqs.txt', 'reads')
    """
    _PROGRAM = 'beetl-bwt'

    def args(self, sequences: PathLike, prefix: PathLike) -> list[str]:
        return self._params() + ['-i', sequences, '-o', prefix]

    def build(self, sequences: PathLike, prefix: PathLike):
        logger.info('Building BWT of %s into %s', sequences, prefix)
        self.run(self.args(sequences, prefix))


class KmerSearch(BwtTool):
    """Searches the BWT for k-mers, writing ``queryId position matchCount`` lines."""
    _PROGRAM = 'beetl-search'

    def search(self, prefix: PathLike, kmers: PathLike, hits: PathLike):
        logger.info('Searching %s for the k-mers in %s', prefix, kmers)
        self.run(self._params() + ['-i', prefix, '-j', kmers, '-o', hits])


class ReadExtender(BwtTool):
    """
    Recovers the record numbers and base sequences of reads, either from search hits
    or from a list of record numbers (one per line).
    """
    _PROGRAM = 'beetl-extend'

    def extend(self, prefix: PathLike, hits: PathLike, output: PathLike):
        logger.info('Extending search hits from %s', hits)
        self.run(self._params() + ['-b', prefix, '-i', hits, '-o', output])

    def extend_records(self, prefix: PathLike, record_numbers: PathLike, output: PathLike):
        logger.info('Extending record numbers from %s', record_numbers)
        self.run(self._params() + ['-b', prefix, '--record-numbers', record_numbers, '-o', output])


class BwtInverter(BwtTool):
    """Inverts the BWT, writing one base sequence per line in record order."""
    _PROGRAM = 'beetl-unbwt'

    def invert(self, prefix: PathLike, sequences: PathLike):
        logger.info('Inverting BWT %s', prefix)
        self.run(self._params() + ['-i', prefix, '-o', sequences])
