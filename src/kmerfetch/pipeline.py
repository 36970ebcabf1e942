"""
Pipeline driver for the init, search and restore modes.

Search runs the states SEARCH -> FILTER -> EXTEND_PRIMARY -> RESOLVE_PAIRS -> EXTRACT -> DONE,
strictly in order. Every intermediate file lives in a temporary directory removed when the
run ends, whether it succeeds or not.
"""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from tempfile import TemporaryDirectory
from typing import Union, Optional
from warnings import warn
import logging

import numpy as np

from kmerfetch import KmerfetchError, KmerfetchWarning
from kmerfetch.config import RunConfig, Mode
from kmerfetch.core.layout import ArchiveLayout, DataIntegrityError
from kmerfetch.core.records import MatchSet, ExtendedMatch
from kmerfetch.engines.bwt import BwtBuilder, KmerSearch, ReadExtender, BwtInverter
from kmerfetch.engines.extract import BatchedExtractor
from kmerfetch.engines.filter import RepeatFilter
from kmerfetch.engines.pairing import MateResolver
from kmerfetch.io.archive import ArchiveWriter, ColumnarArchive, index_path
from kmerfetch.io.fastq import FastqReader, FastqWriter
from kmerfetch.io.tabular import SearchHitReader, SearchHitWriter, ExtendedMatchReader, LineWriter
from kmerfetch.utils import Xopen, LiteralFile, path_key
from kmerfetch.utils.external import TaskGroup, ToolConfig

logger = logging.getLogger(__name__)


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class NoInputDataError(KmerfetchError):
    """Raised when an input file or archive is missing or empty."""

class OutputCollisionError(KmerfetchError):
    """Raised when a search would overwrite an existing output."""

class OutputCollisionWarning(KmerfetchWarning):
    """Issued when init or restore overwrites an existing output."""


# Classes --------------------------------------------------------------------------------------------------------------
class State(str, Enum):
    INIT = 'init'
    SEARCH = 'search'
    FILTER = 'filter'
    EXTEND_PRIMARY = 'extend-primary'
    RESOLVE_PAIRS = 'resolve-pairs'
    EXTRACT = 'extract'
    RESTORE = 'restore'
    DONE = 'done'


@dataclass(slots=True, frozen=True)
class ArchivePaths:
    """
    Files making up a read archive, derived from its prefix.

    Examples:
        >>> ArchivePaths.from_prefix('run1/reads').ids
        PosixPath('run1/reads-ids.gz')
    """
    prefix: Path
    ids: Path
    qualities: Path
    layout: Path

    @classmethod
    def from_prefix(cls, prefix: Union[str, Path]) -> 'ArchivePaths':
        prefix = Path(prefix)
        return cls(prefix, prefix.with_name(prefix.name + '-ids.gz'), prefix.with_name(prefix.name + '-quals.gz'),
                   prefix.with_name(prefix.name + ArchiveLayout.SUFFIX))

    @property
    def files(self) -> tuple[Path, ...]:
        return self.ids, index_path(self.ids), self.qualities, index_path(self.qualities), self.layout

    def missing(self) -> list[Path]:
        return [i for i in self.files if not LiteralFile(i)]


@dataclass
class Engines:
    """External engines; any left as None is created from the run configuration when first needed."""
    builder: Optional[BwtBuilder] = None
    search: Optional[KmerSearch] = None
    extender: Optional[ReadExtender] = None
    inverter: Optional[BwtInverter] = None


@dataclass
class RunResult:
    """Outcome and diagnostics of one run."""
    mode: Mode
    n_reads: int = 0
    total_matches: int = 0
    n_dropped: int = 0
    match_count: int = 0
    read_pairs_count: int = 0
    outputs: list[Path] = field(default_factory=list)


class Pipeline:
    """
    Runs one mode of kmerfetch with an immutable `RunConfig`.

    Examples:
        >>> config = RunConfig(mode='search', input='reads', output='hits.fastq', input_kmer=('ACGTACGT',))
        >>> result = Pipeline(config).run()
        >>> result.n_reads
    """
    _ENGINE_TYPES = {'builder': BwtBuilder, 'search': KmerSearch, 'extender': ReadExtender, 'inverter': BwtInverter}

    def __init__(self, config: RunConfig, engines: Engines = None):
        self.config = config
        self.engines = engines or Engines()
        self.state: Optional[State] = None

    def __repr__(self): return f'{self.__class__.__name__}({self.config.mode.value}, state={self.state})'

    def _engine(self, name: str):
        if (engine := getattr(self.engines, name)) is None:
            tool_config = ToolConfig(timeout=self.config.timeout,
                                     extra_args=self.config.sort_options if name == 'builder' else None)
            engine = self._ENGINE_TYPES[name](tool_config)
            setattr(self.engines, name, engine)
        return engine

    def _enter(self, state: State):
        self.state = state
        logger.info('State: %s', state.value)

    def _workdir(self) -> TemporaryDirectory:
        if self.config.tmp_dir: Path(self.config.tmp_dir).mkdir(parents=True, exist_ok=True)
        return TemporaryDirectory(prefix='kmerfetch-', dir=self.config.tmp_dir)

    def run(self) -> RunResult:
        """
        Runs the configured mode.

        Raises:
            KmerfetchError: Any failure aborts the run at the current state (see ``state``).
        """
        return {Mode.INIT: self.init, Mode.SEARCH: self.search, Mode.RESTORE: self.restore}[self.config.mode]()

    # Init -------------------------------------------------------------------------------------------------------------
    def init(self) -> RunResult:
        """
        Builds a read archive from FASTQ input.

        Identifiers, qualities and sequences are split into columns in one pass; the identifier
        and quality archives are then compressed while the BWT builder runs, joined before the
        layout header is written. Two inputs are treated as mate files and must hold as many reads.
        """
        self._enter(State.INIT)
        inputs = [Path(i) for i in self.config.input]
        if empty := [str(i) for i in inputs if not LiteralFile(i)]:
            raise NoInputDataError(f'Input missing or empty: {", ".join(empty)}')
        paths = ArchivePaths.from_prefix(self.config.output)
        if existing := [str(i) for i in paths.files if i.exists()]:
            warn(f'Overwriting existing archive files: {", ".join(existing)}', OutputCollisionWarning)
        paths.prefix.parent.mkdir(parents=True, exist_ok=True)
        builder = self._engine('builder')
        result = RunResult(Mode.INIT)

        with self._workdir() as tmp:
            key = path_key(paths.prefix)
            columns = {name: Path(tmp, f'{key}.{name}') for name in ('ids', 'quals', 'seqs')}
            counts = self._split_columns(inputs, columns)
            if not (n_reads := sum(counts)):
                raise NoInputDataError(f'No reads found in {", ".join(map(str, inputs))}')
            if len(counts) == 2 and counts[0] != counts[1]:
                raise DataIntegrityError(f'Mate files hold different numbers of reads: {counts[0]} and {counts[1]}')

            with TaskGroup() as group:
                group.spawn(builder, builder.args(columns['seqs'], paths.prefix), name='BWT builder')
                group.submit(self._compress_column, columns['ids'], paths.ids, name='identifier archive')
                group.submit(self._compress_column, columns['quals'], paths.qualities, name='quality archive')

        ArchiveLayout(n_reads, 1, 0).write(paths.layout)
        logger.info('Archived %d reads from %d file(s) into %s', n_reads, len(inputs), paths.prefix)
        self._enter(State.DONE)
        result.n_reads = n_reads
        result.outputs = list(paths.files)
        return result

    @staticmethod
    def _split_columns(inputs: list[Path], columns: dict[str, Path]) -> list[int]:
        counts = []
        with open(columns['ids'], 'wb') as ids, open(columns['quals'], 'wb') as quals, \
                open(columns['seqs'], 'wb') as seqs:
            for path in inputs:
                n = 0
                with Xopen(path) as handle:
                    for read in FastqReader(handle):
                        ids.write(read.id + b'\n')
                        quals.write(read.quality + b'\n')
                        seqs.write(read.bases + b'\n')
                        n += 1
                logger.info('Read %d reads from %s', n, path)
                counts.append(n)
        return counts

    @staticmethod
    def _compress_column(column: Path, archive: Path) -> int:
        with open(column, 'rb') as handle, ArchiveWriter(archive) as writer:
            for line in handle: writer.write_one(line.rstrip(b'\n'))
            return writer.n_written

    # Search -----------------------------------------------------------------------------------------------------------
    def search(self) -> RunResult:
        """
        Extracts the reads matching the configured k-mers, and their mates in paired mode.

        Raises:
            OutputCollisionError: If the output already exists.
            ExternalToolFailure: If an engine fails.
            DataIntegrityError: If the archive disagrees with the engines' results.
        """
        config = self.config
        output = Path(config.output)
        if str(output) != '-' and output.exists():
            raise OutputCollisionError(f'Output {output} already exists; search output is never overwritten')
        paths = self._check_archive(config.input[0])
        result = RunResult(Mode.SEARCH)

        with self._workdir() as tmp:
            key = path_key(paths.prefix)
            tmp = Path(tmp)

            self._enter(State.SEARCH)
            kmers = self._kmer_queries(tmp / f'{key}.kmers')
            hits = tmp / f'{key}.hits'
            self._engine('search').search(paths.prefix, kmers, hits)

            self._enter(State.FILTER)
            retained = tmp / f'{key}.retained'
            repeats = RepeatFilter(config.repeat_threshold)
            with Xopen(hits) as handle, SearchHitWriter(retained) as writer:
                for hit in repeats(SearchHitReader(handle)): writer.write_one(hit)
            result.total_matches, result.n_dropped = repeats.summary
            if not repeats.total_matches:
                logger.info('No matches left after filtering; nothing to extract')
                with FastqWriter(output, mode='xb'): pass
                self._enter(State.DONE)
                result.outputs = [output]
                return result

            self._enter(State.EXTEND_PRIMARY)
            matches = self._extend(self._engine('extender').extend, paths.prefix, retained, tmp / f'{key}.extended')
            logger.info('%d distinct reads match the queries', len(matches))

            if config.paired_reads:
                self._enter(State.RESOLVE_PAIRS)
                matches = self._resolve_pairs(paths, matches, tmp / key, result)
            result.match_count = result.match_count or len(matches)

            self._enter(State.EXTRACT)
            result.n_reads = self._extract(paths, matches, output)

        self._enter(State.DONE)
        result.outputs = [output]
        return result

    def _check_archive(self, prefix: Union[str, Path]) -> ArchivePaths:
        paths = ArchivePaths.from_prefix(prefix)
        if missing := paths.missing():
            raise NoInputDataError(f'Archive {prefix} is incomplete, missing: {", ".join(map(str, missing))}')
        return paths

    def _kmer_queries(self, path: Path) -> Path:
        if self.config.input_kmer_file:
            if not LiteralFile(kmers := Path(self.config.input_kmer_file)):
                raise NoInputDataError(f'K-mer file missing or empty: {kmers}')
            return kmers
        with LineWriter(path, threaded=False) as writer: writer.write(list(self.config.input_kmer))
        return path

    @staticmethod
    def _extend(step, prefix: Path, request: Path, output: Path) -> MatchSet:
        step(prefix, request, output)
        if not output.exists(): raise DataIntegrityError(f'Extension produced no output at {output}')
        with Xopen(output) as handle: return MatchSet(ExtendedMatchReader(handle))

    def _resolve_pairs(self, paths: ArchivePaths, matches: MatchSet, stem: Path, result: RunResult) -> MatchSet:
        layout = ArchiveLayout.read(paths.layout)
        with ColumnarArchive(paths.ids) as ids: layout.check_records(len(ids))
        resolver = MateResolver(layout)
        needed = resolver.resolve(matches.record_numbers)
        result.match_count, result.read_pairs_count = resolver.match_count, resolver.read_pairs_count
        if not needed.size: return matches

        request = stem.with_name(stem.name + '.mates')
        with LineWriter(request, threaded=False) as writer: writer.write(needed.tolist())
        mates = self._extend(self._engine('extender').extend_records, paths.prefix, request,
                             stem.with_name(stem.name + '.mates-extended'))
        if (missing := np.setdiff1d(needed, mates.record_numbers)).size:
            raise DataIntegrityError(f'Extension did not return {missing.size} requested mates (first: {missing[0]})')
        return matches.merge(mates)

    def _extract(self, paths: ArchivePaths, matches, output: Path, mode: str = 'xb') -> int:
        """Writes the FASTQ output; an output this call created is removed again if extraction fails."""
        created = False
        try:
            with ColumnarArchive(paths.ids) as ids, ColumnarArchive(paths.qualities) as qualities, \
                    FastqWriter(output, mode=mode) as writer:
                created = True
                return BatchedExtractor(ids, qualities, self.config.batch_size).write(matches, writer)
        except BaseException:
            if created: self._discard(output)
            raise

    @staticmethod
    def _discard(output: Path):
        if str(output) == '-': return
        output.unlink(missing_ok=True)
        logger.info('Removed incomplete output %s', output)

    # Restore ----------------------------------------------------------------------------------------------------------
    def restore(self) -> RunResult:
        """Rebuilds the full FASTQ from an archive, in record order."""
        self._enter(State.RESTORE)
        paths = self._check_archive(self.config.input[0])
        output = Path(self.config.output)
        if str(output) != '-' and output.exists():
            warn(f'Overwriting existing output {output}', OutputCollisionWarning)
        result = RunResult(Mode.RESTORE)
        with ColumnarArchive(paths.ids) as ids: n_records = len(ids)

        with self._workdir() as tmp:
            sequences = Path(tmp, f'{path_key(paths.prefix)}.seqs')
            self._engine('inverter').invert(paths.prefix, sequences)
            with Xopen(sequences) as handle:
                matches = (ExtendedMatch(i, line.rstrip(b'\r\n')) for i, line in enumerate(handle))
                result.n_reads = self._extract(paths, matches, output, mode='wb')

        if result.n_reads != n_records:
            self._discard(output)
            raise DataIntegrityError(f'BWT inversion returned {result.n_reads} sequences for {n_records} archived reads')
        self._enter(State.DONE)
        result.outputs = [output]
        return result
