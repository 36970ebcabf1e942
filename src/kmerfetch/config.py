"""
Run configuration for the init, search and restore modes.
"""
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from kmerfetch import KmerfetchError
from kmerfetch.utils import Config


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class ConfigurationError(KmerfetchError):
    """Raised for invalid options, before any input is read or output written."""


# Constants ------------------------------------------------------------------------------------------------------------
DEFAULT_REPEAT_THRESHOLD = 100
BATCH_SIZE = 1000


# Functions ------------------------------------------------------------------------------------------------------------
def check_positive_int(value, name: str) -> int:
    """Returns ``value`` as an int, raising `ConfigurationError` unless it is a positive integer."""
    if isinstance(value, bool): raise ConfigurationError(f'{name} must be a positive integer, got {value!r}')
    try: number = int(value)
    except (TypeError, ValueError): raise ConfigurationError(f'{name} must be a positive integer, got {value!r}')
    if number != value and str(number) != str(value).strip():
        raise ConfigurationError(f'{name} must be a positive integer, got {value!r}')
    if number <= 0: raise ConfigurationError(f'{name} must be a positive integer, got {value!r}')
    return number


# Classes --------------------------------------------------------------------------------------------------------------
class Mode(str, Enum):
    INIT = 'init'
    SEARCH = 'search'
    RESTORE = 'restore'


@dataclass(slots=True, frozen=True, kw_only=True)
class RunConfig(Config):
    """
    Immutable options for one run, built from the CLI namespace with `Config.from_obj`.

    Attributes:
        mode: One of init, search or restore.
        input: FASTQ input files (init) or the archive prefix (search, restore).
        output: Archive prefix (init) or FASTQ output (search, restore).
        sort: Let the BWT builder run its sort step with ``sort_options`` (init only).
        sort_options: Extra arguments forwarded to the BWT builder (init only).
        input_kmer_file: File with one k-mer per line (search only).
        input_kmer: K-mers given on the command line (search only).
        repeat_threshold: K-mers with this many matches or more are dropped.
        paired_reads: Also extract the mates of matched reads (search only).
        verbose: Log progress.
        tmp_dir: Parent directory for intermediate files.
        batch_size: Records retrieved from the archives per random-access query.
        timeout: Optional limit in seconds for each external tool.
    """
    mode: Mode
    input: tuple[str, ...] = ()
    output: Optional[str] = None
    sort: bool = False
    sort_options: Optional[str] = None
    input_kmer_file: Optional[str] = None
    input_kmer: tuple[str, ...] = ()
    repeat_threshold: int = DEFAULT_REPEAT_THRESHOLD
    paired_reads: bool = False
    verbose: bool = False
    tmp_dir: Optional[str] = None
    batch_size: int = BATCH_SIZE
    timeout: Optional[float] = None

    def __post_init__(self):
        try: object.__setattr__(self, 'mode', Mode(self.mode))
        except ValueError: raise ConfigurationError(f'Unknown mode {self.mode!r}, expected one of init, search, restore')
        if isinstance(self.input, (str, Path)): object.__setattr__(self, 'input', (str(self.input),))
        else: object.__setattr__(self, 'input', tuple(str(i) for i in self.input))
        object.__setattr__(self, 'input_kmer', tuple(self.input_kmer))
        object.__setattr__(self, 'repeat_threshold', check_positive_int(self.repeat_threshold, 'repeat threshold'))
        object.__setattr__(self, 'batch_size', check_positive_int(self.batch_size, 'batch size'))
        self.validate()

    def validate(self):
        """
        Checks option combinations for the selected mode.

        Raises:
            ConfigurationError: On missing or conflicting options.
        """
        if not self.input: raise ConfigurationError('--input is required')
        if not self.output: raise ConfigurationError('--output is required')
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError(f'timeout must be positive, got {self.timeout!r}')
        if self.mode is not Mode.INIT and len(self.input) > 1:
            raise ConfigurationError(f'--mode={self.mode.value} takes a single archive prefix as --input')
        if self.mode is not Mode.INIT and (self.sort or self.sort_options):
            raise ConfigurationError('--sort and --sort-options are only valid with --mode=init')
        if self.sort_options and not self.sort:
            raise ConfigurationError('--sort-options requires --sort')
        if self.mode is Mode.SEARCH:
            if bool(self.input_kmer_file) == bool(self.input_kmer):
                raise ConfigurationError('--mode=search needs exactly one of --input-kmer-file or --input-kmer')
        elif self.input_kmer_file or self.input_kmer or self.paired_reads:
            raise ConfigurationError('--input-kmer-file, --input-kmer and --paired-reads are only valid with --mode=search')
