"""
Command line interface: ``kmerfetch --mode={init|search|restore} --input ... --output ...``.

Exit codes: 0 on success, 1 on abnormal completion (no input data, search output collision),
2 on fatal errors (configuration, external tool failure, data integrity).
"""
from argparse import ArgumentParser, RawDescriptionHelpFormatter
import sys
import logging
import warnings

from kmerfetch import __version__, KmerfetchError
from kmerfetch.config import RunConfig, ConfigurationError, Mode, DEFAULT_REPEAT_THRESHOLD, BATCH_SIZE
from kmerfetch.pipeline import Pipeline, NoInputDataError, OutputCollisionError

_PROG = 'kmerfetch'
_ABNORMAL = (NoInputDataError, OutputCollisionError)


# Functions ------------------------------------------------------------------------------------------------------------
def build_parser() -> ArgumentParser:
    p = ArgumentParser(prog=_PROG, formatter_class=RawDescriptionHelpFormatter,
                       description='Extract the FASTQ reads matching k-mers from a BWT-indexed read archive',
                       epilog='modes:\n'
                              '  init     build an archive from FASTQ files (two files are read as mates)\n'
                              '  search   extract the reads matching k-mers, optionally with their mates\n'
                              '  restore  rebuild the full FASTQ from an archive')
    p.add_argument('--mode', required=True, choices=[i.value for i in Mode], help='Mode of operation')
    p.add_argument('--input', action='append', metavar='PATH',
                   help='FASTQ file(s) for init; archive prefix for search and restore')
    p.add_argument('--output', metavar='PATH', help='Archive prefix for init; FASTQ file (or -) for search and restore')
    init = p.add_argument_group('init options')
    init.add_argument('--sort', action='store_true', help='Run the BWT builder sort step with --sort-options')
    init.add_argument('--sort-options', metavar='ARGS', help='Quoted options forwarded to the BWT builder')
    search = p.add_argument_group('search options')
    kmers = search.add_mutually_exclusive_group()
    kmers.add_argument('--input-kmer-file', metavar='PATH', help='File with one k-mer per line')
    kmers.add_argument('--input-kmer', action='append', metavar='KMER', help='K-mer to search for (repeatable)')
    search.add_argument('--repeat-threshold', type=int, default=DEFAULT_REPEAT_THRESHOLD, metavar='N',
                        help='Drop k-mers with N or more matches (default: %(default)s)')
    search.add_argument('--paired-reads', action='store_true', help='Also extract the mate of every matched read')
    other = p.add_argument_group('other options')
    other.add_argument('--tmp-dir', metavar='DIR', help='Parent directory for intermediate files')
    other.add_argument('--batch-size', type=int, default=BATCH_SIZE, metavar='N',
                       help='Records per archive query (default: %(default)s)')
    other.add_argument('--timeout', type=float, metavar='SECONDS', help='Time limit for each external tool')
    other.add_argument('-v', '--verbose', action='store_true', help='Log progress to stderr')
    other.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return p


def _show_warning(message, category, filename, lineno, file=None, line=None):
    print(f'{_PROG}: warning: {message}', file=file or sys.stderr)


def configure_logging(verbose: bool = False):
    logging.basicConfig(level=logging.INFO if verbose else logging.WARNING, stream=sys.stderr,
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s', force=True)
    warnings.showwarning = _show_warning


def main(argv: list[str] = None) -> int:
    args = build_parser().parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.verbose)
    try:
        config = RunConfig.from_obj(args)
        result = Pipeline(config).run()
    except ConfigurationError as e:
        print(f'{_PROG}: error: {e}', file=sys.stderr)
        return 2
    except _ABNORMAL as e:
        print(f'{_PROG}: error: {e}', file=sys.stderr)
        return 1
    except KmerfetchError as e:
        print(f'{_PROG}: error: {e}', file=sys.stderr)
        return 2
    logging.getLogger(__name__).info('Finished %s: %s', config.mode.value, result)
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
