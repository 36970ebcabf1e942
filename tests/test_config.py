from argparse import Namespace

import pytest

from kmerfetch.config import RunConfig, Mode, ConfigurationError, check_positive_int


def search(**kwargs) -> RunConfig:
    options = dict(mode='search', input='arch', output='hits.fastq', input_kmer=('ACGT',))
    options.update(kwargs)
    return RunConfig(**options)


class TestRunConfig:
    def test_defaults(self):
        config = search()
        assert config.mode is Mode.SEARCH
        assert config.input == ('arch',)
        assert config.repeat_threshold == 100
        assert config.batch_size == 1000
        assert not config.paired_reads

    def test_frozen(self):
        with pytest.raises(AttributeError):
            search().output = 'other'

    def test_from_namespace(self):
        namespace = Namespace(mode='init', input=['r1.fq', 'r2.fq'], output='arch', sort=None, sort_options=None,
                              input_kmer_file=None, input_kmer=None, repeat_threshold=None, paired_reads=False,
                              verbose=True, tmp_dir=None, batch_size=None, timeout=None, version=None)
        config = RunConfig.from_obj(namespace)
        assert config.mode is Mode.INIT
        assert config.input == ('r1.fq', 'r2.fq')
        assert config.verbose
        assert config.repeat_threshold == 100

    def test_overrides(self):
        assert RunConfig.from_obj(Namespace(mode='restore', input=['arch']), output='out.fq').output == 'out.fq'

    @pytest.mark.parametrize('kwargs, match', [
        (dict(mode='bogus'), 'Unknown mode'),
        (dict(input=()), '--input is required'),
        (dict(output=None), '--output is required'),
        (dict(input=('a', 'b')), 'single archive prefix'),
        (dict(sort=True), 'only valid with --mode=init'),
        (dict(input_kmer=()), 'exactly one'),
        (dict(input_kmer_file='kmers.txt'), 'exactly one'),
        (dict(repeat_threshold=0), 'repeat threshold'),
        (dict(batch_size=-1), 'batch size'),
        (dict(timeout=0), 'timeout'),
    ])
    def test_invalid_search(self, kwargs, match):
        with pytest.raises(ConfigurationError, match=match):
            search(**kwargs)

    def test_sort_options_need_sort(self):
        with pytest.raises(ConfigurationError, match="requires --sort"):
            RunConfig(mode='init', input=('r.fq',), output='arch', sort_options='--fast')
        assert RunConfig(mode='init', input=('r.fq',), output='arch', sort=True, sort_options='--fast').sort

    @pytest.mark.parametrize('kwargs', [dict(paired_reads=True), dict(input_kmer=('AC',)),
                                        dict(input_kmer_file='k.txt')])
    def test_search_flags_outside_search(self, kwargs):
        with pytest.raises(ConfigurationError, match="only valid with --mode=search"):
            RunConfig(mode='restore', input=('arch',), output='out.fq', **kwargs)

    def test_kmer_file(self):
        assert search(input_kmer=(), input_kmer_file='kmers.txt').input_kmer_file == 'kmers.txt'


class TestCheckPositiveInt:
    @pytest.mark.parametrize('value, expected', [(1, 1), (100, 100), ('7', 7)])
    def test_valid(self, value, expected):
        assert check_positive_int(value, 'n') == expected

    @pytest.mark.parametrize('value', [0, -1, 1.5, 'x', None, False, True])
    def test_invalid(self, value):
        with pytest.raises(ConfigurationError, match="n must be a positive integer"):
            check_positive_int(value, 'n')
