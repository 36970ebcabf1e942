import pytest

from kmerfetch import __version__
from kmerfetch.cli import main, build_parser


class TestCli:
    def test_version(self, capsys):
        with pytest.raises(SystemExit) as info:
            main(['--version'])
        assert info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_parser(self):
        args = build_parser().parse_args(['--mode=search', '--input', 'arch', '--output', 'o.fq',
                                          '--input-kmer', 'ACGT', '--input-kmer', 'TTTT', '--paired-reads'])
        assert args.input == ['arch']
        assert args.input_kmer == ['ACGT', 'TTTT']
        assert args.repeat_threshold == 100
        assert args.batch_size == 1000

    def test_exclusive_kmer_sources(self, capsys):
        with pytest.raises(SystemExit) as info:
            main(['--mode=search', '--input', 'a', '--output', 'o', '--input-kmer', 'AC', '--input-kmer-file', 'k'])
        assert info.value.code == 2

    def test_configuration_error(self, capsys):
        assert main(['--mode=search', '--input', 'a', '--output', 'o']) == 2
        assert 'kmerfetch: error: --mode=search needs exactly one' in capsys.readouterr().err

    def test_invalid_threshold(self, capsys):
        assert main(['--mode=search', '--input', 'a', '--output', 'o', '--input-kmer', 'AC',
                     '--repeat-threshold', '0']) == 2
        assert 'repeat threshold must be a positive integer' in capsys.readouterr().err

    def test_missing_archive(self, tmp_path, capsys):
        code = main(['--mode=search', '--input', str(tmp_path / 'none'), '--output', str(tmp_path / 'o.fq'),
                     '--input-kmer', 'ACGT'])
        assert code == 1
        assert 'is incomplete' in capsys.readouterr().err
        assert not (tmp_path / 'o.fq').exists()

    def test_output_collision(self, tmp_path, archive, capsys):
        (output := tmp_path / 'o.fq').write_bytes(b'keep')
        code = main(['--mode=search', '--input', str(archive.prefix), '--output', str(output),
                     '--input-kmer', 'ACGT'])
        assert code == 1
        assert 'already exists' in capsys.readouterr().err
        assert output.read_bytes() == b'keep'

    def test_missing_tool(self, tmp_path, archive, monkeypatch, capsys):
        monkeypatch.setenv('KMERFETCH_BEETL_UNBWT', 'kmerfetch-no-such-binary')
        code = main(['--mode=restore', '--input', str(archive.prefix), '--output', str(tmp_path / 'o.fq')])
        assert code == 2
        assert 'Could not find beetl-unbwt' in capsys.readouterr().err

    def test_init_with_stub_builder(self, tmp_path, monkeypatch, reads):
        monkeypatch.setenv('KMERFETCH_BEETL_BWT', 'true')
        source = tmp_path / 'r.fastq'
        source.write_bytes(b''.join(b'@%s\n%s\n+\n%s\n' % r for r in reads))
        assert main(['--mode=init', '--input', str(source), '--output', str(tmp_path / 'reads'),
                     '--sort', '--sort-options=--fast']) == 0
        assert (tmp_path / 'reads-end-pos').read_bytes()[:4] == len(reads).to_bytes(4, 'little')
