"""
Tests for the command line interface.
"""

import json

import pytest

from trietrace.cli import build_parser, main


H_1_2 = '0x115cc0f5e7d690413df64c6b9662e9cf2a3617f2743245519e19607a4417189a'
ACCOUNT_KEY_ONE = '0x208f6b727bb1106847c5235b8b62e7902687ff154df396fbbd026eaf49e706e4'


@pytest.fixture
def broken_file(traces_file, tmp_path):
    """Recorded traces with record 1's after root altered."""
    with open(traces_file) as f:
        records = json.load(f)
    root = records[1]['accountPath'][1]['root']
    records[1]['accountPath'][1]['root'] = root[:-2] + ('00' if root[-2:] != '00' else '01')
    path = tmp_path / 'broken.json'
    path.write_text(json.dumps(records))
    return path


class TestVerifyCommand:
    """trietrace verify"""

    def test_valid_file(self, traces_file, capsys):
        assert main(['verify', str(traces_file)]) == 0
        out = capsys.readouterr().out.splitlines()
        assert len(out) == 7
        assert all(': OK ' in line for line in out)
        assert 'WriteNonce(old=1, new=2)' in out[0]

    def test_broken_file(self, broken_file, capsys):
        assert main(['verify', str(broken_file)]) == 1
        out = capsys.readouterr().out
        assert '[1]: FAIL' in out
        assert 'not verified after first failure' in out

    def test_keep_going(self, broken_file, capsys):
        assert main(['verify', str(broken_file), '--keep-going']) == 1
        out = capsys.readouterr().out.splitlines()
        assert len(out) == 7
        assert sum(': FAIL ' in line for line in out) == 1

    def test_json_report(self, traces_file, capsys):
        assert main(['verify', str(traces_file), '--json', '--parallel', '--workers', '2']) == 0
        report = json.loads(capsys.readouterr().out)
        assert report[0]['valid']
        assert report[0]['total'] == 7
        assert report[0]['results'][4]['proof']['kind'] == 'IsEmpty'

    def test_config_file(self, broken_file, tmp_path, capsys):
        config = tmp_path / 'config.json'
        config.write_text(json.dumps({'fail_fast': False}))
        assert main(['verify', str(broken_file), '--config', str(config)]) == 1
        assert len(capsys.readouterr().out.splitlines()) == 7

    def test_bad_config(self, traces_file, tmp_path):
        config = tmp_path / 'config.json'
        config.write_text(json.dumps({'nonsense': 1}))
        assert main(['verify', str(traces_file), '--config', str(config)]) == 2

    def test_missing_file(self, tmp_path, capsys):
        assert main(['verify', str(tmp_path / 'absent.json')]) == 1
        assert 'FAIL io' in capsys.readouterr().out

    def test_json_report_missing_file(self, traces_file, tmp_path, capsys):
        """Unreadable files are reported inside the JSON document."""
        missing = tmp_path / 'absent.json'
        assert main(['verify', str(traces_file), str(missing), '--json']) == 1
        captured = capsys.readouterr()
        report = json.loads(captured.out)
        assert [entry['file'] for entry in report] == [str(traces_file), str(missing)]
        assert report[0]['valid']
        assert not report[1]['valid']
        assert report[1]['kind'] == 'io'
        assert report[1]['error']
        assert 'FAIL io' in captured.err

    def test_malformed_file(self, tmp_path, capsys):
        path = tmp_path / 'bad.json'
        path.write_text('{"address": "0x01"}')
        assert main(['verify', str(path)]) == 1
        assert 'FAIL malformed' in capsys.readouterr().out


class TestUtilityCommands:
    """trietrace key / hash"""

    def test_key(self, capsys):
        assert main(['key', '0x' + '00' * 19 + '01']) == 0
        assert capsys.readouterr().out.strip() == ACCOUNT_KEY_ONE

    def test_hash(self, capsys):
        assert main(['hash', '1', '0x2']) == 0
        assert capsys.readouterr().out.strip() == H_1_2

    def test_bad_address(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(['key', '0x1234'])

    def test_bad_field_element(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(['hash', 'abc', '1'])
