"""
Integration tests for the streamreduce command line
"""

import io
import os
from unittest.mock import patch

import pytest

from streamreduce import MapReduceJob
from streamreduce.client.cli import build_parser, main


class FailingMapJob(MapReduceJob):

    def map(self, key, value, emitter):
        raise ValueError("bad map")


def _write(temp_dir, name, text):
    path = os.path.join(temp_dir, name)
    with open(path, 'w') as f:
        f.write(text)
    return path


class TestArguments:
    """Tests for argument parsing and validation"""

    def test_defaults(self):
        args = build_parser().parse_args(['--mapper'])
        assert args.partitions == 1
        assert args.mappers == 4
        assert args.reducers == 4
        assert args.inputs == []

    def test_mapper_and_reducer_is_a_config_error(self, wordcount_job_file, capsys):
        code = main(['--job-file', wordcount_job_file, '--mapper', '--reducer'])
        assert code == 1
        assert "not both" in capsys.readouterr().err

    def test_no_mode_is_a_config_error(self, wordcount_job_file, capsys):
        assert main(['--job-file', wordcount_job_file]) == 1
        assert "required" in capsys.readouterr().err

    def test_bad_partition_count(self, wordcount_job_file, capsys):
        assert main(['--job-file', wordcount_job_file, '--mapreduce', '--partitions', '0']) == 1
        assert "num_partitions" in capsys.readouterr().err

    def test_job_file_required(self, capsys):
        assert main(['--mapper']) == 1
        assert "--job-file" in capsys.readouterr().err

    def test_missing_job_file(self, capsys):
        assert main(['--mapper', '--job-file', '/nonexistent/job.py']) == 1
        assert "Error loading job" in capsys.readouterr().err


class TestFilterCommands:
    """Tests for --mapper and --reducer over stdin/stdout"""

    def test_mapper(self, wordcount_job_file, monkeypatch, capsys):
        monkeypatch.setattr('sys.stdin', io.StringIO("Hi there\nhi\n"))

        assert main(['--job-file', wordcount_job_file, '--mapper']) == 0
        assert capsys.readouterr().out == "hi\t1\nthere\t1\nhi\t1\n"

    def test_reducer(self, wordcount_job_file, monkeypatch, capsys):
        monkeypatch.setattr('sys.stdin', io.StringIO("hi\t1\nhi\t1\nthere\t1\n"))

        assert main(['--job-file', wordcount_job_file, '--reducer']) == 0
        assert capsys.readouterr().out == "hi\t2\nthere\t1\n"

    def test_reduce_failure_exits_nonzero(self, wordcount_job_file, monkeypatch, capsys):
        monkeypatch.setattr('sys.stdin', io.StringIO("hi\tnot-a-number\n"))
        assert main(['--job-file', wordcount_job_file, '--reducer']) == 1

    def test_map_failure_exits_nonzero(self, monkeypatch, capsys):
        monkeypatch.setattr('sys.stdin', io.StringIO("x\n"))
        assert main(['--mapper'], job=FailingMapJob()) == 1
        assert capsys.readouterr().out == ""

    def test_stdin_mapreduce_map_failure_exits_nonzero(self, temp_dir, monkeypatch, capsys):
        monkeypatch.setattr('sys.stdin', io.StringIO("x\n"))
        assert main(['--mapreduce', '--work-dir', temp_dir], job=FailingMapJob()) == 1
        assert "output is in" not in capsys.readouterr().out
        assert os.listdir(temp_dir) == []


class TestOutputReport:
    """Tests for reporting where the output went"""

    def _report(self, temp_dir, outputs, partitions, capsys):
        with patch('streamreduce.client.cli.JobManager') as manager:
            manager.return_value.run.return_value = outputs
            code = main(['--mapreduce', '--partitions', str(partitions), '--work-dir', temp_dir, 'in.txt'],
                        job=MapReduceJob())
        assert code == 0
        return capsys.readouterr().out

    def test_every_partition_is_a_range(self, temp_dir, capsys):
        out = self._report(temp_dir, ['p.0000', 'p.0001', 'p.0002'], 3, capsys)
        assert out == "output is in: p.0000 - p.0002\n"

    def test_missing_partition_lists_files(self, temp_dir, capsys):
        out = self._report(temp_dir, ['p.0000', 'p.0002'], 3, capsys)
        assert out == "output is in: p.0000, p.0002\n"


@pytest.mark.integration
@pytest.mark.usefixtures('require_sort')
class TestMapReduceCommand:
    """Tests for --mapreduce"""

    def test_reports_single_output(self, temp_dir, wordcount_job_file, capsys):
        source = _write(temp_dir, 'in.txt', "b a b\n")

        code = main(['--job-file', wordcount_job_file, '--mapreduce', '--work-dir', temp_dir, source])

        assert code == 0
        out = capsys.readouterr().out.strip()
        assert out.startswith("output is in: ")
        path = out[len("output is in: "):]
        with open(path) as f:
            assert f.read() == "a\t1\nb\t2\n"

    def test_reports_output_range(self, temp_dir, wordcount_job_file, capsys):
        source = _write(temp_dir, 'in.txt', "one two three\n")

        code = main(['--job-file', wordcount_job_file, '--mapreduce', '--partitions', '3',
                     '--work-dir', temp_dir, source])

        assert code == 0
        first = os.path.join(temp_dir, f"red-out-p{os.getpid()}.0000")
        last = os.path.join(temp_dir, f"red-out-p{os.getpid()}.0002")
        assert capsys.readouterr().out == f"output is in: {first} - {last}\n"

    def test_mapreduce_wins_over_mapper(self, temp_dir, wordcount_job_file, capsys):
        source = _write(temp_dir, 'in.txt', "x\n")
        code = main(['--job-file', wordcount_job_file, '--mapper', '--mapreduce',
                     '--work-dir', temp_dir, source])
        assert code == 0
        assert "output is in:" in capsys.readouterr().out

    def test_writes_metrics_file(self, temp_dir, wordcount_job_file, capsys):
        source = _write(temp_dir, 'in.txt', "x y\n")
        metrics = os.path.join(temp_dir, 'metrics.json')

        main(['--job-file', wordcount_job_file, '--mapreduce', '--work-dir', temp_dir,
              '--metrics-file', metrics, source])

        assert os.path.exists(metrics)

    def test_job_run_exits_with_status(self, temp_dir, wordcount_job_file):
        from streamreduce.worker.function_loader import FunctionLoader
        job = FunctionLoader(wordcount_job_file).get_job()
        source = _write(temp_dir, 'in.txt', "x\n")

        with pytest.raises(SystemExit) as excinfo:
            job.run(['--mapreduce', '--work-dir', temp_dir, source])
        assert excinfo.value.code == 0
