"""
Command line entry point for streamreduce jobs.

    streamreduce --job-file examples/wordcount.py --mapper  < input > mapped
    streamreduce --job-file examples/wordcount.py --reducer < sorted > output
    streamreduce --job-file examples/wordcount.py --mapreduce --partitions 4 a.txt b.txt
"""

import argparse
import logging
import os
import sys

from streamreduce.coordinator.config import RunConfig
from streamreduce.coordinator.job_manager import JobManager
from streamreduce.errors import ConfigurationError, StreamReduceError
from streamreduce.records import configure_stdio
from streamreduce.worker.function_loader import FunctionLoader

WORK_DIR = os.environ.get('STREAMREDUCE_WORK_DIR', '.')
SORT_COMMAND = os.environ.get('STREAMREDUCE_SORT_COMMAND', 'sort')

logger = logging.getLogger(__name__)


def build_parser():
    parser = argparse.ArgumentParser(
        prog='streamreduce',
        description='Run a MapReduce job as a streaming filter or as a local pipeline',
        epilog='Example: %(prog)s --job-file wordcount.py --mapreduce --partitions 2 input1.txt input2.txt'
    )
    parser.add_argument('--mapper', action='store_true', help='run mapper code on stdin')
    parser.add_argument('--reducer', action='store_true', help='run reducer code on sorted stdin')
    parser.add_argument('--mapreduce', action='store_true', help='run the full map/sort/reduce pipeline')
    parser.add_argument('--partitions', type=int, default=1, help='number of output partitions (default: 1)')
    parser.add_argument('--mappers', type=int, default=4, help='number of concurrent mappers (default: 4)')
    parser.add_argument('--reducers', type=int, default=4, help='number of concurrent reducers (default: 4)')
    parser.add_argument('--job-file', help='Python file defining the job')
    parser.add_argument('--work-dir', default=WORK_DIR,
                        help='directory for temporary and output files (default: $STREAMREDUCE_WORK_DIR or .)')
    parser.add_argument('--sort-command', default=SORT_COMMAND,
                        help='external sort program (default: $STREAMREDUCE_SORT_COMMAND or sort)')
    parser.add_argument('--metrics-file', help='write run metrics as JSON to this file')
    parser.add_argument('-v', '--verbose', action='store_true', help='log debug output')
    parser.add_argument('inputs', nargs='*', help='input files for --mapreduce (default: stdin)')
    return parser


def configure_logging(verbose: bool = False):
    # stdout carries data in filter mode, so logs go to stderr
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )


def main(argv=None, job=None) -> int:
    """Main CLI entry point"""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    try:
        config = RunConfig.from_flags(
            mapper=args.mapper,
            reducer=args.reducer,
            mapreduce=args.mapreduce,
            num_partitions=args.partitions,
            num_mappers=args.mappers,
            num_reducers=args.reducers,
            input_files=args.inputs,
            work_dir=args.work_dir,
            sort_command=args.sort_command,
            metrics_file=args.metrics_file,
        )
        if job is None:
            if not args.job_file:
                raise ConfigurationError("--job-file is required")
            job = FunctionLoader(args.job_file).get_job()
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (FileNotFoundError, AttributeError, ImportError) as e:
        print(f"Error loading job: {e}", file=sys.stderr)
        return 1

    stdin = configure_stdio(sys.stdin)
    stdout = configure_stdio(sys.stdout)
    try:
        outputs = JobManager(config).run(job, stdin, stdout)
    except StreamReduceError as e:
        logger.error(f"Job failed: {e}")
        return 1

    if outputs:
        if len(outputs) == 1:
            print(f"output is in: {outputs[0]}")
        elif len(outputs) == config.num_partitions:
            print(f"output is in: {outputs[0]} - {outputs[-1]}")
        else:
            # Some partitions produced nothing, so the files are not a range
            print(f"output is in: {', '.join(outputs)}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
