"""
Map Task Executor
Feeds input lines through the job's map function and writes the emitted
records through an emitter, partitioned for the reduce side
"""

import logging
import time

from streamreduce.errors import FileAccessError
from streamreduce.records import decode_value_line, open_text, read_records
from streamreduce.worker.emitters import PartitionEmitter

logger = logging.getLogger(__name__)


def run_map(job, stream, emitter) -> int:
    """
    Call job.map() once per input line.

    Args:
        job: MapReduceJob instance
        stream: Text stream of bare value lines
        emitter: Where the job's output goes

    Returns:
        Number of input records mapped
    """
    count = 0
    for record in read_records(stream, decode_value_line):
        job.map("", record.value, emitter)
        count += 1
    return count


def run_map_final(job, emitter):
    """Let the job flush mapper-side state. Call after every run_map() sharing emitter."""
    job.map_final(emitter)


class MapExecutor:
    """Executes the map step for one input file"""

    def __init__(self, job, index: int, input_path: str, num_partitions: int,
                 filename_template: str):
        """
        Initialize the map executor

        Args:
            job: MapReduceJob instance
            index: Position of the input file; tags the intermediate files
            input_path: Path to the input file
            num_partitions: Number of reduce partitions
            filename_template: Intermediate file name with a {partition} field
        """
        self.job = job
        self.index = index
        self.input_path = input_path
        self.num_partitions = num_partitions
        self.filename_template = filename_template
        self.records_read = 0
        self.records_emitted = 0

    def execute(self) -> dict:
        """
        Map the whole input file into this executor's partition files

        Returns:
            Dictionary with 'records_read', 'records_emitted' and 'execution_time_ms'

        Raises:
            FileAccessError: If the input or an intermediate file cannot be opened
        """
        start_time = time.time()

        try:
            stream = open_text(self.input_path)
        except OSError as e:
            raise FileAccessError(self.input_path, str(e)) from e

        with stream, PartitionEmitter(self.num_partitions, self.filename_template) as emitter:
            self.records_read = run_map(self.job, stream, emitter)
            self.records_emitted = emitter.records_emitted

        execution_time = int((time.time() - start_time) * 1000)
        logger.info(f"Map task {self.index}: {self.input_path} -> {self.records_read} records in, "
                    f"{self.records_emitted} out in {execution_time}ms")

        return {
            'records_read': self.records_read,
            'records_emitted': self.records_emitted,
            'execution_time_ms': execution_time,
        }
