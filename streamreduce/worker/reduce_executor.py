"""
Reduce Task Executor
Sorts a partition's intermediate files, streams each key group of the sorted
file to the job's reduce function, and writes the final output
"""

import logging
import os
import queue
import threading
import time
from typing import List

from streamreduce.errors import ExternalSortError, FileAccessError, ReduceError
from streamreduce.records import decode_key_value_line, open_text, read_records
from streamreduce.worker.emitters import WRITE_BUFFER_SIZE, PrintEmitter
from streamreduce.worker.sorter import external_sort

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 64

_END_OF_VALUES = object()


class _GroupReducer:
    """
    Runs job.reduce() for one key group on its own thread.

    The reading loop put()s values while the reduce consumes them; the queue
    is bounded, so a slow reduce throttles reading.
    """

    def __init__(self, job, reduce_key: str, sort_key: str, emitter, queue_size: int):
        self.reduce_key = reduce_key
        self._queue = queue.Queue(maxsize=queue_size)
        self._error = None
        self._thread = threading.Thread(target=self._run, args=(job, sort_key, emitter),
                                        name=f"reduce-group-{reduce_key[:32]}", daemon=True)
        self._thread.start()

    def _values(self):
        while True:
            value = self._queue.get()
            if value is _END_OF_VALUES:
                return
            yield value

    def _run(self, job, sort_key, emitter):
        values = self._values()
        try:
            job.reduce(self.reduce_key, sort_key, values, emitter)
        except Exception as e:
            self._error = e
        finally:
            # Consume what the reduce left behind so put() never blocks forever
            for _ in values:
                pass

    def put(self, value: str):
        self._queue.put(value)

    def close(self):
        """Signal end of values and wait for the reduce to finish emitting."""
        self._queue.put(_END_OF_VALUES)
        self._thread.join()
        if self._error is not None:
            raise ReduceError(self.reduce_key, self._error) from self._error


def run_reduce(job, stream, emitter, queue_size: int = DEFAULT_QUEUE_SIZE) -> int:
    """
    Call job.reduce() once per run of equal reduce keys in a sorted stream.

    Groups are reduced strictly one after another. Values reach the reduce in
    input order, so a secondary sort done by the external sort is preserved.
    The input must already be sorted; nothing is sorted here.

    Returns:
        Number of key groups reduced

    Raises:
        ReduceError: If job.reduce() raised for a group
    """
    groups = 0
    group = None
    try:
        for record in read_records(stream, decode_key_value_line):
            if group is not None and record.reduce_key != group.reduce_key:
                finished, group = group, None
                finished.close()
            if group is None:
                group = _GroupReducer(job, record.reduce_key, record.sort_key, emitter, queue_size)
                groups += 1
            group.put(record.value)
    finally:
        if group is not None:
            group.close()
    return groups


class ReduceExecutor:
    """Executes sort + reduce for a single partition"""

    def __init__(self, job, partition: int, input_paths: List[str], sorted_path: str,
                 output_path: str, sort_command: str = "sort",
                 queue_size: int = DEFAULT_QUEUE_SIZE):
        """
        Initialize the reduce executor

        Args:
            job: MapReduceJob instance
            partition: Partition this executor is responsible for
            input_paths: Intermediate files of the partition, from every mapper
            sorted_path: Scratch file the external sort writes
            output_path: Final output file of the partition
            sort_command: Sort program, with any extra arguments
            queue_size: Values buffered between reading and the reduce
        """
        self.job = job
        self.partition = partition
        self.input_paths = list(input_paths)
        self.sorted_path = sorted_path
        self.output_path = output_path
        self.sort_command = sort_command
        self.queue_size = queue_size
        self.groups = 0
        self.records_emitted = 0

    def execute(self) -> dict:
        """
        Sort, reduce and clean up this partition

        Returns:
            Dictionary with 'groups', 'records_emitted' and 'execution_time_ms'

        Raises:
            FileAccessError: If the sorted or the output file cannot be opened
        """
        start_time = time.time()

        try:
            try:
                external_sort(self.input_paths, self.sorted_path, self.sort_command)
            except ExternalSortError as e:
                logger.error(f"Reduce task {self.partition}: {e}; reducing whatever was sorted")

            try:
                sorted_stream = open_text(self.sorted_path)
            except OSError as e:
                raise FileAccessError(self.sorted_path, str(e)) from e

            with sorted_stream:
                try:
                    output = open_text(self.output_path, 'w', buffering=WRITE_BUFFER_SIZE)
                except OSError as e:
                    raise FileAccessError(self.output_path, str(e)) from e

                with PrintEmitter(output, owns_stream=True) as emitter:
                    self.groups = run_reduce(self.job, sorted_stream, emitter, self.queue_size)
                    self.records_emitted = emitter.records_emitted
        finally:
            self._remove_scratch_files()

        execution_time = int((time.time() - start_time) * 1000)
        logger.info(f"Reduce task {self.partition}: {self.groups} groups, "
                    f"{self.records_emitted} records -> {self.output_path} in {execution_time}ms")

        return {
            'groups': self.groups,
            'records_emitted': self.records_emitted,
            'execution_time_ms': execution_time,
        }

    def _remove_scratch_files(self):
        for path in self.input_paths + [self.sorted_path]:
            try:
                os.remove(path)
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Reduce task {self.partition}: could not remove {path}: {e}")
