"""
Job Manager
Drives a MapReduce job through its phases: either as a single map or reduce
filter over stdin/stdout, or as a full local pipeline with a mapper pool, an
external sort per partition and a reducer pool
"""

import glob
import logging
import os
import queue
import sys
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from streamreduce.coordinator.config import Mode, RunConfig
from streamreduce.coordinator.metrics import MetricsCollector
from streamreduce.errors import FileAccessError, JobFailedError, StreamReduceError
from streamreduce.worker.emitters import KeyValueEmitter, PartitionEmitter, PrintEmitter
from streamreduce.worker.map_executor import MapExecutor, run_map, run_map_final
from streamreduce.worker.reduce_executor import ReduceExecutor, run_reduce

logger = logging.getLogger(__name__)


class JobPhase(Enum):
    """Phase of a run"""
    IDLE = "idle"
    FILTERING = "filtering"
    MAPPING = "mapping"
    REDUCING = "reducing"
    DONE = "done"
    FAILED = "failed"


class JobState:
    """Tracks the phase of a run and rejects out-of-order transitions."""

    TRANSITIONS = {
        JobPhase.IDLE: {JobPhase.FILTERING, JobPhase.MAPPING},
        JobPhase.FILTERING: {JobPhase.DONE},
        JobPhase.MAPPING: {JobPhase.REDUCING},
        JobPhase.REDUCING: {JobPhase.DONE},
    }

    def __init__(self, run_id: str):
        self.run_id = run_id
        self.phase = JobPhase.IDLE
        self.error_message = ""
        self.start_time = datetime.now().isoformat()
        self.completion_time = None

    def transition_to(self, phase: JobPhase):
        if phase not in self.TRANSITIONS.get(self.phase, ()):
            raise ValueError(f"Cannot transition from {self.phase.value} to {phase.value}")
        self.phase = phase
        if phase is JobPhase.DONE:
            self.completion_time = datetime.now().isoformat()
        logger.info(f"Run {self.run_id} entered {phase.value} phase")

    def mark_failed(self, error_msg: str):
        self.phase = JobPhase.FAILED
        self.error_message = error_msg
        self.completion_time = datetime.now().isoformat()
        logger.error(f"Run {self.run_id} failed: {error_msg}")


def _call_map(step: str, func: Callable, *args):
    """Run a map-side step, reporting errors from user code as JobFailedError."""
    try:
        return func(*args)
    except StreamReduceError:
        raise
    except Exception as e:
        raise JobFailedError(f"{step} failed: {e}") from e


def _format_safe(text: str) -> str:
    return text.replace('{', '{{').replace('}', '}}')


class TempFiles:
    """
    File naming for one run.

    Every name carries the run id, so concurrent runs sharing a work
    directory never collide. Intermediate files also carry the source index
    and the partition, which keeps every mapper on its own set of files.
    """

    def __init__(self, work_dir: str, run_id: str):
        self.work_dir = work_dir
        self.run_id = run_id

    def _path(self, name: str) -> str:
        return os.path.join(self.work_dir, name)

    def intermediate_prefix(self, index: int) -> str:
        return self._path(f"tmp-map-out-p{self.run_id}-f{index}.")

    def intermediate_template(self, index: int) -> str:
        """Template for PartitionEmitter: one file per partition for source `index`."""
        return _format_safe(self.intermediate_prefix(index)) + "{partition:04d}"

    def intermediate_for(self, partition: int) -> List[str]:
        """Every intermediate file of a partition, across all source indices."""
        pattern = glob.escape(self._path(f"tmp-map-out-p{self.run_id}-f")) + f"*.{partition:04d}"
        return sorted(glob.glob(pattern))

    def all_intermediate(self) -> List[str]:
        pattern = glob.escape(self._path(f"tmp-map-out-p{self.run_id}-f")) + "*.*"
        return sorted(glob.glob(pattern))

    def sorted_path(self, partition: int) -> str:
        return self._path(f"tmp-red-in-p{self.run_id}.{partition:04d}")

    def output_path(self, partition: int) -> str:
        return self._path(f"red-out-p{self.run_id}.{partition:04d}")


class JobManager:
    """Runs one job according to a RunConfig"""

    def __init__(self, config: RunConfig, metrics: Optional[MetricsCollector] = None):
        self.config = config
        self.metrics = metrics or MetricsCollector()
        self.state = JobState(config.run_id)
        self.temp_files = TempFiles(config.work_dir, config.run_id)

    def run(self, job, stdin=None, stdout=None) -> List[str]:
        """
        Run the job in the configured mode.

        Returns:
            Output file paths (empty in filter mode, where output goes to stdout)
        """
        if self.config.mode is Mode.MAPREDUCE:
            return self.run_mapreduce(job, stdin)
        return self.run_filter(job, stdin or sys.stdin, stdout or sys.stdout)

    def run_filter(self, job, stdin, stdout) -> List[str]:
        """Run only the map side or only the reduce side over one input stream."""
        if self.config.mode is Mode.MAPREDUCE:
            raise ValueError("run_filter() needs map or reduce mode")

        self.state.transition_to(JobPhase.FILTERING)
        try:
            if self.config.mode is Mode.MAP:
                with KeyValueEmitter(stdout) as emitter:
                    records = _call_map('map', run_map, job, stdin, emitter)
                    _call_map('map_final', run_map_final, job, emitter)
                logger.info(f"Mapped {records} records into {emitter.records_emitted}")
            else:
                with PrintEmitter(stdout) as emitter:
                    groups = run_reduce(job, stdin, emitter, self.config.queue_size)
                logger.info(f"Reduced {groups} groups into {emitter.records_emitted} records")
        except Exception as e:
            self.state.mark_failed(str(e))
            raise

        self.state.transition_to(JobPhase.DONE)
        return []

    def run_mapreduce(self, job, stdin=None) -> List[str]:
        """
        Run the full pipeline: map every input, then sort and reduce every partition.

        Returns:
            One output file per partition that completed, in partition order

        Raises:
            JobFailedError: If a worker of either phase failed
        """
        config = self.config
        os.makedirs(config.work_dir, exist_ok=True)
        self.metrics.start_job(config.run_id, config.input_files, config.num_partitions,
                               config.num_mappers, config.num_reducers)

        try:
            self.state.transition_to(JobPhase.MAPPING)
            self._map_phase(job, stdin)
            self.metrics.end_map_phase()

            self.state.transition_to(JobPhase.REDUCING)
            self.metrics.start_reduce_phase(self.temp_files.all_intermediate())
            outputs = self._reduce_phase(job)
        except Exception as e:
            self.state.mark_failed(str(e))
            raise
        finally:
            self._remove_temp_files()

        metrics = self.metrics.end_job(outputs)
        self.state.transition_to(JobPhase.DONE)
        logger.info(f"Run {config.run_id} finished in {metrics.total_time_seconds:.2f}s "
                    f"(map {metrics.map_phase_time_seconds:.2f}s, "
                    f"reduce {metrics.reduce_phase_time_seconds:.2f}s)")
        if config.metrics_file:
            metrics.save_to_file(config.metrics_file)
        return outputs

    def _map_phase(self, job, stdin):
        config = self.config
        inputs = list(config.input_files)

        if not inputs:
            # Single mapper over stdin; map_final shares its partition files
            with PartitionEmitter(config.num_partitions, self.temp_files.intermediate_template(0)) as emitter:
                records = _call_map('map', run_map, job, stdin or sys.stdin, emitter)
                _call_map('map_final', run_map_final, job, emitter)
            logger.info(f"Map task 0: (stdin) -> {records} records in, {emitter.records_emitted} out")
            self.metrics.record_map(records, emitter.records_emitted)
            return

        work = queue.Queue()
        for index, path in enumerate(inputs):
            work.put((index, path))

        errors = self._run_pool("map", config.num_mappers, work, lambda item: self._map_one(job, *item))
        if errors:
            raise JobFailedError(f"{len(errors)} map worker(s) failed, first error: {errors[0]}")

        # Tagged one past the last input so its output joins the same partition set
        with PartitionEmitter(config.num_partitions,
                              self.temp_files.intermediate_template(len(inputs))) as emitter:
            _call_map('map_final', run_map_final, job, emitter)
        self.metrics.record_map(0, emitter.records_emitted)

    def _map_one(self, job, index: int, path: str):
        executor = MapExecutor(job, index, path, self.config.num_partitions,
                               self.temp_files.intermediate_template(index))
        result = executor.execute()
        self.metrics.record_map(result['records_read'], result['records_emitted'])

    def _reduce_phase(self, job) -> List[str]:
        config = self.config
        work = queue.Queue()
        for partition in range(config.num_partitions):
            work.put(partition)

        errors = self._run_pool("reduce", config.num_reducers, work,
                                lambda partition: self._reduce_one(job, partition))
        if errors:
            raise JobFailedError(f"{len(errors)} reduce worker(s) failed, first error: {errors[0]}")

        outputs = []
        for partition in range(config.num_partitions):
            path = self.temp_files.output_path(partition)
            if os.path.exists(path):
                outputs.append(path)
            else:
                logger.warning(f"Partition {partition} produced no output file")
        return outputs

    def _reduce_one(self, job, partition: int):
        executor = ReduceExecutor(
            job,
            partition,
            self.temp_files.intermediate_for(partition),
            self.temp_files.sorted_path(partition),
            self.temp_files.output_path(partition),
            sort_command=self.config.sort_command,
            queue_size=self.config.queue_size,
        )
        result = executor.execute()
        self.metrics.record_reduce(result['groups'], result['records_emitted'])

    def _run_pool(self, name: str, size: int, work: queue.Queue,
                  handler: Callable) -> List[BaseException]:
        """
        Run `size` workers draining `work` and block until all of them stop.

        A worker that cannot open a file logs it and stops taking work; any
        other error also stops that worker and is returned. Either way the
        worker's future completes, so waiting on the pool always returns.

        Returns:
            Unexpected exceptions raised by workers
        """
        def worker():
            while True:
                try:
                    item = work.get_nowait()
                except queue.Empty:
                    return
                try:
                    handler(item)
                except FileAccessError as e:
                    logger.error(f"{name} worker abandoning its remaining work: {e}")
                    return

        with ThreadPoolExecutor(max_workers=size, thread_name_prefix=f"{name}-worker") as pool:
            futures = [pool.submit(worker) for _ in range(size)]
            wait(futures)

        errors = []
        for future in futures:
            error = future.exception()
            if error is not None:
                logger.error(f"{name} worker failed: {error}", exc_info=error)
                errors.append(error)

        if not work.empty():
            logger.warning(f"{work.qsize()} {name} task(s) were never run")
        return errors

    def _remove_temp_files(self):
        leftovers = self.temp_files.all_intermediate()
        leftovers += [self.temp_files.sorted_path(p) for p in range(self.config.num_partitions)]
        for path in leftovers:
            try:
                os.remove(path)
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Could not remove temporary file {path}: {e}")
