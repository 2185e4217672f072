"""
Performance metrics collection for MapReduce runs.
"""

import json
import os
import threading
import time
from dataclasses import asdict, dataclass, field
from typing import List

import psutil


def _total_size(paths) -> int:
    return sum(os.path.getsize(p) for p in paths if os.path.exists(p))


@dataclass
class JobMetrics:
    """Metrics for a single run."""

    run_id: str
    start_time: float
    num_partitions: int
    num_mappers: int
    num_reducers: int
    input_files: List[str] = field(default_factory=list)
    end_time: float = 0.0
    map_phase_start: float = 0.0
    map_phase_end: float = 0.0
    reduce_phase_start: float = 0.0
    reduce_phase_end: float = 0.0
    input_size_bytes: int = 0
    intermediate_size_bytes: int = 0
    output_size_bytes: int = 0
    records_mapped: int = 0
    records_intermediate: int = 0
    groups_reduced: int = 0
    records_output: int = 0
    peak_memory_bytes: int = 0

    @property
    def total_time_seconds(self) -> float:
        """Total run time in seconds."""
        return self.end_time - self.start_time

    @property
    def map_phase_time_seconds(self) -> float:
        """Map phase execution time in seconds."""
        return self.map_phase_end - self.map_phase_start

    @property
    def reduce_phase_time_seconds(self) -> float:
        """Reduce phase execution time in seconds."""
        return self.reduce_phase_end - self.reduce_phase_start

    def to_dict(self) -> dict:
        """Convert metrics to dictionary."""
        data = asdict(self)
        data['total_time_seconds'] = self.total_time_seconds
        data['map_phase_time_seconds'] = self.map_phase_time_seconds
        data['reduce_phase_time_seconds'] = self.reduce_phase_time_seconds
        return data

    def save_to_file(self, filepath: str):
        """Save metrics to JSON file."""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


class MetricsCollector:
    """Collects metrics for one run. Safe to call from worker threads."""

    def __init__(self):
        self.metrics = None
        self.process = psutil.Process()
        self._lock = threading.Lock()

    def start_job(self, run_id: str, input_files, num_partitions: int,
                  num_mappers: int, num_reducers: int):
        """Initialize metrics tracking for a new run."""
        now = time.time()
        self.metrics = JobMetrics(
            run_id=run_id,
            start_time=now,
            map_phase_start=now,
            num_partitions=num_partitions,
            num_mappers=num_mappers,
            num_reducers=num_reducers,
            input_files=list(input_files),
            input_size_bytes=_total_size(input_files),
        )
        self.sample_memory()

    def record_map(self, records_read: int, records_emitted: int):
        with self._lock:
            self.metrics.records_mapped += records_read
            self.metrics.records_intermediate += records_emitted
        self.sample_memory()

    def end_map_phase(self):
        """Mark the end of the map phase."""
        self.metrics.map_phase_end = time.time()

    def start_reduce_phase(self, intermediate_files):
        """Mark the start of the reduce phase and measure intermediate data."""
        self.metrics.reduce_phase_start = time.time()
        self.metrics.intermediate_size_bytes = _total_size(intermediate_files)

    def record_reduce(self, groups: int, records_emitted: int):
        with self._lock:
            self.metrics.groups_reduced += groups
            self.metrics.records_output += records_emitted
        self.sample_memory()

    def sample_memory(self):
        """Track peak resident memory of this process."""
        rss = self.process.memory_info().rss
        with self._lock:
            if rss > self.metrics.peak_memory_bytes:
                self.metrics.peak_memory_bytes = rss

    def end_job(self, output_files):
        """Mark run completion and measure output size."""
        now = time.time()
        self.metrics.reduce_phase_end = now
        self.metrics.end_time = now
        self.metrics.output_size_bytes = _total_size(output_files)
        self.sample_memory()
        return self.metrics
