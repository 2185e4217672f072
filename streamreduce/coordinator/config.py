"""
Run configuration.

Everything the orchestrator needs is captured once in an immutable RunConfig
and passed in explicitly.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from streamreduce.errors import ConfigurationError


class Mode(Enum):
    """What this process runs"""
    MAP = "map"              # map filter over stdin/stdout
    REDUCE = "reduce"        # reduce filter over stdin/stdout
    MAPREDUCE = "mapreduce"  # full local pipeline


def _default_run_id() -> str:
    return str(os.getpid())


@dataclass(frozen=True)
class RunConfig:
    """Options for a single run"""
    mode: Mode
    num_partitions: int = 1
    num_mappers: int = 4
    num_reducers: int = 4
    input_files: Tuple[str, ...] = ()
    work_dir: str = "."
    run_id: str = field(default_factory=_default_run_id)
    sort_command: str = "sort"
    queue_size: int = 64
    metrics_file: Optional[str] = None

    def __post_init__(self):
        for name in ('num_partitions', 'num_mappers', 'num_reducers', 'queue_size'):
            if getattr(self, name) < 1:
                raise ConfigurationError(f"{name} must be at least 1, got {getattr(self, name)}")
        if not self.sort_command.strip():
            raise ConfigurationError("sort_command must not be empty")
        # Accept any sequence of paths but store a tuple
        object.__setattr__(self, 'input_files', tuple(self.input_files))

    @classmethod
    def from_flags(cls, mapper: bool = False, reducer: bool = False,
                   mapreduce: bool = False, **options) -> "RunConfig":
        """
        Build a config from the three mode flags.

        --mapreduce wins over the other two. Otherwise exactly one of
        --mapper and --reducer must be given.

        Raises:
            ConfigurationError: On conflicting or missing mode flags, or bad counts
        """
        if mapreduce:
            mode = Mode.MAPREDUCE
        elif mapper and reducer:
            raise ConfigurationError("can either map or reduce, not both (did you mean --mapreduce?)")
        elif mapper:
            mode = Mode.MAP
        elif reducer:
            mode = Mode.REDUCE
        else:
            raise ConfigurationError("one of --mapper, --reducer or --mapreduce is required")
        return cls(mode=mode, **options)
