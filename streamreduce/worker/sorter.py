"""Hands the merge of a partition's intermediate files to the system sort."""

import logging
import os
import shlex
import subprocess
from typing import Sequence

from streamreduce.errors import ExternalSortError

logger = logging.getLogger(__name__)


def external_sort(input_paths: Sequence[str], output_path: str, sort_command: str = "sort"):
    """
    Merge input files into one file sorted by whole-line byte order.

    LC_ALL=C keeps the ordering byte-lexicographic, so lines group by encoded
    reduce key, then sort key, then value.

    Raises:
        ExternalSortError: If sort cannot be started or exits non-zero
    """
    if not input_paths:
        # sort with no file arguments would read our stdin
        open(output_path, 'w').close()
        return

    cmd = shlex.split(sort_command) + ['-o', output_path] + list(input_paths)
    env = dict(os.environ, LC_ALL='C')
    logger.debug(f"Running {' '.join(cmd)}")
    try:
        result = subprocess.run(cmd, stdin=subprocess.DEVNULL, stdout=subprocess.DEVNULL,
                                stderr=subprocess.PIPE, env=env, text=True)
    except OSError as e:
        raise ExternalSortError(cmd, None, str(e)) from e

    if result.returncode != 0:
        raise ExternalSortError(cmd, result.returncode, result.stderr)
