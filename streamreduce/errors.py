"""Error types raised by the streamreduce engine."""

from typing import Optional


class StreamReduceError(RuntimeError):
    """Base class for every error the engine raises on purpose."""


class ConfigurationError(StreamReduceError):
    """Conflicting or missing run options (e.g. both --mapper and --reducer)."""


class MalformedInput(StreamReduceError):
    """A line could not be decoded. Readers treat this as end of stream."""


class FileAccessError(StreamReduceError):
    """An input, intermediate or output file could not be opened."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"cannot access {path}: {reason}")


class ExternalSortError(StreamReduceError):
    """The external sort process failed or could not be started."""

    def __init__(self, command, returncode: Optional[int], stderr: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or "no output"
        if returncode is None:
            message = f"could not run {self.command[0]}: {detail}"
        else:
            message = f"{self.command[0]} exited with status {returncode}: {detail}"
        super().__init__(message)


class ReduceError(StreamReduceError):
    """The user's reduce raised while processing one key group."""

    def __init__(self, reduce_key: str, cause: BaseException):
        self.reduce_key = reduce_key
        super().__init__(f"reduce failed for key {reduce_key!r}: {cause}")


class JobFailedError(StreamReduceError):
    """One or more workers of a phase failed; the run did not complete."""
