"""
Emitters: the sinks that map and reduce output is written through.

A job never writes files itself. It calls emitter.emit(reduce_key, sort_key,
value) and the engine decides where the record goes:

- PartitionEmitter spreads intermediate records over one file per partition
- KeyValueEmitter writes intermediate records to a single stream
- PrintEmitter writes final reduce_key<TAB>value lines
"""

import logging
import zlib
from typing import List, TextIO

from streamreduce.errors import FileAccessError
from streamreduce.records import encode_key_value_line, open_text

logger = logging.getLogger(__name__)

WRITE_BUFFER_SIZE = 64 * 1024


def partition_for(reduce_key: str, num_partitions: int) -> int:
    """
    Pick the partition a reduce key belongs to.

    Uses CRC-32 so that every mapper thread and every run agrees on the
    assignment; the built-in hash() is salted per process.
    """
    return zlib.crc32(reduce_key.encode('utf-8')) % num_partitions


class Emitter:
    """Base sink. Use as a context manager so output is always flushed."""

    def __init__(self):
        self.records_emitted = 0

    def emit(self, reduce_key: str, sort_key: str, value: str):
        raise NotImplementedError

    def flush(self):
        pass

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        try:
            self.flush()
        finally:
            self.close()
        return False


class _StreamEmitter(Emitter):
    """Shared plumbing for emitters writing to one text stream."""

    def __init__(self, stream: TextIO, owns_stream: bool = False):
        super().__init__()
        self.stream = stream
        self.owns_stream = owns_stream
        self._closed = False

    def flush(self):
        if not self._closed:
            self.stream.flush()

    def close(self):
        if self._closed:
            return
        self._closed = True
        if self.owns_stream:
            self.stream.close()


class KeyValueEmitter(_StreamEmitter):
    """Writes the intermediate encoding, keys percent-encoded."""

    def emit(self, reduce_key: str, sort_key: str, value: str):
        self.stream.write(encode_key_value_line(reduce_key, sort_key, value))
        self.records_emitted += 1


class PrintEmitter(_StreamEmitter):
    """Writes final output lines. The sort key is dropped."""

    def emit(self, reduce_key: str, sort_key: str, value: str):
        self.stream.write(f"{reduce_key}\t{value}\n")
        self.records_emitted += 1


class PartitionEmitter(Emitter):
    """
    Routes each record to the file of its partition.

    All partition files are created up front, so every partition has at
    least an empty file for the reduce side to glob and sort.
    """

    def __init__(self, num_partitions: int, filename_template: str):
        """
        Args:
            num_partitions: Number of reduce partitions
            filename_template: str.format template with a {partition} field
        """
        super().__init__()
        self.num_partitions = num_partitions
        self.filenames = [filename_template.format(partition=p) for p in range(num_partitions)]
        self._writers: List[KeyValueEmitter] = []
        try:
            for filename in self.filenames:
                try:
                    stream = open_text(filename, 'w', buffering=WRITE_BUFFER_SIZE)
                except OSError as e:
                    raise FileAccessError(filename, str(e)) from e
                self._writers.append(KeyValueEmitter(stream, owns_stream=True))
        except FileAccessError:
            self.close()
            raise

    def emit(self, reduce_key: str, sort_key: str, value: str):
        partition = partition_for(reduce_key, self.num_partitions)
        self._writers[partition].emit(reduce_key, sort_key, value)
        self.records_emitted += 1

    def flush(self):
        for writer in self._writers:
            writer.flush()

    def close(self):
        for writer in self._writers:
            writer.close()
        logger.debug(f"Closed {len(self._writers)} partition files after {self.records_emitted} records")
