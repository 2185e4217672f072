"""
Pytest configuration and shared fixtures
"""

import os
import shutil
import tempfile
import threading

import pytest

from streamreduce import MapReduceJob

EXAMPLES_DIR = os.path.join(os.path.dirname(__file__), '..', 'examples')


@pytest.fixture
def temp_dir():
    """Create temporary directory for test files"""
    dirpath = tempfile.mkdtemp()
    yield dirpath
    shutil.rmtree(dirpath)


@pytest.fixture
def sample_text():
    """Sample text for testing"""
    return """The quick brown fox jumps over the lazy dog.
The dog was really lazy.
The fox was very quick and brown.
Quick brown foxes are amazing animals.
Lazy dogs sleep all day.
"""


@pytest.fixture
def sample_input_file(temp_dir, sample_text):
    """Create a sample input file for testing"""
    filepath = os.path.join(temp_dir, 'input.txt')
    with open(filepath, 'w') as f:
        f.write(sample_text)
    return filepath


@pytest.fixture
def wordcount_job_file():
    """Path to word count example job file"""
    return os.path.join(EXAMPLES_DIR, 'wordcount.py')


@pytest.fixture
def inverted_index_job_file():
    """Path to inverted index example job file"""
    return os.path.join(EXAMPLES_DIR, 'inverted_index.py')


@pytest.fixture
def secondary_sort_job_file():
    """Path to secondary sort example job file"""
    return os.path.join(EXAMPLES_DIR, 'secondary_sort.py')


@pytest.fixture
def require_sort():
    """Skip tests that shell out to sort when it is not installed"""
    if shutil.which('sort') is None:
        pytest.skip("sort binary not available")


class RecordingEmitter:
    """Emitter double that keeps every record in memory"""

    def __init__(self):
        self.records = []
        self.lock = threading.Lock()

    def emit(self, reduce_key, sort_key, value):
        with self.lock:
            self.records.append((reduce_key, sort_key, value))


@pytest.fixture
def recording_emitter():
    return RecordingEmitter()


class IdentityCountJob(MapReduceJob):
    """Map emits (line, "", line); reduce emits the number of values per key"""

    def map(self, key, value, emitter):
        emitter.emit(value, "", value)

    def reduce(self, reduce_key, sort_key, values, emitter):
        emitter.emit(reduce_key, "", str(sum(1 for _ in values)))


class ConcatJob(MapReduceJob):
    """Reduce concatenates the values of a group in arrival order"""

    def map(self, key, value, emitter):
        emitter.emit(value, "", value)

    def reduce(self, reduce_key, sort_key, values, emitter):
        emitter.emit(reduce_key, "", "".join(values))


@pytest.fixture
def count_job():
    return IdentityCountJob()


@pytest.fixture
def concat_job():
    return ConcatJob()
