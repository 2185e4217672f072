"""Local MapReduce engine speaking the Hadoop Streaming line protocol."""

from streamreduce.job import MapReduceJob
from streamreduce.records import KeyValue

__version__ = "0.1.0"

__all__ = ["MapReduceJob", "KeyValue", "__version__"]
