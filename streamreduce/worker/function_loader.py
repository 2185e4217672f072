"""
Dynamic Job Loader
Loads a user-provided Python file and returns the MapReduce job it defines
"""

import importlib.util
import inspect
import os
import sys

from streamreduce.job import MapReduceJob


class FunctionLoader:
    """Dynamically loads a user job from a Python file"""

    def __init__(self, job_file: str):
        """
        Initialize the loader

        Args:
            job_file: Path to user's Python file defining the job
        """
        self.job_file = job_file
        self.module = None

    def load_module(self):
        """
        Dynamically load user-provided module

        Returns:
            The loaded module object

        Raises:
            FileNotFoundError: If the job file doesn't exist
        """
        if self.module is not None:
            return self.module
        if not os.path.exists(self.job_file):
            raise FileNotFoundError(f"Job file not found: {self.job_file}")

        module_name = "user_job_" + os.path.splitext(os.path.basename(self.job_file))[0]
        spec = importlib.util.spec_from_file_location(module_name, self.job_file)
        if spec is None or spec.loader is None:
            raise ImportError(f"Cannot load job file: {self.job_file}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        spec.loader.exec_module(module)
        self.module = module
        return module

    def get_job(self) -> MapReduceJob:
        """
        Get the job instance defined by the module

        A module-level `job` object wins; otherwise the file must define
        exactly one MapReduceJob subclass, which is instantiated without
        arguments.

        Raises:
            AttributeError: If no job, or more than one job class, is found
        """
        if not self.module:
            self.load_module()

        if hasattr(self.module, 'job'):
            return self.module.job

        job_classes = [
            obj for _, obj in inspect.getmembers(self.module, inspect.isclass)
            if issubclass(obj, MapReduceJob) and obj is not MapReduceJob
            and obj.__module__ == self.module.__name__
        ]
        if len(job_classes) != 1:
            raise AttributeError(
                f"{self.job_file} must define `job` or exactly one MapReduceJob subclass "
                f"(found {len(job_classes)})")
        return job_classes[0]()
