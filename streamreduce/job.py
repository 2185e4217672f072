"""
Base class for user MapReduce jobs.

Subclass MapReduceJob, override map() and reduce() (and map_final() if the
mapper keeps state to flush), then either point the command line at the file
with --job-file or end the file with:

    if __name__ == '__main__':
        MyJob().run()
"""


class MapReduceJob:
    """A job is created once by the caller and reused for the whole run."""

    def map(self, key, value, emitter):
        """
        Map one input value.

        Args:
            key: Always "" for line input
            value: Input line without its terminator
            emitter: Sink for (reduce_key, sort_key, value) records
        """
        raise NotImplementedError("MapReduceJob subclasses must implement map()")

    def map_final(self, emitter):
        """Called once after every map() call of a mapper has returned."""

    def reduce(self, reduce_key, sort_key, values, emitter):
        """
        Reduce one key group.

        Args:
            reduce_key: Key shared by the whole group
            sort_key: Sort key of the first record of the group
            values: Iterator over the group's values in sorted order. It is
                fed while the sorted input is still being read, so it can
                only be consumed once.
            emitter: Sink for output records

        Groups come from a byte-order sort of whole encoded lines, and keys
        are query-string escaped, so `a b` is written as `a+b`. A longer key
        like that sorts between the records of `a` that have no sort key and
        the records of `a` that do, and `a` is then reduced twice. Give
        either every record of a key a sort key or none of them.
        """
        raise NotImplementedError("MapReduceJob subclasses must implement reduce()")

    def run(self, argv=None):
        """Run this job from the command line and exit with its status."""
        import sys
        from streamreduce.client.cli import main

        sys.exit(main(argv, job=self))
