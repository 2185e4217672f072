"""
Classic MapReduce word count example.
Counts the frequency of each word in the input text.

    streamreduce --job-file examples/wordcount.py --mapreduce input1.txt input2.txt
"""

import string
import threading

from streamreduce import MapReduceJob


class WordCount(MapReduceJob):
    """Emits (word, 1) per word and sums the counts per word."""

    def map(self, key, value, emitter):
        # Remove punctuation and split into words
        words = value.translate(str.maketrans('', '', string.punctuation)).split()

        for word in words:
            emitter.emit(word.lower(), "", "1")

    def reduce(self, reduce_key, sort_key, values, emitter):
        emitter.emit(reduce_key, "", str(sum(int(v) for v in values)))


class CombiningWordCount(WordCount):
    """
    Word count that pre-aggregates inside the mapper.

    Counts are held in memory and flushed once by map_final(), so the
    intermediate data holds every word only once per run.
    """

    def __init__(self):
        self.counts = {}
        # map() runs on every mapper thread of the pool
        self.lock = threading.Lock()

    def map(self, key, value, emitter):
        words = value.translate(str.maketrans('', '', string.punctuation)).split()
        for word in words:
            word = word.lower()
            with self.lock:
                self.counts[word] = self.counts.get(word, 0) + 1

    def map_final(self, emitter):
        for word, count in sorted(self.counts.items()):
            emitter.emit(word, "", str(count))
        self.counts.clear()


job = WordCount()


if __name__ == '__main__':
    job.run()
