"""
Inverted index MapReduce example.
Maps each word to the documents it appears in.

Input lines are `<document id><TAB><text>`; output lines are
`<word><TAB><comma-separated document ids>`.
"""

import string

from streamreduce import MapReduceJob


class InvertedIndex(MapReduceJob):

    def map(self, key, value, emitter):
        doc_id, _, text = value.partition('\t')
        if not text:
            return
        words = text.translate(str.maketrans('', '', string.punctuation)).split()

        for word in set(w.lower() for w in words):
            emitter.emit(word, doc_id, doc_id)

    def reduce(self, reduce_key, sort_key, values, emitter):
        # Document ids arrive sorted because they are also the sort key
        unique_docs = []
        for doc_id in values:
            if not unique_docs or unique_docs[-1] != doc_id:
                unique_docs.append(doc_id)
        emitter.emit(reduce_key, "", ','.join(unique_docs))


if __name__ == '__main__':
    InvertedIndex().run()
