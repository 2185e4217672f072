"""
Secondary sort example: rebuild each user's click path in time order.

Input lines are `<user><TAB><unix timestamp><TAB><page>`. The timestamp is
used as the sort key, so each user's pages reach reduce() in time order
without the reducer sorting anything.
"""

from streamreduce import MapReduceJob
from streamreduce.protocols import TSVProtocol

protocol = TSVProtocol(key_type=str, value_types=(int, str))


class ClickPath(MapReduceJob):

    def map(self, key, value, emitter):
        fields = value.split('\t')
        if len(fields) != 3:
            return
        user, timestamp, page = fields
        try:
            ts = int(timestamp)
        except ValueError:
            return
        # Zero padding keeps the byte order of the sort key numeric
        record = protocol.marshal(user, f"{ts:012d}", (ts, page))
        emitter.emit(record.reduce_key, record.sort_key, record.value)

    def reduce(self, reduce_key, sort_key, values, emitter):
        user, clicks = protocol.unmarshal(reduce_key, values)
        emitter.emit(user, "", " > ".join(page for _, page in clicks))


if __name__ == '__main__':
    ClickPath().run()
