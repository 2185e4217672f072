"""
Protocols for turning job values into stream strings and back.

The engine only moves strings. Jobs that want typed keys and values pick a
protocol and call marshal() before emitting and unmarshal() inside reduce().
"""

import dataclasses
import json
import logging
from typing import Any, Callable, Iterable, List, Sequence, Tuple

from streamreduce.records import KeyValue

logger = logging.getLogger(__name__)


class StreamProtocol:
    """Marshals (reduce_key, sort_key, value) into strings and back."""

    def marshal(self, reduce_key: Any, sort_key: Any, value: Any) -> KeyValue:
        raise NotImplementedError

    def unmarshal(self, key: str, values: Iterable[str]) -> Tuple[Any, List[Any]]:
        raise NotImplementedError


class JSONProtocol(StreamProtocol):
    """Every field is a JSON document."""

    def marshal(self, reduce_key, sort_key, value):
        return KeyValue(json.dumps(reduce_key), json.dumps(sort_key), json.dumps(value))

    def unmarshal(self, key, values):
        decoded = []
        for raw in values:
            try:
                decoded.append(json.loads(raw))
            except json.JSONDecodeError:
                logger.debug(f"Skipping value that is not JSON: {raw!r}")
        return json.loads(key), decoded


def format_primitive(value: Any) -> str:
    """Render a scalar the way TSVProtocol writes it."""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float):
        return format(value, '.5g')
    return str(value)


class TSVProtocol(StreamProtocol):
    """
    Values are tab-separated fields.

    Tuples, lists and dataclass instances become one field per element;
    anything else is a single field. On the way back each field is converted
    with the matching callable in value_types.
    """

    def __init__(self, key_type: Callable[[str], Any] = str,
                 value_types: Sequence[Callable[[str], Any]] = (str,)):
        self.key_type = key_type
        self.value_types = tuple(value_types)

    def _fields(self, value):
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            return [getattr(value, f.name) for f in dataclasses.fields(value)]
        if isinstance(value, (tuple, list)):
            return list(value)
        return [value]

    def marshal(self, reduce_key, sort_key, value):
        fields = '\t'.join(format_primitive(f) for f in self._fields(value))
        sort_text = format_primitive(sort_key) if sort_key is not None else ""
        return KeyValue(format_primitive(reduce_key), sort_text, fields)

    def _convert(self, fields):
        converted = []
        for convert, text in zip(self.value_types, fields):
            try:
                converted.append(convert(text))
            except (TypeError, ValueError):
                converted.append(None)
        return converted

    def unmarshal(self, key, values):
        decoded = []
        for raw in values:
            fields = self._convert(raw.split('\t'))
            decoded.append(fields[0] if len(self.value_types) == 1 else tuple(fields))
        return self.key_type(key), decoded
