"""
Record codec for the streaming line protocol.

Two line formats flow through the engine:

    <value>\\n                            map input, a bare value per line
    <reduce_key>[,<sort_key>]\\t<value>\\n  intermediate data between map and reduce

Keys in the intermediate format are query-string percent-encoded so they can
carry commas, tabs and newlines; the value is never encoded and runs up to the
line terminator.
"""

import io
import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterator, TextIO
from urllib.parse import quote_plus, unquote_plus

from streamreduce.errors import MalformedInput

logger = logging.getLogger(__name__)

# A '%' that does not start a two digit hex escape.
_BAD_ESCAPE = re.compile(r'%(?![0-9A-Fa-f]{2})')


@dataclass(frozen=True)
class KeyValue:
    """One record. Empty keys mean the record has not been keyed yet."""
    reduce_key: str = ""
    sort_key: str = ""
    value: str = ""


def _escape(field: str) -> str:
    return quote_plus(field, safe='')


def _unescape(field: str) -> str:
    if _BAD_ESCAPE.search(field):
        raise MalformedInput(f"invalid percent escape in {field!r}")
    try:
        return unquote_plus(field, encoding='utf-8', errors='strict')
    except UnicodeDecodeError as e:
        raise MalformedInput(f"escaped key is not UTF-8: {field!r}") from e


def decode_value_line(line: str) -> KeyValue:
    """
    Decode a map input line.

    Args:
        line: Raw line as returned by readline()

    Returns:
        KeyValue with only the value set

    Raises:
        MalformedInput: On end of stream (empty string)
    """
    if not line:
        raise MalformedInput("end of stream")
    if line.endswith('\n'):
        line = line[:-1]
    return KeyValue(value=line)


def decode_key_value_line(line: str) -> KeyValue:
    """
    Decode an intermediate line into reduce key, sort key and value.

    Raises:
        MalformedInput: If the line is unterminated, has no tab, or a key
            cannot be percent-decoded
    """
    if not line.endswith('\n'):
        raise MalformedInput("missing line terminator")
    key_field, sep, value = line[:-1].partition('\t')
    if not sep:
        raise MalformedInput("missing tab between key and value")

    reduce_field, comma, sort_field = key_field.partition(',')
    reduce_key = _unescape(reduce_field)
    sort_key = _unescape(sort_field) if comma else ""
    return KeyValue(reduce_key, sort_key, value)


def encode_key_value_line(reduce_key: str, sort_key: str, value: str) -> str:
    """Inverse of decode_key_value_line()."""
    key_field = _escape(reduce_key)
    if sort_key:
        key_field += ',' + _escape(sort_key)
    return f"{key_field}\t{value}\n"


def read_records(stream: TextIO, decoder: Callable[[str], KeyValue]) -> Iterator[KeyValue]:
    """
    Yield decoded records from a text stream until it ends.

    A line that fails to decode, or bytes that are not valid UTF-8, end the
    stream just like end of file does. Nothing after the bad line is read.
    """
    while True:
        try:
            record = decoder(stream.readline())
        except MalformedInput as e:
            logger.debug(f"Stopped reading: {e}")
            return
        except UnicodeDecodeError as e:
            logger.debug(f"Stopped reading on undecodable input: {e}")
            return
        yield record


def open_text(path: str, mode: str = 'r', buffering: int = -1) -> TextIO:
    """Open a data file as UTF-8 with '\\n' as the only line terminator."""
    return open(path, mode, buffering=buffering, encoding='utf-8', newline='\n')


def configure_stdio(stream: TextIO) -> TextIO:
    """Switch a standard stream to the same text settings as open_text()."""
    try:
        stream.reconfigure(encoding='utf-8', newline='\n')
    except (AttributeError, io.UnsupportedOperation) as e:
        # Replaced streams (tests, embedding) keep their own settings
        logger.debug(f"Leaving {stream!r} as is: {e}")
    return stream
