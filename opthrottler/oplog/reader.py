"""
Readers turning a captured oplog byte stream into raw entries.

Two layouts are supported:

- ``bson``: concatenated BSON documents, as written by ``mongodump`` for
  ``local.oplog.rs``. Every document is length-prefixed, so the stream is
  self-delimiting.
- ``json``: MongoDB Extended JSON, one entry per line, as written by
  ``mongoexport``.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any, BinaryIO

from bson import decode_file_iter, json_util
from bson.errors import BSONError, InvalidBSON

from ..config import InputFormat
from ..errors import MalformedEntryError


def iter_bson_entries(stream: BinaryIO) -> Iterator[dict[str, Any]]:
    """
    Yield each BSON document in the stream, in order.

    Raises MalformedEntryError if a document is truncated or corrupt.
    Entries before the bad document have already been yielded.
    """
    index = 0
    entries = decode_file_iter(stream)
    while True:
        try:
            entry = next(entries)
        except StopIteration:
            return
        except InvalidBSON as exc:
            raise MalformedEntryError(
                f"corrupt BSON document at entry {index}: {exc}"
            ) from exc
        yield entry
        index += 1


def iter_json_entries(stream: BinaryIO) -> Iterator[dict[str, Any]]:
    """Yield one Extended JSON document per non-blank line."""
    for lineno, raw in enumerate(stream, start=1):
        line = raw.strip()
        if not line:
            continue
        try:
            entry = json_util.loads(line)
        except (ValueError, BSONError) as exc:
            raise MalformedEntryError(f"invalid JSON on line {lineno}: {exc}") from exc
        if not isinstance(entry, dict):
            raise MalformedEntryError(
                f"line {lineno} is not a JSON object, got {type(entry).__name__}"
            )
        yield entry


def iter_entries(
    stream: BinaryIO, fmt: InputFormat | str = InputFormat.BSON
) -> Iterator[dict[str, Any]]:
    if InputFormat(fmt) == InputFormat.JSON:
        return iter_json_entries(stream)
    return iter_bson_entries(stream)
