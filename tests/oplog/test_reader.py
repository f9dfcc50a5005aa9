from __future__ import annotations

import io

import pytest
from bson import ObjectId, encode, json_util

from opthrottler.config import InputFormat
from opthrottler.errors import MalformedEntryError
from opthrottler.oplog.reader import iter_bson_entries, iter_entries, iter_json_entries


def _entries() -> list[dict]:
    return [
        {"v": 2, "op": "i", "ns": "db.c", "o": {"_id": ObjectId(), "val": 1}},
        {"v": 2, "op": "u", "ns": "db.c", "o2": {"_id": "a"}, "o": {"$set": {"val": 2}}},
        {"v": 2, "op": "d", "ns": "db.c", "b": True, "o": {"_id": "a"}},
    ]


class TestBsonEntries:
    def test_reads_concatenated_documents_in_order(self) -> None:
        entries = _entries()
        stream = io.BytesIO(b"".join(encode(e) for e in entries))

        assert list(iter_bson_entries(stream)) == entries

    def test_empty_stream_yields_nothing(self) -> None:
        assert list(iter_bson_entries(io.BytesIO(b""))) == []

    def test_truncated_document_raises_after_good_ones(self) -> None:
        entries = _entries()
        data = encode(entries[0]) + encode(entries[1])[:-5]
        reader = iter_bson_entries(io.BytesIO(data))

        assert next(reader) == entries[0]
        with pytest.raises(MalformedEntryError, match="corrupt BSON document at entry 1"):
            next(reader)


class TestJsonEntries:
    def test_reads_extended_json_lines(self) -> None:
        entries = _entries()
        data = "\n".join(json_util.dumps(e) for e in entries).encode()

        assert list(iter_json_entries(io.BytesIO(data))) == entries

    def test_blank_lines_are_skipped(self) -> None:
        data = b'\n{"v": 2, "op": "n", "ns": "", "o": {}}\n\n'
        assert len(list(iter_json_entries(io.BytesIO(data)))) == 1

    def test_invalid_line_reports_line_number(self) -> None:
        data = b'{"v": 2}\nbadJson\n'
        with pytest.raises(MalformedEntryError, match="invalid JSON on line 2"):
            list(iter_json_entries(io.BytesIO(data)))

    def test_non_object_line_is_rejected(self) -> None:
        with pytest.raises(MalformedEntryError, match="line 1 is not a JSON object"):
            list(iter_json_entries(io.BytesIO(b"[1, 2]\n")))


def test_iter_entries_selects_reader_by_format() -> None:
    entry = {"v": 2, "op": "d", "ns": "db.c", "b": True, "o": {"_id": "a"}}

    assert list(iter_entries(io.BytesIO(encode(entry)))) == [entry]
    assert list(iter_entries(io.BytesIO(json_util.dumps(entry).encode()), "json")) == [entry]
    assert list(iter_entries(io.BytesIO(json_util.dumps(entry).encode()), InputFormat.JSON)) == [entry]
