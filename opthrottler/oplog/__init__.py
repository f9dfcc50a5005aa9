from __future__ import annotations

from .convert import SUPPORTED_OPLOG_VERSION, convert_entry, normalize_id
from .models import (
    IdKind,
    Insert,
    Namespace,
    OpKind,
    Operation,
    Remove,
    Update,
    document_key,
)
from .reader import iter_bson_entries, iter_entries, iter_json_entries

__all__ = [
    "SUPPORTED_OPLOG_VERSION",
    "convert_entry",
    "normalize_id",
    "IdKind",
    "Insert",
    "Namespace",
    "OpKind",
    "Operation",
    "Remove",
    "Update",
    "document_key",
    "iter_bson_entries",
    "iter_entries",
    "iter_json_entries",
]
