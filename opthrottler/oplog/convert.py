"""
Conversion of raw oplog entries into Operations.

Only the version 2 oplog format (MongoDB 2.4 era) is understood. The rules
follow how mongod itself applies entries of that format:

- ``op`` is the operation tag: ``i`` insert, ``u`` update, ``d`` delete
- ``ns`` is ``<database>.<collection>``
- ``o`` is the document (insert), the diff or replacement (update), or the
  ``_id`` selector (delete)
- ``o2`` carries the ``_id`` selector of an update
- ``b`` is the "justOne" flag on deletes and the upsert flag on updates

Entries against system namespaces (index builds land in ``system.indexes``)
have no document-level equivalent and are dropped rather than rejected.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from bson import ObjectId

from ..errors import (
    ConversionError,
    InvalidIdentifierError,
    MalformedEntryError,
    UnknownOperationError,
    UnsupportedOperationError,
)
from .metrics import observe_conversion_error, observe_entry_dropped
from .models import (
    IdKind,
    Insert,
    Namespace,
    Operation,
    Remove,
    Update,
    is_system_namespace,
)

logger = logging.getLogger(__name__)

SUPPORTED_OPLOG_VERSION = 2

# Other update modifiers ($inc, $push, $addToSet, ...) are rewritten by mongod
# into $set/$unset before they reach the oplog, e.g. $addToSet becomes
# {"$set": {"key.1": "value"}}. Anything else here is unexpected.
ALLOWED_UPDATE_OPERATORS = frozenset({"$set", "$unset"})


def normalize_id(value: Any) -> tuple[str, IdKind]:
    """
    Render a document _id to its canonical string form.

    Strings are used as-is and ObjectIds become their 24-character hex form.
    Any other type is rejected.
    """
    if isinstance(value, str):
        return value, IdKind.STRING
    if isinstance(value, ObjectId):
        return str(value), IdKind.OBJECT_ID
    raise InvalidIdentifierError(
        f"unsupported _id type {type(value).__name__}", field="_id"
    )


def _looks_like_index_spec(obj: Mapping[str, Any]) -> bool:
    return "key" in obj and "name" in obj and isinstance(obj["key"], Mapping)


def convert_entry(entry: Mapping[str, Any]) -> Operation | None:
    """
    Convert one raw oplog entry.

    Returns None for entries that are intentionally skipped (system
    namespaces). Raises a ConversionError subclass for anything that cannot
    be replayed safely; there is no best-effort handling.
    """
    try:
        return _convert(entry)
    except ConversionError as exc:
        observe_conversion_error(type(exc).__name__)
        raise


def _convert(entry: Mapping[str, Any]) -> Operation | None:
    op_type = entry.get("op")
    if not isinstance(op_type, str):
        raise MalformedEntryError("missing op type", field="op")

    raw_ns = entry.get("ns")
    if not isinstance(raw_ns, str):
        raise MalformedEntryError("missing namespace", op_type=op_type, field="ns")

    version = entry.get("v")
    # bool is an int subclass and 2.0 == 2; only a true integer is accepted
    if (
        not isinstance(version, int)
        or isinstance(version, bool)
        or version != SUPPORTED_OPLOG_VERSION
    ):
        raise MalformedEntryError(
            f"unsupported oplog version {version!r}",
            op_type=op_type,
            namespace=raw_ns,
            field="v",
        )

    if is_system_namespace(raw_ns):
        logger.debug("Dropping oplog entry for system namespace %s", raw_ns)
        observe_entry_dropped()
        return None

    obj = entry.get("o")
    if not isinstance(obj, Mapping):
        raise MalformedEntryError(
            "missing object field 'o'", op_type=op_type, namespace=raw_ns, field="o"
        )

    if op_type == "i":
        return _convert_insert(entry, obj, raw_ns)
    if op_type == "u":
        return _convert_update(entry, obj, raw_ns)
    if op_type == "d":
        return _convert_remove(entry, obj, raw_ns)

    # 'c' (command) and 'n' (no-op) exist in the format but are not replayable
    raise UnknownOperationError(
        f"unknown op type {op_type}", op_type=op_type, namespace=raw_ns, field="op"
    )


def _parse_id(value: Any, op_type: str, raw_ns: str, field: str) -> tuple[str, IdKind]:
    try:
        return normalize_id(value)
    except InvalidIdentifierError as exc:
        raise InvalidIdentifierError(
            exc.message, op_type=op_type, namespace=raw_ns, field=field
        ) from None


def _parse_namespace(raw_ns: str, op_type: str) -> Namespace:
    try:
        return Namespace.parse(raw_ns)
    except MalformedEntryError as exc:
        raise MalformedEntryError(
            exc.message, op_type=op_type, namespace=raw_ns, field="ns"
        ) from None


def _convert_insert(
    entry: Mapping[str, Any], obj: Mapping[str, Any], raw_ns: str
) -> Insert | None:
    if "_id" not in obj:
        if _looks_like_index_spec(obj):
            logger.debug("Dropping index definition insert into %s", raw_ns)
            observe_entry_dropped()
            return None
        raise MalformedEntryError(
            "insert missing 'o._id' field", op_type="i", namespace=raw_ns, field="o._id"
        )

    doc_id, id_kind = _parse_id(obj["_id"], "i", raw_ns, "o._id")
    return Insert(
        id=doc_id,
        namespace=_parse_namespace(raw_ns, "i"),
        payload=dict(obj),
        id_kind=id_kind,
    )


def _convert_update(
    entry: Mapping[str, Any], obj: Mapping[str, Any], raw_ns: str
) -> Update:
    # The diff in 'o' usually has no _id; the selector lives in 'o2'
    selector = entry.get("o2")
    if not isinstance(selector, Mapping) or "_id" not in selector:
        raise MalformedEntryError(
            "update missing 'o2._id' field", op_type="u", namespace=raw_ns, field="o2._id"
        )
    doc_id, id_kind = _parse_id(selector["_id"], "u", raw_ns, "o2._id")

    for key in obj:
        if key.startswith("$") and key not in ALLOWED_UPDATE_OPERATORS:
            raise UnsupportedOperationError(
                f"invalid key {key} in update object",
                op_type="u",
                namespace=raw_ns,
                field=key,
            )

    # mongod reads 'b' as the upsert flag, but it is never set for the update
    # events we replay. Fail loudly rather than guess at its meaning.
    if "b" in entry:
        raise UnsupportedOperationError(
            "unexpected field 'b' in update", op_type="u", namespace=raw_ns, field="b"
        )

    return Update(
        id=doc_id,
        namespace=_parse_namespace(raw_ns, "u"),
        payload=dict(obj),
        id_kind=id_kind,
    )


def _convert_remove(
    entry: Mapping[str, Any], obj: Mapping[str, Any], raw_ns: str
) -> Remove:
    if "_id" not in obj:
        raise MalformedEntryError(
            "remove missing 'o._id' field", op_type="d", namespace=raw_ns, field="o._id"
        )
    doc_id, id_kind = _parse_id(obj["_id"], "d", raw_ns, "o._id")

    # Single-document deletes always carry b: true. Without it the entry may
    # be a multi-document delete, which cannot be replayed by key.
    if entry.get("b") is not True:
        raise UnsupportedOperationError(
            "single-document marker not set for remove",
            op_type="d",
            namespace=raw_ns,
            field="b",
        )

    return Remove(
        id=doc_id,
        namespace=_parse_namespace(raw_ns, "d"),
        id_kind=id_kind,
    )
