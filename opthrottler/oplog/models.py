from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Union

from bson import ObjectId

from ..errors import MalformedEntryError


class OpKind(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    REMOVE = "remove"


class IdKind(str, Enum):
    """Source type of a document _id before it was rendered to a string."""

    STRING = "string"
    OBJECT_ID = "object_id"


def is_system_namespace(raw: str) -> bool:
    """True for internal metadata namespaces such as "db.system.indexes"."""
    _, _, collection = raw.partition(".")
    return collection.startswith("system.")


@dataclass(frozen=True)
class Namespace:
    database: str
    collection: str

    @classmethod
    def parse(cls, raw: str) -> "Namespace":
        """
        Split "<database>.<collection>" on the first dot.

        The collection part may itself contain dots ("archive.archive.teachers"
        targets collection "archive.teachers" in database "archive").
        """
        database, sep, collection = raw.partition(".")
        if not sep or not database or not collection:
            raise MalformedEntryError(f"invalid namespace: {raw}", namespace=raw)
        return cls(database=database, collection=collection)

    @property
    def is_system(self) -> bool:
        return is_system_namespace(str(self))

    def __str__(self) -> str:
        return f"{self.database}.{self.collection}"


@dataclass(frozen=True)
class Insert:
    id: str
    namespace: Namespace
    payload: Mapping[str, Any]  # full document
    id_kind: IdKind = IdKind.STRING

    kind = OpKind.INSERT


@dataclass(frozen=True)
class Update:
    id: str
    namespace: Namespace
    payload: Mapping[str, Any]  # replacement document or $set/$unset diff
    id_kind: IdKind = IdKind.STRING

    kind = OpKind.UPDATE


@dataclass(frozen=True)
class Remove:
    id: str
    namespace: Namespace
    id_kind: IdKind = IdKind.STRING

    kind = OpKind.REMOVE


Operation = Union[Insert, Update, Remove]


def document_key(op: Operation) -> str | ObjectId:
    """Rebuild the store-level _id from the canonical string id."""
    if op.id_kind == IdKind.OBJECT_ID:
        return ObjectId(op.id)
    return op.id
