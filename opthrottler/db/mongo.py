from __future__ import annotations

from typing import Any, Mapping

from pymongo import MongoClient
from pymongo.collection import Collection

from ..oplog.models import Namespace
from .helpers import is_operator_update


class MongoStore:
    """
    DocumentStore backed by a MongoDB deployment.

    The client is owned by the caller; this class never opens or closes it.
    Writes go out one at a time. Bulk writes are scoped to one collection
    and the oplog interleaves collections, so batching would either reorder
    operations or degenerate to batches of one.
    """

    def __init__(self, client: MongoClient) -> None:
        self.client = client

    def _collection(self, namespace: Namespace) -> Collection:
        return self.client[namespace.database][namespace.collection]

    def upsert(self, namespace: Namespace, key: Any, document: Mapping[str, Any]) -> None:
        self._collection(namespace).replace_one({"_id": key}, document, upsert=True)

    def update(self, namespace: Namespace, key: Any, diff: Mapping[str, Any]) -> bool:
        coll = self._collection(namespace)
        if is_operator_update(diff):
            result = coll.update_one({"_id": key}, diff)
        else:
            # replace_one refuses an _id that differs from the matched one,
            # and a replacement diff from the oplog may or may not carry it
            replacement = {k: v for k, v in diff.items() if k != "_id"}
            result = coll.replace_one({"_id": key}, replacement)
        return result.matched_count > 0

    def delete(self, namespace: Namespace, key: Any) -> bool:
        result = self._collection(namespace).delete_one({"_id": key})
        return result.deleted_count > 0

    def documents(self, namespace: Namespace) -> list[dict[str, Any]]:
        """All documents in the namespace, ordered by _id."""
        return list(self._collection(namespace).find({}).sort("_id", 1))
