from __future__ import annotations

from typing import Any, Mapping

from bson import json_util
from sqlalchemy import text
from sqlalchemy.engine import Engine

from ..config import SqlStoreConfig
from ..oplog.models import Namespace
from .helpers import _validate_identifier, apply_update
from .session import DbSession


class SqlDocumentStore:
    """
    DocumentStore keeping documents in a single relational table.

    Each row holds one document as MongoDB Extended JSON, keyed by
    (db_name, coll_name, doc_id). ObjectId keys are stored as their hex
    string. Every primitive runs in its own DbSession, so one replayed
    operation is one committed transaction.

    Usage:
        store = SqlDocumentStore(engine)
        store.create_table()
        store.upsert(Namespace("app", "users"), "u1", {"_id": "u1", "name": "a"})
    """

    def __init__(self, engine: Engine, config: SqlStoreConfig | None = None) -> None:
        self.engine = engine
        self.config = config or SqlStoreConfig()
        self.table = _validate_identifier(self.config.table_name, "table_name")

    def create_table(self) -> None:
        """Create the backing table if it does not exist yet."""
        ddl = (
            f"CREATE TABLE IF NOT EXISTS {self.table} ("
            "db_name VARCHAR(64) NOT NULL, "
            "coll_name VARCHAR(255) NOT NULL, "
            "doc_id VARCHAR(255) NOT NULL, "
            "body TEXT NOT NULL, "
            "PRIMARY KEY (db_name, coll_name, doc_id))"
        )
        with self.engine.begin() as conn:
            conn.execute(text(ddl))

    def _key_params(self, namespace: Namespace, key: Any) -> dict[str, Any]:
        return {
            "db_name": namespace.database,
            "coll_name": namespace.collection,
            "doc_id": str(key),
        }

    def _where(self) -> str:
        return "db_name = :db_name AND coll_name = :coll_name AND doc_id = :doc_id"

    def upsert(self, namespace: Namespace, key: Any, document: Mapping[str, Any]) -> None:
        params = self._key_params(namespace, key)
        params["body"] = json_util.dumps(document)

        # Portable upsert: UPDATE, then INSERT when no row matched. The replay
        # is the only writer, so nothing can insert the key in between.
        with DbSession(self.engine) as session:
            rc = session.execute(
                f"UPDATE {self.table} SET body = :body WHERE {self._where()}", params
            )
            if rc == 0:
                session.execute(
                    f"INSERT INTO {self.table} (db_name, coll_name, doc_id, body) "
                    "VALUES (:db_name, :coll_name, :doc_id, :body)",
                    params,
                )

    def update(self, namespace: Namespace, key: Any, diff: Mapping[str, Any]) -> bool:
        params = self._key_params(namespace, key)
        with DbSession(self.engine) as session:
            row = session.fetch_one(
                f"SELECT body FROM {self.table} WHERE {self._where()}", params
            )
            if row is None:
                return False

            updated = apply_update(json_util.loads(row["body"]), diff)
            params["body"] = json_util.dumps(updated)
            session.execute(
                f"UPDATE {self.table} SET body = :body WHERE {self._where()}", params
            )
            return True

    def delete(self, namespace: Namespace, key: Any) -> bool:
        with DbSession(self.engine) as session:
            rc = session.execute(
                f"DELETE FROM {self.table} WHERE {self._where()}",
                self._key_params(namespace, key),
            )
        return rc > 0

    def get(self, namespace: Namespace, key: Any) -> dict[str, Any] | None:
        with DbSession(self.engine) as session:
            row = session.fetch_one(
                f"SELECT body FROM {self.table} WHERE {self._where()}",
                self._key_params(namespace, key),
            )
        return None if row is None else json_util.loads(row["body"])

    def documents(self, namespace: Namespace) -> list[dict[str, Any]]:
        """All documents in the namespace, ordered by key."""
        with DbSession(self.engine) as session:
            rows = session.fetch_all(
                f"SELECT body FROM {self.table} "
                "WHERE db_name = :db_name AND coll_name = :coll_name ORDER BY doc_id",
                {"db_name": namespace.database, "coll_name": namespace.collection},
            )
        return [json_util.loads(row["body"]) for row in rows]
