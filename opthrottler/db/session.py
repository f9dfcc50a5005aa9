from __future__ import annotations

from typing import Any, Mapping

from sqlalchemy import text
from sqlalchemy.engine import Connection, CursorResult, Engine
from sqlalchemy.sql import TextClause


class DbSession:
    """
    One transaction on one pooled connection.

    Commits when the block exits normally and rolls back when it raises.
    The SQL store opens one session per store primitive, so every replayed
    operation is its own transaction.

    Use as:
        with DbSession(engine) as session:
            row = session.fetch_one(...)
            session.execute(...)
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._conn: Connection | None = None
        self._tx = None

    def __enter__(self) -> "DbSession":
        if self._conn is not None:
            raise RuntimeError("DbSession is already active; nested sessions are not allowed")
        self._conn = self.engine.connect()
        self._tx = self._conn.begin()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if self._tx is not None:
                if exc_type:
                    self._tx.rollback()
                else:
                    self._tx.commit()
        finally:
            if self._conn is not None:
                self._conn.close()
            self._conn = None
            self._tx = None

        # propagate exceptions (if any)
        return False

    def _run(self, sql: str | TextClause, params: Mapping[str, Any] | None) -> CursorResult:
        if self._conn is None:
            raise RuntimeError("DbSession is not active; use within a context manager")
        stmt = text(sql) if isinstance(sql, str) else sql
        return self._conn.execute(stmt, params or {})

    def execute(
        self,
        sql: str | TextClause,
        params: Mapping[str, Any] | None = None,
    ) -> int:
        """Execute a non-SELECT statement and return the affected row count."""
        result = self._run(sql, params)
        if result.rowcount is None:
            raise RuntimeError("execute() received None rowcount for statement")
        return int(result.rowcount)

    def fetch_one(
        self,
        sql: str | TextClause,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Execute a SELECT expected to return 0 or 1 row. Raises if more than one row."""
        row = self._run(sql, params).mappings().one_or_none()
        return None if row is None else dict(row)

    def fetch_all(
        self,
        sql: str | TextClause,
        params: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        return [dict(row) for row in self._run(sql, params).mappings()]
