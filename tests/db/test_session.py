from __future__ import annotations

import uuid
from collections.abc import Iterator

import pytest
from sqlalchemy.engine import Engine

from opthrottler.db.session import DbSession


@pytest.fixture
def fresh_table(engine: Engine) -> Iterator[str]:
    table = f"t_session_{uuid.uuid4().hex[:10]}"
    with engine.begin() as conn:
        conn.exec_driver_sql(
            f"CREATE TABLE {table} (id INTEGER NOT NULL PRIMARY KEY, value INTEGER NOT NULL)"
        )
    yield table
    with engine.begin() as conn:
        conn.exec_driver_sql(f"DROP TABLE IF EXISTS {table}")


def test_transaction_commits_on_success(engine, fresh_table: str) -> None:
    table = fresh_table

    with DbSession(engine) as session:
        rc = session.execute(
            f"INSERT INTO {table} (id, value) VALUES (:id, :value)",
            {"id": 1, "value": 123},
        )
        assert rc == 1

    with DbSession(engine) as session2:
        row = session2.fetch_one(f"SELECT id, value FROM {table} WHERE id = :id", {"id": 1})
        assert row == {"id": 1, "value": 123}


def test_transaction_rolls_back_on_exception(engine, fresh_table: str) -> None:
    table = fresh_table

    with pytest.raises(RuntimeError):
        with DbSession(engine) as session:
            session.execute(
                f"INSERT INTO {table} (id, value) VALUES (:id, :value)",
                {"id": 1, "value": 123},
            )
            raise RuntimeError("boom")

    with DbSession(engine) as session2:
        row = session2.fetch_one(f"SELECT id FROM {table} WHERE id = :id", {"id": 1})
        assert row is None


def test_exit_does_not_suppress_exceptions(engine) -> None:
    session = DbSession(engine)
    session.__enter__()
    assert session.__exit__(RuntimeError, RuntimeError("boom"), None) is False
    assert session.__exit__(None, None, None) is False


def test_connection_is_closed_after_exit(engine, fresh_table: str) -> None:
    table = fresh_table

    with DbSession(engine) as session:
        conn = session._conn
        assert conn is not None
        session.execute(f"INSERT INTO {table} (id, value) VALUES (1, 1)")

    assert conn.closed is True


def test_nested_usage_raises_runtime_error(engine) -> None:
    with DbSession(engine) as session:
        with pytest.raises(RuntimeError):
            with session:
                pass


def test_use_outside_context_manager_raises(engine, fresh_table: str) -> None:
    session = DbSession(engine)
    with pytest.raises(RuntimeError, match="not active"):
        session.fetch_all(f"SELECT id FROM {fresh_table}")


def test_execute_returns_matched_rowcount(engine, fresh_table: str) -> None:
    table = fresh_table

    with DbSession(engine) as session:
        session.execute(f"INSERT INTO {table} (id, value) VALUES (1, 10), (2, 20)")
        assert session.execute(f"UPDATE {table} SET value = 0 WHERE id = 1") == 1
        assert session.execute(f"UPDATE {table} SET value = 0 WHERE id = 99") == 0
        rows = session.fetch_all(f"SELECT id, value FROM {table} ORDER BY id")

    assert rows == [{"id": 1, "value": 0}, {"id": 2, "value": 20}]
