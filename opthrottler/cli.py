"""
opthrottler command line: replay a captured oplog against a live database.

Examples:
    opthrottler --path s3://backups/oplog.bson --mongo-url mongodb://localhost --speed 500
    opthrottler --path oplog.json --format json --sql-url sqlite:///replica.db
"""

from __future__ import annotations

import logging
import signal
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Optional

import typer
from pymongo import MongoClient
from pymongo.errors import PyMongoError
from sqlalchemy import create_engine
from sqlalchemy.exc import ArgumentError, SQLAlchemyError

from .config import InputFormat, ReplayConfig, SqlStoreConfig
from .db.mongo import MongoStore
from .db.sql import SqlDocumentStore
from .errors import OpThrottlerError, StoreError
from .oplog.reader import iter_entries
from .replay import ReplayDriver, ReplayState
from .source import open_log

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="opthrottler",
    help="Replay a captured MongoDB oplog at a bounded rate, safely re-runnable.",
    add_completion=False,
)


@contextmanager
def _stop_on_signals(driver: ReplayDriver) -> Iterator[None]:
    """Turn SIGINT/SIGTERM into driver.stop() for the duration of the block."""

    def _handler(signum, frame) -> None:
        logger.warning("Received signal %d, stopping after the current operation", signum)
        driver.stop()

    previous = {sig: signal.signal(sig, _handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


@app.command()
def replay(
    path: str = typer.Option(
        ..., "--path", "-p", envvar="OPTHROTTLER_PATH",
        help="Oplog to replay: local file or s3://bucket/key",
    ),
    mongo_url: Optional[str] = typer.Option(
        None, "--mongo-url", envvar="OPTHROTTLER_MONGO_URL",
        help="MongoDB connection string of the target database",
    ),
    sql_url: Optional[str] = typer.Option(
        None, "--sql-url", envvar="OPTHROTTLER_SQL_URL",
        help="SQLAlchemy URL of a SQL document table to replay into instead",
    ),
    sql_table: str = typer.Option(
        "oplog_documents", "--sql-table", help="Table name used with --sql-url",
    ),
    speed: float = typer.Option(
        1.0, "--speed", "-s", envvar="OPTHROTTLER_SPEED",
        help="Operations to apply per second",
    ),
    input_format: InputFormat = typer.Option(
        InputFormat.BSON, "--format", "-f", case_sensitive=False,
        help="bson (mongodump) or json (one Extended JSON document per line)",
    ),
    progress_every: int = typer.Option(
        1000, "--progress-every", help="Log progress every N applied operations",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Replay the oplog at PATH against the target store."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if (mongo_url is None) == (sql_url is None):
        raise typer.BadParameter("Exactly one of --mongo-url or --sql-url is required")

    try:
        config = ReplayConfig(
            ops_per_second=speed,
            progress_every=progress_every,
            input_format=input_format,
        )
        sql_config = SqlStoreConfig(table_name=sql_table)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    client = None
    engine = None
    try:
        if mongo_url is not None:
            try:
                client = MongoClient(mongo_url)
            except PyMongoError as exc:
                raise StoreError(f"Failed to connect to Mongo: {exc}") from exc
            store = MongoStore(client)
        else:
            try:
                engine = create_engine(sql_url, pool_pre_ping=True)
                store = SqlDocumentStore(engine, sql_config)
            except (ArgumentError, ValueError) as exc:
                raise typer.BadParameter(str(exc)) from exc
            try:
                store.create_table()
            except SQLAlchemyError as exc:
                raise StoreError(f"Failed to prepare table {sql_table}: {exc}") from exc

        driver = ReplayDriver(store, config)
        with _stop_on_signals(driver), open_log(path) as stream:
            result = driver.run(iter_entries(stream, config.input_format))
    except OpThrottlerError as exc:
        typer.echo(f"Error applying ops: {exc}", err=True)
        raise typer.Exit(code=1)
    finally:
        if client is not None:
            client.close()
        if engine is not None:
            engine.dispose()

    typer.echo(
        f"Replay {result.state.value}: {result.applied} applied, "
        f"{result.dropped} dropped in {result.elapsed_s:.2f}s"
    )
    if result.state != ReplayState.COMPLETED:
        raise typer.Exit(code=1)


def main() -> None:
    """Main entrypoint."""
    app()


if __name__ == "__main__":
    main()
