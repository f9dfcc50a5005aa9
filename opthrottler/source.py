"""
Staging of the oplog into a local temporary file before replay.

The whole log is copied before anything is applied. Streaming straight from
remote storage risks the stream breaking in the middle of a run, leaving a
partial replay behind.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO
from urllib.parse import urlparse

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .errors import SourceError

logger = logging.getLogger(__name__)

S3_SCHEME = "s3"


def _parse_s3_url(path: str) -> tuple[str, str]:
    parsed = urlparse(path)
    bucket = parsed.netloc
    key = parsed.path.lstrip("/")
    if not bucket or not key:
        raise SourceError(f"Invalid S3 path {path!r}: expected s3://bucket/key")
    return bucket, key


def _download_s3(path: str, dest: BinaryIO) -> None:
    bucket, key = _parse_s3_url(path)
    try:
        boto3.client("s3").download_fileobj(bucket, key, dest)
    except (BotoCoreError, ClientError) as exc:
        raise SourceError(f"Failed to download {path}: {exc}") from exc


def _copy_local(path: str, dest: BinaryIO) -> None:
    try:
        with open(path, "rb") as src:
            shutil.copyfileobj(src, dest)
    except OSError as exc:
        raise SourceError(f"Failed to read {path}: {exc}") from exc


def stage_log(path: str) -> Path:
    """
    Copy the log at ``path`` (local file or s3://bucket/key) into a new
    temporary file and return its location. The caller removes it.

    Raises:
        SourceError: If the log cannot be read or the path is invalid
    """
    fd, tmp_name = tempfile.mkstemp(prefix="opthrottler-", suffix=".oplog")
    try:
        with os.fdopen(fd, "wb") as dest:
            if urlparse(path).scheme == S3_SCHEME:
                _download_s3(path, dest)
            else:
                _copy_local(path, dest)
    except BaseException:
        os.remove(tmp_name)
        raise

    logger.info("Staged %s to %s (%d bytes)", path, tmp_name, os.path.getsize(tmp_name))
    return Path(tmp_name)


@contextmanager
def open_log(path: str) -> Iterator[BinaryIO]:
    """Stage the log and yield it opened for binary reading; clean up on exit."""
    staged = stage_log(path)
    try:
        with open(staged, "rb") as f:
            yield f
    finally:
        staged.unlink(missing_ok=True)
