from __future__ import annotations

import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest
from botocore.exceptions import ClientError

from opthrottler.errors import SourceError
from opthrottler.source import open_log, stage_log


@pytest.fixture(autouse=True)
def isolated_tempdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    staging = tmp_path / "staging"
    staging.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(staging))
    return staging


def test_stage_log_copies_local_file(tmp_path: Path, isolated_tempdir: Path) -> None:
    src = tmp_path / "oplog.bson"
    src.write_bytes(b"\x05\x00\x00\x00\x00")

    staged = stage_log(str(src))

    assert staged.parent == isolated_tempdir
    assert staged.name.startswith("opthrottler-")
    assert staged.read_bytes() == b"\x05\x00\x00\x00\x00"
    assert src.exists()


def test_open_log_removes_staged_copy(tmp_path: Path, isolated_tempdir: Path) -> None:
    src = tmp_path / "oplog.json"
    src.write_bytes(b'{"v": 2}\n')

    with open_log(str(src)) as stream:
        assert stream.read() == b'{"v": 2}\n'
        assert len(list(isolated_tempdir.iterdir())) == 1

    assert list(isolated_tempdir.iterdir()) == []


def test_missing_local_file_raises_and_leaves_nothing(tmp_path: Path, isolated_tempdir: Path) -> None:
    with pytest.raises(SourceError, match="Failed to read"):
        stage_log(str(tmp_path / "missing.bson"))

    assert list(isolated_tempdir.iterdir()) == []


@pytest.mark.parametrize("path", ["s3://bucket-only", "s3:///key-only"])
def test_invalid_s3_path(path: str, isolated_tempdir: Path) -> None:
    with pytest.raises(SourceError, match="Invalid S3 path"):
        stage_log(path)

    assert list(isolated_tempdir.iterdir()) == []


def test_downloads_from_s3() -> None:
    def _download(bucket, key, dest) -> None:
        dest.write(b"payload")

    with patch("opthrottler.source.boto3") as boto3:
        client = boto3.client.return_value
        client.download_fileobj.side_effect = _download

        with open_log("s3://backups/2015/oplog.bson") as stream:
            data = stream.read()

    boto3.client.assert_called_once_with("s3")
    args = client.download_fileobj.call_args.args
    assert args[:2] == ("backups", "2015/oplog.bson")
    assert data == b"payload"


def test_s3_client_error_raises_source_error(isolated_tempdir: Path) -> None:
    error = ClientError({"Error": {"Code": "NoSuchKey", "Message": "not found"}}, "GetObject")

    with patch("opthrottler.source.boto3") as boto3:
        boto3.client.return_value.download_fileobj.side_effect = error
        with pytest.raises(SourceError, match="Failed to download s3://backups/oplog.bson"):
            stage_log("s3://backups/oplog.bson")

    assert list(isolated_tempdir.iterdir()) == []
