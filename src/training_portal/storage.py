"""
storage.py — Object store contract (course videos)
==================================================

  get_url(key, expires_in)              → time-limited fetch URL
  upload_data(key, data, on_progress)   → ack; progress gets (transferred, total)
  remove(key)                           → best-effort delete

Adapters
--------
  S3ObjectStore      presigned GET URLs, ``upload_fileobj`` with Callback
  LocalObjectStore   files under a media directory, ``file://`` URLs
"""

from __future__ import annotations

import io
import logging
import time
from pathlib import Path
from typing import Any, BinaryIO, Callable, Optional, Union

from training_portal.errors import FetchFailed, WriteFailed

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
Payload = Union[bytes, BinaryIO]

VIDEO_PREFIX = "courses/videos/"


def video_key_for(filename: str, timestamp_ms: Optional[int] = None) -> str:
    """``courses/videos/<epoch-ms>_<filename>`` — unique per upload."""
    ts = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    return f"{VIDEO_PREFIX}{ts}_{Path(filename).name}"


def _as_stream(data: Payload) -> tuple[BinaryIO, int]:
    if isinstance(data, (bytes, bytearray)):
        return io.BytesIO(data), len(data)
    pos = data.tell()
    data.seek(0, io.SEEK_END)
    total = data.tell() - pos
    data.seek(pos)
    return data, total


class ObjectStore:
    def get_url(self, key: str, expires_in: int = 3600) -> str:
        raise NotImplementedError

    def upload_data(self, key: str, data: Payload, on_progress: Optional[ProgressCallback] = None) -> str:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError


class LocalObjectStore(ObjectStore):
    """Videos stored as plain files below ``root``."""

    CHUNK = 1024 * 1024

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"Key escapes the media directory: {key}")
        return path

    def get_url(self, key, expires_in=3600):
        path = self._path(key)
        if not path.is_file():
            raise FetchFailed(f"Object not found: {key}")
        # Local URLs do not expire; expires_in is accepted for parity.
        return path.as_uri()

    def upload_data(self, key, data, on_progress=None):
        stream, total = _as_stream(data)
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            sent = 0
            with open(path, "wb") as fh:
                for chunk in iter(lambda: stream.read(self.CHUNK), b""):
                    fh.write(chunk)
                    sent += len(chunk)
                    if on_progress:
                        on_progress(sent, total)
        except OSError as exc:
            raise WriteFailed(f"Upload failed for {key}", [str(exc)]) from exc
        logger.info("Stored %s (%d bytes)", key, sent)
        return key

    def remove(self, key):
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            logger.debug("remove(%s): already gone", key)
        except OSError as exc:
            raise WriteFailed(f"Failed to remove {key}", [str(exc)]) from exc


class S3ObjectStore(ObjectStore):
    def __init__(self, bucket: str, region: str, client: Any = None):
        import boto3
        from botocore.exceptions import BotoCoreError, ClientError

        self._errors = (BotoCoreError, ClientError)
        self._s3 = client or boto3.client("s3", region_name=region)
        self.bucket = bucket

    def get_url(self, key, expires_in=3600):
        try:
            return self._s3.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except self._errors as exc:
            raise FetchFailed(f"Could not sign URL for {key}", [str(exc)]) from exc

    def upload_data(self, key, data, on_progress=None):
        stream, total = _as_stream(data)
        sent = 0

        def _callback(n: int) -> None:
            nonlocal sent
            sent += n
            if on_progress:
                on_progress(sent, total)

        try:
            self._s3.upload_fileobj(stream, self.bucket, key, Callback=_callback)
        except self._errors as exc:
            raise WriteFailed(f"Upload failed for {key}", [str(exc)]) from exc
        return key

    def remove(self, key):
        try:
            self._s3.delete_object(Bucket=self.bucket, Key=key)
        except self._errors as exc:
            raise WriteFailed(f"Failed to remove {key}", [str(exc)]) from exc
