from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, BinaryIO, Callable, Protocol

from google.api_core import exceptions as gcloud_exceptions
from google.cloud import storage

from logshare.utils.logging import get_logger

from .config import LogshareConfig
from .errors import BucketExistsError


OBJECT_PREFIX = "cloudflare_els_"
OBJECT_SUFFIX = ".json"


class ObjectStore(Protocol):
    def create_bucket(self, bucket: str) -> None: ...

    def open_writer(self, bucket: str, object_name: str) -> BinaryIO: ...


class GcsObjectStore:
    """
    Google Cloud Storage backend.

    A 409 Conflict on bucket creation is reported as BucketExistsError.
    """

    def __init__(self, project_id: str, client: Any | None = None) -> None:
        self.project_id = project_id
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = storage.Client(project=self.project_id)
        return self._client

    def create_bucket(self, bucket: str) -> None:
        try:
            self.client.create_bucket(bucket, project=self.project_id)
        except gcloud_exceptions.Conflict as e:
            raise BucketExistsError(bucket) from e

    def open_writer(self, bucket: str, object_name: str) -> BinaryIO:
        blob = self.client.bucket(bucket).blob(object_name)
        return blob.open("wb", ignore_flush=True, content_type="application/json")


@dataclass
class OutputSink:
    bucket: str
    object_name: str
    writer: BinaryIO
    closed: bool = False

    def write(self, data: bytes) -> int:
        return self.writer.write(data)

    def flush(self) -> None:
        self.writer.flush()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.writer.close()


def normalize_bucket_name(bucket: str) -> str:
    name = (bucket or "").strip()
    if name.lower().startswith("gs://"):
        name = name[5:]
    return name.strip("/")


def build_object_name(zone_id: str, timestamp: float) -> str:
    return f"{OBJECT_PREFIX}{zone_id}_{int(timestamp)}{OBJECT_SUFFIX}"


def create_output_sink(
    config: LogshareConfig,
    zone_id: str,
    *,
    store: ObjectStore | None = None,
    clock: Callable[[], float] = time.time,
    logger: logging.Logger | None = None,
) -> OutputSink | None:
    if not config.uses_storage:
        return None

    log = logger or get_logger(__name__)
    bucket = normalize_bucket_name(config.google_storage_bucket)
    object_name = build_object_name(zone_id, clock())
    if store is None:
        store = GcsObjectStore(config.google_project_id)

    try:
        store.create_bucket(bucket)
        log.info("created bucket %s in project %s", bucket, config.google_project_id)
    except BucketExistsError:
        log.info("Bucket %s already exists.", bucket)

    writer = store.open_writer(bucket, object_name)
    log.info("writing logs to gs://%s/%s", bucket, object_name)
    return OutputSink(bucket=bucket, object_name=object_name, writer=writer)
