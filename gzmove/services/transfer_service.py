"""Per-object transfer: compress-and-copy one object, then maybe delete it."""

from __future__ import annotations

import enum
import posixpath
from dataclasses import dataclass

from gzmove.common.config import Location
from gzmove.common.errors import (
    CompressError,
    DeleteError,
    ReadError,
    ReadOpenError,
    TransferError,
    WriteError,
)
from gzmove.infra.storage.client import ObjectStore
from gzmove.services.bridge import CompressionBridge

COMPRESSED_SUFFIX = ".gz"


class TransferOutcome(str, enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED_AT_READ = "failed_at_read"
    FAILED_AT_COMPRESS = "failed_at_compress"
    FAILED_AT_WRITE = "failed_at_write"
    FAILED_AT_CLOSE = "failed_at_close"
    FAILED_AT_DELETE = "failed_at_delete"
    FAILED_UNEXPECTEDLY = "failed_unexpectedly"

    @property
    def failed(self) -> bool:
        return self is not TransferOutcome.SUCCEEDED


@dataclass(frozen=True, slots=True)
class TransferResult:
    """What happened to one object."""

    key: str
    destination_key: str
    outcome: TransferOutcome
    error: Exception | None = None
    deleted: bool = False


def base_name(key: str) -> str:
    """Last path element of ``key``, ignoring trailing slashes."""
    stripped = key.rstrip("/")
    if not stripped:
        return "/" if key else "."
    return posixpath.basename(stripped)


def derive_destination_key(prefix: str, key: str) -> str:
    """Destination key for ``key``: its base name under ``prefix`` plus ``.gz``.

    >>> derive_destination_key("archive/", "logs/2024/app.log")
    'archive/app.log.gz'
    >>> derive_destination_key("archive", "app.log")
    'archive/app.log.gz'
    """
    name = base_name(key)
    if not prefix:
        return name + COMPRESSED_SUFFIX
    # a rooted name would replace the prefix in join()
    joined = posixpath.normpath(posixpath.join(prefix, name.lstrip("/")))
    if joined.startswith("//"):
        joined = "/" + joined.lstrip("/")
    return joined + COMPRESSED_SUFFIX


_FAILURE_ORDER = (
    (ReadError, TransferOutcome.FAILED_AT_READ),
    (WriteError, TransferOutcome.FAILED_AT_WRITE),
    (CompressError, TransferOutcome.FAILED_AT_COMPRESS),
)


def classify_failure(error: TransferError) -> TransferOutcome:
    """Stage that failed first.

    A failure on one side of the pipe surfaces on the other side as well;
    those echoes are ignored so the outcome names the stage that broke.
    """
    primary = error.primary_errors
    for error_type, outcome in _FAILURE_ORDER:
        if any(isinstance(item, error_type) for item in primary):
            return outcome
    return TransferOutcome.FAILED_AT_CLOSE


class TransferTask:
    """Moves single objects from ``source`` to ``destination``.

    One instance is shared by all workers; :meth:`execute` keeps no state
    between calls.
    """

    def __init__(
        self,
        *,
        source_store: ObjectStore,
        destination_store: ObjectStore,
        source: Location,
        destination: Location,
        keep_original: bool = False,
        compresslevel: int = 9,
    ) -> None:
        self._source_store = source_store
        self._source = source
        self._destination = destination
        self._keep_original = keep_original
        self._bridge = CompressionBridge(destination_store, compresslevel=compresslevel)

    def execute(self, key: str) -> TransferResult:
        """Transfer ``key``. Never raises; failures come back in the result."""
        destination_key = derive_destination_key(self._destination.prefix, key)

        try:
            stream = self._source_store.open_read_stream(
                bucket=self._source.bucket, object_key=key
            )
        except Exception as exc:
            error = exc
            if not isinstance(error, ReadOpenError):
                error = ReadOpenError(f"can't read source file {key}: {exc}")
            return TransferResult(
                key, destination_key, TransferOutcome.FAILED_AT_READ, error
            )

        try:
            self._bridge.transfer(
                stream,
                bucket=self._destination.bucket,
                destination_key=destination_key,
                key=key,
            )
        except TransferError as exc:
            return TransferResult(key, destination_key, classify_failure(exc), exc)

        if self._keep_original:
            return TransferResult(key, destination_key, TransferOutcome.SUCCEEDED)

        try:
            self._source_store.delete_object(bucket=self._source.bucket, object_key=key)
        except Exception as exc:
            error = exc
            if not isinstance(error, DeleteError):
                error = DeleteError(f"can't delete source file {key}: {exc}")
            return TransferResult(
                key, destination_key, TransferOutcome.FAILED_AT_DELETE, error
            )

        return TransferResult(
            key, destination_key, TransferOutcome.SUCCEEDED, deleted=True
        )
