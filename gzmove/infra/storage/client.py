"""Object store protocol.

This module defines the interface the migration pipeline consumes from an
object storage backend: paginated listing, streaming reads, streaming
uploads and deletes.
"""

from __future__ import annotations

from typing import Iterator, Protocol


class ReadStream(Protocol):
    """A readable byte stream, e.g. a botocore ``StreamingBody``."""

    def read(self, amt: int | None = None) -> bytes:
        ...

    def close(self) -> None:
        ...


class UploadSource(Protocol):
    """A non-seekable reader consumed by :meth:`ObjectStore.upload`."""

    def read(self, size: int = -1) -> bytes:
        ...

    def readable(self) -> bool:
        ...


class ObjectStore(Protocol):
    """Protocol defining the storage operations used by a migration.

    Implementations must be safe to call from many threads at once.
    """

    def list_objects(self, *, bucket: str, prefix: str) -> Iterator[str]:
        """Lazily yield every object key under ``prefix``.

        Pages are fetched on demand, so keys become available before the
        listing has finished.

        Args:
            bucket: Bucket to list.
            prefix: Key prefix filter; empty lists the whole bucket.

        Yields:
            Object keys in backend order.

        Raises:
            ListError: If any page fetch fails. Keys yielded before the
                failure stay yielded.
        """
        ...

    def open_read_stream(self, *, bucket: str, object_key: str) -> ReadStream:
        """Open an object for streaming reads.

        Raises:
            ReadOpenError: If the object does not exist or cannot be accessed.
        """
        ...

    def upload(self, *, bucket: str, object_key: str, reader: UploadSource) -> None:
        """Upload everything ``reader`` yields until end-of-stream.

        The reader may be of unbounded length; implementations must stream
        it (multipart) rather than buffer it whole.

        Raises:
            WriteError: If the upload fails. No object is committed then.
        """
        ...

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        """Delete an object. A missing object counts as deleted.

        Raises:
            DeleteError: If the operation fails.
        """
        ...
