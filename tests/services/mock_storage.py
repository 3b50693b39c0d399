"""In-memory ObjectStore for pipeline tests."""

from __future__ import annotations

import io
import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterator

from gzmove.common.errors import DeleteError, ListError, ReadOpenError, WriteError


class MockReadStream:
    """Readable body that can fail after ``fail_after`` bytes or on close."""

    def __init__(
        self,
        data: bytes,
        *,
        fail_after: int | None = None,
        fail_on_close: bool = False,
    ) -> None:
        self._buffer = io.BytesIO(data)
        self._fail_after = fail_after
        self._fail_on_close = fail_on_close
        self.closed = False

    def read(self, amt: int | None = None) -> bytes:
        if self._fail_after is not None and self._buffer.tell() >= self._fail_after:
            raise IOError("connection reset by peer")
        if amt is not None and self._fail_after is not None:
            amt = min(amt, self._fail_after - self._buffer.tell())
        return self._buffer.read(amt)

    def close(self) -> None:
        self.closed = True
        if self._fail_on_close:
            raise IOError("close failed")


@dataclass
class MockObjectStore:
    """Thread-safe in-memory mock of ObjectStore.

    An upload is committed only when its reader reached end-of-stream
    without raising, mirroring a multipart upload that aborts on error.
    """

    objects: dict[tuple[str, str], bytes] = field(default_factory=dict)
    page_size: int = 1000
    fail_list_after_pages: int | None = None
    fail_open: set[str] = field(default_factory=set)
    fail_read_after: dict[str, int] = field(default_factory=dict)
    fail_close: set[str] = field(default_factory=set)
    fail_upload: set[str] = field(default_factory=set)
    fail_upload_after: dict[str, int] = field(default_factory=dict)
    fail_delete: set[str] = field(default_factory=set)
    upload_part_size: int = 5 * 1024 * 1024
    upload_counts: Counter = field(default_factory=Counter)
    delete_calls: list[str] = field(default_factory=list)
    pages_served: int = 0
    streams: list[MockReadStream] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def put(self, bucket: str, object_key: str, data: bytes) -> None:
        """Test helper to seed an object."""
        with self._lock:
            self.objects[(bucket, object_key)] = data

    def get(self, bucket: str, object_key: str) -> bytes | None:
        with self._lock:
            return self.objects.get((bucket, object_key))

    def keys(self, bucket: str) -> list[str]:
        with self._lock:
            return sorted(key for b, key in self.objects if b == bucket)

    def list_objects(self, *, bucket: str, prefix: str) -> Iterator[str]:
        with self._lock:
            matching = sorted(
                key for b, key in self.objects if b == bucket and key.startswith(prefix)
            )
        pages = [
            matching[i : i + self.page_size]
            for i in range(0, len(matching), self.page_size)
        ] or [[]]
        for number, page in enumerate(pages):
            if (
                self.fail_list_after_pages is not None
                and number >= self.fail_list_after_pages
            ):
                raise ListError(f"Failed to list objects: page {number} unavailable")
            self.pages_served += 1
            yield from page

    def open_read_stream(self, *, bucket: str, object_key: str) -> MockReadStream:
        if object_key in self.fail_open:
            raise ReadOpenError(f"Failed to get object {object_key}: access denied")
        data = self.get(bucket, object_key)
        if data is None:
            raise ReadOpenError(f"Failed to get object {object_key}: NoSuchKey")
        stream = MockReadStream(
            data,
            fail_after=self.fail_read_after.get(object_key),
            fail_on_close=object_key in self.fail_close,
        )
        with self._lock:
            self.streams.append(stream)
        return stream

    def upload(self, *, bucket: str, object_key: str, reader) -> None:
        if object_key in self.fail_upload:
            raise WriteError(f"Failed to upload file {object_key}: bucket not found")
        limit = self.fail_upload_after.get(object_key)
        received = bytearray()
        try:
            while True:
                part = reader.read(self.upload_part_size)
                if not part:
                    break
                received.extend(part)
                if limit is not None and len(received) >= limit:
                    raise IOError("upload part rejected")
        except Exception as exc:
            raise WriteError(f"Failed to upload file {object_key}: {exc}") from exc
        with self._lock:
            self.objects[(bucket, object_key)] = bytes(received)
            self.upload_counts[(bucket, object_key)] += 1

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        with self._lock:
            self.delete_calls.append(object_key)
        if object_key in self.fail_delete:
            raise DeleteError(f"Failed to delete object {object_key}: access denied")
        with self._lock:
            self.objects.pop((bucket, object_key), None)
