"""Tests for the streaming compression bridge."""

from __future__ import annotations

import gzip
import os

import pytest

from gzmove.common.errors import (
    CloseError,
    CompressError,
    ReadError,
    TransferError,
    WriteError,
)
from gzmove.services.bridge import CompressionBridge
from tests.services.mock_storage import MockObjectStore, MockReadStream

BUCKET = "dst-bucket"


@pytest.fixture()
def store() -> MockObjectStore:
    return MockObjectStore(upload_part_size=64 * 1024)


@pytest.fixture()
def bridge(store) -> CompressionBridge:
    return CompressionBridge(store, chunk_size=4096)


class TestRoundTrip:
    @pytest.mark.parametrize(
        "payload",
        [
            b"",
            b"hello world\n",
            os.urandom(300 * 1024),
            b"a" * (1024 * 1024 + 17),
        ],
        ids=["empty", "small", "random", "compressible"],
    )
    def test_decompresses_to_original(self, bridge, store, payload):
        source = MockReadStream(payload)

        bridge.transfer(source, bucket=BUCKET, destination_key="out/x.gz", key="x")

        stored = store.get(BUCKET, "out/x.gz")
        assert stored is not None
        assert gzip.decompress(stored) == payload
        assert source.closed

    def test_gzip_header_has_zero_mtime(self, bridge, store):
        bridge.transfer(
            MockReadStream(b"data"), bucket=BUCKET, destination_key="x.gz", key="x"
        )

        stored = store.get(BUCKET, "x.gz")
        assert stored[:2] == b"\x1f\x8b"
        assert stored[4:8] == b"\x00\x00\x00\x00"

    def test_output_is_deterministic(self, store):
        bridge = CompressionBridge(store)
        for key in ("one.gz", "two.gz"):
            bridge.transfer(
                MockReadStream(b"same bytes" * 100),
                bucket=BUCKET,
                destination_key=key,
                key="k",
            )

        assert store.get(BUCKET, "one.gz") == store.get(BUCKET, "two.gz")


class TestFailures:
    def test_read_failure_mid_stream_commits_nothing(self, bridge, store):
        source = MockReadStream(os.urandom(100 * 1024), fail_after=10 * 1024)

        with pytest.raises(TransferError) as exc_info:
            bridge.transfer(source, bucket=BUCKET, destination_key="x.gz", key="x")

        error = exc_info.value
        assert error.key == "x"
        assert error.has(ReadError)
        assert store.get(BUCKET, "x.gz") is None
        assert source.closed

    def test_upload_failure_does_not_deadlock(self, bridge, store):
        store.fail_upload.add("x.gz")
        source = MockReadStream(os.urandom(200 * 1024))

        with pytest.raises(TransferError) as exc_info:
            bridge.transfer(source, bucket=BUCKET, destination_key="x.gz", key="x")

        error = exc_info.value
        assert error.has(WriteError)
        # the copy stage noticed the closed pipe
        assert error.has(CompressError)
        assert source.closed

    def test_upload_failure_mid_stream(self, bridge, store):
        store.fail_upload_after["x.gz"] = 64 * 1024
        source = MockReadStream(os.urandom(512 * 1024))

        with pytest.raises(TransferError) as exc_info:
            bridge.transfer(source, bucket=BUCKET, destination_key="x.gz", key="x")

        assert exc_info.value.has(WriteError)
        assert store.get(BUCKET, "x.gz") is None
        assert source.closed

    def test_source_close_failure_is_reported(self, bridge, store):
        source = MockReadStream(b"content", fail_on_close=True)

        with pytest.raises(TransferError) as exc_info:
            bridge.transfer(source, bucket=BUCKET, destination_key="x.gz", key="x")

        error = exc_info.value
        assert error.has(CloseError)
        assert not error.has(ReadError)
        assert "source reader" in str(error)
        # a stream that failed to close is treated as aborted
        assert store.get(BUCKET, "x.gz") is None

    def test_compressor_failure_is_compress_error(self, store, monkeypatch):
        bridge = CompressionBridge(store)

        def broken_write(self, data):
            raise ValueError("compressor exploded")

        monkeypatch.setattr("gzip.GzipFile.write", broken_write)

        with pytest.raises(TransferError) as exc_info:
            bridge.transfer(
                MockReadStream(b"abc"), bucket=BUCKET, destination_key="x.gz", key="x"
            )

        assert exc_info.value.has(CompressError)
        assert not exc_info.value.has(ReadError)
        assert store.get(BUCKET, "x.gz") is None

    def test_all_errors_are_collected(self, bridge, store):
        store.fail_upload.add("x.gz")
        source = MockReadStream(b"z" * 1024, fail_on_close=True)

        with pytest.raises(TransferError) as exc_info:
            bridge.transfer(source, bucket=BUCKET, destination_key="x.gz", key="x")

        kinds = {type(error) for error in exc_info.value.errors}
        assert WriteError in kinds
        assert CloseError in kinds
