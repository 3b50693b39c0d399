"""Streaming gzip bridge between a source read stream and a destination upload.

The copy-and-compress stage runs in its own thread and pushes compressed
bytes into a zero-capacity pipe; the upload runs in the calling thread and
pulls from the other end. Neither side ever holds the whole object.
"""

from __future__ import annotations

import gzip
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from gzmove.common.errors import (
    CloseError,
    CompressError,
    ReadError,
    TransferError,
    WriteError,
)
from gzmove.infra.storage.client import ObjectStore, ReadStream
from gzmove.services.pipe import PipeWriter, pipe

logger = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 64 * 1024


def _close_resource(
    resource: Any, name: str, key: str, errors: list[BaseException], **kwargs: Any
) -> None:
    try:
        resource.close(**kwargs)
    except Exception as exc:
        close_error = CloseError(f"can't close {name} for file {key}: {exc}")
        close_error.__cause__ = exc
        errors.append(close_error)


class CompressionBridge:
    """Copies one object into a gzip-compressed destination object.

    Every failure of the read, compress, upload and close steps is recorded;
    :meth:`transfer` raises a single :class:`TransferError` carrying all of
    them, or returns normally when there were none.
    """

    def __init__(
        self,
        store: ObjectStore,
        *,
        compresslevel: int = 9,
        chunk_size: int = COPY_CHUNK_SIZE,
    ) -> None:
        self._store = store
        self._compresslevel = compresslevel
        self._chunk_size = chunk_size

    def transfer(
        self,
        source: ReadStream,
        *,
        bucket: str,
        destination_key: str,
        key: str,
    ) -> None:
        """Compress ``source`` into ``bucket/destination_key``.

        ``source`` is owned by the bridge from here on and is closed on
        every exit path. ``key`` names the object in error messages.

        Raises:
            TransferError: If any stage failed.
        """
        errors: list[BaseException] = []
        reader, writer = pipe()

        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="gzip-copy") as stage:
            copy_future = stage.submit(self._copy_stage, source, writer, key)
            try:
                self._store.upload(
                    bucket=bucket, object_key=destination_key, reader=reader
                )
            except WriteError as exc:
                errors.append(exc)
            except Exception as exc:
                write_error = WriteError(
                    f"can't write to destination file {destination_key}: {exc}"
                )
                write_error.__cause__ = exc
                errors.append(write_error)
            finally:
                # releases a copy stage still blocked on the pipe
                _close_resource(reader, "upload reader", key, errors)

            try:
                copy_errors = copy_future.result()
            except Exception as exc:
                copy_errors = [CompressError(f"can't copy file {key}: {exc}")]

        all_errors = copy_errors + errors
        if all_errors:
            raise TransferError(key, all_errors)
        logger.debug("compressed %s into %s", key, destination_key)

    def _copy_stage(
        self, source: ReadStream, writer: PipeWriter, key: str
    ) -> list[BaseException]:
        errors: list[BaseException] = []
        compressor: gzip.GzipFile | None = None
        try:
            compressor = gzip.GzipFile(
                fileobj=writer,
                mode="wb",
                compresslevel=self._compresslevel,
                mtime=0,
            )
            self._copy(source, compressor, key)
        except (ReadError, CompressError) as exc:
            errors.append(exc)
        except Exception as exc:
            compress_error = CompressError(f"can't copy file {key}: {exc}")
            compress_error.__cause__ = exc
            errors.append(compress_error)
        finally:
            _close_resource(source, "source reader", key, errors)
            if compressor is not None:
                _close_resource(compressor, "compressor", key, errors)
            # an aborted stream must never look complete to the upload
            abort = errors[0] if errors else None
            _close_resource(writer, "pipe writer", key, errors, error=abort)
        return errors

    def _copy(self, source: ReadStream, compressor: gzip.GzipFile, key: str) -> None:
        while True:
            try:
                chunk = source.read(self._chunk_size)
            except Exception as exc:
                raise ReadError(f"can't read source file {key}: {exc}") from exc
            if not chunk:
                return
            try:
                compressor.write(chunk)
            except Exception as exc:
                raise CompressError(f"can't copy file {key}: {exc}") from exc
