"""Synchronous in-memory byte pipe.

A pipe has no buffer of its own: ``write`` hands its chunk to the reader and
blocks until every byte has been consumed. Memory held by the pipe is
therefore bounded by the chunk in flight, whatever the size of the stream.
"""

from __future__ import annotations

import threading

from gzmove.common.errors import PipeClosedError


class _Pipe:
    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._pending: memoryview | None = None
        self._write_closed = False
        self._write_error: BaseException | None = None
        self._read_closed = False

    def write(self, data: bytes) -> int:
        view = memoryview(data).cast("B")
        size = view.nbytes
        with self._cond:
            if self._write_closed:
                raise PipeClosedError("write on closed pipe")
            if self._read_closed:
                raise PipeClosedError("read end of pipe is closed")
            if not size:
                return 0
            self._pending = view
            self._cond.notify_all()
            while self._pending is not None and not self._read_closed:
                self._cond.wait()
            if self._pending is not None:
                self._pending = None
                raise PipeClosedError("read end of pipe closed during write")
        return size

    def read(self, size: int = -1) -> bytes:
        chunks: list[bytes] = []
        remaining = size
        with self._cond:
            while size < 0 or remaining > 0:
                if self._read_closed:
                    raise PipeClosedError("read on closed pipe")
                if self._pending is not None:
                    pending = self._pending
                    take = pending if size < 0 else pending[:remaining]
                    chunks.append(take.tobytes())
                    remaining -= take.nbytes
                    rest = pending[take.nbytes :]
                    if rest.nbytes:
                        self._pending = rest
                    else:
                        self._pending = None
                        self._cond.notify_all()
                    continue
                if self._write_closed:
                    if self._write_error is not None:
                        raise PipeClosedError(
                            f"writer aborted: {self._write_error}"
                        ) from self._write_error
                    break
                self._cond.wait()
        return b"".join(chunks)

    def close_write(self, error: BaseException | None = None) -> None:
        with self._cond:
            if self._write_closed:
                return
            self._write_closed = True
            self._write_error = error
            self._cond.notify_all()

    def close_read(self) -> None:
        with self._cond:
            self._read_closed = True
            self._cond.notify_all()

    @property
    def write_closed(self) -> bool:
        with self._cond:
            return self._write_closed

    @property
    def read_closed(self) -> bool:
        with self._cond:
            return self._read_closed


class PipeReader:
    """Read end of a pipe, usable as a non-seekable upload source."""

    def __init__(self, pipe: _Pipe) -> None:
        self._pipe = pipe

    def read(self, size: int = -1) -> bytes:
        """Block until ``size`` bytes arrived or the write end closed.

        A short result means end-of-stream. ``size < 0`` reads everything.

        Raises:
            PipeClosedError: If this end was closed, or the writer closed
                the pipe with an error.
        """
        if size is None:
            size = -1
        return self._pipe.read(size)

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False

    @property
    def closed(self) -> bool:
        return self._pipe.read_closed

    def close(self) -> None:
        """Close the read end; a blocked writer fails with PipeClosedError."""
        self._pipe.close_read()


class PipeWriter:
    """Write end of a pipe, usable as the ``fileobj`` of a compressor."""

    def __init__(self, pipe: _Pipe) -> None:
        self._pipe = pipe

    def write(self, data: bytes) -> int:
        return self._pipe.write(data)

    def writable(self) -> bool:
        return True

    def flush(self) -> None:
        pass

    @property
    def closed(self) -> bool:
        return self._pipe.write_closed

    def close(self, error: BaseException | None = None) -> None:
        """Signal end-of-stream to the reader.

        With ``error`` the reader raises instead of seeing a clean end, so a
        consumer never mistakes an aborted stream for a complete one.
        """
        self._pipe.close_write(error)


def pipe() -> tuple[PipeReader, PipeWriter]:
    """Create a connected ``(reader, writer)`` pair."""
    shared = _Pipe()
    return PipeReader(shared), PipeWriter(shared)
