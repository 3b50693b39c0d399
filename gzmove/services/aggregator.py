"""Collects failures from listing, workers and bridges without blocking them."""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from types import TracebackType

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _Report:
    error: BaseException
    key: str | None


_STOP = object()


class ErrorAggregator:
    """Many-writer, single-reader error sink.

    :meth:`report` never blocks. A single consumer thread logs every error
    and keeps only the first one and a running count, which is all the exit
    status needs.
    """

    def __init__(self) -> None:
        self._queue: queue.SimpleQueue[object] = queue.SimpleQueue()
        self._consumer: threading.Thread | None = None
        self._first_error: BaseException | None = None
        self._count = 0

    def __enter__(self) -> "ErrorAggregator":
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def start(self) -> None:
        if self._consumer is not None:
            return
        self._consumer = threading.Thread(
            target=self._consume, name="error-aggregator", daemon=True
        )
        self._consumer.start()

    def report(self, error: BaseException, *, key: str | None = None) -> None:
        self._queue.put(_Report(error, key))

    def close(self) -> None:
        """Drain every pending report, then stop the consumer."""
        if self._consumer is None:
            return
        self._queue.put(_STOP)
        self._consumer.join()
        self._consumer = None

    @property
    def first_error(self) -> BaseException | None:
        return self._first_error

    @property
    def error_count(self) -> int:
        return self._count

    def _consume(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            self._record(item)

    def _record(self, item: _Report) -> None:
        self._count += 1
        if self._first_error is None:
            self._first_error = item.error
        fields = {"error_type": type(item.error).__name__}
        if item.key is not None:
            fields["key"] = item.key
        logger.error("%s", item.error, extra={"extra": fields})
