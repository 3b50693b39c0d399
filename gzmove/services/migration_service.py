"""Migration orchestration: listing producer, worker pool and final report.

The listing producer and a fixed number of workers share one bounded key
queue. When listing ends, successfully or not, the producer enqueues one stop
sentinel per worker; a worker terminates only when it dequeues one. Every
thread is joined before :meth:`MigrationService.run` returns.
"""

from __future__ import annotations

import logging
import queue
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from gzmove.common.config import MigrationConfig
from gzmove.common.errors import ListError, MigrationError
from gzmove.infra.observability.metrics import DELETES, LISTED, TRANSFERS
from gzmove.infra.storage.client import ObjectStore
from gzmove.services.aggregator import ErrorAggregator
from gzmove.services.transfer_service import (
    TransferOutcome,
    TransferResult,
    TransferTask,
    derive_destination_key,
)

logger = logging.getLogger(__name__)

_STOP = None


@dataclass
class MigrationReport:
    listed: int = 0
    outcomes: Counter = field(default_factory=Counter)
    listing_error: BaseException | None = None
    first_error: BaseException | None = None
    error_count: int = 0

    @property
    def succeeded(self) -> int:
        return self.outcomes[TransferOutcome.SUCCEEDED]

    @property
    def failed(self) -> int:
        return sum(
            count for outcome, count in self.outcomes.items() if outcome.failed
        )

    @property
    def ok(self) -> bool:
        return self.listing_error is None and self.failed == 0

    def summary(self) -> str:
        text = f"{self.failed} of {self.listed} objects failed"
        if self.listing_error is not None:
            text += f"; listing aborted: {self.listing_error}"
        return text

    def raise_for_failures(self) -> None:
        """Raise a single summarising error if anything failed."""
        if not self.ok:
            raise MigrationError(f"migration finished with errors: {self.summary()}")


class MigrationService:
    """Moves every object under the source prefix to the destination."""

    def __init__(
        self,
        config: MigrationConfig,
        *,
        source_store: ObjectStore,
        destination_store: ObjectStore,
    ) -> None:
        self._config = config
        self._source_store = source_store
        self._task = TransferTask(
            source_store=source_store,
            destination_store=destination_store,
            source=config.source,
            destination=config.destination,
            keep_original=config.keep_original,
            compresslevel=config.gzip_level,
        )

    def run(self) -> MigrationReport:
        workers = self._config.workers
        keys: queue.Queue[str | None] = queue.Queue(maxsize=workers)
        report = MigrationReport()

        logger.info(
            "starting migration",
            extra={
                "extra": {
                    "source": f"{self._config.source.bucket}/{self._config.source.prefix}",
                    "destination": f"{self._config.destination.bucket}/{self._config.destination.prefix}",
                    "workers": workers,
                    "keep": self._config.keep_original,
                }
            },
        )

        with ErrorAggregator() as aggregator:
            with ThreadPoolExecutor(
                max_workers=workers + 1, thread_name_prefix="migrate"
            ) as pool:
                producer = pool.submit(self._produce, keys, aggregator)
                consumers = [
                    pool.submit(self._consume, keys, aggregator)
                    for _ in range(workers)
                ]
                report.listed, report.listing_error = producer.result()
                for consumer in consumers:
                    report.outcomes.update(consumer.result())

        report.first_error = aggregator.first_error
        report.error_count = aggregator.error_count
        return report

    def _produce(
        self, keys: "queue.Queue[str | None]", aggregator: ErrorAggregator
    ) -> tuple[int, BaseException | None]:
        listed = 0
        error: BaseException | None = None
        try:
            for key in self._source_store.list_objects(
                bucket=self._config.source.bucket,
                prefix=self._config.source.prefix,
            ):
                keys.put(key)
                listed += 1
                LISTED.inc()
        except Exception as exc:
            error = exc if isinstance(exc, ListError) else ListError(
                f"can't list objects: {exc}"
            )
            aggregator.report(error)
        finally:
            for _ in range(self._config.workers):
                keys.put(_STOP)
        return listed, error

    def _consume(
        self, keys: "queue.Queue[str | None]", aggregator: ErrorAggregator
    ) -> Counter:
        outcomes: Counter = Counter()
        while True:
            key = keys.get()
            if key is _STOP:
                return outcomes
            try:
                result = self._task.execute(key)
            except Exception as exc:
                # execute() returns expected failures as values
                result = TransferResult(
                    key,
                    derive_destination_key(self._config.destination.prefix, key),
                    TransferOutcome.FAILED_UNEXPECTEDLY,
                    exc,
                )
            outcomes[result.outcome] += 1
            try:
                self._record(result, aggregator)
            except Exception as exc:
                aggregator.report(exc, key=key)

    def _record(self, result: TransferResult, aggregator: ErrorAggregator) -> None:
        TRANSFERS.labels(outcome=result.outcome.value).inc()
        fields = {"key": result.key, "destination_key": result.destination_key}

        if result.outcome in (TransferOutcome.SUCCEEDED, TransferOutcome.FAILED_AT_DELETE):
            logger.info("copied compressed file %s", result.key, extra={"extra": fields})
        if result.deleted:
            logger.info("deleted source file %s", result.key, extra={"extra": fields})
            DELETES.labels(status="deleted").inc()
        elif result.outcome is TransferOutcome.FAILED_AT_DELETE:
            DELETES.labels(status="failed").inc()

        if result.error is not None:
            aggregator.report(result.error, key=result.key)
