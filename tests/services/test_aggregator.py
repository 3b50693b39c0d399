from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

from gzmove.common.errors import ReadError, WriteError
from gzmove.services.aggregator import ErrorAggregator


def test_no_reports_means_no_failure():
    with ErrorAggregator() as aggregator:
        pass

    assert aggregator.first_error is None
    assert aggregator.error_count == 0


def test_close_drains_every_report():
    with ErrorAggregator() as aggregator:
        with ThreadPoolExecutor(max_workers=8) as pool:
            for i in range(200):
                pool.submit(aggregator.report, WriteError(f"error {i}"), key=f"k{i}")

    assert aggregator.error_count == 200


def test_keeps_first_error():
    first = ReadError("first")

    with ErrorAggregator() as aggregator:
        aggregator.report(first, key="a")
        aggregator.report(WriteError("second"), key="b")

    assert aggregator.first_error is first
    assert aggregator.error_count == 2


def test_logs_each_error_with_key(caplog):
    caplog.set_level(logging.ERROR, logger="gzmove.services.aggregator")

    with ErrorAggregator() as aggregator:
        aggregator.report(ReadError("can't read source file a.txt"), key="a.txt")
        aggregator.report(WriteError("listing broke"))

    messages = [record.getMessage() for record in caplog.records]
    assert messages == ["can't read source file a.txt", "listing broke"]
    assert caplog.records[0].extra == {"error_type": "ReadError", "key": "a.txt"}
    assert caplog.records[1].extra == {"error_type": "WriteError"}


def test_close_is_idempotent():
    aggregator = ErrorAggregator()
    aggregator.start()
    aggregator.report(WriteError("boom"))

    aggregator.close()
    aggregator.close()

    assert aggregator.error_count == 1
