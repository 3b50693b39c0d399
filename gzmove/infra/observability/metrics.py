from prometheus_client import Counter, start_http_server

# outcome label takes TransferOutcome values only, keeping cardinality fixed
TRANSFERS = Counter(
    "gzmove_transfers_total",
    "Object transfers by outcome",
    ["outcome"],
)

DELETES = Counter(
    "gzmove_deletes_total",
    "Source object deletions by status",
    ["status"],
)

LISTED = Counter(
    "gzmove_listed_objects_total",
    "Object keys produced by the source listing",
)


def start_metrics_server(port: int) -> None:
    """Expose the default registry over HTTP on ``port``."""
    start_http_server(port)
