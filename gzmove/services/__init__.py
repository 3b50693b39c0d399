from .aggregator import ErrorAggregator
from .bridge import CompressionBridge
from .migration_service import MigrationReport, MigrationService
from .transfer_service import (
    TransferOutcome,
    TransferResult,
    TransferTask,
    derive_destination_key,
)

__all__ = [
    "CompressionBridge",
    "ErrorAggregator",
    "MigrationReport",
    "MigrationService",
    "TransferOutcome",
    "TransferResult",
    "TransferTask",
    "derive_destination_key",
]
