"""Error taxonomy for migrations.

Fatal errors (``ConfigError``, ``ClientInitError``) abort a run before any
transfer starts. ``ListError`` stops key production only. Everything else is
scoped to a single object and never aborts sibling transfers.
"""

from __future__ import annotations

from typing import Sequence


class MigrationError(Exception):
    """Base class for every error raised by gzmove."""


class ConfigError(MigrationError):
    """Raised when command line flags or environment settings are invalid."""


class ClientInitError(MigrationError):
    """Raised when an object store client cannot be constructed."""


class StorageError(MigrationError):
    """Raised when an object storage operation fails."""


class ListError(StorageError):
    """Raised when a listing page cannot be fetched."""


class ReadError(StorageError):
    """Raised when the source object cannot be read."""


class ReadOpenError(ReadError):
    """Raised when the source object cannot be opened for reading."""


class WriteError(StorageError):
    """Raised when the destination upload fails."""


class DeleteError(StorageError):
    """Raised when the source object cannot be deleted."""


class CompressError(MigrationError):
    """Raised when bytes cannot be pushed through the compressor."""


class CloseError(MigrationError):
    """Raised when a stream, compressor or pipe end fails to close."""


class PipeClosedError(MigrationError):
    """Raised on use of a pipe whose peer end has been closed."""


class TransferError(MigrationError):
    """Composite failure of one object transfer.

    Carries every error recorded while copying, uploading and closing, in the
    order they were observed.
    """

    def __init__(self, key: str, errors: Sequence[BaseException]) -> None:
        self.key = key
        self.errors = tuple(errors)
        details = "; ".join(str(error) for error in self.errors)
        super().__init__(f"transfer of {key} failed: {details}")

    def has(self, error_type: type[BaseException]) -> bool:
        return any(isinstance(error, error_type) for error in self.errors)

    @property
    def primary_errors(self) -> tuple[BaseException, ...]:
        """Errors that are not a consequence of the other side closing the pipe."""
        primary = tuple(
            error for error in self.errors if not _caused_by(error, PipeClosedError)
        )
        return primary or self.errors


def _caused_by(error: BaseException, error_type: type[BaseException]) -> bool:
    seen: set[int] = set()
    current: BaseException | None = error.__cause__ or error.__context__
    while current is not None and id(current) not in seen:
        if isinstance(current, error_type):
            return True
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return False
