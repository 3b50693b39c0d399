"""Object storage abstraction layer.

This module provides a protocol-based abstraction for object storage backends,
enabling support for S3, MinIO, and other S3-compatible services.
"""

from .client import ObjectStore, ReadStream, UploadSource
from .s3_client import S3StorageClient

__all__ = [
    "ObjectStore",
    "ReadStream",
    "S3StorageClient",
    "UploadSource",
]
