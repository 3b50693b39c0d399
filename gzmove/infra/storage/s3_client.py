"""S3-compatible object store implementation.

This module provides the :class:`ObjectStore` backend for AWS S3, MinIO and
other S3-compatible services.

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterator

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from gzmove.common.errors import (
    ClientInitError,
    DeleteError,
    ListError,
    ReadOpenError,
    WriteError,
)
from gzmove.infra.storage.client import ReadStream, UploadSource

if TYPE_CHECKING:
    from gzmove.common.config import Settings

logger = logging.getLogger(__name__)

COMPRESSED_CONTENT_TYPE = "application/gzip"
NOT_FOUND_CODES = frozenset({"NoSuchKey", "NotFound", "404"})


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


class S3StorageClient:
    """S3-compatible object store bound to one region.

    Uses boto3 for all storage operations. A single instance is shared by
    every worker thread; boto3 clients are thread-safe.
    """

    def __init__(self, *, region: str, settings: "Settings") -> None:
        """Initialize the S3 client for ``region``.

        Args:
            region: Region the bucket lives in.
            settings: Connection settings (endpoint, credentials, part size).

        Raises:
            ClientInitError: If the boto3 client cannot be created.
        """
        self._client = self._build_client(region, settings)
        self._transfer_config = TransferConfig(
            multipart_threshold=settings.S3_PART_SIZE_BYTES,
            multipart_chunksize=settings.S3_PART_SIZE_BYTES,
            max_concurrency=settings.S3_UPLOAD_CONCURRENCY,
        )
        # not a boto3 TransferConfig argument; bounds parts buffered from the pipe
        self._transfer_config.max_in_memory_upload_chunks = (
            settings.S3_UPLOAD_CONCURRENCY
        )

    @staticmethod
    def _build_client(region: str, settings: "Settings") -> Any:
        """Create a boto3 S3 client from settings."""
        config = Config(
            region_name=region,
            s3={"addressing_style": settings.S3_ADDRESSING_STYLE},
        )
        try:
            return boto3.client(
                "s3",
                endpoint_url=settings.S3_ENDPOINT_URL,
                region_name=region,
                aws_access_key_id=settings.S3_ACCESS_KEY_ID,
                aws_secret_access_key=settings.S3_SECRET_ACCESS_KEY,
                use_ssl=bool(settings.S3_USE_SSL),
                config=config,
            )
        except (BotoCoreError, ValueError) as exc:
            raise ClientInitError(
                f"Failed to create s3 client for region {region}: {exc}"
            ) from exc

    def list_objects(self, *, bucket: str, prefix: str) -> Iterator[str]:
        """Yield object keys page by page, following continuation tokens."""
        continuation_token: str | None = None
        more_available = True
        while more_available:
            params: dict[str, Any] = {"Bucket": bucket, "Prefix": prefix}
            if continuation_token:
                params["ContinuationToken"] = continuation_token

            try:
                response = self._client.list_objects_v2(**params)
            except Exception as exc:
                raise ListError(f"Failed to list objects: {exc}") from exc

            contents = response.get("Contents") or []
            more_available = bool(response.get("IsTruncated"))
            continuation_token = response.get("NextContinuationToken")
            if more_available and not continuation_token:
                raise ListError("S3 response truncated without continuation token")

            logger.info(
                "got %d files, more available: %s",
                len(contents),
                more_available,
                extra={"extra": {"bucket": bucket, "prefix": prefix}},
            )

            for item in contents:
                yield item["Key"]

    def open_read_stream(self, *, bucket: str, object_key: str) -> ReadStream:
        """Open the object body as a streaming reader."""
        try:
            response = self._client.get_object(Bucket=bucket, Key=object_key)
        except Exception as exc:
            raise ReadOpenError(f"Failed to get object {object_key}: {exc}") from exc

        body = response.get("Body")
        if body is None:
            raise ReadOpenError(f"S3 response missing Body for {object_key}")
        return body

    def upload(self, *, bucket: str, object_key: str, reader: UploadSource) -> None:
        """Stream ``reader`` into ``object_key`` using a multipart upload."""
        try:
            self._client.upload_fileobj(
                reader,
                bucket,
                object_key,
                ExtraArgs={"ContentType": COMPRESSED_CONTENT_TYPE},
                Config=self._transfer_config,
            )
        except Exception as exc:
            raise WriteError(f"Failed to upload file {object_key}: {exc}") from exc

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        """Delete an object; an already absent object is not an error."""
        try:
            self._client.delete_object(Bucket=bucket, Key=object_key)
        except ClientError as exc:
            if _error_code(exc) in NOT_FOUND_CODES:
                logger.debug("object %s already absent", object_key)
                return
            raise DeleteError(f"Failed to delete object {object_key}: {exc}") from exc
        except Exception as exc:
            raise DeleteError(f"Failed to delete object {object_key}: {exc}") from exc
