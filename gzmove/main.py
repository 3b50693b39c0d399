#!/usr/bin/env python3
"""Move objects between buckets, gzip-compressing each one in transit.

Usage:
  gzmove --src-bucket logs --src-prefix 2024/ --dst-bucket archive --dst-prefix 2024
  gzmove --src-bucket logs --dst-bucket archive --keep --workers 8

Source objects are deleted after a successful copy unless --keep is given.
Storage endpoints and credentials are read from the environment (S3_*).
"""

from __future__ import annotations

import logging
import sys
from typing import Sequence

from gzmove.common.config import Settings, build_config, get_settings
from gzmove.common.errors import ClientInitError, ConfigError, MigrationError
from gzmove.common.logging import setup_logging
from gzmove.infra.observability.metrics import start_metrics_server
from gzmove.infra.storage.client import ObjectStore
from gzmove.infra.storage.s3_client import S3StorageClient
from gzmove.services.migration_service import MigrationService

logger = logging.getLogger("gzmove")


def build_store(region: str, settings: Settings) -> ObjectStore:
    return S3StorageClient(region=region, settings=settings)


def main(argv: Sequence[str] | None = None) -> int:
    try:
        settings = get_settings()
    except ConfigError as exc:
        setup_logging()
        logger.error("invalid configuration: %s", exc)
        return 1
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

    try:
        config = build_config(argv, settings=settings)
    except ConfigError as exc:
        logger.error("invalid configuration: %s", exc)
        return 1

    try:
        source_store = build_store(config.source.region, config.settings)
    except ClientInitError as exc:
        logger.error("can't create source s3 client: %s", exc)
        return 1
    try:
        destination_store = build_store(config.destination.region, config.settings)
    except ClientInitError as exc:
        logger.error("can't create destination s3 client: %s", exc)
        return 1

    if config.settings.METRICS_PORT:
        start_metrics_server(config.settings.METRICS_PORT)

    service = MigrationService(
        config, source_store=source_store, destination_store=destination_store
    )
    report = service.run()

    try:
        report.raise_for_failures()
    except MigrationError as exc:
        logger.error(
            "finished with error: %s",
            exc,
            extra={"extra": {"errors_reported": report.error_count}},
        )
        return 1

    logger.info(
        "finished successfully",
        extra={"extra": {"listed": report.listed, "succeeded": report.succeeded}},
    )
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
