from __future__ import annotations

import argparse
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Sequence

from gzmove.common.errors import ConfigError

ENV_FILE = Path(".env")

DEFAULT_REGION = "us-east-1"
DEFAULT_WORKERS = 4
MIN_PART_SIZE_BYTES = 5 * 1024 * 1024
ADDRESSING_STYLES: tuple[str, ...] = ("auto", "path", "virtual")
LOG_FORMATS: tuple[str, ...] = ("plain", "json")
LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


def _as_int(name: str, value: str | None, default: int | None) -> int | None:
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got '{value}'") from exc


@dataclass
class Settings:
    """Process settings read from the environment.

    Everything about *where* to connect lives here; *what* to migrate comes
    from the command line (see :class:`MigrationConfig`).
    """

    S3_ENDPOINT_URL: str | None = None
    S3_ACCESS_KEY_ID: str | None = None
    S3_SECRET_ACCESS_KEY: str | None = None
    S3_ADDRESSING_STYLE: str = "virtual"
    S3_USE_SSL: bool = True
    S3_PART_SIZE_BYTES: int = 8 * 1024 * 1024
    S3_UPLOAD_CONCURRENCY: int = 4
    GZIP_LEVEL: int = 9
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "plain"
    METRICS_PORT: int | None = None

    def __post_init__(self) -> None:
        style = (self.S3_ADDRESSING_STYLE or "").strip().lower()
        if style not in ADDRESSING_STYLES:
            raise ConfigError(
                f"S3_ADDRESSING_STYLE must be one of {', '.join(ADDRESSING_STYLES)}"
            )
        self.S3_ADDRESSING_STYLE = style
        if self.S3_PART_SIZE_BYTES < MIN_PART_SIZE_BYTES:
            raise ConfigError(
                f"S3_PART_SIZE_BYTES must be at least {MIN_PART_SIZE_BYTES} bytes"
            )
        if self.S3_UPLOAD_CONCURRENCY < 1:
            raise ConfigError("S3_UPLOAD_CONCURRENCY must be positive")
        if not 1 <= self.GZIP_LEVEL <= 9:
            raise ConfigError("GZIP_LEVEL must be between 1 and 9")
        log_format = self.LOG_FORMAT.strip().lower()
        if log_format not in LOG_FORMATS:
            raise ConfigError(f"LOG_FORMAT must be one of {', '.join(LOG_FORMATS)}")
        self.LOG_FORMAT = log_format
        if self.LOG_LEVEL not in LOG_LEVELS:
            raise ConfigError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()
        return cls(
            S3_ENDPOINT_URL=os.environ.get("S3_ENDPOINT_URL") or None,
            S3_ACCESS_KEY_ID=os.environ.get("S3_ACCESS_KEY_ID") or None,
            S3_SECRET_ACCESS_KEY=os.environ.get("S3_SECRET_ACCESS_KEY") or None,
            S3_ADDRESSING_STYLE=os.environ.get(
                "S3_ADDRESSING_STYLE", cls.S3_ADDRESSING_STYLE
            ),
            S3_USE_SSL=_as_bool(os.environ.get("S3_USE_SSL"), cls.S3_USE_SSL),
            S3_PART_SIZE_BYTES=_as_int(
                "S3_PART_SIZE_BYTES",
                os.environ.get("S3_PART_SIZE_BYTES"),
                cls.S3_PART_SIZE_BYTES,
            ),
            S3_UPLOAD_CONCURRENCY=_as_int(
                "S3_UPLOAD_CONCURRENCY",
                os.environ.get("S3_UPLOAD_CONCURRENCY"),
                cls.S3_UPLOAD_CONCURRENCY,
            ),
            GZIP_LEVEL=_as_int(
                "GZIP_LEVEL", os.environ.get("GZIP_LEVEL"), cls.GZIP_LEVEL
            ),
            LOG_LEVEL=os.environ.get("LOG_LEVEL", cls.LOG_LEVEL).upper(),
            LOG_FORMAT=os.environ.get("LOG_FORMAT", cls.LOG_FORMAT),
            METRICS_PORT=_as_int("METRICS_PORT", os.environ.get("METRICS_PORT"), None),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()


@dataclass(frozen=True, slots=True)
class Location:
    """One side of a migration: a bucket in a region, narrowed by a key prefix."""

    region: str
    bucket: str
    prefix: str = ""


@dataclass(frozen=True, slots=True)
class MigrationConfig:
    source: Location
    destination: Location
    keep_original: bool = False
    workers: int = DEFAULT_WORKERS
    gzip_level: int = 9
    settings: Settings = field(default_factory=Settings, compare=False)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gzmove",
        description="Move objects between buckets, gzip-compressing them on the way",
    )
    parser.add_argument("--src-region", default=DEFAULT_REGION, help="source region")
    parser.add_argument("--src-bucket", default="", help="source s3 bucket name")
    parser.add_argument("--src-prefix", default="", help="source file prefix")
    parser.add_argument("--dst-region", default=DEFAULT_REGION, help="target region")
    parser.add_argument("--dst-bucket", default="", help="target s3 bucket name")
    parser.add_argument(
        "--dst-prefix",
        default="",
        help="new files will be prefixed with this value",
    )
    parser.add_argument(
        "--keep",
        action="store_true",
        help="set to keep original files (remove by default)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=DEFAULT_WORKERS,
        help=f"number of concurrent transfers (default: {DEFAULT_WORKERS})",
    )
    return parser


def build_config(
    argv: Sequence[str] | None = None, *, settings: Settings | None = None
) -> MigrationConfig:
    """Parse command line flags into an immutable :class:`MigrationConfig`.

    Raises:
        ConfigError: If a flag is malformed or a required value is empty.
    """
    parser = _build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        # argparse already printed usage; a bare --help exits with 0
        if exc.code == 0:
            raise
        raise ConfigError("invalid command line arguments") from exc

    if not args.src_region:
        raise ConfigError(f"invalid source region '{args.src_region}'")
    if not args.src_bucket:
        raise ConfigError(f"invalid source bucket '{args.src_bucket}'")
    if not args.dst_region:
        raise ConfigError(f"invalid destination region '{args.dst_region}'")
    if not args.dst_bucket:
        raise ConfigError(f"invalid destination bucket '{args.dst_bucket}'")
    if args.workers < 1:
        raise ConfigError(f"invalid worker count '{args.workers}'")

    settings = settings or get_settings()
    return MigrationConfig(
        source=Location(args.src_region, args.src_bucket, args.src_prefix),
        destination=Location(args.dst_region, args.dst_bucket, args.dst_prefix),
        keep_original=args.keep,
        workers=args.workers,
        gzip_level=settings.GZIP_LEVEL,
        settings=settings,
    )
