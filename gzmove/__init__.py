"""Gzip-compressing object migration between S3-compatible buckets."""

__version__ = "0.1.0"
