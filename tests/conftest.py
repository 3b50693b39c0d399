from __future__ import annotations

import pytest

from gzmove.common.config import Location, MigrationConfig, Settings, get_settings
from tests.services.mock_storage import MockObjectStore

SOURCE_BUCKET = "src-bucket"
DESTINATION_BUCKET = "dst-bucket"


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture()
def settings() -> Settings:
    return Settings()


@pytest.fixture()
def source_store() -> MockObjectStore:
    return MockObjectStore()


@pytest.fixture()
def destination_store() -> MockObjectStore:
    return MockObjectStore()


@pytest.fixture()
def make_config(settings):
    def _make(
        *,
        src_prefix: str = "",
        dst_prefix: str = "",
        keep: bool = False,
        workers: int = 4,
    ) -> MigrationConfig:
        return MigrationConfig(
            source=Location("us-east-1", SOURCE_BUCKET, src_prefix),
            destination=Location("eu-west-1", DESTINATION_BUCKET, dst_prefix),
            keep_original=keep,
            workers=workers,
            settings=settings,
        )

    return _make
