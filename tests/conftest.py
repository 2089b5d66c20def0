from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from shipdb.adapters.catalog_files import CatalogFiles
from shipdb.config import StorageConfig
from tests.helpers.fake_engine import FakeEngine

if TYPE_CHECKING:
    from pathlib import Path

FAKE_ENGINE_REFERENCE = "tests.helpers.fake_engine:make_engine"
FAKE_PARAMETRIC_REFERENCE = "tests.helpers.fake_engine:make_parametric"
STRICT_ENGINE_REFERENCE = "tests.helpers.fake_engine:make_strict_engine"


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in (
        "SHIPDB_DATA_DIR",
        "SHIPDB_PATTERN_ENGINE",
        "SHIPDB_PARAMETRIC",
        "SHIPDB_SERVER_URL",
        "SHIPDB_HOST",
        "SHIPDB_PORT",
        "SHIPDB_ADMIN_ADDRESS",
        "SHIPDB_QUERY_INTERVAL",
        "SHIPDB_SUBMIT_INTERVAL",
        "SHIPDB_DRAIN_INTERVAL",
        "SHIPDB_MAX_BATCH_SIZE",
        "SHIPDB_JOB_TIMEOUT",
        "SHIPDB_GENERATION_LIMIT",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg"))


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def storage(tmp_path: Path) -> StorageConfig:
    return StorageConfig(data_dir=tmp_path / "catalog")


@pytest.fixture
def store(storage: StorageConfig) -> CatalogFiles:
    return CatalogFiles(storage=storage)


@pytest.fixture
def engine_env(monkeypatch: pytest.MonkeyPatch, storage: StorageConfig) -> StorageConfig:
    monkeypatch.setenv("SHIPDB_PATTERN_ENGINE", FAKE_ENGINE_REFERENCE)
    monkeypatch.setenv("SHIPDB_PARAMETRIC", FAKE_PARAMETRIC_REFERENCE)
    monkeypatch.setenv("SHIPDB_DATA_DIR", str(storage.data_dir))
    return storage
