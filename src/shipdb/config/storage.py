"""Catalog storage configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

APP_DIR_NAME: Final[str] = "shipdb"
CATALOG_SUFFIX: Final[str] = ".sss"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    catalog_suffix: str = CATALOG_SUFFIX

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def ensure_data_dir(self) -> Path:
        data_dir = self.resolve_data_dir()
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir

    def family_dir(self, family: str, *, ensure: bool = False) -> Path:
        base = self.ensure_data_dir() if ensure else self.resolve_data_dir()
        path = base / family
        if ensure:
            path.mkdir(parents=True, exist_ok=True)
        return path

    def catalog_path(self, family: str, motion: str, *, ensure: bool = False) -> Path:
        return self.family_dir(family, ensure=ensure) / f"{motion}{self.catalog_suffix}"


def _default_data_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return (base_path / APP_DIR_NAME).expanduser().resolve()


def get_storage_config() -> StorageConfig:
    env_dir = os.getenv("SHIPDB_DATA_DIR")
    data_dir = Path(env_dir) if env_dir else _default_data_dir()
    return StorageConfig(data_dir=data_dir)
