"""Flat-file catalog store: one ``<motion>.sss`` file per rule family directory."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from shipdb.config import StorageConfig, get_storage_config
from shipdb.domain.errors import CatalogFormatError, CatalogStoreError
from shipdb.domain.ships import parse_ships, ships_to_string

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from shipdb.domain.ships import MotionClass, Ship

log = getLogger(__name__)


@dataclass(slots=True)
class CatalogFiles:
    """Reads whole files and replaces them atomically.

    Writers go through a temporary file in the target directory followed by
    ``os.replace``, so a concurrent reader sees either the old or the new file.
    """

    storage: StorageConfig = field(default_factory=get_storage_config)

    def path_for(self, family: str, motion: MotionClass) -> Path:
        return self.storage.catalog_path(family, motion.value)

    def read(self, family: str, motion: MotionClass) -> list[Ship]:
        path = self.path_for(family, motion)
        try:
            data = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise CatalogStoreError(f"Cannot read {path}: {exc}") from exc
        try:
            return parse_ships(data)
        except CatalogFormatError as exc:
            raise CatalogStoreError(f"Corrupt catalog {path}: {exc}") from exc

    def write(self, family: str, motion: MotionClass, ships: Sequence[Ship]) -> None:
        try:
            path = self.storage.catalog_path(family, motion.value, ensure=True)
            _atomic_write(path, ships_to_string(ships))
        except OSError as exc:
            raise CatalogStoreError(f"Cannot write {family}/{motion}: {exc}") from exc
        log.debug("Wrote %d records to %s", len(ships), path)

    def remove_stale_temporary_files(self) -> int:
        """Delete temporary files left by a writer that died before ``os.replace``."""

        pattern = f"*/.*{self.storage.catalog_suffix}.*.tmp"
        removed = 0
        for stale in self.storage.resolve_data_dir().glob(pattern):
            try:
                stale.unlink(missing_ok=True)
            except OSError as exc:
                raise CatalogStoreError(f"Cannot remove {stale}: {exc}") from exc
            log.warning("Removed stale temporary file %s", stale)
            removed += 1
        return removed


def _atomic_write(path: Path, data: str) -> None:
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
