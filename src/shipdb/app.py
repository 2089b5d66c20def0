"""Application orchestration entry points."""

from __future__ import annotations

import time
from logging import getLogger
from typing import TYPE_CHECKING, Final

from shipdb.adapters.catalog_client import CatalogClient
from shipdb.adapters.catalog_files import CatalogFiles
from shipdb.adapters.engine_loader import load_engine_bundle
from shipdb.config import (
    get_engine_config,
    get_service_config,
    get_storage_config,
    optional_env_var,
)
from shipdb.domain.canonicalization import pattern_to_ship
from shipdb.domain.merge import add_ships, merge_into_catalog
from shipdb.domain.queries import Adjustables, count_ships, find_speed_rle, render_counts
from shipdb.domain.rule_families import get_rule_family
from shipdb.domain.ships import parse_ships, parse_speed

if TYPE_CHECKING:
    from fastapi import FastAPI

    from shipdb.adapters.engine_loader import EngineBundle
    from shipdb.config import EngineConfig, ServiceConfig, StorageConfig
    from shipdb.domain.ports.catalog import CatalogStore
    from shipdb.domain.report import MergeReport
    from shipdb.service.schema import ChangeEntryModel

log = getLogger(__name__)

# Patterns imported from RLE files may have very long periods.
RLE_GENERATION_LIMIT: Final[int] = 1_048_576


def split_rle_patterns(text: str) -> list[str]:
    """Split a file of ``!``-terminated RLE patterns into single patterns."""

    return [f"{chunk.strip()}!" for chunk in text.split("!") if chunk.strip()]


def _optional_engine_bundle() -> EngineBundle | None:
    if optional_env_var("SHIPDB_PATTERN_ENGINE") is None:
        return None
    return load_engine_bundle()


def get_speed(
    family: str,
    speed: str,
    *,
    adjustables: Adjustables = Adjustables.YES,
    store: CatalogStore | None = None,
    bundle: EngineBundle | None = None,
) -> str:
    """Render the best known ship for ``speed`` from the local catalog."""

    effective_store = store or CatalogFiles()
    if bundle is None and adjustables is not Adjustables.NO:
        bundle = _optional_engine_bundle()
    return find_speed_rle(
        family,
        speed,
        store=effective_store,
        engine=bundle.engine if bundle else None,
        parametric=bundle.parametric if bundle else None,
        adjustables=adjustables,
    )


def add_catalog_lines(
    family: str,
    text: str,
    *,
    store: CatalogStore | None = None,
    bundle: EngineBundle | None = None,
    limit: int | None = None,
) -> MergeReport:
    """Canonicalize catalog lines and merge them, skipping invalid candidates.

    Writes the local files directly, outside the service's single writer; use
    ``push_catalog_lines`` while a service is running on the same data directory.
    """

    ships = parse_ships(text)
    effective_bundle = bundle or load_engine_bundle()
    log.info("Adding %d candidates to %s", len(ships), family)
    return add_ships(
        family,
        ships,
        engine=effective_bundle.engine,
        store=store or CatalogFiles(),
        limit=limit,
    )


def add_rle_patterns(
    family: str,
    text: str,
    *,
    store: CatalogStore | None = None,
    bundle: EngineBundle | None = None,
    limit: int = RLE_GENERATION_LIMIT,
) -> MergeReport:
    """Identify ships in raw RLE patterns and merge them.

    Every pattern must be a ship; the first one that is not aborts the import.
    Like ``add_catalog_lines`` this writes the local files directly.
    """

    start = time.perf_counter()
    get_rule_family(family)
    engine = (bundle or load_engine_bundle()).engine
    ships = [
        pattern_to_ship(family, engine.parse_rle(rle), engine, limit=limit)
        for rle in split_rle_patterns(text)
    ]
    log.info("Identified %d ships from RLE input", len(ships))
    report = merge_into_catalog(family, ships, engine=engine, store=store or CatalogFiles())
    report.elapsed = time.perf_counter() - start
    return report


def merge_catalog_lines(
    family: str,
    text: str,
    *,
    store: CatalogStore | None = None,
    bundle: EngineBundle | None = None,
) -> MergeReport:
    """Merge records that are already canonical, e.g. another catalog's files.

    Writes the local files directly, like ``add_catalog_lines``.
    """

    get_rule_family(family)
    ships = parse_ships(text)
    engine = (bundle or load_engine_bundle()).engine
    return merge_into_catalog(family, ships, engine=engine, store=store or CatalogFiles())


def count_catalog(family: str, *, store: CatalogStore | None = None) -> str:
    return render_counts(family, count_ships(family, store=store or CatalogFiles()))


def build_service_app(
    *,
    service: ServiceConfig | None = None,
    storage: StorageConfig | None = None,
    engine: EngineConfig | None = None,
) -> FastAPI:
    """Wire the HTTP service to the catalog files and a writer process."""

    from shipdb.service.api import create_app  # noqa: PLC0415
    from shipdb.service.worker import merge_handler_factory  # noqa: PLC0415
    from shipdb.service.write_serializer import WriteSerializer  # noqa: PLC0415

    effective_service = service or get_service_config()
    effective_storage = storage or get_storage_config()
    effective_engine = engine or get_engine_config()
    effective_storage.ensure_data_dir()

    serializer = WriteSerializer(
        merge_handler_factory(effective_storage, effective_engine),
        timeout=effective_service.job_timeout,
    )
    return create_app(
        store=CatalogFiles(storage=effective_storage),
        serializer=serializer,
        service=effective_service,
        engine=load_engine_bundle(effective_engine),
    )


def serve(*, service: ServiceConfig | None = None) -> None:
    import uvicorn  # noqa: PLC0415

    effective_service = service or get_service_config()
    app = build_service_app(service=effective_service)
    log.info("Serving on http://%s:%d", effective_service.host, effective_service.port)
    uvicorn.run(app, host=effective_service.host, port=effective_service.port, log_config=None)


def push_catalog_lines(family: str, text: str, *, client: CatalogClient | None = None) -> str:
    """Submit catalog lines to a remote service and return its report."""

    ships = parse_ships(text)
    return (client or CatalogClient()).submit(family, ships)


def drain_changes(*, client: CatalogClient | None = None) -> list[ChangeEntryModel]:
    entries = (client or CatalogClient()).drain()
    log.info("Drained %d changes", len(entries))
    return entries


def get_remote_speed(
    family: str,
    speed: str,
    *,
    adjustables: Adjustables | None = None,
    client: CatalogClient | None = None,
) -> str:
    """Ask a running service for the best known ship for ``speed``."""

    key = parse_speed(speed)
    return (client or CatalogClient()).get(family, key, adjustables)


def count_remote(family: str, *, client: CatalogClient | None = None) -> str:
    return (client or CatalogClient()).counts(family)
