"""Entry point of the single catalog writer process.

The worker owns the only write path to the catalog files. It receives
``WorkerJob`` messages over a pipe, runs one merge at a time and answers with a
``WorkerReply`` carrying the same job id. A failing job is reported back to the
caller and the worker keeps serving; only process death or a closed pipe
makes the parent restart it.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from logging import getLogger
from typing import TYPE_CHECKING, Final

from shipdb.adapters.catalog_files import CatalogFiles
from shipdb.adapters.engine_loader import load_engine_bundle
from shipdb.config import configure_logging
from shipdb.domain.errors import CatalogFormatError, ShipCatalogError
from shipdb.domain.merge import add_ships

if TYPE_CHECKING:
    from collections.abc import Callable
    from multiprocessing.connection import Connection

    from shipdb.config import EngineConfig, StorageConfig
    from shipdb.domain.report import MergeReport
    from shipdb.domain.ships import Ship

log = getLogger(__name__)

READY: Final[str] = "ready"

type JobHandler = Callable[[str, list[Ship], int | None], MergeReport]
type JobHandlerFactory = Callable[[], JobHandler]


@dataclass(frozen=True, slots=True)
class WorkerJob:
    job_id: int
    family: str
    ships: list[Ship]
    limit: int | None = None


@dataclass(frozen=True, slots=True)
class WorkerReply:
    job_id: int
    report: MergeReport | None = None
    error_kind: str | None = None
    error_message: str | None = None

    @property
    def ok(self) -> bool:
        return self.error_kind is None


def build_merge_handler(storage: StorageConfig, engine: EngineConfig) -> JobHandler:
    """Load the pattern engine inside the worker and bind it to the file store.

    Runs at every worker start, so temporary files of a writer killed mid-write
    are cleaned up here.
    """

    bundle = load_engine_bundle(engine)
    store = CatalogFiles(storage=storage)
    store.remove_stale_temporary_files()

    def handle(family: str, ships: list[Ship], limit: int | None) -> MergeReport:
        return add_ships(family, ships, engine=bundle.engine, store=store, limit=limit)

    return handle


def merge_handler_factory(storage: StorageConfig, engine: EngineConfig) -> JobHandlerFactory:
    """Picklable factory for the default handler."""

    return partial(build_merge_handler, storage, engine)


def run_worker(conn: Connection, handler_factory: JobHandlerFactory) -> None:
    configure_logging()
    handler = handler_factory()
    conn.send(READY)
    log.info("Catalog writer ready")
    while True:
        try:
            job = conn.recv()
        except EOFError:
            log.info("Parent closed the job pipe, exiting")
            return
        if job is None:
            log.info("Catalog writer shutting down")
            return
        conn.send(_run_job(handler, job))


def _run_job(handler: JobHandler, job: WorkerJob) -> WorkerReply:
    log.info("Job %d: %d records for %s", job.job_id, len(job.ships), job.family)
    try:
        report = handler(job.family, job.ships, job.limit)
    except (ShipCatalogError, CatalogFormatError) as exc:
        log.error("Job %d failed: %s: %s", job.job_id, type(exc).__name__, exc)  # noqa: TRY400
        return _failed(job, exc)
    except Exception as exc:
        log.exception("Job %d failed unexpectedly", job.job_id)
        return _failed(job, exc)
    return WorkerReply(job_id=job.job_id, report=report)


def _failed(job: WorkerJob, exc: Exception) -> WorkerReply:
    return WorkerReply(job_id=job.job_id, error_kind=type(exc).__name__, error_message=str(exc))
