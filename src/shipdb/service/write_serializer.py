"""Single-writer job queue in front of the catalog worker process.

All catalog mutations go through ``WriteSerializer.submit``. Jobs wait in one
FIFO queue and a single dispatcher task hands them to the worker one at a time,
so at most one merge touches the catalog files at any instant.

Worker lifecycle::

    STARTING -> READY -> BUSY -> READY
        any fault -> CRASHED -> STARTING -> READY

A fault (pipe EOF, dead process) fails the in-flight job and every queued job
with ``WorkerFaultError``; nothing is retried. A job that outlives the timeout
resolves with ``JobTimeoutError`` and the worker is killed and replaced, because
it may still be running the abandoned job.
"""

from __future__ import annotations

import asyncio
import itertools
import multiprocessing
from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from .worker import READY, WorkerJob, WorkerReply, run_worker

if TYPE_CHECKING:
    from collections.abc import Sequence
    from multiprocessing.connection import Connection
    from multiprocessing.context import SpawnContext, SpawnProcess
    from types import TracebackType

    from shipdb.domain.report import MergeReport
    from shipdb.domain.ships import Ship

    from .worker import JobHandlerFactory

log = getLogger(__name__)

DEFAULT_JOB_TIMEOUT_SECONDS = 30.0
DEFAULT_START_TIMEOUT_SECONDS = 60.0
_STOP_TIMEOUT_SECONDS = 5.0


class WorkerState(StrEnum):
    STOPPED = "stopped"
    STARTING = "starting"
    READY = "ready"
    BUSY = "busy"
    CRASHED = "crashed"


class WriteSerializerError(RuntimeError):
    """Base class for failures of the write path."""


class JobTimeoutError(WriteSerializerError):
    def __init__(self, job_id: int, timeout: float) -> None:
        super().__init__(f"Update timed out after {timeout:g} seconds")
        self.job_id = job_id
        self.timeout = timeout


class WorkerFaultError(WriteSerializerError):
    """The writer process crashed or could not be started."""


class JobFailedError(WriteSerializerError):
    """The job raised a domain error inside the worker."""

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(f"{kind}: {message}")
        self.kind = kind
        self.message = message


@dataclass(slots=True)
class _PendingJob:
    job: WorkerJob
    future: asyncio.Future[MergeReport]


class WriteSerializer:
    def __init__(
        self,
        handler_factory: JobHandlerFactory,
        *,
        timeout: float = DEFAULT_JOB_TIMEOUT_SECONDS,
        start_timeout: float = DEFAULT_START_TIMEOUT_SECONDS,
    ) -> None:
        self.timeout = timeout
        self.start_timeout = start_timeout
        self.state = WorkerState.STOPPED
        self.restarts = 0
        self._handler_factory = handler_factory
        self._context: SpawnContext = multiprocessing.get_context("spawn")
        self._job_ids = itertools.count(1)
        self._queue: asyncio.Queue[_PendingJob] | None = None
        self._dispatcher: asyncio.Task[None] | None = None
        self._process: SpawnProcess | None = None
        self._conn: Connection | None = None
        self._receive: asyncio.Future[WorkerReply] | None = None
        self._current: _PendingJob | None = None

    async def __aenter__(self) -> WriteSerializer:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def worker_pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def queued(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    async def start(self) -> None:
        if self._dispatcher is not None:
            return
        self._queue = asyncio.Queue()
        await self._spawn()
        self._dispatcher = asyncio.create_task(
            self._dispatch_loop(), name="shipdb-write-serializer"
        )

    async def submit(
        self, family: str, ships: Sequence[Ship], limit: int | None = None
    ) -> MergeReport:
        """Queue one merge and wait for its report."""

        if self._queue is None or self._dispatcher is None:
            raise WriteSerializerError("Write serializer is not running")
        job = WorkerJob(job_id=next(self._job_ids), family=family, ships=list(ships), limit=limit)
        pending = _PendingJob(job=job, future=asyncio.get_running_loop().create_future())
        self._queue.put_nowait(pending)
        log.debug("Queued job %d (%d waiting)", job.job_id, self._queue.qsize())
        return await pending.future

    async def close(self) -> None:
        if self._dispatcher is not None:
            self._dispatcher.cancel()
            try:
                await self._dispatcher
            except asyncio.CancelledError:
                pass
            self._dispatcher = None
        shutdown = WriteSerializerError("Write serializer is shutting down")
        if self._current is not None:
            _reject(self._current, shutdown)
            self._current = None
        self._fail_queued(shutdown)
        await self._stop_worker(graceful=True)
        self.state = WorkerState.STOPPED

    async def _dispatch_loop(self) -> None:
        assert self._queue is not None  # noqa: S101
        while True:
            pending = await self._queue.get()
            if pending.future.done():
                continue
            self._current = pending
            try:
                await self._run(pending)
            except Exception:
                log.exception("Unexpected failure dispatching job %d", pending.job.job_id)
                _reject(pending, WorkerFaultError("Unexpected failure in the write path"))
                await self._restart()
            self._current = None

    async def _run(self, pending: _PendingJob) -> None:
        job = pending.job
        if self.state is WorkerState.CRASHED or not self._worker_alive():
            log.error("Catalog writer is not running, restarting before job %d", job.job_id)
            if not await self._restart():
                _reject(pending, WorkerFaultError("Catalog writer could not be restarted"))
                return

        conn = self._conn
        assert conn is not None  # noqa: S101
        self.state = WorkerState.BUSY
        try:
            conn.send(job)
            self._receive = asyncio.ensure_future(asyncio.to_thread(conn.recv))
            # Shielded: the receive outlives a timeout and is reaped in _stop_worker.
            reply: WorkerReply = await asyncio.wait_for(
                asyncio.shield(self._receive), timeout=self.timeout
            )
        except TimeoutError:
            log.error("Job %d timed out after %gs, restarting writer", job.job_id, self.timeout)
            _reject(pending, JobTimeoutError(job.job_id, self.timeout))
            await self._restart()
            return
        except (EOFError, OSError) as exc:
            log.error("Catalog writer crashed during job %d: %r", job.job_id, exc)
            fault = WorkerFaultError(f"Catalog writer crashed during job {job.job_id}")
            _reject(pending, fault)
            self._fail_queued(fault)
            await self._restart()
            return
        self._receive = None

        self.state = WorkerState.READY
        if reply.job_id != job.job_id:
            fault = WorkerFaultError(f"Reply for job {reply.job_id} while waiting for {job.job_id}")
            log.error("%s", fault)
            _reject(pending, fault)
            self._fail_queued(fault)
            await self._restart()
            return
        if pending.future.done():
            return
        if reply.ok and reply.report is not None:
            pending.future.set_result(reply.report)
        else:
            pending.future.set_exception(
                JobFailedError(reply.error_kind or "Error", reply.error_message or "")
            )

    async def _spawn(self) -> None:
        self.state = WorkerState.STARTING
        parent_conn, child_conn = self._context.Pipe(duplex=True)
        process = self._context.Process(
            target=run_worker,
            args=(child_conn, self._handler_factory),
            name="shipdb-writer",
            daemon=True,
        )
        await asyncio.to_thread(process.start)
        child_conn.close()
        self._process = process
        self._conn = parent_conn

        ready = await asyncio.to_thread(_wait_for_ready, parent_conn, self.start_timeout)
        if not ready:
            self.state = WorkerState.CRASHED
            await self._stop_worker(graceful=False)
            raise WorkerFaultError("Catalog writer failed to start")
        self.state = WorkerState.READY
        log.info("Catalog writer started (pid %s)", process.pid)

    async def _restart(self) -> bool:
        self.state = WorkerState.CRASHED
        self.restarts += 1
        await self._stop_worker(graceful=False)
        try:
            await self._spawn()
        except WorkerFaultError:
            log.exception("Catalog writer restart failed")
            return False
        return True

    async def _stop_worker(self, *, graceful: bool) -> None:
        process, conn, receive = self._process, self._conn, self._receive
        self._process = None
        self._conn = None
        self._receive = None
        if process is None:
            return
        if graceful and conn is not None and process.is_alive():
            try:
                conn.send(None)
            except OSError:
                pass
            await asyncio.to_thread(process.join, _STOP_TIMEOUT_SECONDS)
        if process.is_alive():
            process.kill()
            await asyncio.to_thread(process.join, _STOP_TIMEOUT_SECONDS)
        if receive is not None:
            # The pipe is closed only after the abandoned recv thread has seen EOF.
            await asyncio.wait({receive}, timeout=_STOP_TIMEOUT_SECONDS)
            if not receive.done():
                log.error("Abandoned receive did not finish, leaving the old pipe open")
                return
            if not receive.cancelled():
                receive.exception()
        if conn is not None:
            conn.close()
        process.close()

    def _worker_alive(self) -> bool:
        return self._process is not None and self._process.is_alive()

    def _fail_queued(self, exc: BaseException) -> None:
        if self._queue is None:
            return
        while not self._queue.empty():
            _reject(self._queue.get_nowait(), exc)


def _reject(pending: _PendingJob, exc: BaseException) -> None:
    if not pending.future.done():
        pending.future.set_exception(exc)


def _wait_for_ready(conn: Connection, timeout: float) -> bool:
    try:
        if not conn.poll(timeout):
            return False
        return conn.recv() == READY
    except (EOFError, OSError):
        return False
