"""FastAPI front end of the catalog service.

Reads hit the catalog files directly from the request path and may observe the
state before a merge that is still running. Every write goes through the
``WriteSerializer``; the responses are plain text except for ``/drain``.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from logging import getLogger
from typing import TYPE_CHECKING, Annotated, Protocol

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse

from shipdb.domain.errors import (
    CatalogFormatError,
    InvalidCandidateError,
    RuleFamilyError,
    ShipCatalogError,
)
from shipdb.domain.queries import (
    NOT_FOUND_MESSAGE,
    Adjustables,
    count_ships,
    lookup_ship,
    render_counts,
    render_ship,
)
from shipdb.domain.rule_families import get_rule_family
from shipdb.domain.ships import SpeedKey, parse_ships

from .schema import ChangeEntryModel
from .state import RateLimitedError, ServiceState
from .write_serializer import JobFailedError, JobTimeoutError, WriteSerializerError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from shipdb.adapters.engine_loader import EngineBundle
    from shipdb.config import ServiceConfig
    from shipdb.domain.ports.catalog import CatalogStore
    from shipdb.domain.report import MergeReport
    from shipdb.domain.ships import Ship

log = getLogger(__name__)

# Job failures that were caused by the submitted data rather than the server.
CLIENT_JOB_ERRORS = frozenset(
    {
        "InvalidCandidateError",
        "RuleFamilyMismatchError",
        "UnknownRuleFamilyError",
    }
)


class Serializer(Protocol):
    async def start(self) -> None: ...

    async def submit(
        self, family: str, ships: Sequence[Ship], limit: int | None = None
    ) -> MergeReport: ...

    async def close(self) -> None: ...


def client_address(request: Request) -> str:
    return request.client.host if request.client is not None else "unknown"


def create_app(
    *,
    store: CatalogStore,
    serializer: Serializer,
    service: ServiceConfig,
    engine: EngineBundle | None = None,
) -> FastAPI:
    state = ServiceState.from_intervals(
        query=service.query_interval,
        submit=service.submit_interval,
        drain=service.drain_interval,
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        await serializer.start()
        log.info("Catalog service ready")
        try:
            yield
        finally:
            await serializer.close()
            log.info("Catalog service stopped")

    app = FastAPI(title="shipdb", lifespan=lifespan, docs_url=None, redoc_url=None)
    app.state.shipdb = state
    _install_error_handlers(app)

    async def refresh_counts(family: str) -> str:
        counts = await asyncio.to_thread(count_ships, family, store=store)
        rendered = render_counts(family, counts)
        state.counts[family] = rendered
        return rendered

    @app.get("/get", response_class=PlainTextResponse)
    async def get_ship(  # pyright: ignore[reportUnusedFunction]
        request: Request,
        family: Annotated[str, Query(alias="type")],
        dx: int,
        dy: int,
        period: Annotated[int, Query(ge=1)],
        adjustables: Adjustables = Adjustables.YES,
    ) -> str:
        await state.query_limiter.acquire(client_address(request))
        get_rule_family(family)
        ship = await asyncio.to_thread(
            lookup_ship,
            family,
            SpeedKey(dx=dx, dy=dy, period=period),
            store=store,
            engine=engine.engine if engine else None,
            parametric=engine.parametric if engine else None,
            adjustables=adjustables,
        )
        if ship is None:
            return NOT_FOUND_MESSAGE
        return render_ship(ship)

    @app.post("/add", response_class=PlainTextResponse)
    async def add(  # pyright: ignore[reportUnusedFunction]
        request: Request,
        family: Annotated[str, Query(alias="type")],
    ) -> PlainTextResponse:
        client = client_address(request)
        await state.submit_limiter.acquire(client)
        get_rule_family(family)
        try:
            body = (await request.body()).decode("utf-8")
        except UnicodeDecodeError:
            return PlainTextResponse("Request body must be UTF-8 text\n", status_code=400)
        ships = parse_ships(body)
        if len(ships) > service.max_batch_size:
            return PlainTextResponse(
                f"Too many ships: {len(ships)} (limit {service.max_batch_size})\n",
                status_code=413,
            )
        log.info("Submission of %d records to %s from %s", len(ships), family, client)
        report = await serializer.submit(family, ships, service.generation_limit)
        state.changes.record(family, report)
        await refresh_counts(family)
        return PlainTextResponse(report.render())

    @app.get("/counts", response_class=PlainTextResponse)
    async def counts(  # pyright: ignore[reportUnusedFunction]
        request: Request,
        family: Annotated[str, Query(alias="type")],
    ) -> str:
        await state.counts_limiter.acquire(client_address(request))
        get_rule_family(family)
        cached = state.counts.get(family)
        if cached is not None:
            return cached
        return await refresh_counts(family)

    @app.get("/drain", response_model=list[ChangeEntryModel])
    async def drain(  # pyright: ignore[reportUnusedFunction]
        request: Request,
    ) -> list[ChangeEntryModel] | PlainTextResponse:
        client = client_address(request)
        if client != service.admin_address:
            log.warning("Refused drain request from %s", client)
            return PlainTextResponse("Forbidden\n", status_code=403)
        await state.drain_limiter.acquire(client)
        entries = state.changes.drain()
        log.info("Drained %d change log entries", len(entries))
        return [ChangeEntryModel.from_entry(entry) for entry in entries]

    return app


def _text(message: str, status_code: int) -> PlainTextResponse:
    return PlainTextResponse(message if message.endswith("\n") else message + "\n", status_code)


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def invalid_request(  # pyright: ignore[reportUnusedFunction]
        _request: Request, exc: RequestValidationError
    ) -> PlainTextResponse:
        problems = [
            f"{'.'.join(str(part) for part in error['loc'][1:])}: {error['msg']}"
            for error in exc.errors()
        ]
        return _text("Invalid request: " + "; ".join(problems), 400)

    @app.exception_handler(RateLimitedError)
    async def rate_limited(  # pyright: ignore[reportUnusedFunction]
        _request: Request, exc: RateLimitedError
    ) -> PlainTextResponse:
        response = _text(str(exc), 429)
        response.headers["Retry-After"] = str(max(1, round(exc.interval)))
        return response

    @app.exception_handler(RuleFamilyError)
    @app.exception_handler(CatalogFormatError)
    @app.exception_handler(InvalidCandidateError)
    async def bad_input(  # pyright: ignore[reportUnusedFunction]
        _request: Request, exc: Exception
    ) -> PlainTextResponse:
        return _text(str(exc), 400)

    @app.exception_handler(JobTimeoutError)
    async def timed_out(  # pyright: ignore[reportUnusedFunction]
        _request: Request, exc: JobTimeoutError
    ) -> PlainTextResponse:
        return _text(str(exc), 504)

    @app.exception_handler(JobFailedError)
    async def job_failed(  # pyright: ignore[reportUnusedFunction]
        _request: Request, exc: JobFailedError
    ) -> PlainTextResponse:
        if exc.kind in CLIENT_JOB_ERRORS:
            return _text(exc.message, 400)
        log.error("Submission failed: %s", exc)
        return _text(str(exc), 500)

    @app.exception_handler(WriteSerializerError)
    @app.exception_handler(ShipCatalogError)
    async def server_error(  # pyright: ignore[reportUnusedFunction]
        _request: Request, exc: Exception
    ) -> PlainTextResponse:
        log.error("Request failed: %s: %s", type(exc).__name__, exc)
        return _text(f"{type(exc).__name__}: {exc}", 500)
