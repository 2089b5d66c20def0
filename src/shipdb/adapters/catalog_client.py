"""HTTP client for a running catalog service."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from shipdb.config import get_remote_config
from shipdb.domain.ships import ships_to_string
from shipdb.service.schema import CHANGE_LIST_ADAPTER

from .http_resilience import ResilientClient

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    import httpx

    from shipdb.config import ResilienceConfig
    from shipdb.domain.queries import Adjustables
    from shipdb.domain.ships import Ship, SpeedKey
    from shipdb.service.schema import ChangeEntryModel

log = getLogger(__name__)


def _default_resilience_config() -> ResilienceConfig:
    return get_remote_config().resilience


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


class CatalogServiceError(RuntimeError):
    """Raised when the service answers with a non-success status."""

    def __init__(self, message: str, *, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(slots=True)
class CatalogClient:
    resilience: ResilienceConfig = field(default_factory=_default_resilience_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    def get(self, family: str, speed: SpeedKey, adjustables: Adjustables | None = None) -> str:
        return asyncio.run(self.get_async(family, speed, adjustables))

    def submit(self, family: str, ships: Sequence[Ship]) -> str:
        return asyncio.run(self.submit_async(family, ships))

    def counts(self, family: str) -> str:
        return asyncio.run(self.counts_async(family))

    def drain(self) -> list[ChangeEntryModel]:
        return asyncio.run(self.drain_async())

    async def get_async(
        self, family: str, speed: SpeedKey, adjustables: Adjustables | None = None
    ) -> str:
        params = {"type": family, "dx": speed.dx, "dy": speed.dy, "period": speed.period}
        if adjustables is not None:
            params["adjustables"] = adjustables.value
        async with self.client_factory(self.resilience) as client:
            response = await client.get("/get", params=params)
        return _checked(response).text

    async def submit_async(self, family: str, ships: Sequence[Ship]) -> str:
        log.info("Submitting %d records to %s", len(ships), family)
        async with self.client_factory(self.resilience) as client:
            response = await client.post(
                "/add", params={"type": family}, content=ships_to_string(ships)
            )
        return _checked(response).text

    async def counts_async(self, family: str) -> str:
        async with self.client_factory(self.resilience) as client:
            response = await client.get("/counts", params={"type": family})
        return _checked(response).text

    async def drain_async(self) -> list[ChangeEntryModel]:
        async with self.client_factory(self.resilience) as client:
            response = await client.get("/drain")
        return CHANGE_LIST_ADAPTER.validate_json(_checked(response).content)


def _checked(response: httpx.Response) -> httpx.Response:
    if response.is_success:
        return response
    message = response.text.strip() or response.reason_phrase
    raise CatalogServiceError(
        f"{response.request.method} {response.request.url.path} failed "
        f"({response.status_code}): {message}",
        status_code=response.status_code,
    )
