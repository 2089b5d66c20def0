"""Per-process service state: rate limits, the change log and cached counts."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Literal

from aiolimiter import AsyncLimiter

if TYPE_CHECKING:
    from shipdb.domain.report import MergeReport

log = getLogger(__name__)

_PRUNE_THRESHOLD = 4096

type ChangeStatus = Literal["new", "improved"]


class RateLimitedError(RuntimeError):
    def __init__(self, client: str, interval: float) -> None:
        super().__init__(f"Too many requests, wait {interval:g} seconds between calls")
        self.client = client
        self.interval = interval


class RateLimiter:
    """One request per ``interval`` seconds for each client address.

    Requests over the limit are rejected, never queued.
    """

    def __init__(self, interval: float) -> None:
        self.interval = interval
        self._limiters: dict[str, AsyncLimiter] = {}

    async def acquire(self, client: str) -> None:
        if self.interval <= 0:
            return
        limiter = self._limiters.get(client)
        if limiter is None:
            if len(self._limiters) >= _PRUNE_THRESHOLD:
                self._prune()
            limiter = self._limiters[client] = AsyncLimiter(1, self.interval)
        if not limiter.has_capacity():
            raise RateLimitedError(client, self.interval)
        await limiter.acquire()

    def _prune(self) -> None:
        idle = [client for client, limiter in self._limiters.items() if limiter.has_capacity()]
        for client in idle:
            del self._limiters[client]
        log.debug("Pruned %d idle rate limiters", len(idle))


@dataclass(frozen=True, slots=True)
class ChangeEntry:
    type: str
    status: ChangeStatus
    speed: str
    line: str


@dataclass(slots=True)
class ChangeLog:
    """New and improved records since the last drain."""

    entries: list[ChangeEntry] = field(default_factory=list[ChangeEntry])

    def record(self, family: str, report: MergeReport) -> None:
        for ship in report.new:
            self.entries.append(ChangeEntry(family, "new", ship.describe_speed(), ship.to_line()))
        for ship in report.improved:
            self.entries.append(
                ChangeEntry(family, "improved", ship.describe_speed(), ship.to_line())
            )

    def drain(self) -> list[ChangeEntry]:
        entries, self.entries = self.entries, []
        return entries

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(slots=True)
class ServiceState:
    query_limiter: RateLimiter
    counts_limiter: RateLimiter
    submit_limiter: RateLimiter
    drain_limiter: RateLimiter
    changes: ChangeLog = field(default_factory=ChangeLog)
    counts: dict[str, str] = field(default_factory=dict[str, str])

    @classmethod
    def from_intervals(cls, *, query: float, submit: float, drain: float) -> ServiceState:
        return cls(
            query_limiter=RateLimiter(query),
            # Same interval as /get, tracked separately.
            counts_limiter=RateLimiter(query),
            submit_limiter=RateLimiter(submit),
            drain_limiter=RateLimiter(drain),
        )
