"""Settings for talking to a remote shipdb service."""

from __future__ import annotations

from dataclasses import dataclass

from .env import require_env_vars
from .http_resilience import RateLimit, ResilienceConfig

# The service refuses submissions more often than every 10 seconds per address.
REMOTE_RATE_LIMIT = RateLimit(max_calls=1, per_seconds=10.0)


@dataclass(frozen=True, slots=True)
class RemoteConfig:
    resilience: ResilienceConfig


def get_remote_config(*, base_url: str | None = None) -> RemoteConfig:
    url = base_url or require_env_vars(("SHIPDB_SERVER_URL",))["SHIPDB_SERVER_URL"].strip()
    return RemoteConfig(
        resilience=ResilienceConfig(
            name="shipdb",
            base_url=url,
            ratelimit=REMOTE_RATE_LIMIT,
            default_headers={"Content-Type": "text/plain; charset=utf-8"},
        )
    )
