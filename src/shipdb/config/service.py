"""HTTP service defaults and limits."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_float, env_int, optional_env_var

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 3000
DEFAULT_ADMIN_ADDRESS = "127.0.0.1"
DEFAULT_QUERY_INTERVAL_SECONDS = 1.0
DEFAULT_SUBMIT_INTERVAL_SECONDS = 10.0
DEFAULT_DRAIN_INTERVAL_SECONDS = 60.0
DEFAULT_MAX_BATCH_SIZE = 1000
DEFAULT_JOB_TIMEOUT_SECONDS = 30.0
DEFAULT_GENERATION_LIMIT = 32768


@dataclass(frozen=True, slots=True)
class ServiceConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    admin_address: str = DEFAULT_ADMIN_ADDRESS
    query_interval: float = DEFAULT_QUERY_INTERVAL_SECONDS
    submit_interval: float = DEFAULT_SUBMIT_INTERVAL_SECONDS
    drain_interval: float = DEFAULT_DRAIN_INTERVAL_SECONDS
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE
    job_timeout: float = DEFAULT_JOB_TIMEOUT_SECONDS
    generation_limit: int = DEFAULT_GENERATION_LIMIT


def get_service_config() -> ServiceConfig:
    return ServiceConfig(
        host=optional_env_var("SHIPDB_HOST") or DEFAULT_HOST,
        port=env_int("SHIPDB_PORT", DEFAULT_PORT, minimum=1),
        admin_address=optional_env_var("SHIPDB_ADMIN_ADDRESS") or DEFAULT_ADMIN_ADDRESS,
        query_interval=env_float("SHIPDB_QUERY_INTERVAL", DEFAULT_QUERY_INTERVAL_SECONDS),
        submit_interval=env_float("SHIPDB_SUBMIT_INTERVAL", DEFAULT_SUBMIT_INTERVAL_SECONDS),
        drain_interval=env_float("SHIPDB_DRAIN_INTERVAL", DEFAULT_DRAIN_INTERVAL_SECONDS),
        max_batch_size=env_int("SHIPDB_MAX_BATCH_SIZE", DEFAULT_MAX_BATCH_SIZE, minimum=1),
        job_timeout=env_float("SHIPDB_JOB_TIMEOUT", DEFAULT_JOB_TIMEOUT_SECONDS),
        generation_limit=env_int("SHIPDB_GENERATION_LIMIT", DEFAULT_GENERATION_LIMIT, minimum=1),
    )
