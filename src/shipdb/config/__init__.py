"""Application configuration helpers."""

from __future__ import annotations

from .engine import EngineConfig, get_engine_config
from .env import env_float, env_int, optional_env_var, require_env_vars
from .errors import ConfigurationError, InvalidReferenceError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .remote import RemoteConfig, get_remote_config
from .service import ServiceConfig, get_service_config
from .storage import StorageConfig, get_storage_config

__all__ = [
    "ConfigurationError",
    "EngineConfig",
    "InvalidReferenceError",
    "MissingConfigurationError",
    "RateLimit",
    "RemoteConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "ServiceConfig",
    "StorageConfig",
    "configure_logging",
    "env_float",
    "env_int",
    "get_engine_config",
    "get_remote_config",
    "get_service_config",
    "get_storage_config",
    "optional_env_var",
    "require_env_vars",
]
