"""Configuration error definitions."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Raised when configuration values are invalid."""


class MissingConfigurationError(ConfigurationError):
    """Raised when required configuration values are absent or blank."""


class InvalidReferenceError(ConfigurationError):
    """Raised when a ``module:attribute`` reference cannot be resolved."""

    def __init__(self, reference: str, reason: str) -> None:
        super().__init__(f"Cannot load {reference!r}: {reason}")
        self.reference = reference
