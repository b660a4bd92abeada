from __future__ import annotations


class ConfBenchError(Exception):
    """Base class for every fatal benchmark error."""


class ConfigurationError(ConfBenchError):
    """Raised when options are missing or invalid, before any backend contact."""


class SpawnError(ConfBenchError):
    """Raised when a client process cannot be started or exits abnormally."""


class BackendError(ConfBenchError):
    """Raised when the configuration backend cannot serve a request."""


class MissingKeyError(BackendError):
    def __init__(self, key: str) -> None:
        super().__init__(f"Failed to get key '{key}'")
        self.key = key


class MetricsError(ConfBenchError):
    """Raised when a sample cannot be delivered to the metrics sink."""


__all__ = [
    "BackendError",
    "ConfBenchError",
    "ConfigurationError",
    "MetricsError",
    "MissingKeyError",
    "SpawnError",
]
