"""Configuration section models."""

from omnisession.config.models.api import APIConfig
from omnisession.config.models.observability import LoggingConfig, ObservabilityConfig
from omnisession.config.models.sessions import SessionsConfig
from omnisession.config.models.storage import PostgresConfig, StorageConfig

__all__ = [
    "APIConfig",
    "LoggingConfig",
    "ObservabilityConfig",
    "PostgresConfig",
    "SessionsConfig",
    "StorageConfig",
]
