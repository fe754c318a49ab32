"""[storage] section: which backend holds sessions, assistants and users."""

from typing import Literal

from pydantic import BaseModel, Field, model_validator

BackendType = Literal["inmemory", "postgres"]


class PostgresConfig(BaseModel):
    """[storage.postgres]: asyncpg pool sizing and timeouts."""

    dsn: str | None = Field(
        default=None,
        description="Unset means OMNISESSION_DATABASE_URL, DATABASE_URL or POSTGRES_*",
    )
    min_pool_size: int = Field(default=5, gt=0)
    max_pool_size: int = Field(default=20, gt=0)
    max_inactive_connection_lifetime: float = Field(
        default=300.0,
        gt=0,
        description="Seconds before an idle pooled connection is closed",
    )
    command_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Per-statement timeout in seconds; bounds CREATE INDEX CONCURRENTLY too",
    )

    @model_validator(mode="after")
    def check_pool_bounds(self) -> "PostgresConfig":
        if self.max_pool_size < self.min_pool_size:
            raise ValueError("max_pool_size must be >= min_pool_size")
        return self


class StorageConfig(BaseModel):
    """One backend for the session store and both directories."""

    backend: BackendType = "inmemory"
    postgres: PostgresConfig = Field(default_factory=PostgresConfig)
