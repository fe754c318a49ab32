"""Root Settings for Omnisession.

Precedence, highest first: constructor arguments, OMNISESSION_* environment
variables (nested with `__`, e.g. OMNISESSION_SESSIONS__MAX_CREATE_ATTEMPTS),
the merged TOML layers, then the model defaults.
"""

from typing import Any

from pydantic import Field
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from omnisession.config.models.api import APIConfig
from omnisession.config.models.observability import ObservabilityConfig
from omnisession.config.models.sessions import SessionsConfig
from omnisession.config.models.storage import StorageConfig

# Merged TOML layers; installed by get_settings() before Settings() is built
_toml_layers: dict[str, Any] = {}


def set_toml_config(config: dict[str, Any]) -> None:
    """Install the merged TOML layers read by the next Settings()."""
    global _toml_layers
    _toml_layers = dict(config)


class TomlLayerSource(PydanticBaseSettingsSource):
    """Feeds the installed TOML layers to pydantic-settings."""

    def get_field_value(
        self, field: FieldInfo, field_name: str  # noqa: ARG002
    ) -> tuple[Any, str, bool]:
        value = _toml_layers.get(field_name)
        return value, field_name, value is not None

    def __call__(self) -> dict[str, Any]:
        return {key: value for key, value in _toml_layers.items() if value is not None}


class Settings(BaseSettings):
    """Every configuration section of the session service."""

    model_config = SettingsConfigDict(
        env_prefix="OMNISESSION_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="omnisession", description="Service name in logs")
    debug: bool = Field(default=False)

    api: APIConfig = Field(default_factory=APIConfig)
    storage: StorageConfig = Field(
        default_factory=StorageConfig,
        description="Backend for sessions and the assistant/user directories",
    )
    sessions: SessionsConfig = Field(
        default_factory=SessionsConfig,
        description="Conflict retries, channel defaults and the startup index migration",
    )
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, env_settings, TomlLayerSource(settings_cls))
