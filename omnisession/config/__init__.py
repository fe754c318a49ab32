"""Omnisession configuration.

    from omnisession.config import get_settings

    attempts = get_settings().sessions.max_create_attempts
"""

from functools import lru_cache

from omnisession.config.loader import load_config
from omnisession.config.settings import Settings, set_toml_config


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide Settings, built once from the TOML layers and environment.

    Without a config/default.toml the code defaults (plus environment
    overrides) apply. `get_settings.cache_clear()` forces a rebuild.
    """
    try:
        layers = load_config()
    except FileNotFoundError:
        layers = {}
    set_toml_config(layers)
    return Settings()


def reload_settings() -> Settings:
    """Drop the cached Settings and build them again."""
    get_settings.cache_clear()
    return get_settings()


__all__ = ["Settings", "get_settings", "reload_settings"]
