"""Layered TOML configuration.

`config/default.toml` is the base layer; `config/{OMNISESSION_ENV}.toml`
is applied on top when present. Tables merge key by key, everything else
(including lists such as `sessions.composite_id_channels`) is replaced.
"""

import os
import tomllib
from pathlib import Path
from typing import Any

CONFIG_DIR_ENV = "OMNISESSION_CONFIG_DIR"
ENVIRONMENT_ENV = "OMNISESSION_ENV"
DEFAULT_ENVIRONMENT = "development"

# How far up from the working directory to look for config/
_SEARCH_DEPTH = 5


def locate_config_dir(start: Path | None = None) -> Path:
    """Directory holding the TOML layers.

    OMNISESSION_CONFIG_DIR wins and must exist. Otherwise the nearest
    `config/` at or above `start` (the working directory) is used.
    """
    explicit = os.environ.get(CONFIG_DIR_ENV)
    if explicit:
        path = Path(explicit)
        if not path.is_dir():
            raise FileNotFoundError(f"Config directory not found: {explicit}")
        return path

    here = (start or Path.cwd()).resolve()
    for candidate in [here, *here.parents][:_SEARCH_DEPTH]:
        if (candidate / "config").is_dir():
            return candidate / "config"
    return Path("config")


def current_environment() -> str:
    """Name of the override layer, from OMNISESSION_ENV."""
    return os.environ.get(ENVIRONMENT_ENV, DEFAULT_ENVIRONMENT)


def read_toml(path: Path) -> dict[str, Any]:
    """Parse one layer.

    Raises:
        FileNotFoundError: the file is missing
        tomllib.TOMLDecodeError: the file is not valid TOML
    """
    if not path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {path}")
    with path.open("rb") as fh:
        return tomllib.load(fh)


def merge_layers(*layers: dict[str, Any]) -> dict[str, Any]:
    """Fold layers left to right into a new dict; inputs are not mutated."""
    merged: dict[str, Any] = {}
    for layer in layers:
        for key, value in layer.items():
            current = merged.get(key)
            if isinstance(current, dict) and isinstance(value, dict):
                merged[key] = merge_layers(current, value)
            elif isinstance(value, dict):
                merged[key] = merge_layers(value)
            else:
                merged[key] = value
    return merged


def load_config(environment: str | None = None, config_dir: Path | None = None) -> dict[str, Any]:
    """Read and merge the default and environment layers.

    Raises:
        FileNotFoundError: config/default.toml does not exist
    """
    directory = config_dir or locate_config_dir()
    environment = environment or current_environment()

    base = directory / "default.toml"
    if not base.is_file():
        raise FileNotFoundError(
            f"Default configuration file not found: {base}. "
            f"Create config/default.toml or set {CONFIG_DIR_ENV}."
        )

    layers = [read_toml(base)]
    override = directory / f"{environment}.toml"
    if override.is_file():
        layers.append(read_toml(override))
    return merge_layers(*layers)
