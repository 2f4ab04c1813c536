"""GraphConfig: settings for opening a NoteGraph.

Read from the ``[notegraph]`` table of ``notegraph.toml``, then overridden by
environment variables.

notegraph.toml example:

    [notegraph]
    db_path = ".notegraph/graph.db"   # ":memory:" when omitted
    vault = "notes"                    # markdown directory loaded by the CLI
    changelog = true
    tag_keys = ["topic_type", "status", "tags"]
    log_level = "INFO"

Environment overrides: NOTEGRAPH_DB, NOTEGRAPH_VAULT, NOTEGRAPH_LOG_LEVEL.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .index import DEFAULT_TAG_KEYS

CONFIG_FILENAME = "notegraph.toml"

_ENV_OVERRIDES = {
    "NOTEGRAPH_DB": "db_path",
    "NOTEGRAPH_VAULT": "vault",
    "NOTEGRAPH_LOG_LEVEL": "log_level",
}

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(ValueError):
    """Raised for a malformed notegraph.toml or invalid setting."""


@dataclass
class GraphConfig:
    db_path: str = ":memory:"
    changelog: bool = True
    tag_keys: tuple[str, ...] = DEFAULT_TAG_KEYS
    vault: str | None = None
    log_level: str = "WARNING"


def _coerce(raw: dict[str, Any], source: str) -> dict[str, Any]:
    known = set(GraphConfig.__dataclass_fields__)
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"{source}: unknown setting(s): {', '.join(unknown)}")

    values: dict[str, Any] = {}
    for key, val in raw.items():
        if key in ("db_path", "vault", "log_level"):
            if not isinstance(val, str):
                raise ConfigError(f"{source}: '{key}' must be a string")
            values[key] = val
        elif key == "changelog":
            if not isinstance(val, bool):
                raise ConfigError(f"{source}: 'changelog' must be a boolean")
            values[key] = val
        elif key == "tag_keys":
            if not isinstance(val, list) or not all(isinstance(k, str) and k for k in val):
                raise ConfigError(f"{source}: 'tag_keys' must be a list of strings")
            values[key] = tuple(val)

    if "log_level" in values:
        level = values["log_level"].upper()
        if level not in _LOG_LEVELS:
            raise ConfigError(f"{source}: unknown log level '{values['log_level']}'")
        values["log_level"] = level
    return values


def load_config(path: Path | str | None = None, env: dict[str, str] | None = None) -> GraphConfig:
    """Load settings from *path* (or ./notegraph.toml if present) plus env.

    An explicit *path* that does not exist is an error; a missing default
    file just means defaults.
    """
    env = os.environ if env is None else env
    if path is not None:
        config_path = Path(path)
        if not config_path.is_file():
            raise ConfigError(f"config file not found: {config_path}")
    else:
        config_path = Path.cwd() / CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_path.is_file():
        try:
            with config_path.open("rb") as f:
                raw = tomllib.load(f).get("notegraph", {})
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"{config_path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"{config_path}: [notegraph] must be a table")

    values = _coerce(raw, str(config_path))
    overrides = {field: env[name] for name, field in _ENV_OVERRIDES.items() if env.get(name)}
    values.update(_coerce(overrides, "environment"))
    return GraphConfig(**values)
