"""
Configuration Loader (``mfg_config.loader``).

Responsibility
--------------
Loads the packaged ``defaults.yaml``, merges an optional override file on
top, applies environment overrides, and parses the result into the frozen
``mfg_config.schema`` dataclasses.  Runtime callers use
``mfg_config.get_active_config()`` instead of calling this directly.

Precedence (later wins)
-----------------------
1. ``mfg_config/defaults.yaml``
2. the file named by ``path`` or ``MFG_CONFIG_PATH``
3. ``MFG_DATABASE_URL``

Failure modes
-------------
* Missing override file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown section or key  -> ``ValueError`` (typos must not be ignored).
* Invalid values  -> ``ValueError`` from the schema ``__post_init__``.
"""

from __future__ import annotations

import hashlib
import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from mfg_config.schema import (
    DatabaseConfig,
    EngineConfig,
    InventoryConfig,
    LoggingConfig,
    RetryConfig,
    SalesConfig,
)

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

ENV_CONFIG_PATH = "MFG_CONFIG_PATH"
ENV_DATABASE_URL = "MFG_DATABASE_URL"

_SECTIONS = {
    "database": DatabaseConfig,
    "inventory": InventoryConfig,
    "sales": SalesConfig,
    "retry": RetryConfig,
    "logging": LoggingConfig,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Recursive dict merge; ``override`` wins on conflicts."""
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(result.get(key), Mapping):
            result[key] = merge(result[key], value)
        else:
            result[key] = value
    return result


def _parse_section(name: str, data: Any) -> Any:
    cls = _SECTIONS[name]
    if data is None:
        return cls()
    if not isinstance(data, Mapping):
        raise ValueError(f"config section '{name}' must be a mapping")
    known = set(cls.__dataclass_fields__)
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"unknown keys in '{name}': {', '.join(sorted(unknown))}")
    return cls(**data)


def parse_config(data: Mapping[str, Any], source: str = "defaults") -> EngineConfig:
    unknown = set(data) - set(_SECTIONS)
    if unknown:
        raise ValueError(f"unknown config sections: {', '.join(sorted(unknown))}")
    sections = {name: _parse_section(name, data.get(name)) for name in _SECTIONS}
    return EngineConfig(**sections, source=source, checksum=compute_checksum(data))


def load_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> EngineConfig:
    """Build an EngineConfig from defaults, an optional file and the environment."""
    env = os.environ if environ is None else environ
    data = load_yaml_file(DEFAULTS_PATH)
    source = "defaults"

    override_path = path or env.get(ENV_CONFIG_PATH)
    if override_path:
        data = merge(data, load_yaml_file(Path(override_path)))
        source = str(override_path)

    database_url = env.get(ENV_DATABASE_URL)
    if database_url:
        data = merge(data, {"database": {"url": database_url}})

    return parse_config(data, source=source)


def compute_checksum(data: Mapping[str, Any]) -> str:
    """SHA-256 of the canonical JSON form; identical input, identical hash."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
