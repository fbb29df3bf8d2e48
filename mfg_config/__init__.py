"""
mfg_config -- single public entrypoint for engine configuration.

Responsibility:
    ``get_active_config()`` is the ONLY way module code obtains
    configuration at runtime.  No other component reads configuration files
    or environment variables directly.  The kernel never imports this
    package; module services pass the values they need down to it.

Failure modes:
    - ``FileNotFoundError`` / ``yaml.YAMLError`` / ``ValueError`` from the
      loader on the first call when the configuration is invalid.
"""

from __future__ import annotations

import threading

from mfg_config.loader import load_config
from mfg_config.schema import (
    DatabaseConfig,
    EngineConfig,
    InventoryConfig,
    LoggingConfig,
    RetryConfig,
    SalesConfig,
)
from mfg_kernel.logging_config import get_logger

logger = get_logger("config")

_active: EngineConfig | None = None
_lock = threading.Lock()


def get_active_config() -> EngineConfig:
    """Return the process-wide configuration, loading it on first use."""
    global _active
    with _lock:
        if _active is None:
            _active = load_config()
            logger.info(
                "config_loaded",
                extra={
                    "source": _active.source,
                    "checksum": _active.checksum,
                    "overpayment_policy": _active.sales.overpayment_policy,
                },
            )
        return _active


def set_active_config(config: EngineConfig) -> None:
    """Install ``config`` as the active configuration (tests, embedding apps)."""
    global _active
    with _lock:
        _active = config


def reset_active_config() -> None:
    """Forget the cached configuration; the next call reloads it."""
    global _active
    with _lock:
        _active = None


__all__ = [
    "get_active_config",
    "set_active_config",
    "reset_active_config",
    "load_config",
    "EngineConfig",
    "DatabaseConfig",
    "InventoryConfig",
    "SalesConfig",
    "RetryConfig",
    "LoggingConfig",
]
