"""
Engine configuration schema.

Frozen dataclasses parsed from YAML by ``mfg_config.loader``.  Each section
validates itself in ``__post_init__`` so a bad file fails at load time, not
in the middle of a command.
"""

from __future__ import annotations

from dataclasses import dataclass, field

OVERPAYMENT_POLICIES = ("accept", "reject")


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///mfg_ledger.db"
    lock_timeout_seconds: float = 10.0
    echo: bool = False
    pool_size: int = 20

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("database.url is required")
        if self.lock_timeout_seconds <= 0:
            raise ValueError("database.lock_timeout_seconds must be positive")


@dataclass(frozen=True)
class InventoryConfig:
    default_receiving_location: str = "Main Warehouse"
    finished_goods_location: str = "Finished Goods Warehouse"

    def __post_init__(self) -> None:
        if not self.default_receiving_location.strip():
            raise ValueError("inventory.default_receiving_location cannot be blank")
        if not self.finished_goods_location.strip():
            raise ValueError("inventory.finished_goods_location cannot be blank")


@dataclass(frozen=True)
class SalesConfig:
    overpayment_policy: str = "accept"

    def __post_init__(self) -> None:
        if self.overpayment_policy not in OVERPAYMENT_POLICIES:
            raise ValueError(
                f"sales.overpayment_policy must be one of {OVERPAYMENT_POLICIES}, "
                f"got {self.overpayment_policy!r}"
            )


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    base_delay_seconds: float = 0.05

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("retry.max_attempts must be at least 1")
        if self.base_delay_seconds < 0:
            raise ValueError("retry.base_delay_seconds cannot be negative")


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class EngineConfig:
    """The complete runtime configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    inventory: InventoryConfig = field(default_factory=InventoryConfig)
    sales: SalesConfig = field(default_factory=SalesConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    source: str = "defaults"
    checksum: str = ""
