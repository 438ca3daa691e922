"""
Retail configuration schema.

Frozen dataclasses describing the runtime configuration.  YAML files are
parsed into these types by ``retail_config.loader``; every section
validates itself in ``__post_init__`` so an invalid file fails at load
time, not in the middle of a sale.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from retail_kernel.db.types import COST_DECIMAL_PLACES
from retail_kernel.domain.numbering import DEFAULT_TEMPLATES, DocumentNumberFormat, build_formats
from retail_kernel.exceptions import ConfigurationError

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///retail.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10

    def __post_init__(self) -> None:
        if not self.url:
            raise ConfigurationError("database.url", "must not be empty")
        if not self.url.startswith(("sqlite", "postgresql")):
            raise ConfigurationError("database.url", f"unsupported backend in {self.url!r}")
        if self.pool_size < 1:
            raise ConfigurationError("database.pool_size", "must be at least 1")


@dataclass(frozen=True)
class InventorySettings:
    """
    Stock ledger policy.

    ``allow_negative_stock`` is off by default: a sale, issue or transfer
    that would leave less than zero on hand is refused.  Shops that sell
    before goods are booked in (back orders) can switch it on.
    """

    allow_negative_stock: bool = False
    cost_decimal_places: int = COST_DECIMAL_PLACES

    def __post_init__(self) -> None:
        if not 0 <= self.cost_decimal_places <= 9:
            raise ConfigurationError(
                "inventory.cost_decimal_places", "must be between 0 and 9"
            )


@dataclass(frozen=True)
class NumberingSettings:
    """Document number templates keyed by counter name."""

    templates: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_TEMPLATES))

    def __post_init__(self) -> None:
        unknown = set(self.templates) - set(DEFAULT_TEMPLATES)
        if unknown:
            raise ConfigurationError("numbering", f"unknown document types {sorted(unknown)}")
        try:
            build_formats(self.templates)
        except ValueError as exc:
            raise ConfigurationError("numbering", str(exc)) from exc

    def format_for(self, counter: str) -> DocumentNumberFormat:
        return build_formats(self.templates)[counter]


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"

    def __post_init__(self) -> None:
        if self.level.upper() not in _LOG_LEVELS:
            raise ConfigurationError("logging.level", f"unknown level {self.level!r}")

    @property
    def level_number(self) -> int:
        return logging.getLevelName(self.level.upper())


@dataclass(frozen=True)
class RetailConfig:
    """The complete runtime configuration."""

    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    inventory: InventorySettings = field(default_factory=InventorySettings)
    numbering: NumberingSettings = field(default_factory=NumberingSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
