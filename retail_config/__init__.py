"""
retail_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.

Architecture position:
    Configuration.  Sits above ``retail_kernel`` and below
    ``retail_modules``.  The kernel MUST NEVER import from
    ``retail_config``; modules receive a ``RetailConfig`` and pass plain
    values (``allow_negative_stock``, number formats) down to kernel
    services.

Resolution order:
    1. ``path`` argument
    2. ``RETAIL_CONFIG`` environment variable
    3. ``retail_config/sets/default.yaml``
    Then ``DATABASE_URL``, when set, replaces ``database.url``.

Audit relevance:
    Every call emits a ``retail_config_loaded`` log entry with the source
    path and the checksum of the parsed file.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from pathlib import Path

from retail_config.loader import compute_checksum, load_yaml_file, parse_config
from retail_config.schema import (
    DatabaseSettings,
    InventorySettings,
    LoggingSettings,
    NumberingSettings,
    RetailConfig,
)

_logger = logging.getLogger("retail_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(path: Path | None = None) -> RetailConfig:
    """The ONLY public configuration entrypoint."""
    source = Path(path or os.environ.get("RETAIL_CONFIG") or _DEFAULT_CONFIG_PATH)
    data = load_yaml_file(source)
    config = parse_config(data)

    database_url = os.environ.get("DATABASE_URL")
    if database_url:
        config = dataclasses.replace(
            config, database=dataclasses.replace(config.database, url=database_url)
        )

    _logger.info(
        "retail_config_loaded",
        extra={
            "source": str(source),
            "checksum": compute_checksum(data),
            "database_dialect": config.database.url.split(":", 1)[0],
            "allow_negative_stock": config.inventory.allow_negative_stock,
        },
    )
    return config


__all__ = [
    "DatabaseSettings",
    "InventorySettings",
    "LoggingSettings",
    "NumberingSettings",
    "RetailConfig",
    "get_active_config",
]
