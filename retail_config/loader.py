"""
Configuration Loader (``retail_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen
``retail_config.schema`` dataclasses.  Runtime callers use
``retail_config.get_active_config()`` instead of calling this directly.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown section or key  -> ``ConfigurationError``.
* Invalid value  -> ``ConfigurationError`` from the section's ``__post_init__``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from retail_config.schema import (
    DatabaseSettings,
    InventorySettings,
    LoggingSettings,
    NumberingSettings,
    RetailConfig,
)
from retail_kernel.exceptions import ConfigurationError

_SECTIONS = {
    "database": DatabaseSettings,
    "inventory": InventorySettings,
    "logging": LoggingSettings,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _parse_section(name: str, cls: type, data: dict[str, Any] | None):
    data = data or {}
    allowed = {f.name for f in fields(cls)}
    unknown = set(data) - allowed
    if unknown:
        raise ConfigurationError(name, f"unknown keys {sorted(unknown)}")
    return cls(**data)


def parse_config(data: dict[str, Any]) -> RetailConfig:
    """Build a RetailConfig from an already-loaded mapping."""
    unknown = set(data) - set(_SECTIONS) - {"numbering"}
    if unknown:
        raise ConfigurationError("<root>", f"unknown sections {sorted(unknown)}")

    sections = {
        name: _parse_section(name, cls, data.get(name))
        for name, cls in _SECTIONS.items()
    }
    numbering = NumberingSettings(
        templates={**NumberingSettings().templates, **(data.get("numbering") or {})}
    )
    return RetailConfig(numbering=numbering, **sections)


def load_config(path: Path) -> RetailConfig:
    return parse_config(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
