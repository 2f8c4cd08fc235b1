"""
Configuration loader (``cleanops_config.loader``).

Reads YAML with ``yaml.safe_load`` and parses the result into the frozen
dataclasses of ``cleanops_config.schema``.  Callers go through
``cleanops_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or out-of-range values  -> ``ValueError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from cleanops_config.schema import CategoryConfig, EngineConfig, StoreConfig, SweepConfig

_TOP_LEVEL_KEYS = frozenset({"store", "categories", "sweep", "roles", "logging"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursive dict merge; ``override`` wins, lists are replaced whole."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"{name} must be a mapping")
    return section


def _build(cls, data: dict[str, Any], section: str):
    try:
        return cls(**data)
    except TypeError as exc:
        raise ValueError(f"invalid {section} section: {exc}") from exc


def parse_config(data: dict[str, Any]) -> EngineConfig:
    unknown = set(data) - _TOP_LEVEL_KEYS
    if unknown:
        raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

    roles_raw = _section(data, "roles")
    roles = {
        op: frozenset(str(r) for r in (allowed or ()))
        for op, allowed in roles_raw.items()
    }

    return EngineConfig(
        store=_build(StoreConfig, _section(data, "store"), "store"),
        categories=_build(CategoryConfig, _section(data, "categories"), "categories"),
        sweep=_build(SweepConfig, _section(data, "sweep"), "sweep"),
        roles=roles,
        log_level=str(_section(data, "logging").get("level", "INFO")),
    )
