"""
cleanops_config -- single public entrypoint for engine configuration.

Responsibility:
    ``get_active_config()`` is the only way services obtain configuration.
    It loads ``defaults.yaml`` and deep-merges an optional override file
    (explicit path, else the ``CLEANOPS_CONFIG`` environment variable).

Failure modes:
    - ``FileNotFoundError`` -- the override path does not exist.
    - ``ValueError`` -- unknown keys or invalid values.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from cleanops_config.loader import load_yaml_file, merge, parse_config
from cleanops_config.schema import CategoryConfig, EngineConfig, StoreConfig, SweepConfig

_logger = logging.getLogger("cleanops.config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"
CONFIG_ENV_VAR = "CLEANOPS_CONFIG"


def get_active_config(path: str | Path | None = None) -> EngineConfig:
    """Load the active configuration (defaults + optional override)."""
    data = load_yaml_file(DEFAULTS_PATH)

    override = path or os.environ.get(CONFIG_ENV_VAR)
    if override:
        data = merge(data, load_yaml_file(Path(override)))

    config = parse_config(data)
    _logger.info(
        "config_loaded",
        extra={
            "override": str(override) if override else None,
            "store_backend": config.store.backend,
            "sweep_enabled": config.sweep.enabled,
        },
    )
    return config


__all__ = [
    "CategoryConfig",
    "EngineConfig",
    "StoreConfig",
    "SweepConfig",
    "get_active_config",
]
