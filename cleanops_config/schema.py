"""
Configuration schema (``cleanops_config.schema``).

Frozen dataclasses describing the engine configuration after YAML parsing.
Validation lives in ``__post_init__`` so an ``EngineConfig`` that exists is
a valid one.
"""

from __future__ import annotations

from dataclasses import dataclass, field

RECOGNITION_CONTEXTS = (
    "creation",
    "approval",
    "completion",
    "update",
    "payment",
    "reconciliation",
)


@dataclass(frozen=True)
class StoreConfig:
    backend: str = "memory"
    url: str = "sqlite://"
    page_size: int = 1000
    timeout_seconds: float = 5.0
    read_retry_attempts: int = 2

    def __post_init__(self) -> None:
        if self.backend not in ("memory", "sql"):
            raise ValueError(f"store.backend must be 'memory' or 'sql', got {self.backend!r}")
        if self.page_size < 1:
            raise ValueError("store.page_size must be >= 1")
        if self.timeout_seconds <= 0:
            raise ValueError("store.timeout_seconds must be > 0")
        if self.read_retry_attempts < 1:
            raise ValueError("store.read_retry_attempts must be >= 1")


@dataclass(frozen=True)
class CategoryConfig:
    """Transaction category labels, one per recognition context plus payroll."""

    creation: str
    approval: str
    completion: str
    update: str
    payment: str
    reconciliation: str
    payroll: str

    def __post_init__(self) -> None:
        for name in (*RECOGNITION_CONTEXTS, "payroll"):
            if not str(getattr(self, name)).strip():
                raise ValueError(f"categories.{name} must not be empty")

    def for_context(self, context: str) -> str:
        if context not in RECOGNITION_CONTEXTS:
            raise ValueError(f"Unknown recognition context: {context!r}")
        return getattr(self, context)


@dataclass(frozen=True)
class SweepConfig:
    enabled: bool = True
    interval_seconds: float = 300.0

    def __post_init__(self) -> None:
        if self.interval_seconds <= 0:
            raise ValueError("sweep.interval_seconds must be > 0")


@dataclass(frozen=True)
class EngineConfig:
    store: StoreConfig
    categories: CategoryConfig
    sweep: SweepConfig
    # operation name -> roles allowed to call it
    roles: dict[str, frozenset[str]] = field(default_factory=dict)
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"logging.level is not a log level: {self.log_level!r}")
