"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field

from kubesim.models.objects import StrategyType


@dataclass
class EngineConfig:
    """Reconciliation engine configuration."""

    grace_period_ticks: int = 1
    event_history_limit: int = 200
    revision_history_limit: int = 0
    strict_invariants: bool = True


@dataclass
class DefaultsConfig:
    """Defaults applied by the command layer when a field is omitted."""

    strategy: StrategyType = StrategyType.ROLLING_UPDATE
    max_surge: int = 1
    max_unavailable: int = 1
    node_capacity: int = 110


@dataclass
class APIConfig:
    """REST API configuration."""

    port: int = 8080


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class KubeSimConfig:
    """Top-level kubesim configuration."""

    engine: EngineConfig = field(default_factory=EngineConfig)
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
