"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from kubesim.models.config import (
    APIConfig,
    DefaultsConfig,
    EngineConfig,
    KubeSimConfig,
    LogConfig,
)
from kubesim.models.objects import StrategyType


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KUBESIM_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _validate_strategy(value: str) -> StrategyType:
    try:
        return StrategyType(value)
    except ValueError:
        valid = {s.value for s in StrategyType}
        raise ValueError(f"Invalid deployment strategy: {value}. Must be one of {valid}") from None


def _validate_rollout(defaults: DefaultsConfig) -> DefaultsConfig:
    if defaults.strategy == StrategyType.ROLLING_UPDATE and defaults.max_surge == 0 and defaults.max_unavailable == 0:
        raise ValueError("Invalid rollout defaults: max surge and max unavailable cannot both be 0")
    return defaults


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def load_config() -> KubeSimConfig:
    """Load configuration from KUBESIM_* environment variables."""
    return KubeSimConfig(
        engine=EngineConfig(
            grace_period_ticks=_env_int("GRACE_PERIOD_TICKS", 1, min_val=1, max_val=10),
            event_history_limit=_env_int("EVENT_HISTORY_LIMIT", 200, min_val=10, max_val=10000),
            revision_history_limit=_env_int("REVISION_HISTORY_LIMIT", 0, min_val=0, max_val=10),
            strict_invariants=_env_bool("STRICT_INVARIANTS", True),
        ),
        defaults=_validate_rollout(
            DefaultsConfig(
                strategy=_validate_strategy(_env("DEFAULT_STRATEGY", "RollingUpdate")),
                max_surge=_env_int("DEFAULT_MAX_SURGE", 1, min_val=0),
                max_unavailable=_env_int("DEFAULT_MAX_UNAVAILABLE", 1, min_val=0),
                node_capacity=_env_int("DEFAULT_NODE_CAPACITY", 110, min_val=1),
            )
        ),
        api=APIConfig(
            port=_env_int("API_PORT", 8080, min_val=1024, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
