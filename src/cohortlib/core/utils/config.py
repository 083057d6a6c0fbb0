"""
Runtime configuration utilities.

Centralises the library-wide options (logging, masking, RNG seeding) and the
per-component tunables used by the cohort engine, the metrics aggregator and
the rate limiter.
"""
# 说明：运行时配置管理工具，集中管理库级可调选项与各组件的默认参数。
# 职责：
# - RuntimeConfig：日志等级、敏感字段掩码、随机种子、严格校验开关等库级配置
# - load_from_env(...)：按统一前缀（COHORTLIB_）从环境变量加载并解析配置值
# - get_config() / configure(...)：库级默认配置入口
# - CohortEngineConfig / MetricsConfig / RateLimitConfig：组件级参数，由构造函数显式注入
# 约定：
# - 布尔类环境变量使用 {"1", "true", "yes"}（大小写不敏感）视为 True
# - 未知配置键在 update(...) 中会触发 AttributeError，避免静默吞错

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

_TRUTHY = {"1", "true", "yes"}


@dataclass
class RuntimeConfig:
    strict_validation: bool = True
    log_level: str = field(default_factory=lambda: os.environ.get("COHORTLIB_LOG_LEVEL", "INFO"))
    mask_sensitive_fields: bool = True
    rng_seed: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def update(self, **kwargs: Any) -> None:
        for key, value in kwargs.items():
            if not hasattr(self, key):
                raise AttributeError(f"unknown config option '{key}'")
            setattr(self, key, value)

    def load_from_env(self, prefix: str = "COHORTLIB_") -> None:
        # 从带前缀的环境变量加载配置，并进行类型转换后写回实例字段
        for key in ("STRICT_VALIDATION", "LOG_LEVEL", "MASK_SENSITIVE_FIELDS", "RNG_SEED"):
            env_key = f"{prefix}{key}"
            if env_key not in os.environ:
                continue
            value: Any = os.environ[env_key]
            if key in ("STRICT_VALIDATION", "MASK_SENSITIVE_FIELDS"):
                value = value.lower() in _TRUTHY
            elif key == "RNG_SEED":
                value = int(value)
            setattr(self, key.lower(), value)


_GLOBAL_CONFIG = RuntimeConfig()


def get_config() -> RuntimeConfig:
    return _GLOBAL_CONFIG


def configure(**kwargs: Any) -> RuntimeConfig:
    _GLOBAL_CONFIG.update(**kwargs)
    return _GLOBAL_CONFIG


# Component settings ---------------------------------------------------------
# 组件级配置：默认值即业务常量，测试中可按需覆盖。
@dataclass(frozen=True)
class CohortEngineConfig:
    """Tunables for topic scoring and cohort rotation."""

    max_cohorts: int = 5
    shared_cohorts: int = 3
    retention_days: int = 21
    min_visits: int = 3
    visit_count_cap: int = 1000
    max_tracked_domains: int = 10_000
    frequency_weight: float = 0.6
    recency_weight: float = 0.4
    recency_decay_days: float = 14.0
    maintenance_interval_days: int = 7
    visit_retention_days: int = 30


@dataclass(frozen=True)
class LevelPolicy:
    """Noise epsilon and minimum bucket size for one aggregation level."""

    epsilon: float
    min_samples: int


@dataclass(frozen=True)
class MetricsConfig:
    """Privacy thresholds and noise calibration for metrics aggregation."""

    high: LevelPolicy = LevelPolicy(epsilon=1.0, min_samples=50)
    medium: LevelPolicy = LevelPolicy(epsilon=0.5, min_samples=75)
    low: LevelPolicy = LevelPolicy(epsilon=0.25, min_samples=100)
    sensitivity: float = 1.0
    ctr_min_impressions: int = 100
    conversion_min_clicks: int = 10
    suppression_threshold: int = 10
    event_retention_days: int = 30
    attribution_epsilon: float = 1.0
    report_epsilon: float = 0.1

    def policy_for(self, level: str) -> LevelPolicy:
        # level 取值为 "high" / "medium" / "low"
        if level not in ("high", "medium", "low"):
            raise ValueError(f"unknown aggregation level '{level}'")
        return getattr(self, level)


@dataclass(frozen=True)
class RateLimitConfig:
    """Per-key request ceilings for the three sliding windows."""

    requests_per_minute: int = 60
    requests_per_hour: int = 1000
    requests_per_day: int = 10_000

    def to_dict(self) -> Dict[str, int]:
        return {
            "requests_per_minute": self.requests_per_minute,
            "requests_per_hour": self.requests_per_hour,
            "requests_per_day": self.requests_per_day,
        }
