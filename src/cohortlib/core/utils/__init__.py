"""Shared utility helpers used across the core library."""

from .random import (
    create_rng,
    default_rng,
    laplace_noise,
)
from .config import (
    RuntimeConfig,
    get_config,
    configure,
    CohortEngineConfig,
    LevelPolicy,
    MetricsConfig,
    RateLimitConfig,
)
from .serialization import (
    serialize_to_json,
    deserialize_from_json,
    mask_sensitive_data,
    to_utc_iso,
    parse_utc,
    VersionedPayload,
)
from .logging import (
    PrivacyFilter,
    get_logger,
    configure_logging,
)
from .param_validation import (
    ensure,
    ensure_type,
    ensure_non_empty_str,
    ParamValidationError,
)
from .clock import (
    Clock,
    SystemClock,
    ManualClock,
    ensure_utc,
    utc_now,
)

__all__ = [
    "create_rng",
    "default_rng",
    "laplace_noise",
    "RuntimeConfig",
    "get_config",
    "configure",
    "CohortEngineConfig",
    "LevelPolicy",
    "MetricsConfig",
    "RateLimitConfig",
    "serialize_to_json",
    "deserialize_from_json",
    "mask_sensitive_data",
    "to_utc_iso",
    "parse_utc",
    "VersionedPayload",
    "PrivacyFilter",
    "get_logger",
    "configure_logging",
    "ensure",
    "ensure_type",
    "ensure_non_empty_str",
    "ParamValidationError",
    "Clock",
    "SystemClock",
    "ManualClock",
    "ensure_utc",
    "utc_now",
]
