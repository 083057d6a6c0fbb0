"""Validation of incoming metrics events."""
# 说明：指标事件校验；任一字段不合法即抛出 EventValidationError，且在写入之前完成。

from __future__ import annotations

from datetime import datetime
from typing import Any

from ..core.errors import EventValidationError
from ..core.utils.param_validation import ensure, ensure_non_empty_str
from .models import EVENT_TYPES, MetricsEvent


def validate_event(event: Any) -> MetricsEvent:
    ensure(isinstance(event, MetricsEvent), "event must be a MetricsEvent", error=EventValidationError)
    ensure_non_empty_str(event.event_id, "event_id", error=EventValidationError)
    ensure(
        event.event_type in EVENT_TYPES,
        f"event_type must be one of {', '.join(EVENT_TYPES)}",
        error=EventValidationError,
    )
    ensure_non_empty_str(event.cohort_id, "cohort_id", error=EventValidationError)
    ensure_non_empty_str(event.domain, "domain", error=EventValidationError)
    ensure(isinstance(event.timestamp, datetime), "timestamp must be a datetime", error=EventValidationError)
    ensure(isinstance(event.metadata, dict), "metadata must be a mapping", error=EventValidationError)
    return event
