"""
Records flowing through the metrics pipeline.
"""
# 说明：指标管线相关的数据结构。
# 职责：
# - TimeRange：查询时间窗口（两端均包含）
# - MetricsEvent：不可变的曝光 / 点击 / 转化事件，按 UTC 日期分桶存储
# - AggregatedMetrics：按需派生的聚合结果，从不持久化
# - AttributionReport：曝光 → 转化归因记录

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict

from ..core.errors import ValidationError
from ..core.utils.clock import ensure_utc
from ..core.utils.serialization import parse_utc, to_utc_iso

EVENT_TYPES = ("impression", "click", "conversion")
AGGREGATION_LEVELS = ("high", "medium", "low")
GRANULARITIES = ("hourly", "daily", "weekly")


@dataclass(frozen=True)
class TimeRange:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if not isinstance(self.start, datetime) or not isinstance(self.end, datetime):
            raise ValidationError("time range bounds must be datetimes")
        object.__setattr__(self, "start", ensure_utc(self.start))
        object.__setattr__(self, "end", ensure_utc(self.end))

    def contains(self, moment: datetime) -> bool:
        return self.start <= ensure_utc(moment) <= self.end

    @property
    def duration_seconds(self) -> float:
        return (self.end - self.start).total_seconds()

    def to_dict(self) -> Dict[str, str]:
        return {"start": to_utc_iso(self.start), "end": to_utc_iso(self.end)}


@dataclass(frozen=True)
class MetricsEvent:
    event_id: str
    event_type: str
    cohort_id: str
    timestamp: datetime
    domain: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # 非 datetime 的时间戳留给 validate_event 报错
        if isinstance(self.timestamp, datetime):
            object.__setattr__(self, "timestamp", ensure_utc(self.timestamp))

    @property
    def day_key(self) -> str:
        return ensure_utc(self.timestamp).strftime("%Y-%m-%d")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "cohort_id": self.cohort_id,
            "timestamp": to_utc_iso(self.timestamp),
            "domain": self.domain,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MetricsEvent":
        return cls(
            event_id=data["event_id"],
            event_type=data["event_type"],
            cohort_id=data["cohort_id"],
            timestamp=parse_utc(data["timestamp"]),
            domain=data["domain"],
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass(frozen=True)
class AggregatedMetrics:
    cohort_id: str
    time_range: TimeRange
    impressions: int
    clicks: int
    conversions: int
    click_through_rate: float
    conversion_rate: float
    aggregation_level: str
    data_points: int
    privacy_threshold_met: bool
    noise_scale: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cohort_id": self.cohort_id,
            "time_range": self.time_range.to_dict(),
            "impressions": self.impressions,
            "clicks": self.clicks,
            "conversions": self.conversions,
            "click_through_rate": self.click_through_rate,
            "conversion_rate": self.conversion_rate,
            "aggregation_level": self.aggregation_level,
            "data_points": self.data_points,
            "privacy_threshold_met": self.privacy_threshold_met,
            "noise_scale": self.noise_scale,
        }


@dataclass(frozen=True)
class AttributionReport:
    report_id: str
    cohort_id: str
    source_event: MetricsEvent
    trigger_event: MetricsEvent
    attribution_delay: float
    conversion_value: float
    timestamp: datetime
    privacy_budget: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "report_id": self.report_id,
            "cohort_id": self.cohort_id,
            "source_event": self.source_event.to_dict(),
            "trigger_event": self.trigger_event.to_dict(),
            "attribution_delay": self.attribution_delay,
            "conversion_value": self.conversion_value,
            "timestamp": to_utc_iso(self.timestamp),
            "privacy_budget": self.privacy_budget,
        }
