"""
Records owned by the cohort engine.
"""
# 说明：人群分配相关的数据结构。
# 职责：
# - DomainVisit：单个域名的访问汇总（首访、末访、次数），不可变；新访问到达时整体替换
# - CohortAssignment：不可变的主题分配记录，带分配日期与过期日期
# 约定：
# - 所有时间戳均为 UTC aware datetime；序列化为 ISO-8601 字符串

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from ..core.utils.serialization import parse_utc, to_utc_iso


@dataclass(frozen=True)
class DomainVisit:
    domain: str
    timestamp: datetime
    visit_count: int = 1
    first_visit: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.first_visit is None:
            object.__setattr__(self, "first_visit", self.timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain": self.domain,
            "timestamp": to_utc_iso(self.timestamp),
            "visit_count": self.visit_count,
            "first_visit": to_utc_iso(self.first_visit or self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DomainVisit":
        return cls(
            domain=data["domain"],
            timestamp=parse_utc(data["timestamp"]),
            visit_count=int(data.get("visit_count", 1)),
            first_visit=parse_utc(data["first_visit"]) if data.get("first_visit") else None,
        )


@dataclass(frozen=True)
class CohortAssignment:
    topic_id: int
    topic_name: str
    confidence: float
    assigned_date: datetime
    expiry_date: datetime

    @classmethod
    def create(
        cls,
        topic_id: int,
        topic_name: str,
        confidence: float,
        assigned_date: datetime,
        retention_days: int,
    ) -> "CohortAssignment":
        return cls(
            topic_id=topic_id,
            topic_name=topic_name,
            confidence=confidence,
            assigned_date=assigned_date,
            expiry_date=assigned_date + timedelta(days=retention_days),
        )

    def is_live(self, now: datetime) -> bool:
        return now < self.expiry_date

    def to_dict(self) -> Dict[str, Any]:
        return {
            "topic_id": self.topic_id,
            "topic_name": self.topic_name,
            "confidence": self.confidence,
            "assigned_date": to_utc_iso(self.assigned_date),
            "expiry_date": to_utc_iso(self.expiry_date),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CohortAssignment":
        return cls(
            topic_id=int(data["topic_id"]),
            topic_name=str(data["topic_name"]),
            confidence=float(data["confidence"]),
            assigned_date=parse_utc(data["assigned_date"]),
            expiry_date=parse_utc(data["expiry_date"]),
        )
