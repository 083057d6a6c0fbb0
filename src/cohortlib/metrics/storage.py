"""
Day-partitioned, append-only metrics event log.

Events are grouped into UTC day buckets stored under
``metrics_events_YYYY-MM-DD`` in an encrypted JSON store; an index document
lists the populated buckets so that expiry can enumerate them.
"""
# 说明：按 UTC 日期分桶的指标事件存储（只追加）。
# 职责：
# - append：校验通过的事件写入对应日期桶，同时维护事件 id 集合用于去重
# - events_in_range：按时间窗口（及可选的 cohort 过滤）读取事件
# - cleanup_expired：删除早于保留期的日期桶
# 约定：
# - 日期桶在进程内缓存；写入时整体回写加密文档

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set, Tuple

from ..core.storage.secure_store import EncryptedJSONStore
from ..core.utils.clock import ensure_utc
from .models import MetricsEvent, TimeRange

KEY_PREFIX = "metrics_events_"
INDEX_KEY = "metrics_events_index"


def day_key(moment: datetime) -> str:
    return ensure_utc(moment).strftime("%Y-%m-%d")


class MetricsEventStore:
    """Append-only event log partitioned by UTC day."""

    def __init__(self, secure_store: Optional[EncryptedJSONStore] = None):
        self.secure_store = secure_store or EncryptedJSONStore()
        self._lock = threading.RLock()
        self._cache: Dict[str, List[MetricsEvent]] = {}
        self._days: Set[str] = set(self.secure_store.get_json(INDEX_KEY, default=[]) or [])
        self._event_ids: Set[str] = set()
        for key in self._days:
            self._event_ids.update(e.event_id for e in self._bucket(key))

    # ------------------------------------------------------------------ buckets
    def _bucket(self, key: str) -> List[MetricsEvent]:
        cached = self._cache.get(key)
        if cached is None:
            raw = self.secure_store.get_json(f"{KEY_PREFIX}{key}", default=[]) or []
            cached = [MetricsEvent.from_dict(item) for item in raw]
            self._cache[key] = cached
        return cached

    def _write_bucket(self, key: str, events: List[MetricsEvent]) -> None:
        self.secure_store.put_json(f"{KEY_PREFIX}{key}", [e.to_dict() for e in events])
        self._cache[key] = events

    def _write_index(self) -> None:
        self.secure_store.put_json(INDEX_KEY, sorted(self._days))

    # ------------------------------------------------------------------ writes
    def contains(self, event_id: str) -> bool:
        with self._lock:
            return event_id in self._event_ids

    def append(self, event: MetricsEvent) -> None:
        key = event.day_key
        with self._lock:
            events = list(self._bucket(key))
            events.append(event)
            self._write_bucket(key, events)
            self._event_ids.add(event.event_id)
            if key not in self._days:
                self._days.add(key)
                self._write_index()

    def cleanup_expired(self, now: datetime, retention_days: int) -> int:
        """Drop day buckets older than the retention window; returns buckets removed."""
        cutoff = day_key(ensure_utc(now) - timedelta(days=retention_days))
        with self._lock:
            expired = sorted(k for k in self._days if k < cutoff)
            for key in expired:
                for event in self._bucket(key):
                    self._event_ids.discard(event.event_id)
                self.secure_store.delete(f"{KEY_PREFIX}{key}")
                self._cache.pop(key, None)
                self._days.discard(key)
            if expired:
                self._write_index()
        return len(expired)

    # ------------------------------------------------------------------ reads
    def day_keys(self) -> Tuple[str, ...]:
        with self._lock:
            return tuple(sorted(self._days))

    def events_in_range(
        self,
        time_range: TimeRange,
        cohort_ids: Optional[Iterable[str]] = None,
    ) -> Tuple[MetricsEvent, ...]:
        wanted = None if cohort_ids is None else set(cohort_ids)
        first, last = day_key(time_range.start), day_key(time_range.end)
        with self._lock:
            keys = sorted(k for k in self._days if first <= k <= last)
            selected = [
                event
                for key in keys
                for event in self._bucket(key)
                if time_range.contains(event.timestamp) and (wanted is None or event.cohort_id in wanted)
            ]
        selected.sort(key=lambda e: (e.timestamp, e.event_id))
        return tuple(selected)

    def count(self, cohort_id: str, event_type: str, time_range: TimeRange) -> int:
        return sum(1 for e in self.events_in_range(time_range, [cohort_id]) if e.event_type == event_type)

    def clear(self) -> None:
        with self._lock:
            for key in self._days:
                self.secure_store.delete(f"{KEY_PREFIX}{key}")
            self._days.clear()
            self._cache.clear()
            self._event_ids.clear()
            self.secure_store.delete(INDEX_KEY)

    def __len__(self) -> int:
        with self._lock:
            return len(self._event_ids)
