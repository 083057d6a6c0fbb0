"""
Injectable clocks.

Every component reads "now" from a clock object so expiry, rotation and
rate-limit windows can be driven deterministically in tests.
"""
# 说明：可注入的时钟抽象。
# 职责：
# - Clock：协议，约定 now() 返回带时区（UTC）的 datetime
# - SystemClock：读取系统时间
# - ManualClock：测试用手动时钟，支持 set / advance

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    # naive datetime 视为 UTC；其余统一转换到 UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return utc_now()


class ManualClock:
    """Clock whose time only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self._now = ensure_utc(start) if start is not None else utc_now()
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def set(self, value: datetime) -> None:
        with self._lock:
            self._now = ensure_utc(value)

    def advance(self, delta: Optional[timedelta] = None, **kwargs: float) -> datetime:
        """Move forward by `delta` or by timedelta keyword arguments."""
        step = delta if delta is not None else timedelta(**kwargs)
        with self._lock:
            self._now = self._now + step
            return self._now
