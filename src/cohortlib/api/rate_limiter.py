"""
Fixed-window request counters per API key.
"""
# 说明：按 key 维护分钟 / 小时 / 天三个固定窗口计数器。
# 职责：
# - acquire：原子地"检查全部窗口 -> 全部通过才计数"，超限抛出 RateLimitError
# - status：查看当前窗口计数与剩余额度（不计数）
# 约定：
# - 窗口编号 = floor(epoch 秒 / 60 | 3600 | 86400)；窗口编号变化时计数归零
# - 超限原因文案固定："Minute limit exceeded" / "Hour limit exceeded" / "Day limit exceeded"

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Tuple

from ..core.errors import RateLimitError
from ..core.utils.clock import Clock, SystemClock, ensure_utc
from ..core.utils.config import RateLimitConfig

# (名称, 窗口秒数, 配置字段, 超限原因)
WINDOWS: Tuple[Tuple[str, int, str, str], ...] = (
    ("minute", 60, "requests_per_minute", "Minute limit exceeded"),
    ("hour", 3600, "requests_per_hour", "Hour limit exceeded"),
    ("day", 86400, "requests_per_day", "Day limit exceeded"),
)


def window_index(moment: datetime, seconds: int) -> int:
    return int(ensure_utc(moment).timestamp()) // seconds


@dataclass
class WindowCounter:
    index: int = -1
    count: int = 0

    def current(self, index: int) -> int:
        return self.count if self.index == index else 0


@dataclass
class RateLimitState:
    minute: WindowCounter
    hour: WindowCounter
    day: WindowCounter

    @classmethod
    def empty(cls) -> "RateLimitState":
        return cls(WindowCounter(), WindowCounter(), WindowCounter())


class RateLimiter:
    """Per-key minute/hour/day ceilings with atomic check-and-increment."""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock: Clock = clock or SystemClock()
        self._states: Dict[str, RateLimitState] = {}
        self._lock = threading.Lock()

    def acquire(self, key: str, config: Optional[RateLimitConfig] = None, *, now: Optional[datetime] = None) -> None:
        """Count one request against `key`, or raise RateLimitError without counting."""
        config = config or RateLimitConfig()
        moment = now or self.clock.now()
        with self._lock:
            state = self._states.setdefault(key, RateLimitState.empty())
            indices = {name: window_index(moment, seconds) for name, seconds, _, _ in WINDOWS}
            for name, _, limit_field, reason in WINDOWS:
                counter: WindowCounter = getattr(state, name)
                if counter.current(indices[name]) >= getattr(config, limit_field):
                    raise RateLimitError(reason, details={"window": name})
            for name, _, _, _ in WINDOWS:
                counter = getattr(state, name)
                if counter.index != indices[name]:
                    counter.index = indices[name]
                    counter.count = 0
                counter.count += 1

    def status(self, key: str, config: Optional[RateLimitConfig] = None) -> Dict[str, Dict[str, int]]:
        config = config or RateLimitConfig()
        moment = self.clock.now()
        with self._lock:
            state = self._states.get(key) or RateLimitState.empty()
            report: Dict[str, Dict[str, int]] = {}
            for name, seconds, limit_field, _ in WINDOWS:
                used = getattr(state, name).current(window_index(moment, seconds))
                limit = getattr(config, limit_field)
                report[name] = {"used": used, "limit": limit, "remaining": max(0, limit - used)}
        return report

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._states.clear()
            else:
                self._states.pop(key, None)
