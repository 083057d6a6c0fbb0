"""
Bounded in-memory audit trail of gateway calls.
"""
# 说明：审计日志，仅追加，超过上限时丢弃最旧的记录。

from __future__ import annotations

import threading
from collections import deque
from typing import Deque, List, Optional

from .models import AuditLogEntry

MAX_AUDIT_ENTRIES = 10_000


class AuditLog:
    def __init__(self, max_entries: int = MAX_AUDIT_ENTRIES):
        self._entries: Deque[AuditLogEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    @property
    def max_entries(self) -> int:
        return self._entries.maxlen or 0

    def append(self, entry: AuditLogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def entries(self, domain: Optional[str] = None) -> List[AuditLogEntry]:
        with self._lock:
            snapshot = list(self._entries)
        if domain is None:
            return snapshot
        return [e for e in snapshot if e.domain == domain]

    def last(self) -> Optional[AuditLogEntry]:
        with self._lock:
            return self._entries[-1] if self._entries else None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
