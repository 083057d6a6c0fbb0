"""
Key/value store seam.

Only `get` / `put` / `delete` over bytes are required from a backing store;
everything above this layer (cohort state, metrics buckets) is expressed in
terms of it.
"""
# 说明：键值存储抽象与内存参考实现。
# 职责：
# - KeyValueStore：协议，约定 bytes 级别的 get / put / delete
# - InMemoryKeyValueStore：线程安全的内存实现，并提供 keys(prefix) 便于按前缀枚举

from __future__ import annotations

import threading
from typing import Dict, Optional, Protocol, Tuple


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[bytes]:
        ...

    def put(self, key: str, value: bytes) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class InMemoryKeyValueStore:
    """Reference store backed by a dict."""

    def __init__(self) -> None:
        self._data: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, value: bytes) -> None:
        if not isinstance(value, (bytes, bytearray)):
            raise TypeError("value must be bytes")
        with self._lock:
            self._data[key] = bytes(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self, prefix: str = "") -> Tuple[str, ...]:
        with self._lock:
            return tuple(sorted(k for k in self._data if k.startswith(prefix)))

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
