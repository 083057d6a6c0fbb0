"""
API key issuance and lookup.

Responsibilities:
    * mint keys of the form ``lpct_`` + 32 random alphanumerics
    * keep one record per key with its domain, permissions and ceilings
    * answer "is this key usable right now" for the authentication step
"""
# 说明：API key 注册表。
# 职责：
# - create_key：生成新 key（secrets 随机源），登记并返回记录
# - register：登记外部生成的 key 记录（格式需合法）
# - revoke：停用 key（记录保留，is_active=False）
# - validate_key：存在、启用且未过期
# 约定：
# - 注册表内部以锁保护；返回的记录均为不可变快照

from __future__ import annotations

import re
import secrets
import string
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Tuple

from ..core.errors import ValidationError
from ..core.utils.clock import Clock, SystemClock, ensure_utc
from ..core.utils.config import RateLimitConfig
from ..core.utils.logging import get_logger
from ..core.utils.param_validation import ensure, ensure_non_empty_str
from ..core.utils.serialization import to_utc_iso
from .models import Permission

logger = get_logger(__name__)

KEY_PREFIX = "lpct_"
KEY_BODY_LENGTH = 32
_KEY_ALPHABET = string.ascii_letters + string.digits
_KEY_PATTERN = re.compile(rf"^{KEY_PREFIX}[A-Za-z0-9]{{{KEY_BODY_LENGTH}}}$")


def generate_api_key() -> str:
    return KEY_PREFIX + "".join(secrets.choice(_KEY_ALPHABET) for _ in range(KEY_BODY_LENGTH))


def is_well_formed_key(key: Any) -> bool:
    return isinstance(key, str) and bool(_KEY_PATTERN.match(key))


def _coerce_permissions(permissions: Iterable[Any]) -> Tuple[Permission, ...]:
    coerced = []
    for item in permissions:
        try:
            perm = item if isinstance(item, Permission) else Permission(item)
        except ValueError as exc:
            raise ValidationError(f"unknown permission {item!r}") from exc
        if perm not in coerced:
            coerced.append(perm)
    ensure(bool(coerced), "at least one permission is required", error=ValidationError)
    return tuple(coerced)


@dataclass(frozen=True)
class APIKeyRecord:
    key: str
    domain: str
    permissions: Tuple[Permission, ...]
    created_at: datetime
    expires_at: Optional[datetime] = None
    is_active: bool = True
    rate_limit_config: RateLimitConfig = field(default_factory=RateLimitConfig)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and ensure_utc(now) >= self.expires_at

    def is_usable(self, now: datetime) -> bool:
        return self.is_active and not self.is_expired(now)

    def allows(self, permission: Permission) -> bool:
        return Permission.ADMIN in self.permissions or permission in self.permissions

    def allows_domain(self, domain: str) -> bool:
        return self.domain == "*" or self.domain == domain

    def to_dict(self) -> Dict[str, Any]:
        # key 本身属于凭证，不进入导出数据
        return {
            "domain": self.domain,
            "permissions": [p.value for p in self.permissions],
            "created_at": to_utc_iso(self.created_at),
            "expires_at": None if self.expires_at is None else to_utc_iso(self.expires_at),
            "is_active": self.is_active,
            "rate_limit_config": self.rate_limit_config.to_dict(),
        }


class APIKeyRegistry:
    """In-process registry of issued API keys."""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock: Clock = clock or SystemClock()
        self._records: Dict[str, APIKeyRecord] = {}
        self._lock = threading.Lock()

    def create_key(
        self,
        domain: str,
        permissions: Iterable[Any],
        *,
        expires_at: Optional[datetime] = None,
        rate_limit_config: Optional[RateLimitConfig] = None,
    ) -> APIKeyRecord:
        ensure_non_empty_str(domain, "domain", error=ValidationError)
        record = APIKeyRecord(
            key=generate_api_key(),
            domain=domain,
            permissions=_coerce_permissions(permissions),
            created_at=self.clock.now(),
            expires_at=None if expires_at is None else ensure_utc(expires_at),
            rate_limit_config=rate_limit_config or RateLimitConfig(),
        )
        with self._lock:
            self._records[record.key] = record
        logger.info("issued api key for domain %s", domain)
        return record

    def register(self, record: APIKeyRecord) -> APIKeyRecord:
        ensure(is_well_formed_key(record.key), "malformed api key", error=ValidationError)
        ensure_non_empty_str(record.domain, "domain", error=ValidationError)
        record = replace(record, permissions=_coerce_permissions(record.permissions))
        with self._lock:
            self._records[record.key] = record
        return record

    def revoke(self, key: str) -> bool:
        with self._lock:
            record = self._records.get(key)
            if record is None:
                return False
            self._records[key] = replace(record, is_active=False)
        logger.info("revoked api key for domain %s", record.domain)
        return True

    def get(self, key: str) -> Optional[APIKeyRecord]:
        with self._lock:
            return self._records.get(key)

    def validate_key(self, key: str) -> bool:
        record = self.get(key) if is_well_formed_key(key) else None
        return record is not None and record.is_usable(self.clock.now())

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
