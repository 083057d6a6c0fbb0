"""
Request authentication for the external API.

`AuthService.authenticate` never raises: every outcome, including
unexpected failures, is returned as an `AuthResult` carrying a status code.
The checks run in a fixed order (key, domain, freshness, permission, rate
limit) and the rate-limit counters only move when every earlier check passes.
"""
# 说明：外部 API 的认证服务。
# 职责：
# - 校验顺序：key 有效(401) -> 域名匹配(403) -> 时间戳新鲜(400) -> 权限(403) -> 限流(429)
# - 任何意外异常记录到服务端日志，对外返回 500 InternalError
# 约定：
# - advertising 请求需要 cohort_access，其余需要 metrics_access；admin 同时满足两者
# - 时间戳早于当前 5 分钟视为重放；晚于当前 5 分钟视为非法时间戳

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ..core.errors import (
    AuthenticationError,
    AuthorizationError,
    CohortLibError,
    ErrorInfo,
    InternalError,
    ReplayError,
    ValidationError,
)
from ..core.utils.clock import Clock, SystemClock, ensure_utc
from ..core.utils.logging import get_logger
from .keys import APIKeyRecord, APIKeyRegistry
from .models import Permission, RequestContext
from .rate_limiter import RateLimiter

logger = get_logger(__name__)

MAX_REQUEST_AGE = timedelta(minutes=5)
MAX_CLOCK_SKEW = timedelta(minutes=5)


@dataclass(frozen=True)
class AuthResult:
    allowed: bool
    status_code: int
    error: Optional[ErrorInfo] = None
    key_record: Optional[APIKeyRecord] = None

    @property
    def reason(self) -> Optional[str]:
        return None if self.error is None else self.error.message


def required_permission(request_type: str) -> Permission:
    return Permission.COHORT_ACCESS if request_type == "advertising" else Permission.METRICS_ACCESS


def check_timestamp(timestamp: datetime, now: datetime) -> None:
    """Raise ReplayError for stale timestamps and ValidationError for future ones."""
    if not isinstance(timestamp, datetime):
        raise ValidationError("timestamp must be a datetime")
    moment = ensure_utc(timestamp)
    if now - moment > MAX_REQUEST_AGE:
        raise ReplayError("Request timestamp is too old")
    if moment - now > MAX_CLOCK_SKEW:
        raise ValidationError("Request timestamp is in the future")


class AuthService:
    def __init__(
        self,
        registry: APIKeyRegistry,
        rate_limiter: Optional[RateLimiter] = None,
        clock: Optional[Clock] = None,
    ):
        self.registry = registry
        self.clock: Clock = clock or registry.clock or SystemClock()
        self.rate_limiter = rate_limiter or RateLimiter(self.clock)

    def authenticate(self, context: RequestContext) -> AuthResult:
        try:
            record = self._check(context)
        except CohortLibError as exc:
            info = exc.to_error_info()
            logger.info("request from %s rejected: %s", getattr(context, "domain", "?"), info.message)
            return AuthResult(allowed=False, status_code=info.http_status, error=info)
        except Exception:
            logger.exception("authentication failed unexpectedly for %s", getattr(context, "domain", "?"))
            info = InternalError().to_error_info()
            return AuthResult(allowed=False, status_code=info.http_status, error=info)
        return AuthResult(allowed=True, status_code=200, key_record=record)

    def _check(self, context: RequestContext) -> APIKeyRecord:
        now = self.clock.now()
        record = self.registry.get(context.api_key) if self.registry.validate_key(context.api_key) else None
        if record is None:
            raise AuthenticationError("Invalid or expired API key")
        if not record.allows_domain(context.domain):
            raise AuthorizationError("API key is not valid for this domain")
        check_timestamp(context.timestamp, now)
        if not record.allows(required_permission(context.request_type)):
            raise AuthorizationError("Insufficient permissions")
        self.rate_limiter.acquire(record.key, record.rate_limit_config, now=now)
        return record
