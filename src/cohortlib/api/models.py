"""
Request, response and audit records exchanged at the API boundary.
"""
# 说明：API 边界上的数据结构。
# 职责：
# - RequestContext：调用方域名、API key、请求类型、请求时间戳、用户 id（默认 "local"）
# - APIResponse：success / status_code / data / error 的标签化结果
# - AuditLogEntry：每次网关调用恰好一条的审计记录
# - Permission / REQUEST_TYPES：权限与请求类型常量

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, Optional, Tuple, TypeVar

from ..core.errors import ErrorInfo, error_info_from_exception
from ..core.utils.serialization import to_utc_iso

T = TypeVar("T")

REQUEST_TYPES = ("advertising", "measurement")


class Permission(str, Enum):
    COHORT_ACCESS = "cohort_access"
    METRICS_ACCESS = "metrics_access"
    ADMIN = "admin"


def new_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:20]}"


@dataclass(frozen=True)
class RequestContext:
    domain: str
    api_key: str
    request_type: str
    timestamp: datetime
    user_id: str = "local"


@dataclass(frozen=True)
class APIResponse(Generic[T]):
    success: bool
    status_code: int
    data: Optional[T] = None
    error: Optional[ErrorInfo] = None
    request_id: Optional[str] = None

    @classmethod
    def ok(cls, data: T, *, request_id: Optional[str] = None, status_code: int = 200) -> "APIResponse[T]":
        return cls(success=True, status_code=status_code, data=data, request_id=request_id)

    @classmethod
    def failure(cls, exc: BaseException, *, request_id: Optional[str] = None) -> "APIResponse[T]":
        info = error_info_from_exception(exc)
        return cls(success=False, status_code=info.http_status, error=info, request_id=request_id)

    @classmethod
    def from_error_info(cls, info: ErrorInfo, *, request_id: Optional[str] = None) -> "APIResponse[T]":
        return cls(success=False, status_code=info.http_status, error=info, request_id=request_id)

    def to_dict(self) -> Dict[str, Any]:
        data = self.data
        if isinstance(data, (list, tuple)):
            data = [item.to_dict() if hasattr(item, "to_dict") else item for item in data]
        elif hasattr(data, "to_dict"):
            data = data.to_dict()
        return {
            "success": self.success,
            "status_code": self.status_code,
            "data": data,
            "error": None if self.error is None else self.error.to_dict(),
            "request_id": self.request_id,
        }


@dataclass(frozen=True)
class AuditLogEntry:
    request_id: str
    domain: str
    timestamp: datetime
    request_type: str
    status_code: int
    cohorts_shared: Tuple[str, ...] = field(default_factory=tuple)
    user_consent: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request_id": self.request_id,
            "domain": self.domain,
            "timestamp": to_utc_iso(self.timestamp),
            "request_type": self.request_type,
            "status_code": self.status_code,
            "cohorts_shared": list(self.cohorts_shared),
            "user_consent": self.user_consent,
        }
