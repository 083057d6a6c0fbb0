"""
Error taxonomy shared by every component.

Responsibilities:
    * one exception type per failure family, each carrying a stable `kind`
      and the HTTP-style status the gateway reports for it
    * conversion into the tagged `ErrorInfo` payload returned to callers
    * sanitisation of unexpected failures
"""
# 说明：全库统一的异常体系。
# 职责：
# - CohortLibError：基类，携带 kind 与 http_status
# - ValidationError / ReplayError / AuthenticationError / AuthorizationError / RateLimitError / InternalError：
#   对应 400 / 400 / 401 / 403 / 429 / 500
# - EventValidationError / DuplicateEventError：指标事件校验失败（属于 ValidationError）
# - TaxonomyLoadError / StorageError：加载期与存储层错误
# - BudgetError：隐私预算记账错误（超额、未登记的作用域）
# 约定：
# - InternalError 对外只暴露固定文案 "Internal server error"，详细信息仅写入服务端日志

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

INTERNAL_ERROR_MESSAGE = "Internal server error"


@dataclass(frozen=True)
class ErrorInfo:
    """Tagged error payload carried by failed API responses."""

    kind: str
    message: str
    http_status: int

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "http_status": self.http_status}


class CohortLibError(Exception):
    """Base exception for the library."""

    kind = "error"
    http_status = 500

    def __init__(self, message: str = "", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message or self.__class__.__doc__ or self.kind
        self.details: Dict[str, Any] = dict(details or {})

    def to_error_info(self) -> ErrorInfo:
        return ErrorInfo(kind=self.kind, message=self.message, http_status=self.http_status)


class ValidationError(CohortLibError):
    """Request or record failed validation."""

    kind = "validation"
    http_status = 400


class ReplayError(CohortLibError):
    """Request timestamp is too old to be live."""

    kind = "replay"
    http_status = 400


class AuthenticationError(CohortLibError):
    """API key unknown, inactive, or expired."""

    kind = "authentication"
    http_status = 401


class AuthorizationError(CohortLibError):
    """Caller is not allowed to perform the request."""

    kind = "authorization"
    http_status = 403


class RateLimitError(CohortLibError):
    """Request ceiling reached for the current window."""

    kind = "rate_limited"
    http_status = 429


class InternalError(CohortLibError):
    """Unexpected failure; never exposes its cause to callers."""

    kind = "internal"
    http_status = 500

    def to_error_info(self) -> ErrorInfo:
        return ErrorInfo(kind=self.kind, message=INTERNAL_ERROR_MESSAGE, http_status=self.http_status)


class EventValidationError(ValidationError):
    """Metrics event is malformed."""

    kind = "event_validation"


class DuplicateEventError(EventValidationError):
    """Metrics event id was already recorded."""

    kind = "duplicate_event"


class TaxonomyLoadError(CohortLibError):
    """Taxonomy source data is malformed."""

    kind = "taxonomy_load"


class StorageError(CohortLibError):
    """Key/value store or encryption provider failed."""

    kind = "storage"


class BudgetError(CohortLibError):
    """Privacy budget accounting failed."""

    kind = "privacy_budget"


def error_info_from_exception(exc: BaseException) -> ErrorInfo:
    # 库内异常直接转换；其余一律视为内部错误并脱敏
    if isinstance(exc, CohortLibError) and not isinstance(exc, (TaxonomyLoadError, StorageError, BudgetError)):
        return exc.to_error_info()
    return InternalError().to_error_info()
