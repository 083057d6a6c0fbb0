"""
External API gateway: the only surface through which cohorts and metrics
leave the library.

Responsibilities:
    * authenticate every request through `AuthService`
    * share at most three anonymized cohort identifiers, honouring the
      user's sharing preferences and disabled topics
    * serve thresholded, noised metrics for 1-10 cohorts over at most 90 days
    * write exactly one audit entry per call, whatever the outcome

Every public operation returns an `APIResponse`; nothing here raises to the
caller. Unexpected failures are logged with full context and reported as a
sanitized 500.
"""
# 说明：对外 API 网关。
# 职责：
# - get_cohort_ids：认证 -> 参数校验 -> 读取偏好 -> 取可共享 cohort -> 剔除禁用主题 -> 匿名化 -> 截断到 3 个
# - get_aggregated_metrics：校验 cohort 数量 / 时间窗口 -> 可选认证 -> 委托 MetricsAggregator
# - get_cohort_data_response / get_aggregated_metrics_response：附带元数据的响应
# - validate_api_key：对外的 key 校验入口
# 约定：
# - 每次公开调用恰好写入一条审计记录（包括认证失败与内部错误）
# - 认证失败时不消耗限流额度（由 AuthService 保证）

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..cohorts.engine import CohortEngine
from ..controls.preferences import PreferenceStore
from ..core.errors import CohortLibError, InternalError, ValidationError
from ..core.utils.clock import Clock, SystemClock
from ..core.utils.logging import get_logger
from ..core.utils.serialization import to_utc_iso
from ..metrics.aggregator import MetricsAggregator, aggregation_level_for
from ..metrics.models import AggregatedMetrics, TimeRange
from .anonymizer import CohortAnonymizer
from .audit import AuditLog
from .auth import AuthService, check_timestamp
from .keys import APIKeyRegistry
from .models import REQUEST_TYPES, APIResponse, AuditLogEntry, RequestContext, new_request_id
from .rate_limiter import RateLimiter

logger = get_logger(__name__)

MAX_COHORTS_PER_REQUEST = 3
MAX_METRICS_COHORTS = 10
MAX_METRICS_RANGE = timedelta(days=90)
COHORT_ID_EXPIRY_HOURS = 24
INTERNAL_DOMAIN = "internal"
PRIVACY_NOTICE = (
    "This data is aggregated and anonymized to protect user privacy. "
    "Individual user data is never shared."
)


@dataclass(frozen=True)
class CohortDataResponse:
    cohort_ids: Tuple[str, ...]
    timestamp: datetime
    expires_at: datetime
    request_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cohort_ids": list(self.cohort_ids),
            "timestamp": to_utc_iso(self.timestamp),
            "expires_at": to_utc_iso(self.expires_at),
            "request_id": self.request_id,
        }


@dataclass(frozen=True)
class AggregatedMetricsResponse:
    metrics: Tuple[AggregatedMetrics, ...]
    aggregation_level: str
    timestamp: datetime
    request_id: str
    privacy_notice: str = PRIVACY_NOTICE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metrics": [m.to_dict() for m in self.metrics],
            "aggregation_level": self.aggregation_level,
            "timestamp": to_utc_iso(self.timestamp),
            "request_id": self.request_id,
            "privacy_notice": self.privacy_notice,
        }


def validate_cohort_request(context: RequestContext, now: datetime) -> None:
    problems: List[str] = []
    if not isinstance(context.domain, str) or not context.domain.strip():
        problems.append("Domain is required")
    if not isinstance(context.api_key, str) or not context.api_key.strip():
        problems.append("API key is required")
    if context.request_type not in REQUEST_TYPES:
        problems.append("Invalid request type")
    if problems:
        raise ValidationError(f"Validation failed: {', '.join(problems)}")
    check_timestamp(context.timestamp, now)


def validate_metrics_request(cohort_ids: Sequence[str], time_range: TimeRange) -> None:
    problems: List[str] = []
    if isinstance(cohort_ids, str) or not isinstance(cohort_ids, (list, tuple)):
        problems.append("Cohort IDs must be a list")
    elif not 1 <= len(cohort_ids) <= MAX_METRICS_COHORTS:
        problems.append(f"Between 1 and {MAX_METRICS_COHORTS} cohort IDs are required")
    elif not all(isinstance(c, str) and c.strip() for c in cohort_ids):
        problems.append("Cohort IDs must be non-empty strings")
    if not isinstance(time_range, TimeRange):
        problems.append("Time range is required")
    elif time_range.start >= time_range.end:
        problems.append("Time range start must be before end")
    elif time_range.end - time_range.start > MAX_METRICS_RANGE:
        problems.append("Time range cannot exceed 90 days")
    if problems:
        raise ValidationError(f"Validation failed: {', '.join(problems)}")


class ExternalAPIGateway:
    def __init__(
        self,
        engine: CohortEngine,
        aggregator: MetricsAggregator,
        *,
        auth: Optional[AuthService] = None,
        registry: Optional[APIKeyRegistry] = None,
        rate_limiter: Optional[RateLimiter] = None,
        preferences: Optional[PreferenceStore] = None,
        anonymizer: Optional[CohortAnonymizer] = None,
        audit_log: Optional[AuditLog] = None,
        clock: Optional[Clock] = None,
    ):
        self.engine = engine
        self.aggregator = aggregator
        self.clock: Clock = clock or engine.clock or SystemClock()
        if auth is None:
            registry = registry or APIKeyRegistry(self.clock)
            auth = AuthService(registry, rate_limiter or RateLimiter(self.clock), self.clock)
        self.auth = auth
        self.registry = auth.registry
        self.rate_limiter = auth.rate_limiter
        self.preferences = preferences or PreferenceStore()
        self.anonymizer = anonymizer or CohortAnonymizer(clock=self.clock)
        self.audit_log = audit_log or AuditLog()

    # ------------------------------------------------------------------ audit
    def _audit(
        self,
        request_id: str,
        domain: str,
        request_type: str,
        status_code: int,
        cohorts_shared: Sequence[str] = (),
        user_consent: bool = False,
    ) -> None:
        self.audit_log.append(
            AuditLogEntry(
                request_id=request_id,
                domain=domain,
                timestamp=self.clock.now(),
                request_type=request_type,
                status_code=status_code,
                cohorts_shared=tuple(cohorts_shared),
                user_consent=user_consent,
            )
        )

    def audit_entries(self, domain: Optional[str] = None) -> List[AuditLogEntry]:
        return self.audit_log.entries(domain)

    # ------------------------------------------------------------------ cohorts
    def _shared_cohort_ids(self, context: RequestContext) -> Tuple[List[str], bool]:
        """Anonymized ids to share and whether the user consented to sharing."""
        prefs = self.preferences.get(context.user_id)
        if not prefs.sharing_enabled:
            logger.info("cohort sharing disabled; returning no cohorts", extra={"user_id": context.user_id})
            return [], False
        now = self.clock.now()
        shared = [
            self.anonymizer.anonymize(c.topic_id, c.topic_name, now)
            for c in self.engine.get_cohorts_for_sharing(context.user_id)
            if c.topic_id not in prefs.disabled_topics
        ]
        return shared[:MAX_COHORTS_PER_REQUEST], True

    def _cohort_request(self, context: RequestContext, request_id: str) -> APIResponse[List[str]]:
        if not isinstance(context, RequestContext):
            response: APIResponse[List[str]] = APIResponse.failure(
                ValidationError("Validation failed: request context is required"), request_id=request_id
            )
            self._audit(request_id, INTERNAL_DOMAIN, "unknown", response.status_code)
            return response

        shared: List[str] = []
        consent = False
        try:
            result = self.auth.authenticate(context)
            if not result.allowed:
                response = APIResponse.from_error_info(result.error, request_id=request_id)
            else:
                validate_cohort_request(context, self.clock.now())
                shared, consent = self._shared_cohort_ids(context)
                response = APIResponse.ok(shared, request_id=request_id)
        except CohortLibError as exc:
            shared = []
            response = APIResponse.failure(exc, request_id=request_id)
            if response.status_code >= 500:
                logger.exception("cohort request %s from %s failed", request_id, context.domain)
        except Exception as exc:
            logger.exception(
                "cohort request %s from %s failed", request_id, context.domain, extra={"user_id": context.user_id}
            )
            shared = []
            response = APIResponse.failure(InternalError(str(exc)), request_id=request_id)
        self._audit(request_id, context.domain, context.request_type, response.status_code, shared, consent)
        return response

    def get_cohort_ids(self, context: RequestContext) -> APIResponse[List[str]]:
        return self._cohort_request(context, new_request_id())

    def get_cohort_data_response(self, context: RequestContext) -> APIResponse[CohortDataResponse]:
        request_id = new_request_id()
        inner = self._cohort_request(context, request_id)
        if not inner.success:
            return APIResponse.from_error_info(inner.error, request_id=request_id)
        now = self.clock.now()
        data = CohortDataResponse(
            cohort_ids=tuple(inner.data or ()),
            timestamp=now,
            expires_at=now + timedelta(hours=COHORT_ID_EXPIRY_HOURS),
            request_id=request_id,
        )
        return APIResponse.ok(data, request_id=request_id)

    # ------------------------------------------------------------------ metrics
    def _metrics_request(
        self,
        cohort_ids: Sequence[str],
        time_range: TimeRange,
        context: Optional[RequestContext],
        request_id: str,
    ) -> APIResponse[List[AggregatedMetrics]]:
        domain = context.domain if isinstance(context, RequestContext) else INTERNAL_DOMAIN
        request_type = context.request_type if isinstance(context, RequestContext) else "measurement"
        try:
            validate_metrics_request(cohort_ids, time_range)
            if context is not None:
                if not isinstance(context, RequestContext):
                    raise ValidationError("Validation failed: request context is invalid")
                result = self.auth.authenticate(context)
                if not result.allowed:
                    response: APIResponse[List[AggregatedMetrics]] = APIResponse.from_error_info(
                        result.error, request_id=request_id
                    )
                    self._audit(request_id, domain, request_type, response.status_code)
                    return response
            metrics = self.aggregator.get_aggregated_metrics(list(cohort_ids), time_range)
            response = APIResponse.ok(metrics, request_id=request_id)
        except CohortLibError as exc:
            response = APIResponse.failure(exc, request_id=request_id)
            if response.status_code >= 500:
                logger.exception("metrics request %s from %s failed", request_id, domain)
        except Exception as exc:
            logger.exception("metrics request %s from %s failed", request_id, domain)
            response = APIResponse.failure(InternalError(str(exc)), request_id=request_id)
        self._audit(request_id, domain, request_type, response.status_code)
        return response

    def get_aggregated_metrics(
        self,
        cohort_ids: Sequence[str],
        time_range: TimeRange,
        context: Optional[RequestContext] = None,
    ) -> APIResponse[List[AggregatedMetrics]]:
        return self._metrics_request(cohort_ids, time_range, context, new_request_id())

    def get_aggregated_metrics_response(
        self,
        cohort_ids: Sequence[str],
        time_range: TimeRange,
        context: Optional[RequestContext] = None,
    ) -> APIResponse[AggregatedMetricsResponse]:
        request_id = new_request_id()
        inner = self._metrics_request(cohort_ids, time_range, context, request_id)
        if not inner.success:
            return APIResponse.from_error_info(inner.error, request_id=request_id)
        data = AggregatedMetricsResponse(
            metrics=tuple(inner.data or ()),
            aggregation_level=aggregation_level_for(len(set(cohort_ids))),
            timestamp=self.clock.now(),
            request_id=request_id,
        )
        return APIResponse.ok(data, request_id=request_id)

    # ------------------------------------------------------------------ keys
    def validate_api_key(self, key: str) -> bool:
        return self.registry.validate_key(key)

    @staticmethod
    def privacy_notice() -> str:
        return PRIVACY_NOTICE
