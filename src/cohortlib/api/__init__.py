"""External API: keys, authentication, rate limiting, audit and the gateway."""
from .models import REQUEST_TYPES, Permission, RequestContext, APIResponse, AuditLogEntry
from .keys import APIKeyRecord, APIKeyRegistry, generate_api_key
from .rate_limiter import RateLimiter, RateLimitState
from .auth import AuthResult, AuthService
from .audit import AuditLog
from .anonymizer import CohortAnonymizer
from .gateway import (
    ExternalAPIGateway,
    CohortDataResponse,
    AggregatedMetricsResponse,
    PRIVACY_NOTICE,
)

__all__ = [
    "REQUEST_TYPES",
    "Permission",
    "RequestContext",
    "APIResponse",
    "AuditLogEntry",
    "APIKeyRecord",
    "APIKeyRegistry",
    "generate_api_key",
    "RateLimiter",
    "RateLimitState",
    "AuthResult",
    "AuthService",
    "AuditLog",
    "CohortAnonymizer",
    "ExternalAPIGateway",
    "CohortDataResponse",
    "AggregatedMetricsResponse",
    "PRIVACY_NOTICE",
]
