"""
Rejections produced by the admission pipeline.

Every stage reports failure as a typed result; the functions here turn those
results into a ``Rejection`` carrying the stable error code, HTTP status and
payload. ``Rejection.to_exception`` is the single point where the core hands
over to the HTTP error handling in ``shared.errors``.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from shared.errors import (
    AccessLayerException,
    AccountLockedError,
    AuthenticationError,
    AuthorizationError,
    RateLimitError,
)
from ..accounts.gate import GateFailure, GateResult
from ..quota.ledger import QuotaFailure, QuotaResult
from ..ratelimit.limiter import RateLimitResult
from ..ratelimit.policies import AI_PROXY, AUTH, GENERAL, REGISTRATION
from ..tokens.codec import TokenFailure


@dataclass(frozen=True)
class Rejection:
    code: str
    status_code: int
    message: str
    retry_after: Optional[int] = None
    limits: Optional[Dict[str, Any]] = None
    current: Optional[Dict[str, Any]] = None
    reset_time: Optional[datetime] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_exception(self) -> AccessLayerException:
        extras = dict(
            details=self.details or None,
            retry_after=self.retry_after,
            limits=self.limits,
            current=self.current,
            reset_time=self.reset_time,
        )
        if self.status_code == 401:
            return AuthenticationError(self.message, self.code, **extras)
        if self.status_code == 403:
            return AuthorizationError(self.message, self.code, **extras)
        if self.status_code == 423:
            return AccountLockedError(self.message, self.code, **extras)
        if self.status_code == 429:
            return RateLimitError(self.message, self.code, **extras)
        return AccessLayerException(self.code, self.message, status_code=self.status_code, **extras)


AUTH_HEADER_MISSING = Rejection(
    "AUTH_HEADER_MISSING", 401, "Authorization header missing. Please provide a valid authorization token"
)
TOKEN_MISSING = Rejection(
    "TOKEN_MISSING", 401, "Token missing. Please provide a valid authorization token"
)

_TOKEN_REJECTIONS = {
    TokenFailure.EXPIRED: Rejection(
        "TOKEN_EXPIRED", 401, "Your session has expired. Please log in again."
    ),
    TokenFailure.MALFORMED: Rejection("INVALID_TOKEN", 401, "The provided token is invalid"),
    TokenFailure.WRONG_PURPOSE: Rejection("INVALID_TOKEN", 401, "The provided token is invalid"),
}

_GATE_REJECTIONS = {
    GateFailure.NOT_FOUND: Rejection("USER_NOT_FOUND", 401, "Invalid token - user does not exist"),
    GateFailure.DEACTIVATED: Rejection("ACCOUNT_DEACTIVATED", 401, "Your account has been deactivated"),
    GateFailure.LOCKED: Rejection(
        "ACCOUNT_LOCKED", 423, "Account is temporarily locked due to too many failed login attempts"
    ),
    GateFailure.EMAIL_UNVERIFIED: Rejection(
        "EMAIL_VERIFICATION_REQUIRED", 403, "Please verify your email address to access this feature"
    ),
    GateFailure.INVALID_CREDENTIALS: Rejection("INVALID_CREDENTIALS", 401, "Invalid credentials"),
    GateFailure.UNAVAILABLE: Rejection(
        "SERVICE_UNAVAILABLE", 503, "Account store is temporarily unavailable"
    ),
}

_RATE_LIMIT_MESSAGES = {
    GENERAL: "Rate limit exceeded. Please try again later.",
    AUTH: "Too many authentication attempts. Please try again later.",
    REGISTRATION: "Too many registration attempts. Please try again later.",
    AI_PROXY: "Too many AI API requests. Please wait before making another request.",
}


def from_token_failure(failure: TokenFailure) -> Rejection:
    return _TOKEN_REJECTIONS[failure]


def from_gate(result: GateResult) -> Rejection:
    rejection = _GATE_REJECTIONS[result.failure]
    if result.failure is GateFailure.LOCKED and result.locked_until is not None:
        return Rejection(
            rejection.code,
            rejection.status_code,
            rejection.message,
            details={"lockedUntil": result.locked_until.isoformat()},
        )
    return rejection


def from_rate_limit(result: RateLimitResult) -> Rejection:
    policy = result.policy
    return Rejection(
        code="RATE_LIMIT_EXCEEDED",
        status_code=429,
        message=_RATE_LIMIT_MESSAGES.get(policy.name, "Rate limit exceeded for this endpoint."),
        retry_after=result.retry_after,
        limits=policy.limits_payload(),
    )


def from_quota(result: QuotaResult, now: datetime) -> Rejection:
    if result.failure is QuotaFailure.DAILY_LIMIT_EXCEEDED:
        code, window, limit = "DAILY_API_LIMIT_EXCEEDED", "daily", result.limits.daily
    else:
        code, window, limit = "MONTHLY_API_LIMIT_EXCEEDED", "monthly", result.limits.monthly
    return Rejection(
        code=code,
        status_code=429,
        message=f"You have exceeded your {window} API limit of {limit.to_json()} requests",
        retry_after=max(1, math.ceil((result.reset_time - now).total_seconds())),
        limits=result.limits.to_json(),
        current={"daily": result.usage.daily, "monthly": result.usage.monthly},
        reset_time=result.reset_time,
    )
