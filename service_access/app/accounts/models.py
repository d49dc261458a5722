"""
Account records as the access layer sees them.

Documents are stored with camelCase keys; ``Account.from_document`` and
``Account.to_document`` translate between the stored shape and the
dataclass used throughout the service.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from ..domain.clock import as_utc, utcnow

# Account attributes a user may edit, with their document field names
PROFILE_FIELDS = {"first_name": "firstName", "last_name": "lastName"}


class SubscriptionPlan(str, Enum):
    FREE = "free"
    BASIC = "basic"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


@dataclass
class ApiCallUsage:
    """Stored usage counters; daily/monthly may be stale until the next commit."""

    total: int = 0
    daily: int = 0
    monthly: int = 0
    last_reset: datetime = field(default_factory=utcnow)

    @classmethod
    def from_document(cls, doc: Optional[Dict[str, Any]]) -> "ApiCallUsage":
        doc = doc or {}
        return cls(
            total=int(doc.get("total", 0)),
            daily=int(doc.get("daily", 0)),
            monthly=int(doc.get("monthly", 0)),
            last_reset=as_utc(doc.get("lastReset")) or utcnow(),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "daily": self.daily,
            "monthly": self.monthly,
            "lastReset": self.last_reset,
        }


@dataclass
class Account:
    email: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    first_name: str = ""
    last_name: str = ""
    password_hash: Optional[str] = None
    is_active: bool = True
    is_email_verified: bool = False
    plan: SubscriptionPlan = SubscriptionPlan.FREE
    login_attempts: int = 0
    lockout_until: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
    last_seen_at: Optional[datetime] = None
    deactivated_at: Optional[datetime] = None
    usage: ApiCallUsage = field(default_factory=ApiCallUsage)
    created_at: datetime = field(default_factory=utcnow)

    def is_locked(self, now: datetime) -> bool:
        return self.lockout_until is not None and as_utc(self.lockout_until) > now

    def to_public_dict(self) -> Dict[str, Any]:
        """Profile view returned to the account owner."""
        return {
            "id": self.id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "isEmailVerified": self.is_email_verified,
            "subscription": {"plan": self.plan.value},
            "lastLoginAt": self.last_login_at.isoformat() if self.last_login_at else None,
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Account":
        subscription = doc.get("subscription") or {}
        try:
            plan = SubscriptionPlan(subscription.get("plan", SubscriptionPlan.FREE.value))
        except ValueError:
            plan = SubscriptionPlan.FREE
        return cls(
            id=str(doc["_id"]),
            email=doc["email"],
            first_name=doc.get("firstName", ""),
            last_name=doc.get("lastName", ""),
            password_hash=doc.get("password"),
            is_active=doc.get("isActive", True),
            is_email_verified=doc.get("isEmailVerified", False),
            plan=plan,
            login_attempts=int(doc.get("loginAttempts", 0)),
            lockout_until=as_utc(doc.get("lockoutUntil")),
            last_login_at=as_utc(doc.get("lastLoginAt")),
            last_seen_at=as_utc(doc.get("lastSeenAt")),
            deactivated_at=as_utc(doc.get("deactivatedAt")),
            usage=ApiCallUsage.from_document((doc.get("usage") or {}).get("apiCalls")),
            created_at=as_utc(doc.get("createdAt")) or utcnow(),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "_id": self.id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "password": self.password_hash,
            "isActive": self.is_active,
            "isEmailVerified": self.is_email_verified,
            "subscription": {"plan": self.plan.value},
            "loginAttempts": self.login_attempts,
            "lockoutUntil": self.lockout_until,
            "lastLoginAt": self.last_login_at,
            "lastSeenAt": self.last_seen_at,
            "deactivatedAt": self.deactivated_at,
            "usage": {"apiCalls": self.usage.to_document()},
            "createdAt": self.created_at,
        }
