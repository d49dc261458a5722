"""
Usage quotas per subscription plan.
"""

from .ledger import QuotaFailure, QuotaLedger, QuotaResult, QuotaUsage
from .plans import DEFAULT_PLAN_LIMITS, UNLIMITED, Limit, PlanLimits, limits_for

__all__ = [
    "DEFAULT_PLAN_LIMITS",
    "Limit",
    "PlanLimits",
    "QuotaFailure",
    "QuotaLedger",
    "QuotaResult",
    "QuotaUsage",
    "UNLIMITED",
    "limits_for",
]
