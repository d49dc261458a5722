"""
Quota ledger: per-account daily and monthly API call budgets.

Counters reset lazily. A stored count only belongs to the current window if
``lastReset`` falls inside it; otherwise the effective count is zero, and the
next ``commit`` restarts the stored counter at one in the same atomic update.

``check`` and ``commit`` are separate steps and not atomic together: two
concurrent requests can both pass ``check`` at ``limit - 1`` and both commit.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..accounts.models import Account, SubscriptionPlan
from ..accounts.store import AccountStore
from ..domain.clock import Clock, as_utc, utcnow
from .plans import DEFAULT_PLAN_LIMITS, PlanLimits, limits_for
from .windows import day_start, month_start, next_day_start, next_month_start


class QuotaFailure(str, Enum):
    DAILY_LIMIT_EXCEEDED = "DAILY_LIMIT_EXCEEDED"
    MONTHLY_LIMIT_EXCEEDED = "MONTHLY_LIMIT_EXCEEDED"


@dataclass(frozen=True)
class QuotaUsage:
    daily: int
    monthly: int
    total: int

    def to_json(self) -> Dict[str, int]:
        return {"daily": self.daily, "monthly": self.monthly, "total": self.total}


@dataclass(frozen=True)
class QuotaResult:
    limits: PlanLimits
    usage: QuotaUsage
    failure: Optional[QuotaFailure] = None
    reset_time: Optional[datetime] = None
    daily_remaining: Optional[int] = None
    monthly_remaining: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


class QuotaLedger:
    """Checks and records metered API calls against the account's plan."""

    def __init__(
        self,
        store: AccountStore,
        *,
        plan_limits: Mapping[SubscriptionPlan, PlanLimits] = DEFAULT_PLAN_LIMITS,
        clock: Clock = utcnow,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.store = store
        self.plan_limits = plan_limits
        self._clock = clock
        self.metrics = metrics
        self.logger = get_logger("access.quota")

    def effective_usage(self, account: Account, now: datetime) -> QuotaUsage:
        usage = account.usage
        last_reset = as_utc(usage.last_reset)
        return QuotaUsage(
            daily=0 if last_reset < day_start(now) else usage.daily,
            monthly=0 if last_reset < month_start(now) else usage.monthly,
            total=usage.total,
        )

    def check(self, account: Account) -> QuotaResult:
        now = self._clock()
        limits = limits_for(account.plan, self.plan_limits)
        usage = self.effective_usage(account, now)

        if limits.daily.exhausted_by(usage.daily):
            return QuotaResult(
                limits=limits,
                usage=usage,
                failure=QuotaFailure.DAILY_LIMIT_EXCEEDED,
                reset_time=next_day_start(now),
            )
        if limits.monthly.exhausted_by(usage.monthly):
            return QuotaResult(
                limits=limits,
                usage=usage,
                failure=QuotaFailure.MONTHLY_LIMIT_EXCEEDED,
                reset_time=next_month_start(now),
            )

        return QuotaResult(
            limits=limits,
            usage=usage,
            daily_remaining=limits.daily.remaining(usage.daily),
            monthly_remaining=limits.monthly.remaining(usage.monthly),
        )

    async def commit(self, account_id: str) -> bool:
        """Count one call. Best-effort: errors are logged, never raised."""
        now = self._clock()
        try:
            found = await self.store.increment_usage_counters(
                account_id,
                now=now,
                day_start=day_start(now),
                month_start=month_start(now),
            )
        except Exception as e:
            self.logger.error("Usage commit failed", account_id=account_id, error=str(e))
            self._record_commit("error")
            return False

        if not found:
            self.logger.warning("Usage commit for unknown account", account_id=account_id)
            self._record_commit("missing")
            return False

        self._record_commit("ok")
        return True

    def snapshot(self, account: Account) -> Dict[str, Any]:
        """Plan, limits, effective usage, headroom and reset times."""
        now = self._clock()
        limits = limits_for(account.plan, self.plan_limits)
        usage = self.effective_usage(account, now)
        return {
            "plan": account.plan.value,
            "limits": limits.to_json(),
            "usage": usage.to_json(),
            "remaining": {
                "daily": limits.daily.remaining(usage.daily),
                "monthly": limits.monthly.remaining(usage.monthly),
            },
            "resetTimes": {
                "daily": next_day_start(now).isoformat(),
                "monthly": next_month_start(now).isoformat(),
            },
        }

    def _record_commit(self, status: str) -> None:
        if self.metrics:
            self.metrics.record_usage_commit(status)
