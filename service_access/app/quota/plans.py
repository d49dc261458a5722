"""
Per-plan API call limits.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Union

from ..accounts.models import SubscriptionPlan


@dataclass(frozen=True)
class Limit:
    """A call budget; ``Limit.unlimited()`` never runs out."""

    value: Optional[int] = None

    @classmethod
    def of(cls, value: int) -> "Limit":
        if value < 0:
            raise ValueError("limit must be non-negative")
        return cls(value)

    @classmethod
    def unlimited(cls) -> "Limit":
        return cls(None)

    @property
    def is_unlimited(self) -> bool:
        return self.value is None

    def exhausted_by(self, used: int) -> bool:
        return not self.is_unlimited and used >= self.value

    def remaining(self, used: int) -> Optional[int]:
        if self.is_unlimited:
            return None
        return max(self.value - used, 0)

    def to_json(self) -> Union[int, str]:
        return "unlimited" if self.is_unlimited else self.value


UNLIMITED = Limit.unlimited()


@dataclass(frozen=True)
class PlanLimits:
    daily: Limit
    monthly: Limit

    def to_json(self):
        return {"daily": self.daily.to_json(), "monthly": self.monthly.to_json()}


DEFAULT_PLAN_LIMITS: Mapping[SubscriptionPlan, PlanLimits] = MappingProxyType({
    SubscriptionPlan.FREE: PlanLimits(daily=Limit.of(50), monthly=Limit.of(1000)),
    SubscriptionPlan.BASIC: PlanLimits(daily=Limit.of(200), monthly=Limit.of(5000)),
    SubscriptionPlan.PREMIUM: PlanLimits(daily=Limit.of(1000), monthly=Limit.of(25000)),
    SubscriptionPlan.ENTERPRISE: PlanLimits(daily=UNLIMITED, monthly=UNLIMITED),
})


def limits_for(plan: SubscriptionPlan, table: Mapping[SubscriptionPlan, PlanLimits] = DEFAULT_PLAN_LIMITS) -> PlanLimits:
    # Unknown plans are treated as free
    return table.get(plan, table[SubscriptionPlan.FREE])
