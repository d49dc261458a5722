"""
Fixed-window-with-block rate limiter.

Each (policy, key) pair gets at most ``capacity`` admissions per window; the
window opens at the key's first hit. The first hit over capacity blocks the
key for ``block_seconds`` from that moment, and every hit during the block is
refused with the remaining block time. Once the block lapses the key starts a
fresh window. A policy with no block duration refuses until its window closes.
"""

import math
from dataclasses import dataclass
from typing import Dict, Optional

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from .policies import KeyStrategy, RateLimitPolicy, custom_policy, default_policies
from .stores import RateLimitStore


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    policy: RateLimitPolicy
    remaining: int = 0
    reset_in_seconds: int = 0
    retry_after: Optional[int] = None


def _ceil_seconds(ms: int) -> int:
    return max(1, math.ceil(ms / 1000))


class RateLimiter:
    """Applies named policies over a counter store."""

    def __init__(
        self,
        store: RateLimitStore,
        policies: Optional[Dict[str, RateLimitPolicy]] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.store = store
        self.policies = dict(policies if policies is not None else default_policies())
        self.metrics = metrics
        self.logger = get_logger("access.rate_limiter")

    def policy(self, name: str) -> RateLimitPolicy:
        try:
            return self.policies[name]
        except KeyError:
            raise KeyError(f"Unknown rate limit policy: {name}") from None

    def register(self, policy: RateLimitPolicy) -> RateLimitPolicy:
        self.policies[policy.name] = policy
        return policy

    def create_custom(self, capacity: int, window_seconds: int, block_seconds: Optional[int] = None) -> RateLimitPolicy:
        return self.register(custom_policy(capacity, window_seconds, block_seconds))

    @staticmethod
    def resolve_key(policy: RateLimitPolicy, address: str, account_id: Optional[str] = None) -> str:
        if policy.key_strategy is KeyStrategy.IDENTITY and account_id:
            return f"user:{account_id}"
        return f"ip:{address}"

    async def consume(self, policy_name: str, key: str) -> RateLimitResult:
        policy = self.policy(policy_name)
        store_key = f"{policy.name}:{key}"

        try:
            blocked_ms = await self.store.blocked_for_ms(store_key)
            if blocked_ms > 0:
                return self._refused(policy, key, _ceil_seconds(blocked_ms))

            state = await self.store.increment(store_key, policy.window_seconds)
            if state.count > policy.capacity:
                if policy.block_seconds <= 0:
                    # No block: refuse until the current window closes
                    return self._refused(policy, key, _ceil_seconds(state.ms_remaining))
                await self.store.block(store_key, policy.block_seconds)
                return self._refused(policy, key, policy.block_seconds)

            return RateLimitResult(
                allowed=True,
                policy=policy,
                remaining=policy.capacity - state.count,
                reset_in_seconds=_ceil_seconds(state.ms_remaining),
            )

        except Exception as e:
            # Counter store outage must not take the API down with it
            self.logger.error("Rate limit check error", policy=policy.name, key=key, error=str(e))
            return RateLimitResult(
                allowed=True,
                policy=policy,
                remaining=policy.capacity,
                reset_in_seconds=policy.window_seconds,
            )

    def _refused(self, policy: RateLimitPolicy, key: str, retry_after: int) -> RateLimitResult:
        self.logger.warning("Rate limit exceeded", policy=policy.name, key=key, retry_after=retry_after)
        if self.metrics:
            self.metrics.record_rate_limit_hit(policy.name)
        return RateLimitResult(
            allowed=False,
            policy=policy,
            reset_in_seconds=retry_after,
            retry_after=retry_after,
        )
