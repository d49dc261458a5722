"""
Named rate limit policies, one per endpoint class.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from shared.config import BaseConfig

GENERAL = "general"
AUTH = "auth"
REGISTRATION = "registration"
AI_PROXY = "ai-proxy"


class KeyStrategy(str, Enum):
    # Account id when the caller is authenticated, client address otherwise
    IDENTITY = "identity"
    ADDRESS = "address"


@dataclass(frozen=True)
class RateLimitPolicy:
    name: str
    capacity: int
    window_seconds: int
    block_seconds: int
    key_strategy: KeyStrategy = KeyStrategy.ADDRESS
    expose_limits: bool = False

    def limits_payload(self) -> Optional[Dict[str, int]]:
        if not self.expose_limits:
            return None
        return {"capacity": self.capacity, "windowSeconds": self.window_seconds}


def default_policies(config: Optional[BaseConfig] = None) -> Dict[str, RateLimitPolicy]:
    general_capacity = config.rate_limit_max_requests if config else 100
    general_window = config.rate_limit_window_seconds if config else 15 * 60

    policies = [
        RateLimitPolicy(GENERAL, general_capacity, general_window, 60, expose_limits=True),
        RateLimitPolicy(AUTH, 5, 15 * 60, 15 * 60),
        RateLimitPolicy(REGISTRATION, 3, 60 * 60, 60 * 60),
        RateLimitPolicy(AI_PROXY, 30, 60, 2 * 60, KeyStrategy.IDENTITY, expose_limits=True),
    ]
    return {policy.name: policy for policy in policies}


def custom_policy(
    capacity: int,
    window_seconds: int,
    block_seconds: Optional[int] = None,
    name: Optional[str] = None,
) -> RateLimitPolicy:
    """Ad-hoc policy keyed by identity; blocks for one window unless told otherwise."""
    return RateLimitPolicy(
        name=name or f"custom:{capacity}/{window_seconds}s",
        capacity=capacity,
        window_seconds=window_seconds,
        block_seconds=window_seconds if block_seconds is None else block_seconds,
        key_strategy=KeyStrategy.IDENTITY,
        expose_limits=True,
    )
