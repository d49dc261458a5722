"""
Rate limiting package for the access service.

Fixed-window-with-block policies over a pluggable counter store (in-process
or Redis), plus the middleware that applies the general policy to API paths.
"""

from .limiter import RateLimiter, RateLimitResult
from .policies import AI_PROXY, AUTH, GENERAL, REGISTRATION, KeyStrategy, RateLimitPolicy, custom_policy, default_policies
from .stores import MemoryRateLimitStore, RateLimitStore, RedisRateLimitStore, WindowState

__all__ = [
    "AI_PROXY",
    "AUTH",
    "GENERAL",
    "REGISTRATION",
    "KeyStrategy",
    "MemoryRateLimitStore",
    "RateLimitPolicy",
    "RateLimitResult",
    "RateLimitStore",
    "RateLimiter",
    "RedisRateLimitStore",
    "WindowState",
    "custom_policy",
    "default_policies",
]
