"""
Counter stores for the rate limiter.

A store keeps, per key, a fixed-window hit counter and an optional block
marker. Both implementations give the limiter the same view, so the
admission algorithm lives only in ``RateLimiter``.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

import redis.asyncio as redis

from shared.logging import get_logger


@dataclass(frozen=True)
class WindowState:
    count: int
    ms_remaining: int


class RateLimitStore(ABC):
    @abstractmethod
    async def increment(self, key: str, window_seconds: int) -> WindowState:
        """Count a hit; the window starts at the first hit for the key."""
        pass

    @abstractmethod
    async def block(self, key: str, block_seconds: int) -> None:
        """Block the key and drop its current window."""
        pass

    @abstractmethod
    async def blocked_for_ms(self, key: str) -> int:
        """Milliseconds left on the key's block, 0 when not blocked."""
        pass

    @abstractmethod
    async def reset(self, key: str) -> None:
        pass

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        pass


class MemoryRateLimitStore(RateLimitStore):
    """Single-process store; expired entries are swept out periodically."""

    def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_interval: float = 60.0):
        self._clock = clock
        self._windows: Dict[str, Tuple[int, float]] = {}
        self._blocks: Dict[str, float] = {}
        self._lock = asyncio.Lock()
        self.sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval

    def __len__(self) -> int:
        """Number of keys currently tracked."""
        return len(self._windows.keys() | self._blocks.keys())

    def _sweep(self, now: float) -> None:
        if now < self._next_sweep:
            return
        self._windows = {k: v for k, v in self._windows.items() if v[1] > now}
        self._blocks = {k: until for k, until in self._blocks.items() if until > now}
        self._next_sweep = now + self.sweep_interval

    async def increment(self, key: str, window_seconds: int) -> WindowState:
        async with self._lock:
            now = self._clock()
            self._sweep(now)
            count, expires_at = self._windows.get(key, (0, 0.0))
            if expires_at <= now:
                count, expires_at = 0, now + window_seconds
            count += 1
            self._windows[key] = (count, expires_at)
            return WindowState(count, int((expires_at - now) * 1000))

    async def block(self, key: str, block_seconds: int) -> None:
        async with self._lock:
            self._blocks[key] = self._clock() + block_seconds
            self._windows.pop(key, None)

    async def blocked_for_ms(self, key: str) -> int:
        async with self._lock:
            until = self._blocks.get(key)
            if until is None:
                return 0
            remaining = until - self._clock()
            if remaining <= 0:
                del self._blocks[key]
                return 0
            return int(remaining * 1000)

    async def reset(self, key: str) -> None:
        async with self._lock:
            self._windows.pop(key, None)
            self._blocks.pop(key, None)


class RedisRateLimitStore(RateLimitStore):
    """Shared store for multi-instance deployments."""

    def __init__(self, redis_url: str, client: Optional[redis.Redis] = None):
        self.redis_url = redis_url
        self.logger = get_logger("access.rate_limit_store")
        self._redis: Optional[redis.Redis] = client

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    def _window_key(self, key: str) -> str:
        return f"rate_limit:{key}"

    def _block_key(self, key: str) -> str:
        return f"rate_limit:block:{key}"

    async def increment(self, key: str, window_seconds: int) -> WindowState:
        redis_client = await self._get_redis()
        window_key = self._window_key(key)

        async with redis_client.pipeline(transaction=True) as pipeline:
            pipeline.set(window_key, 0, ex=window_seconds, nx=True)
            pipeline.incr(window_key)
            pipeline.pttl(window_key)
            _, count, ttl_ms = await pipeline.execute()

        if ttl_ms is None or ttl_ms < 0:
            ttl_ms = window_seconds * 1000
        return WindowState(int(count), int(ttl_ms))

    async def block(self, key: str, block_seconds: int) -> None:
        redis_client = await self._get_redis()
        async with redis_client.pipeline(transaction=True) as pipeline:
            pipeline.set(self._block_key(key), 1, ex=block_seconds)
            pipeline.delete(self._window_key(key))
            await pipeline.execute()

    async def blocked_for_ms(self, key: str) -> int:
        redis_client = await self._get_redis()
        ttl_ms = await redis_client.pttl(self._block_key(key))
        return int(ttl_ms) if ttl_ms and ttl_ms > 0 else 0

    async def reset(self, key: str) -> None:
        redis_client = await self._get_redis()
        await redis_client.delete(self._window_key(key), self._block_key(key))

    async def ping(self) -> bool:
        try:
            redis_client = await self._get_redis()
            return bool(await redis_client.ping())
        except Exception as e:
            self.logger.warning("Redis ping failed", error=str(e))
            return False

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
