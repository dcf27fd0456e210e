"""Per-IP failed-login counter with a sliding window.

Every failure pushes the window's reset time forward. The counters live in an
injected AttemptStore: MemoryAttemptStore is per process (fine for a single
instance, wrong behind a load balancer), RedisAttemptStore is shared.
"""
import asyncio
import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


@dataclass
class AttemptCounter:
    count: int
    reset_time: float  # epoch seconds


@dataclass
class AttemptResult:
    count: int
    remaining: int
    reset_time: datetime
    is_blocked: bool


class AttemptStore(Protocol):
    async def get(self, ip: str) -> Optional[AttemptCounter]: ...

    async def set(self, ip: str, counter: AttemptCounter) -> None: ...

    async def delete(self, ip: str) -> bool: ...

    async def sweep(self, now: float) -> int: ...


class MemoryAttemptStore:
    def __init__(self):
        self._counters: dict[str, AttemptCounter] = {}

    async def get(self, ip: str) -> Optional[AttemptCounter]:
        return self._counters.get(ip)

    async def set(self, ip: str, counter: AttemptCounter) -> None:
        self._counters[ip] = counter

    async def delete(self, ip: str) -> bool:
        return self._counters.pop(ip, None) is not None

    async def sweep(self, now: float) -> int:
        expired = [ip for ip, c in self._counters.items() if now > c.reset_time]
        for ip in expired:
            del self._counters[ip]
        return len(expired)

    def __len__(self) -> int:
        return len(self._counters)


class RedisAttemptStore:
    """Counters as JSON strings; Redis expires each key with its window."""

    def __init__(self, redis: aioredis.Redis, prefix: str = "login_attempts"):
        self.redis = redis
        self.prefix = prefix

    def _key(self, ip: str) -> str:
        return f"{self.prefix}:{ip}"

    async def get(self, ip: str) -> Optional[AttemptCounter]:
        raw = await self.redis.get(self._key(ip))
        if not raw:
            return None
        data = json.loads(raw)
        return AttemptCounter(count=int(data["count"]), reset_time=float(data["reset_time"]))

    async def set(self, ip: str, counter: AttemptCounter) -> None:
        ttl_ms = max(1, int((counter.reset_time - time.time()) * 1000))
        payload = json.dumps({"count": counter.count, "reset_time": counter.reset_time})
        await self.redis.set(self._key(ip), payload, px=ttl_ms)

    async def delete(self, ip: str) -> bool:
        return bool(await self.redis.delete(self._key(ip)))

    async def sweep(self, now: float) -> int:
        # Keys carry their own TTL; nothing to collect.
        return 0


class LoginThrottle:
    def __init__(
        self,
        store: AttemptStore,
        window_seconds: float = 10.0,
        max_attempts: int = 5,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.window_seconds = window_seconds
        self.max_attempts = max_attempts
        self.clock = clock

    async def record_failed_attempt(self, ip: str) -> AttemptResult:
        now = self.clock()
        counter = await self.store.get(ip)
        if counter is None or now > counter.reset_time:
            counter = AttemptCounter(count=0, reset_time=now + self.window_seconds)
        counter.count += 1
        counter.reset_time = now + self.window_seconds
        await self.store.set(ip, counter)

        remaining = max(0, self.max_attempts - counter.count)
        blocked = counter.count >= self.max_attempts
        logger.info(
            "IP %s failed login %s/%s, %s remaining", ip, counter.count, self.max_attempts, remaining
        )
        if blocked:
            logger.warning(
                "Login rate limit exceeded for IP %s after %s failures (window %ss)",
                ip, counter.count, self.window_seconds,
            )
        return AttemptResult(
            count=counter.count,
            remaining=remaining,
            reset_time=datetime.fromtimestamp(counter.reset_time, tz=timezone.utc),
            is_blocked=blocked,
        )

    async def clear_failed_attempts(self, ip: str) -> None:
        if await self.store.delete(ip):
            logger.info("Successful login for IP %s, failed attempts reset", ip)

    async def is_blocked(self, ip: str) -> bool:
        counter = await self.store.get(ip)
        if counter is None or self.clock() > counter.reset_time:
            return False
        return counter.count >= self.max_attempts

    async def attempt_status(self, ip: str) -> Optional[dict]:
        now = self.clock()
        counter = await self.store.get(ip)
        if counter is None or now > counter.reset_time:
            return None
        return {
            "count": counter.count,
            "remaining": max(0, self.max_attempts - counter.count),
            "limit": self.max_attempts,
            "reset_time": datetime.fromtimestamp(counter.reset_time, tz=timezone.utc),
            "is_blocked": counter.count >= self.max_attempts,
        }

    async def sweep(self) -> int:
        removed = await self.store.sweep(self.clock())
        if removed:
            logger.debug("Swept %s expired login counters", removed)
        return removed

    async def run_sweeper(self, interval_seconds: float) -> None:
        """Background loop; cancel the task to stop it."""
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await self.sweep()
            except Exception as e:
                logger.error("Login counter sweep failed: %s", e)
