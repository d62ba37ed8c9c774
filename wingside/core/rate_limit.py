"""
In-memory rate limiting
Single-instance only: counters live in this process
"""

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional

from fastapi import Request

from wingside.core.errors import RateLimited

logger = logging.getLogger(__name__)


@dataclass
class RateLimitResult:
    success: bool
    limit: int
    remaining: int
    reset: float
    retry_after: Optional[int] = None


@dataclass
class _Entry:
    count: int
    reset_time: float


class RateLimiter:
    """Fixed window counter; once the limit is hit the key stays blocked for block_duration"""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._entries: Dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def check(self, key: str, limit: int, window: float, block_duration: Optional[float] = None) -> RateLimitResult:
        block_duration = block_duration or window
        now = self._clock()

        with self._lock:
            self._purge(now)
            entry = self._entries.get(key)

            if entry is None:
                self._entries[key] = _Entry(count=1, reset_time=now + window)
                return RateLimitResult(True, limit, limit - 1, now + window)

            if entry.count >= limit:
                retry_after = max(1, math.ceil(entry.reset_time - now))
                return RateLimitResult(False, limit, 0, entry.reset_time, retry_after)

            entry.count += 1
            if entry.count >= limit:
                # Limit reached: hold the key for the block duration
                entry.reset_time = max(entry.reset_time, now + block_duration)
            return RateLimitResult(True, limit, limit - entry.count, entry.reset_time)

    def reset(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _purge(self, now: float) -> None:
        expired = [k for k, e in self._entries.items() if now >= e.reset_time]
        for k in expired:
            del self._entries[k]


limiter = RateLimiter()


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else "unknown"


def enforce(key: str, limit: int, window: float, block_duration: Optional[float] = None) -> RateLimitResult:
    """Check a key and raise RateLimited when over the limit"""
    result = limiter.check(key, limit, window, block_duration)
    if not result.success:
        logger.warning(f"⏸️ Rate limit hit for {key} (retry in {result.retry_after}s)")
        raise RateLimited(result.retry_after)
    return result
