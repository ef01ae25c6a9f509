"""Fixed-window rate limiter keyed by client or user identifier.

State lives in a pluggable store. The default in-memory store is per
process: restarting the service resets every window, and multiple replicas
do not share counts.
"""

import asyncio
import math
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Protocol

from ..logging import get_logger

logger = get_logger(__name__)


@dataclass
class RateLimitEntry:
    """Request count for one identifier inside its current window."""

    count: int
    reset_at: int  # epoch milliseconds


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of counting one request against a limit."""

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after: int | None = None


@dataclass(frozen=True)
class RateLimitConfig:
    """A named limit: at most ``max_requests`` per ``window_ms``."""

    max_requests: int
    window_ms: int


RATE_LIMITS: dict[str, RateLimitConfig] = {
    "image_generation": RateLimitConfig(max_requests=5, window_ms=60_000),
    "api": RateLimitConfig(max_requests=60, window_ms=60_000),
    "auth": RateLimitConfig(max_requests=10, window_ms=15 * 60_000),
    "register": RateLimitConfig(max_requests=5, window_ms=60 * 60_000),
    "produce": RateLimitConfig(max_requests=1, window_ms=300_000),
    "produce_batch": RateLimitConfig(max_requests=1, window_ms=30 * 60_000),
    "music": RateLimitConfig(max_requests=5, window_ms=60_000),
    "voiceover": RateLimitConfig(max_requests=10, window_ms=60_000),
    "video": RateLimitConfig(max_requests=2, window_ms=60_000),
}


class RateLimitStore(Protocol):
    """Storage backend for rate limit windows."""

    async def get(self, key: str) -> RateLimitEntry | None:
        ...

    async def set(self, key: str, entry: RateLimitEntry) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def items(self) -> list[tuple[str, RateLimitEntry]]:
        ...


class InMemoryRateLimitStore:
    """Process-local store backed by a dict."""

    def __init__(self) -> None:
        self._entries: dict[str, RateLimitEntry] = {}

    async def get(self, key: str) -> RateLimitEntry | None:
        return self._entries.get(key)

    async def set(self, key: str, entry: RateLimitEntry) -> None:
        self._entries[key] = entry

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def items(self) -> list[tuple[str, RateLimitEntry]]:
        return list(self._entries.items())

    def __len__(self) -> int:
        return len(self._entries)


def epoch_millis() -> int:
    """Current wall clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class RateLimiter:
    """Counts requests per identifier in fixed windows.

    Read-modify-write on the store is serialized with an asyncio lock so that
    concurrent requests in one event loop cannot both take the last slot.
    """

    def __init__(
        self,
        store: RateLimitStore | None = None,
        clock: Callable[[], int] = epoch_millis,
    ):
        """Initialize the limiter.

        Args:
            store: Window storage, in-memory by default.
            clock: Returns the current time in epoch milliseconds.
        """
        self.store = store if store is not None else InMemoryRateLimitStore()
        self._clock = clock
        self._lock = asyncio.Lock()
        self._sweeper: asyncio.Task | None = None

    async def hit(self, identifier: str, max_requests: int, window_ms: int) -> RateLimitResult:
        """Count one request for ``identifier`` and report whether it is allowed.

        A denied request does not change the stored window.
        """
        async with self._lock:
            now = self._clock()
            entry = await self.store.get(identifier)

            if entry is None or now >= entry.reset_at:
                entry = RateLimitEntry(count=1, reset_at=now + window_ms)
                await self.store.set(identifier, entry)
                return RateLimitResult(
                    allowed=True,
                    limit=max_requests,
                    remaining=max(0, max_requests - 1),
                    reset_at=entry.reset_at,
                )

            if entry.count >= max_requests:
                retry_after = math.ceil((entry.reset_at - now) / 1000)
                logger.info(
                    "Rate limit exceeded",
                    identifier=identifier,
                    limit=max_requests,
                    retry_after=retry_after,
                )
                return RateLimitResult(
                    allowed=False,
                    limit=max_requests,
                    remaining=0,
                    reset_at=entry.reset_at,
                    retry_after=retry_after,
                )

            entry = RateLimitEntry(count=entry.count + 1, reset_at=entry.reset_at)
            await self.store.set(identifier, entry)
            return RateLimitResult(
                allowed=True,
                limit=max_requests,
                remaining=max_requests - entry.count,
                reset_at=entry.reset_at,
            )

    async def check(self, identifier: str, max_requests: int, window_ms: int) -> bool:
        """Count one request and return True if it is within the limit."""
        result = await self.hit(identifier, max_requests, window_ms)
        return result.allowed

    async def hit_preset(self, name: str, identifier: str) -> RateLimitResult:
        """Count one request against a named entry of ``RATE_LIMITS``."""
        config = RATE_LIMITS[name]
        return await self.hit(identifier, config.max_requests, config.window_ms)

    async def sweep(self) -> int:
        """Delete every window that has expired.

        Returns:
            Number of entries removed.
        """
        async with self._lock:
            now = self._clock()
            removed = 0
            for key, entry in await self.store.items():
                if now >= entry.reset_at:
                    await self.store.delete(key)
                    removed += 1
        if removed:
            logger.debug("Swept expired rate limit windows", removed=removed)
        return removed

    def start_sweeper(self, interval_seconds: float = 60.0) -> asyncio.Task:
        """Start sweeping expired windows on a background task."""
        if self._sweeper is not None and not self._sweeper.done():
            return self._sweeper

        async def _run() -> None:
            while True:
                await asyncio.sleep(interval_seconds)
                await self.sweep()

        self._sweeper = asyncio.create_task(_run(), name="rate-limit-sweeper")
        return self._sweeper

    async def stop_sweeper(self) -> None:
        """Cancel the background sweeper if it is running."""
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None


def get_client_identifier(
    headers: Mapping[str, str],
    client_host: str | None,
    endpoint: str,
) -> str:
    """Build a rate limit key from the caller's IP and the endpoint name.

    Uses the first ``x-forwarded-for`` address, then ``x-real-ip``, then the
    socket peer address, and finally ``unknown``.
    """
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    else:
        ip = headers.get("x-real-ip") or client_host or "unknown"
    return f"{ip}:{endpoint}"


def get_rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Response headers describing the caller's current window."""
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(math.ceil(result.reset_at / 1000)),
    }
    if result.retry_after is not None:
        headers["Retry-After"] = str(result.retry_after)
    return headers


# Global rate limiter instance
_rate_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    """Get the global rate limiter instance."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter()
    return _rate_limiter
