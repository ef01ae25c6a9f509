"""Rate limiting module."""

from .limiter import (
    RATE_LIMITS,
    InMemoryRateLimitStore,
    RateLimitConfig,
    RateLimitEntry,
    RateLimiter,
    RateLimitResult,
    RateLimitStore,
    epoch_millis,
    get_client_identifier,
    get_rate_limit_headers,
    get_rate_limiter,
)

__all__ = [
    "InMemoryRateLimitStore",
    "RATE_LIMITS",
    "RateLimitConfig",
    "RateLimitEntry",
    "RateLimitResult",
    "RateLimitStore",
    "RateLimiter",
    "epoch_millis",
    "get_client_identifier",
    "get_rate_limit_headers",
    "get_rate_limiter",
]
