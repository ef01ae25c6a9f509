"""Per-user and per-client rate limiting dependencies."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status

from halcyon_shared.logging import get_logger
from halcyon_shared.ratelimit import (
    RateLimiter,
    RateLimitResult,
    get_client_identifier,
    get_rate_limit_headers,
    get_rate_limiter,
)

from .auth import AuthenticatedUser, require_auth

logger = get_logger(__name__)

DEFAULT_MESSAGE = "Rate limit exceeded. Please try again later."


class RateLimitGuard:
    """Dependency that counts a request against a named rate limit.

    The key is ``{key_prefix}:{user id}`` for authenticated limits, or the
    caller's IP with the endpoint name when ``by_ip`` is set.

    Usage:
        produce_limit = RateLimitGuard("produce", message="Slow down")

        @router.post("/api/produce-episode")
        async def produce(_: RateLimitResult = Depends(produce_limit)):
            ...
    """

    def __init__(
        self,
        preset: str,
        key_prefix: str | None = None,
        message: str = DEFAULT_MESSAGE,
        by_ip: bool = False,
    ):
        self.preset = preset
        self.key_prefix = key_prefix or preset
        self.message = message
        self.by_ip = by_ip

    def identifier_for(self, request: Request, user: AuthenticatedUser) -> str:
        if self.by_ip:
            host = request.client.host if request.client else None
            return get_client_identifier(request.headers, host, self.key_prefix)
        return f"{self.key_prefix}:{user.sub}"

    async def __call__(
        self,
        request: Request,
        user: AuthenticatedUser = Depends(require_auth),
        limiter: RateLimiter = Depends(get_rate_limiter),
    ) -> RateLimitResult:
        """Count the request.

        Raises:
            HTTPException 429 with ``Retry-After`` and ``X-RateLimit-*``
            headers once the window is used up.
        """
        identifier = self.identifier_for(request, user)
        result = await limiter.hit_preset(self.preset, identifier)
        if not result.allowed:
            logger.warning("Request rate limited", preset=self.preset, user_id=user.sub)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={"message": self.message, "retryAfter": result.retry_after},
                headers=get_rate_limit_headers(result),
            )
        return result
