"""Double-submit CSRF protection.

A token is ``<payload>.<signature>`` where the payload is base64url JSON
holding a random nonce and the issue time in epoch milliseconds, and the
signature is HMAC-SHA256 of the payload. The same token must arrive in the
CSRF cookie and in the ``x-csrf-token`` header.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import secrets
import time

from fastapi import Depends, HTTPException, Request, status

from halcyon_shared.config import get_settings
from halcyon_shared.logging import get_logger

from .auth import AuthenticatedUser, require_auth

logger = get_logger(__name__)

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
NONCE_BYTES = 32


def _b64encode(payload: bytes) -> str:
    return base64.urlsafe_b64encode(payload).decode().rstrip("=")


def _b64decode(payload: str) -> bytes:
    padding = "=" * (-len(payload) % 4)
    return base64.urlsafe_b64decode(payload + padding)


def _sign_value(value: str, secret: str) -> str:
    signature = hmac.new(secret.encode(), value.encode(), hashlib.sha256).digest()
    return _b64encode(signature)


def generate_csrf_token(secret: str, now_ms: int | None = None) -> str:
    """Create a signed CSRF token."""
    payload = {
        "token": secrets.token_hex(NONCE_BYTES),
        "timestamp": int(time.time() * 1000) if now_ms is None else now_ms,
    }
    raw = _b64encode(json.dumps(payload, separators=(",", ":")).encode())
    return f"{raw}.{_sign_value(raw, secret)}"


def verify_csrf_token(
    token: str | None,
    secret: str,
    ttl_seconds: int,
    now_ms: int | None = None,
) -> bool:
    """Check a token's signature and age."""
    if not token:
        return False
    parts = token.split(".")
    if len(parts) != 2:
        return False
    raw, signature = parts

    if not hmac.compare_digest(signature, _sign_value(raw, secret)):
        return False

    try:
        payload = json.loads(_b64decode(raw))
        issued_at = int(payload["timestamp"])
    except (ValueError, KeyError, TypeError):
        return False

    now_ms = int(time.time() * 1000) if now_ms is None else now_ms
    return now_ms - issued_at <= ttl_seconds * 1000


def validate_csrf(request: Request) -> str | None:
    """Run the double-submit check.

    Returns:
        None if the request passes, otherwise the reason it failed.
    """
    if request.method in SAFE_METHODS:
        return None

    settings = get_settings()
    cookie_token = request.cookies.get(settings.csrf_cookie_name)
    if not cookie_token:
        return "CSRF cookie not found"

    header_token = request.headers.get(settings.auth.csrf_header_name)
    if not header_token:
        return "CSRF header not found"

    if not verify_csrf_token(cookie_token, settings.auth.csrf_secret, settings.auth.csrf_token_ttl_seconds):
        return "Invalid or expired CSRF token"

    if not hmac.compare_digest(cookie_token, header_token):
        return "CSRF token mismatch"

    return None


async def require_csrf(request: Request) -> None:
    """FastAPI dependency rejecting state-changing requests without a valid token.

    Raises:
        HTTPException 403 if the check fails.
    """
    reason = validate_csrf(request)
    if reason is None:
        return

    logger.warning(
        "CSRF validation failed",
        method=request.method,
        path=request.url.path,
        reason=reason,
        client=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={"message": "CSRF validation failed", "reason": "CSRF_INVALID"},
    )


async def require_auth_with_csrf(
    _: None = Depends(require_csrf),
    user: AuthenticatedUser = Depends(require_auth),
) -> AuthenticatedUser:
    """Require a valid CSRF token, then an authenticated session."""
    return user
