"""FastAPI dependencies shared by the routes."""

from .auth import AuthenticatedUser, SessionData, SessionStore, require_auth, session_store
from .csrf import generate_csrf_token, require_auth_with_csrf, require_csrf, verify_csrf_token
from .rate_limit import RateLimitGuard

__all__ = [
    "AuthenticatedUser",
    "RateLimitGuard",
    "SessionData",
    "SessionStore",
    "generate_csrf_token",
    "require_auth",
    "require_auth_with_csrf",
    "require_csrf",
    "session_store",
    "verify_csrf_token",
]
