"""Authentication dependency for protecting API routes.

Sessions are created by the sign-in flow in front of this service and looked
up here by the session cookie.
"""

from __future__ import annotations

import asyncio
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from fastapi import HTTPException, Request, status

from halcyon_shared.config import get_settings
from halcyon_shared.logging import get_logger

logger = get_logger(__name__)


@dataclass
class SessionData:
    user_info: dict[str, Any]
    access_token: str
    id_token: str | None
    expires_at: datetime


class SessionStore:
    def __init__(self) -> None:
        self._sessions: dict[str, SessionData] = {}
        self._lock = asyncio.Lock()

    async def create_session(self, data: SessionData) -> str:
        session_id = secrets.token_urlsafe(32)
        async with self._lock:
            self._sessions[session_id] = data
        return session_id

    async def get_session(self, session_id: str) -> SessionData | None:
        async with self._lock:
            data = self._sessions.get(session_id)
            if not data:
                return None
            if data.expires_at <= datetime.now(timezone.utc):
                self._sessions.pop(session_id, None)
                return None
            return data

    async def delete_session(self, session_id: str) -> None:
        async with self._lock:
            self._sessions.pop(session_id, None)


session_store = SessionStore()


@dataclass
class AuthenticatedUser:
    """Represents an authenticated user extracted from session."""

    sub: str  # identity provider user ID, also the credits user ID
    email: str | None
    name: str | None
    picture: str | None
    raw: dict[str, Any]


async def require_auth(request: Request) -> AuthenticatedUser:
    """FastAPI dependency that requires a valid authenticated session.

    Usage:
        @router.get("/api/credits")
        async def get_credits(user: AuthenticatedUser = Depends(require_auth)):
            print(user.sub)

    Raises:
        HTTPException 401 if no valid session exists.
    """
    settings = get_settings()
    session_id = request.cookies.get(settings.auth.session_cookie_name)
    if not session_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )

    session_data = await session_store.get_session(session_id)
    if not session_data or not session_data.user_info.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired or invalid",
        )

    user_info = session_data.user_info
    return AuthenticatedUser(
        sub=user_info["sub"],
        email=user_info.get("email"),
        name=user_info.get("name"),
        picture=user_info.get("picture"),
        raw=user_info,
    )
