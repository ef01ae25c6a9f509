"""CSRF token endpoint."""

from fastapi import APIRouter, Response
from pydantic import BaseModel, Field

from halcyon_shared.config import get_settings

from ..dependencies.csrf import generate_csrf_token

router = APIRouter(prefix="/api", tags=["Auth"])


class CsrfTokenResponse(BaseModel):
    csrf_token: str = Field(alias="csrfToken")

    model_config = {"populate_by_name": True}


@router.get(
    "/csrf-token",
    response_model=CsrfTokenResponse,
    summary="Get CSRF Token",
    description="Set the CSRF cookie and return the token to echo in the x-csrf-token header",
)
async def get_csrf_token(response: Response) -> CsrfTokenResponse:
    settings = get_settings()
    token = generate_csrf_token(settings.auth.csrf_secret)
    response.set_cookie(
        key=settings.csrf_cookie_name,
        value=token,
        max_age=settings.auth.csrf_token_ttl_seconds,
        path="/",
        httponly=True,
        samesite="strict",
        secure=settings.is_production,
    )
    return CsrfTokenResponse(csrf_token=token)
