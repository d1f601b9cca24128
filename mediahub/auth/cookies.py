"""Session cookie contract."""

from datetime import datetime

from fastapi import Response

from mediahub.config import Settings


def set_session_cookie(response: Response, token: str, expires_at: datetime, settings: Settings) -> None:
    """Attach the session cookie, expiring together with the session."""
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        expires=expires_at,
        path="/",
    )


def delete_session_cookie(response: Response, settings: Settings) -> None:
    """Clear the session cookie with an empty value and ``Max-Age=0``."""
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value="",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        max_age=0,
        path="/",
    )


def set_oauth_cookie(response: Response, name: str, value: str, settings: Settings) -> None:
    """Short-lived cookie carrying OAuth state or the PKCE verifier."""
    response.set_cookie(
        key=name,
        value=value,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        max_age=settings.OAUTH_STATE_MAX_AGE,
        path="/",
    )


def delete_oauth_cookie(response: Response, name: str, settings: Settings) -> None:
    response.set_cookie(
        key=name,
        value="",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        max_age=0,
        path="/",
    )
