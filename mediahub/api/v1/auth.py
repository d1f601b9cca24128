"""Authentication endpoints."""

import logging
import secrets
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import RedirectResponse

from mediahub.api.v1.dependencies import (
    get_current_user,
    get_identity_provider,
    get_identity_service,
    get_session_service,
    get_session_token,
)
from mediahub.auth.cookies import (
    delete_oauth_cookie,
    delete_session_cookie,
    set_oauth_cookie,
    set_session_cookie,
)
from mediahub.auth.identity_provider import IdentityProvider, generate_code_verifier, generate_state
from mediahub.config import Settings, get_settings
from mediahub.models.user import User
from mediahub.schemas.user import UserResponse
from mediahub.services.exceptions import ServiceError
from mediahub.services.identity_service import IdentityService
from mediahub.services.session_service import SessionService

logger = logging.getLogger(__name__)

router = APIRouter()

OAUTH_STATE_COOKIE = "google_oauth_state"
OAUTH_VERIFIER_COOKIE = "google_oauth_code_verifier"


def _login_redirect(settings: Settings, error: str) -> RedirectResponse:
    response = RedirectResponse(
        url=f"{settings.LOGIN_URL}?{urlencode({'error': error})}",
        status_code=status.HTTP_303_SEE_OTHER,
    )
    delete_oauth_cookie(response, OAUTH_STATE_COOKIE, settings)
    delete_oauth_cookie(response, OAUTH_VERIFIER_COOKIE, settings)
    return response


@router.get(
    "/google",
    summary="Start Google sign-in",
    description="Redirect the browser to Google with a fresh state and PKCE challenge.",
)
def start_google_login(
    identity_provider: IdentityProvider = Depends(get_identity_provider),
    settings: Settings = Depends(get_settings),
) -> RedirectResponse:
    """Start the OAuth authorization code flow."""
    state = generate_state()
    code_verifier = generate_code_verifier()

    response = RedirectResponse(
        url=identity_provider.authorization_url(state, code_verifier),
        status_code=status.HTTP_302_FOUND,
    )
    set_oauth_cookie(response, OAUTH_STATE_COOKIE, state, settings)
    set_oauth_cookie(response, OAUTH_VERIFIER_COOKIE, code_verifier, settings)
    return response


@router.get(
    "/google/callback",
    summary="Complete Google sign-in",
    description="""
    Exchange the authorization code, find or create the local user and open
    a session. Redirects to the app on success and back to the login page
    with an `error` query parameter otherwise.
    """,
)
def google_callback(
    request: Request,
    code: Optional[str] = Query(default=None),
    state: Optional[str] = Query(default=None),
    identity_provider: IdentityProvider = Depends(get_identity_provider),
    identity_service: IdentityService = Depends(get_identity_service),
    session_service: SessionService = Depends(get_session_service),
    settings: Settings = Depends(get_settings),
) -> RedirectResponse:
    """Handle the OAuth callback."""
    stored_state = request.cookies.get(OAUTH_STATE_COOKIE)
    stored_verifier = request.cookies.get(OAUTH_VERIFIER_COOKIE)

    if not code or not state or not stored_state or not stored_verifier:
        return _login_redirect(settings, "Invalid OAuth state")

    if not secrets.compare_digest(state.encode(), stored_state.encode()):
        return _login_redirect(settings, "State mismatch")

    try:
        profile = identity_provider.fetch_profile(code, stored_verifier)
        user = identity_service.resolve_user(profile)
        session = session_service.create_session(user.id)
    except ServiceError as e:
        logger.error(f"OAuth login failed: {e.code}")
        return _login_redirect(settings, "Authentication failed")

    response = RedirectResponse(url=settings.POST_LOGIN_URL, status_code=status.HTTP_303_SEE_OTHER)
    set_session_cookie(response, session.id, session.expires_at, settings)
    delete_oauth_cookie(response, OAUTH_STATE_COOKIE, settings)
    delete_oauth_cookie(response, OAUTH_VERIFIER_COOKIE, settings)

    logger.info(f"User {user.id} signed in")
    return response


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Log out",
    description="End the current session, if any, and clear the session cookie.",
)
def logout(
    token: Optional[str] = Depends(get_session_token),
    session_service: SessionService = Depends(get_session_service),
    settings: Settings = Depends(get_settings),
) -> Response:
    """Log out of the current session."""
    if token:
        session_service.invalidate_session(token)

    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    delete_session_cookie(response, settings)
    return response


@router.post(
    "/logout-all",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Log out everywhere",
    description="End every session of the current user on every device.",
)
def logout_all(
    current_user: User = Depends(get_current_user),
    session_service: SessionService = Depends(get_session_service),
    settings: Settings = Depends(get_settings),
) -> Response:
    """Invalidate all sessions of the current user."""
    session_service.invalidate_all_user_sessions(current_user.id)

    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    delete_session_cookie(response, settings)
    return response


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current user",
    description="Get the currently authenticated user's information.",
)
def get_me(
    current_user: User = Depends(get_current_user),
) -> User:
    """Get current user information."""
    return current_user
