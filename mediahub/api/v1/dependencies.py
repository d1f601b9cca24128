"""API dependencies for dependency injection."""

from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from mediahub.auth.cookies import set_session_cookie
from mediahub.auth.identity_provider import GoogleIdentityProvider, IdentityProvider
from mediahub.config import Settings, get_settings
from mediahub.db.session import get_db
from mediahub.models.user import AccountTier, User
from mediahub.services.identity_service import IdentityService
from mediahub.services.session_service import SessionService, SessionValidationResult
from mediahub.services.upload_service import UploadService
from mediahub.storage.blob_storage import BlobStorage, S3Storage


def get_blob_storage(settings: Settings = Depends(get_settings)) -> BlobStorage:
    """Get blob storage client."""
    return S3Storage(settings)


def get_identity_provider(settings: Settings = Depends(get_settings)) -> IdentityProvider:
    """Get the external identity provider."""
    return GoogleIdentityProvider(settings)


def get_session_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> SessionService:
    """Get session service instance."""
    return SessionService(db, settings)


def get_identity_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> IdentityService:
    """Get identity service instance."""
    return IdentityService(db, settings)


def get_upload_service(
    db: Session = Depends(get_db),
    blob_storage: BlobStorage = Depends(get_blob_storage),
    settings: Settings = Depends(get_settings),
) -> UploadService:
    """Get upload service instance."""
    return UploadService(db, blob_storage, settings)


def get_session_token(request: Request, settings: Settings = Depends(get_settings)) -> Optional[str]:
    """Read the raw session token from the configured cookie."""
    return request.cookies.get(settings.SESSION_COOKIE_NAME) or None


def get_current_session(
    response: Response,
    token: Optional[str] = Depends(get_session_token),
    session_service: SessionService = Depends(get_session_service),
    settings: Settings = Depends(get_settings),
) -> SessionValidationResult:
    """
    Validate the caller's session cookie.

    Refreshes the cookie when validation slid the session's expiry forward.

    Raises:
        HTTPException: 401 if there is no live session
    """
    result = session_service.validate_session(token)

    if not result.is_valid:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    if result.renewed:
        set_session_cookie(response, token, result.expires_at, settings)

    return result


def get_current_user(result: SessionValidationResult = Depends(get_current_session)) -> User:
    """Get the current authenticated user."""
    return result.user


def get_current_user_id(current_user: User = Depends(get_current_user)) -> str:
    """Get the current user's ID."""
    return current_user.id


def require_account_tier(*allowed: AccountTier) -> Callable[..., User]:
    """
    Build a dependency that admits only users of the given tiers.

    Example:
        @router.get("/admin", dependencies=[Depends(require_account_tier(AccountTier.ADMIN))])
    """

    def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.tier not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Your account tier does not allow this action",
            )
        return current_user

    return dependency
