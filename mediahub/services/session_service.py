"""Session service: issue, validate, slide and revoke login sessions."""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from mediahub.config import Settings
from mediahub.db.base import utcnow
from mediahub.models.session import SessionState, UserSession
from mediahub.models.user import User
from mediahub.services.base import BaseService, Clock

logger = logging.getLogger(__name__)

# 32 bytes -> 64 hex characters, 256 bits of entropy
SESSION_TOKEN_BYTES = 32


def generate_session_token() -> str:
    """Generate an opaque, unguessable session token."""
    return secrets.token_hex(SESSION_TOKEN_BYTES)


@dataclass
class SessionValidationResult:
    """Outcome of ``SessionService.validate_session``."""

    session: Optional[UserSession]
    user: Optional[User]
    state: SessionState

    @property
    def is_valid(self) -> bool:
        return self.state.is_live

    @property
    def renewed(self) -> bool:
        return self.state is SessionState.RENEWED

    @property
    def expires_at(self) -> Optional[datetime]:
        return self.session.expires_at if self.session is not None else None

    @classmethod
    def empty(cls, state: SessionState) -> "SessionValidationResult":
        return cls(session=None, user=None, state=state)


class SessionService(BaseService):
    """
    Server-side session store.

    Sessions expire lazily: an expired row is deleted the first time it is
    looked up, so correctness never depends on the periodic purge. A session
    read with less than the renewal threshold left is pushed out to a full
    duration from now, which keeps active users signed in without writing on
    every request.
    """

    def __init__(self, db: Session, settings: Settings, clock: Clock = utcnow):
        super().__init__(db, settings, clock)
        self.duration = timedelta(days=settings.SESSION_DURATION_DAYS)
        self.renewal_threshold = timedelta(days=settings.SESSION_RENEWAL_THRESHOLD_DAYS)

    def create_session(self, user_id: str) -> UserSession:
        """
        Create a new session for a user.

        Args:
            user_id: Owner user ID

        Returns:
            The persisted UserSession

        Raises:
            PersistenceError: If the session could not be stored
        """
        session = UserSession(
            id=generate_session_token(),
            user_id=user_id,
            expires_at=self.clock() + self.duration,
        )

        with self._persistence("create session"):
            self.db.add(session)
            self.db.commit()
            self.db.refresh(session)

        logger.info(f"Created session for user {user_id} expiring at {session.expires_at.isoformat()}")
        return session

    def validate_session(self, token: Optional[str]) -> SessionValidationResult:
        """
        Resolve a session token to its session and user.

        "Not logged in" is a normal outcome and is reported through the
        result state rather than raised.

        Args:
            token: Untrusted token, typically read from a cookie

        Returns:
            SessionValidationResult; ``session`` and ``user`` are both None
            unless the state is ACTIVE or RENEWED
        """
        if not token:
            return SessionValidationResult.empty(SessionState.MISSING)

        with self._persistence("look up session"):
            row = self.db.execute(
                select(UserSession, User)
                .join(User, UserSession.user_id == User.id)
                .where(UserSession.id == token)
                .limit(1)
            ).first()

        if row is None:
            return SessionValidationResult.empty(SessionState.MISSING)

        session, user = row
        now = self.clock()

        if session.expires_at <= now:
            self.invalidate_session(token)
            logger.info(f"Expired session for user {user.id} removed")
            return SessionValidationResult.empty(SessionState.EXPIRED)

        if session.expires_at - now < self.renewal_threshold:
            with self._persistence("renew session"):
                session.expires_at = now + self.duration
                self.db.commit()
            logger.debug(f"Renewed session for user {user.id}")
            return SessionValidationResult(session=session, user=user, state=SessionState.RENEWED)

        return SessionValidationResult(session=session, user=user, state=SessionState.ACTIVE)

    def invalidate_session(self, token: str) -> None:
        """Delete a single session. Deleting an unknown token is a no-op."""
        with self._persistence("invalidate session"):
            self.db.execute(delete(UserSession).where(UserSession.id == token))
            self.db.commit()

    def invalidate_all_user_sessions(self, user_id: str) -> int:
        """
        Delete every session owned by a user ("log out everywhere").

        Returns:
            Number of sessions removed
        """
        with self._persistence("invalidate user sessions"):
            result = self.db.execute(delete(UserSession).where(UserSession.user_id == user_id))
            self.db.commit()

        logger.info(f"Invalidated {result.rowcount} session(s) for user {user_id}")
        return result.rowcount

    def purge_expired_sessions(self) -> int:
        """
        Remove every session already past its expiry.

        Housekeeping only; validation enforces expiry on its own.
        """
        with self._persistence("purge expired sessions"):
            result = self.db.execute(delete(UserSession).where(UserSession.expires_at <= self.clock()))
            self.db.commit()

        logger.info(f"Purged {result.rowcount} expired session(s)")
        return result.rowcount
