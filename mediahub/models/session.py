"""User session model."""

from enum import Enum as PyEnum

from sqlalchemy import Column, String, ForeignKey
from sqlalchemy.orm import backref, relationship

from mediahub.db.base import Base, UTCDateTime


class SessionState(str, PyEnum):
    """Outcome of looking up a session token."""

    ACTIVE = "ACTIVE"
    RENEWED = "RENEWED"
    EXPIRED = "EXPIRED"
    MISSING = "MISSING"

    @property
    def is_live(self) -> bool:
        return self in (SessionState.ACTIVE, SessionState.RENEWED)


class UserSession(Base):
    """
    Server-held proof of login.

    The primary key is the token itself. Rows are deleted on logout, on
    expiry detection and on "log out everywhere"; they are only ever
    updated to push ``expires_at`` forward.
    """

    __tablename__ = "user_sessions"

    id = Column(String(64), primary_key=True)
    user_id = Column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    expires_at = Column(UTCDateTime(), nullable=False, index=True)

    user = relationship("User", backref=backref("sessions", passive_deletes=True))

    def __repr__(self) -> str:
        # The token is a secret; keep it out of reprs and logs.
        return f"<UserSession(user_id={self.user_id}, expires_at={self.expires_at})>"
