"""User model."""

from enum import Enum as PyEnum

from sqlalchemy import Column, String, Enum

from mediahub.db.base import Base, UTCDateTime, utcnow


class AccountTier(str, PyEnum):
    """Enumeration of account tiers."""

    FREE = "FREE"
    PREMIUM = "PREMIUM"
    ADMIN = "ADMIN"


class User(Base):
    """
    Local user record, anchored to an external identity provider account.

    ``external_id`` and ``email`` are each globally unique; the identity
    service relies on the unique constraint on ``external_id`` to make
    concurrent first logins converge on a single row.
    """

    __tablename__ = "users"

    id = Column(String(64), primary_key=True)
    external_id = Column(String(255), unique=True, nullable=False, index=True)
    email = Column(String(254), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    picture = Column(String(2048), nullable=True)
    tier = Column(
        Enum(AccountTier, name="account_tier"),
        nullable=False,
        default=AccountTier.FREE,
    )

    last_login_at = Column(UTCDateTime(), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
