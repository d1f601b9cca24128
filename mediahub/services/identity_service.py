"""Identity service: map external identities to local users."""

import logging
import secrets
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from mediahub.models.user import AccountTier, User
from mediahub.schemas.user import ExternalProfile
from mediahub.services.base import BaseService
from mediahub.services.exceptions import UserNotFoundError

logger = logging.getLogger(__name__)

# 16 bytes -> 32 hex characters, 128 bits of entropy
USER_ID_BYTES = 16


def generate_user_id() -> str:
    """Generate a new local user ID."""
    return secrets.token_hex(USER_ID_BYTES)


class IdentityService(BaseService):
    """Service bridging a verified external identity to a local User."""

    def find_user_by_external_id(self, external_id: str) -> Optional[User]:
        """
        Get user by external provider ID.

        Args:
            external_id: Provider subject identifier

        Returns:
            User instance or None
        """
        with self._persistence("look up user"):
            return self.db.scalar(select(User).where(User.external_id == external_id).limit(1))

    def create_user_from_external(self, profile: ExternalProfile) -> User:
        """
        Create a user for a first-time external identity.

        Two first logins of the same identity can race here. The unique
        constraint on ``external_id`` lets exactly one insert win; the loser
        rolls back and returns the winner's row.

        Args:
            profile: Verified external profile

        Returns:
            The created, or concurrently created, User

        Raises:
            PersistenceError: If the insert failed for any other reason
        """
        user = User(
            id=generate_user_id(),
            external_id=profile.external_id,
            email=str(profile.email),
            name=profile.name,
            picture=profile.picture,
            tier=AccountTier.FREE,
            last_login_at=self.clock(),
        )

        with self._persistence("create user"):
            try:
                self.db.add(user)
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                existing = self.find_user_by_external_id(profile.external_id)
                if existing is None:
                    # Conflict on something other than the external id, e.g. email.
                    raise
                logger.info(f"Concurrent first login for {profile.external_id}; reusing user {existing.id}")
                return existing
            self.db.refresh(user)

        logger.info(f"Created user {user.id} for external identity {user.external_id}")
        return user

    def update_user_from_external(self, user_id: str, profile: ExternalProfile) -> None:
        """
        Refresh mutable profile fields and the last-login time.

        The internal ID and external ID are never touched.

        Raises:
            UserNotFoundError: If the user doesn't exist
        """
        now = self.clock()
        with self._persistence("update user"):
            result = self.db.execute(
                update(User)
                .where(User.id == user_id)
                .values(
                    name=profile.name,
                    picture=profile.picture,
                    last_login_at=now,
                    updated_at=now,
                )
            )
            self.db.commit()

        if result.rowcount == 0:
            raise UserNotFoundError(user_id)

    def resolve_user(self, profile: ExternalProfile) -> User:
        """
        Find or create the local user for a login, refreshing its profile.

        Args:
            profile: Verified external profile

        Returns:
            The local User
        """
        user = self.find_user_by_external_id(profile.external_id)

        if user is None:
            return self.create_user_from_external(profile)

        self.update_user_from_external(user.id, profile)
        self.db.refresh(user)
        return user
