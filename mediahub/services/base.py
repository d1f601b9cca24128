"""Shared plumbing for database-backed services."""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mediahub.config import Settings
from mediahub.db.base import utcnow
from mediahub.services.exceptions import PersistenceError

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class BaseService:
    """Holds the database session, settings and clock shared by services."""

    def __init__(self, db: Session, settings: Settings, clock: Clock = utcnow):
        self.db = db
        self.settings = settings
        self.clock = clock

    @contextmanager
    def _persistence(self, action: str) -> Iterator[None]:
        """
        Translate SQLAlchemy failures into PersistenceError.

        The session is rolled back so the caller can keep using it.
        """
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database failure while trying to {action}: {e.__class__.__name__}")
            raise PersistenceError(f"Could not {action}") from e
