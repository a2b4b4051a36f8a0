"""Refresh-session persistence: one live refresh token per identity."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional
import hmac
import logging

from sqlalchemy.orm import Session

from blogauth.config import settings
from blogauth.core.security import token_digest
from blogauth.models.user import User

logger = logging.getLogger(__name__)


class SessionStore:
    """Manage the refresh session stored on each identity record.

    The session is the pair ``(refresh_token_hash, refresh_expires_at)`` on
    ``User``. Saving overwrites whatever was there, so issuing a new refresh
    token always invalidates the previous one.
    """

    def __init__(self, ttl: Optional[timedelta] = None):
        self.ttl = ttl or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

    @staticmethod
    def _naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
        return dt.replace(tzinfo=None) if dt and dt.tzinfo else dt

    def save(self, db: Session, user: User, refresh_token: str, *, commit: bool = True) -> datetime:
        """
        Replace the identity's refresh session

        Args:
            db: Database session
            user: Identity owning the session
            refresh_token: Newly issued refresh token
            commit: Commit immediately (False when part of a larger unit of work)

        Returns:
            datetime: Session expiry
        """
        expires_at = datetime.utcnow() + self.ttl
        replaced = user.has_refresh_session
        user.refresh_token_hash = token_digest(refresh_token)
        user.refresh_expires_at = expires_at
        if commit:
            db.commit()
        if replaced:
            logger.info(f"Replaced refresh session for user {user.id}")
        return expires_at

    def validate(self, user: User, refresh_token: str) -> bool:
        """True iff a session exists, is unexpired, and matches the token exactly."""
        if not user.refresh_token_hash or not user.refresh_expires_at:
            return False
        if self._naive_utc(user.refresh_expires_at) <= datetime.utcnow():
            return False
        return hmac.compare_digest(user.refresh_token_hash, token_digest(refresh_token))

    def clear(self, db: Session, user: User, *, commit: bool = True) -> bool:
        """
        Remove the identity's refresh session

        Returns:
            bool: Whether a session existed. Clearing an absent session is not an error.
        """
        existed = user.has_refresh_session
        user.refresh_token_hash = None
        user.refresh_expires_at = None
        if commit:
            db.commit()
        return existed


session_store = SessionStore()
