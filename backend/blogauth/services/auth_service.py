"""
Authentication gateway.

Orchestrates registration, login, token refresh, logout and account deletion
on top of the password vault, captcha service, token issuer and session
store. Every login and registration runs through an :class:`AuthAttempt`,
which walks ``AwaitingCredentials -> CaptchaVerified -> PasswordVerified ->
TokensIssued`` and lands in ``Rejected`` on the first typed failure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional
import logging

from sqlalchemy.orm import Session

from blogauth.core.exceptions import (
    BaseAPIException,
    CaptchaMismatchError,
    IdentityNotFoundError,
    InvalidCredentialsError,
    SessionRevokedError,
)
from blogauth.core.metrics import AUTH_ATTEMPTS, TOKEN_REFRESH
from blogauth.core.security import (
    ACCESS,
    REFRESH,
    TokenIssuer,
    get_password_hash,
    token_issuer,
    verify_password,
)
from blogauth.models.user import User
from blogauth.schemas.user import UserRole
from blogauth.services.audit_service import AuditAction, audit_service
from blogauth.services.captcha_service import CaptchaService, captcha_service
from blogauth.services.content_store import AuthoredContentStore
from blogauth.services.session_store import SessionStore, session_store
from blogauth.services.user_service import user_service

logger = logging.getLogger(__name__)


class AttemptState(str, Enum):
    AWAITING_CREDENTIALS = "AwaitingCredentials"
    CAPTCHA_VERIFIED = "CaptchaVerified"
    PASSWORD_VERIFIED = "PasswordVerified"
    TOKENS_ISSUED = "TokensIssued"
    REGISTERED = "Registered"
    REJECTED = "Rejected"


_TRANSITIONS = {
    AttemptState.AWAITING_CREDENTIALS: {AttemptState.CAPTCHA_VERIFIED},
    AttemptState.CAPTCHA_VERIFIED: {AttemptState.PASSWORD_VERIFIED, AttemptState.REGISTERED},
    AttemptState.PASSWORD_VERIFIED: {AttemptState.TOKENS_ISSUED},
}
TERMINAL_STATES = {AttemptState.TOKENS_ISSUED, AttemptState.REGISTERED, AttemptState.REJECTED}


class AuthAttempt:
    """State of a single login or registration attempt."""

    def __init__(self, operation: str, username: Optional[str] = None):
        self.operation = operation
        self.username = username
        self.state = AttemptState.AWAITING_CREDENTIALS
        self.history: List[AttemptState] = [self.state]
        self.error: Optional[BaseAPIException] = None

    def advance(self, to: AttemptState) -> None:
        if to not in _TRANSITIONS.get(self.state, set()):
            raise RuntimeError(f"Illegal {self.operation} transition {self.state.value} -> {to.value}")
        logger.debug("%s attempt for %s: %s -> %s", self.operation, self.username, self.state.value, to.value)
        self.state = to
        self.history.append(to)
        if to in TERMINAL_STATES:
            AUTH_ATTEMPTS.labels(self.operation, "success").inc()

    def reject(self, error: BaseAPIException) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"{self.operation} attempt already finished in {self.state.value}")
        self.error = error
        self.state = AttemptState.REJECTED
        self.history.append(AttemptState.REJECTED)
        AUTH_ATTEMPTS.labels(self.operation, error.code).inc()
        logger.warning(f"{self.operation} rejected for {self.username}: {error.code}")


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int


@dataclass
class LoginResult(TokenPair):
    user: Optional[User] = None
    attempt: Optional[AuthAttempt] = field(default=None, repr=False)


class AuthService:
    """Authentication protocol over the identity store."""

    def __init__(
        self,
        issuer: TokenIssuer = token_issuer,
        sessions: SessionStore = session_store,
        captcha: CaptchaService = captcha_service,
    ):
        self.issuer = issuer
        self.sessions = sessions
        self.captcha = captcha
        self._timing_hash: Optional[str] = None

    @property
    def access_ttl_seconds(self) -> int:
        return int(self.issuer.access_ttl.total_seconds())

    def _dummy_verify(self, password: str) -> None:
        # Unknown usernames still pay for one bcrypt check.
        if self._timing_hash is None:
            self._timing_hash = get_password_hash("timing-equalizer")
        verify_password(password, self._timing_hash)

    def _check_captcha(self, attempt: AuthAttempt, challenge_id: Optional[str], response: str) -> None:
        if not self.captcha.verify(challenge_id, response):
            raise CaptchaMismatchError()
        attempt.advance(AttemptState.CAPTCHA_VERIFIED)

    def _issue_pair(self, db: Session, user: User) -> TokenPair:
        access = self.issuer.issue_access_token(user.id, user.role)
        refresh = self.issuer.issue_refresh_token(user.id)
        self.sessions.save(db, user, refresh, commit=False)
        return TokenPair(access_token=access, refresh_token=refresh, expires_in=self.access_ttl_seconds)

    def register(
        self,
        db: Session,
        username: str,
        password: str,
        captcha: str,
        challenge_id: Optional[str],
        ip_address: Optional[str] = None,
    ) -> User:
        """
        Create an identity with role ``user``. Does not log in.

        Raises:
            CaptchaMismatchError: Wrong, missing or reused captcha
            UsernameTakenError: Username already registered
        """
        attempt = AuthAttempt("register", username)
        try:
            self._check_captcha(attempt, challenge_id, captcha)
            user = user_service.create_user(db, username, password, UserRole.USER)
            attempt.advance(AttemptState.REGISTERED)
        except BaseAPIException as exc:
            attempt.reject(exc)
            raise

        audit_service.log_event(
            db, user_id=user.id, action=AuditAction.REGISTER,
            target_id=user.id, ip_address=ip_address,
        )
        return user

    def login(
        self,
        db: Session,
        username: str,
        password: str,
        captcha: str,
        challenge_id: Optional[str],
        ip_address: Optional[str] = None,
    ) -> LoginResult:
        """
        Authenticate credentials and start a new refresh session.

        Any previous refresh session of the identity is replaced.

        Raises:
            CaptchaMismatchError: Wrong, missing or reused captcha
            IdentityNotFoundError: Unknown username (same message as a bad password)
            InvalidCredentialsError: Password mismatch
        """
        attempt = AuthAttempt("login", username)
        try:
            self._check_captcha(attempt, challenge_id, captcha)

            user = user_service.get_user_by_username(db, username)
            if user is None:
                self._dummy_verify(password)
                raise IdentityNotFoundError(code=InvalidCredentialsError.code)
            if not verify_password(password, user.password_hash):
                raise InvalidCredentialsError()
            attempt.advance(AttemptState.PASSWORD_VERIFIED)

            pair = self._issue_pair(db, user)
            user.last_login = datetime.utcnow()
            audit_service.log_event(
                db, user_id=user.id, action=AuditAction.LOGIN,
                target_id=user.id, ip_address=ip_address, commit=False,
            )
            db.commit()
            attempt.advance(AttemptState.TOKENS_ISSUED)
        except BaseAPIException as exc:
            attempt.reject(exc)
            raise

        logger.info(f"User logged in: {user.username}")
        return LoginResult(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            expires_in=pair.expires_in,
            user=user,
            attempt=attempt,
        )

    def refresh(self, db: Session, refresh_token: str) -> TokenPair:
        """
        Exchange a refresh token for a new access token and a rotated refresh token.

        Raises:
            TokenExpiredError: Refresh token signature valid but expired
            InvalidSignatureError: Refresh token forged or malformed
            SessionRevokedError: Token no longer matches the stored session
        """
        try:
            claims = self.issuer.verify(refresh_token, REFRESH)
            user = user_service.get_user_by_id(db, claims.identity_id)
            if user is None or not self.sessions.validate(user, refresh_token):
                raise SessionRevokedError()
        except BaseAPIException as exc:
            TOKEN_REFRESH.labels(exc.code).inc()
            logger.info(f"Refresh rejected: {exc.code}")
            raise

        pair = self._issue_pair(db, user)
        db.commit()
        TOKEN_REFRESH.labels("success").inc()
        logger.debug(f"Rotated refresh session for user {user.id}")
        return pair

    def logout(self, db: Session, user: User, ip_address: Optional[str] = None) -> bool:
        """End the refresh session. Idempotent."""
        existed = self.sessions.clear(db, user, commit=False)
        audit_service.log_event(
            db, user_id=user.id, action=AuditAction.LOGOUT,
            target_id=user.id, ip_address=ip_address,
            metadata={"had_session": existed}, commit=False,
        )
        db.commit()
        logger.info(f"User logged out: {user.username}")
        return existed

    def delete_account(
        self,
        db: Session,
        user: User,
        content: AuthoredContentStore,
        ip_address: Optional[str] = None,
    ) -> None:
        """Clear the session, remove authored content and delete the identity in one commit."""
        user_id, username = user.id, user.username
        self.sessions.clear(db, user, commit=False)
        removed = user_service.delete_user(db, user, content, commit=False)
        audit_service.log_event(
            db, user_id=None, action=AuditAction.DELETE_ACCOUNT,
            target_id=user_id, ip_address=ip_address,
            metadata={"username": username, "content_removed": removed}, commit=False,
        )
        db.commit()
        AUTH_ATTEMPTS.labels("delete_account", "success").inc()

    def change_password(
        self,
        db: Session,
        user: User,
        current_password: str,
        new_password: str,
        ip_address: Optional[str] = None,
    ) -> None:
        """Set a new password and drop the refresh session."""
        if not verify_password(current_password, user.password_hash):
            AUTH_ATTEMPTS.labels("change_password", InvalidCredentialsError.code).inc()
            raise InvalidCredentialsError()
        user_service.set_password(db, user, new_password, commit=False)
        self.sessions.clear(db, user, commit=False)
        audit_service.log_event(
            db, user_id=user.id, action=AuditAction.CHANGE_PASSWORD,
            target_id=user.id, ip_address=ip_address, commit=False,
        )
        db.commit()
        logger.info(f"Password changed for user {user.username}; refresh session cleared")

    def revoke_session(
        self, db: Session, actor: User, target: User, ip_address: Optional[str] = None
    ) -> bool:
        """Security-triggered invalidation of another identity's refresh session."""
        existed = self.sessions.clear(db, target, commit=False)
        audit_service.log_event(
            db, user_id=actor.id, action=AuditAction.REVOKE_SESSION,
            target_id=target.id, ip_address=ip_address,
            metadata={"had_session": existed}, commit=False,
        )
        db.commit()
        logger.warning(f"Refresh session of {target.username} revoked by {actor.username}")
        return existed

    def authenticate_request(self, db: Session, bearer_token: str) -> User:
        """
        Resolve the identity behind an access token.

        Raises:
            TokenExpiredError: Access token expired
            InvalidSignatureError: Access token forged, malformed or of the wrong kind
            IdentityNotFoundError: Identity deleted after the token was issued
        """
        claims = self.issuer.verify(bearer_token, ACCESS)
        user = user_service.get_user_by_id(db, claims.identity_id)
        if user is None:
            raise IdentityNotFoundError("Account no longer exists")
        return user


auth_service = AuthService()
