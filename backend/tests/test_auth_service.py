from datetime import timedelta

import pytest

from blogauth.core.exceptions import (
    CaptchaMismatchError,
    IdentityNotFoundError,
    InvalidCredentialsError,
    InvalidSignatureError,
    SessionRevokedError,
    TokenExpiredError,
    UsernameTakenError,
)
from blogauth.core.security import ACCESS, token_issuer
from blogauth.models.audit import AuditEvent
from blogauth.models.social import ArticleMark, Follow
from blogauth.models.user import User
from blogauth.services.auth_service import AttemptState, AuthAttempt
from blogauth.services.user_service import user_service

CAPTCHA_TEXT = "AB12"


class RecordingContentStore:
    def __init__(self, posts=0):
        self.posts = posts
        self.deleted_for = []

    def count_by_author(self, identity_id):
        return self.posts

    def delete_by_author(self, identity_id):
        self.deleted_for.append(identity_id)
        return self.posts


def _register(auth, captcha, db, username="alice", password="secret1"):
    challenge = captcha.issue()
    return auth.register(db, username, password, CAPTCHA_TEXT, challenge.challenge_id)


def _login(auth, captcha, db, username="alice", password="secret1"):
    challenge = captcha.issue()
    return auth.login(db, username, password, CAPTCHA_TEXT, challenge.challenge_id)


def test_register_creates_plain_user(auth, captcha, db_session):
    user = _register(auth, captcha, db_session)
    assert user.role == "user"
    assert user.password_hash != "secret1"
    assert not user.has_refresh_session


def test_register_rejects_taken_username(auth, captcha, db_session):
    _register(auth, captcha, db_session)
    with pytest.raises(UsernameTakenError):
        _register(auth, captcha, db_session)


def test_register_rejects_wrong_captcha(auth, captcha, db_session):
    challenge = captcha.issue()
    with pytest.raises(CaptchaMismatchError):
        auth.register(db_session, "alice", "secret1", "NOPE", challenge.challenge_id)
    assert user_service.get_user_by_username(db_session, "alice") is None


def test_login_issues_verifiable_tokens(auth, captcha, db_session):
    user = _register(auth, captcha, db_session)
    result = _login(auth, captcha, db_session)

    claims = token_issuer.verify(result.access_token, ACCESS)
    assert claims.identity_id == user.id
    assert result.expires_in == 120 * 60
    assert result.attempt.history == [
        AttemptState.AWAITING_CREDENTIALS,
        AttemptState.CAPTCHA_VERIFIED,
        AttemptState.PASSWORD_VERIFIED,
        AttemptState.TOKENS_ISSUED,
    ]
    assert user.last_login is not None


def test_unknown_user_and_bad_password_look_the_same(auth, captcha, db_session):
    _register(auth, captcha, db_session)
    with pytest.raises(InvalidCredentialsError) as bad_password:
        _login(auth, captcha, db_session, password="wrong-one")
    with pytest.raises(IdentityNotFoundError) as unknown:
        _login(auth, captcha, db_session, username="nobody")

    assert bad_password.value.message == unknown.value.message
    assert bad_password.value.code == unknown.value.code == "invalid_credentials"
    assert bad_password.value.status_code == unknown.value.status_code == 401


def test_captcha_is_checked_before_password(auth, captcha, db_session):
    _register(auth, captcha, db_session)
    challenge = captcha.issue()
    with pytest.raises(CaptchaMismatchError):
        auth.login(db_session, "alice", "wrong-one", "XXXX", challenge.challenge_id)


def test_login_invalidates_previous_refresh_token(auth, captcha, db_session):
    _register(auth, captcha, db_session)
    first = _login(auth, captcha, db_session)
    _login(auth, captcha, db_session)

    with pytest.raises(SessionRevokedError):
        auth.refresh(db_session, first.refresh_token)


def test_refresh_rotates_refresh_token(auth, captcha, db_session):
    _register(auth, captcha, db_session)
    login = _login(auth, captcha, db_session)

    pair = auth.refresh(db_session, login.refresh_token)

    assert pair.refresh_token != login.refresh_token
    assert token_issuer.verify(pair.access_token, ACCESS)
    with pytest.raises(SessionRevokedError):
        auth.refresh(db_session, login.refresh_token)
    assert auth.refresh(db_session, pair.refresh_token)


def test_expired_refresh_token(auth, captcha, db_session):
    user = _register(auth, captcha, db_session)
    expired = token_issuer.issue_refresh_token(user.id, expires_delta=timedelta(seconds=-5))
    auth.sessions.save(db_session, user, expired)

    with pytest.raises(TokenExpiredError):
        auth.refresh(db_session, expired)


def test_access_token_cannot_be_used_to_refresh(auth, captcha, db_session):
    _register(auth, captcha, db_session)
    login = _login(auth, captcha, db_session)
    with pytest.raises(InvalidSignatureError):
        auth.refresh(db_session, login.access_token)


def test_logout_revokes_and_is_idempotent(auth, captcha, db_session):
    user = _register(auth, captcha, db_session)
    login = _login(auth, captcha, db_session)

    assert auth.logout(db_session, user) is True
    assert auth.logout(db_session, user) is False
    with pytest.raises(SessionRevokedError):
        auth.refresh(db_session, login.refresh_token)


def test_change_password_requires_current_and_drops_session(auth, captcha, db_session):
    user = _register(auth, captcha, db_session)
    login = _login(auth, captcha, db_session)

    with pytest.raises(InvalidCredentialsError):
        auth.change_password(db_session, user, "not-it", "newsecret")

    auth.change_password(db_session, user, "secret1", "newsecret")

    with pytest.raises(SessionRevokedError):
        auth.refresh(db_session, login.refresh_token)
    with pytest.raises(InvalidCredentialsError):
        _login(auth, captcha, db_session)
    assert _login(auth, captcha, db_session, password="newsecret").access_token


def test_delete_account_removes_identity_edges_and_content(auth, captcha, db_session):
    alice = _register(auth, captcha, db_session)
    bob = _register(auth, captcha, db_session, username="bob")
    user_service.follow(db_session, alice, bob.id)
    user_service.follow(db_session, bob, alice.id)
    user_service.add_mark(db_session, alice, "like", "article-1")
    login = _login(auth, captcha, db_session)
    alice_id = alice.id
    content = RecordingContentStore(posts=3)

    auth.delete_account(db_session, alice, content)

    assert user_service.get_user_by_id(db_session, alice_id) is None
    assert content.deleted_for == [alice_id]
    assert db_session.query(Follow).count() == 0
    assert db_session.query(ArticleMark).count() == 0
    event = db_session.query(AuditEvent).filter(AuditEvent.action == "delete_account").one()
    assert event.user_id is None and event.target_id == alice_id
    with pytest.raises(IdentityNotFoundError):
        auth.authenticate_request(db_session, login.access_token)
    with pytest.raises(SessionRevokedError):
        auth.refresh(db_session, login.refresh_token)


def test_authenticate_request_rejects_tampered_and_expired(auth, captcha, db_session):
    user = _register(auth, captcha, db_session)
    login = _login(auth, captcha, db_session)
    assert auth.authenticate_request(db_session, login.access_token).id == user.id

    expired = token_issuer.issue_access_token(user.id, user.role, expires_delta=timedelta(seconds=-1))
    with pytest.raises(TokenExpiredError):
        auth.authenticate_request(db_session, expired)
    with pytest.raises(InvalidSignatureError):
        auth.authenticate_request(db_session, login.refresh_token)


def test_revoke_session_by_admin(auth, captcha, db_session):
    user = _register(auth, captcha, db_session)
    admin = User(username="root", password_hash="hash", role="admin")
    db_session.add(admin)
    db_session.commit()
    login = _login(auth, captcha, db_session)

    assert auth.revoke_session(db_session, admin, user) is True
    with pytest.raises(SessionRevokedError):
        auth.refresh(db_session, login.refresh_token)


def test_attempt_rejects_illegal_transitions():
    attempt = AuthAttempt("login", "alice")
    with pytest.raises(RuntimeError):
        attempt.advance(AttemptState.TOKENS_ISSUED)

    attempt.advance(AttemptState.CAPTCHA_VERIFIED)
    attempt.reject(InvalidCredentialsError())
    assert attempt.state is AttemptState.REJECTED
    assert attempt.error.code == "invalid_credentials"
    with pytest.raises(RuntimeError):
        attempt.reject(InvalidCredentialsError())
