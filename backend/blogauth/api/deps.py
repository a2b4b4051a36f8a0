"""API dependencies - authentication and authorization"""

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional

from blogauth.core.database import get_db
from blogauth.core.exceptions import AuthenticationError, AuthorizationError
from blogauth.models.user import User
from blogauth.services.auth_service import AuthService, auth_service
from blogauth.services.captcha_service import CaptchaService, captcha_service

# HTTP Bearer token scheme; missing headers are reported through our own error envelope
security = HTTPBearer(auto_error=False)


def get_auth_service() -> AuthService:
    return auth_service


def get_captcha_service() -> CaptchaService:
    return captcha_service


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
) -> User:
    """
    Get current authenticated user from the bearer access token

    Args:
        credentials: HTTP Bearer credentials
        db: Database session
        auth: Authentication gateway

    Returns:
        Current user

    Raises:
        AuthenticationError: If no bearer token was sent
        TokenExpiredError / InvalidSignatureError: If the token does not verify
        IdentityNotFoundError: If the identity was deleted after issuance
    """
    if not credentials or not credentials.credentials:
        raise AuthenticationError("Please log in first")
    return auth.authenticate_request(db, credentials.credentials)


def get_current_admin_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """
    Get current admin user (authorization check)

    Raises:
        AuthorizationError: If user is not admin
    """
    if current_user.role != "admin":
        raise AuthorizationError("Admin access required")
    return current_user
