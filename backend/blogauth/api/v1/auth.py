"""Authentication routes"""

from fastapi import APIRouter, Cookie, Depends, Header, Request, Response, status
from sqlalchemy.orm import Session
from typing import Optional

from blogauth.core.database import get_db
from blogauth.config import settings
from blogauth.schemas.user import (
    UserCreate,
    UserLogin,
    UserResponse,
    LoginResponse,
    TokenResponse,
    RefreshTokenRequest,
    UpdateUsernameRequest,
    ChangePasswordRequest,
)
from blogauth.schemas.response import APIResponse
from blogauth.services.auth_service import AuthService
from blogauth.services.captcha_service import CaptchaService
from blogauth.services.content_store import AuthoredContentStore, get_content_store
from blogauth.services.rate_limiter import login_limits, rate_limiter, refresh_limits
from blogauth.services.user_service import user_service
from blogauth.api.deps import client_ip, get_auth_service, get_captcha_service, get_current_user
from blogauth.models.user import User

router = APIRouter()

CAPTCHA_HEADER = "X-Captcha-Id"


def _challenge_id(
    captcha_cookie: Optional[str] = Cookie(None, alias=settings.CAPTCHA_COOKIE_NAME),
    captcha_header: Optional[str] = Header(None, alias=CAPTCHA_HEADER),
) -> Optional[str]:
    """Challenge id from the explicit header, else the session cookie set by GET /captcha."""
    return captcha_header or captcha_cookie


@router.get("/captcha", response_class=Response)
def get_captcha(captcha: CaptchaService = Depends(get_captcha_service)):
    """
    Issue a new captcha challenge bound to the caller

    Returns:
        PNG image; the challenge id is set as a cookie and echoed in a header
    """
    issued = captcha.issue()
    response = Response(content=issued.image, media_type=issued.media_type)
    response.headers[CAPTCHA_HEADER] = issued.challenge_id
    response.headers["Cache-Control"] = "no-store"
    response.set_cookie(
        settings.CAPTCHA_COOKIE_NAME,
        issued.challenge_id,
        max_age=settings.CAPTCHA_TTL_SECONDS,
        httponly=True,
        samesite="lax",
        secure=settings.ENVIRONMENT.lower() == "production",
    )
    return response


@router.post("/register", response_model=APIResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: UserCreate,
    request: Request,
    response: Response,
    challenge_id: Optional[str] = Depends(_challenge_id),
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    """
    Register a new account; does not log in

    Args:
        body: Username, password and captcha answer

    Returns:
        Success message
    """
    # The challenge is spent whatever happens next
    response.delete_cookie(settings.CAPTCHA_COOKIE_NAME)
    auth.register(
        db, body.username, body.password, body.captcha, challenge_id, ip_address=client_ip(request)
    )
    return APIResponse(message="Registration successful, please log in")


@router.post("/login", response_model=LoginResponse, status_code=status.HTTP_200_OK)
def login(
    body: UserLogin,
    request: Request,
    response: Response,
    challenge_id: Optional[str] = Depends(_challenge_id),
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    """
    Login endpoint - verify captcha and credentials, return access + refresh tokens

    Args:
        body: Username, password and captcha answer
        db: Database session

    Returns:
        Access token and refresh token
    """
    ip = client_ip(request)
    rate_limiter.enforce(f"{ip}:{body.username.lower()}", login_limits())

    response.delete_cookie(settings.CAPTCHA_COOKIE_NAME)
    result = auth.login(db, body.username, body.password, body.captcha, challenge_id, ip_address=ip)

    return LoginResponse(
        token=result.access_token,
        refresh_token=result.refresh_token,
        expires_in=result.expires_in,
    )


@router.post("/refresh", response_model=TokenResponse)
def refresh_token(
    body: RefreshTokenRequest,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    """
    Exchange a refresh token for a new access token

    The refresh token is rotated: the returned one replaces the one sent.
    """
    rate_limiter.enforce(client_ip(request), refresh_limits())
    pair = auth.refresh(db, body.refresh_token)
    return TokenResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_in=pair.expires_in,
    )


@router.get("/me", response_model=UserResponse)
def get_current_user_info(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    content: AuthoredContentStore = Depends(get_content_store),
):
    """
    Get current user information

    Returns:
        Profile with follower/engagement counters
    """
    return UserResponse(
        id=current_user.id,
        username=current_user.username,
        role=current_user.role,
        avatar=current_user.avatar,
        join_date=current_user.created_at,
        last_login=current_user.last_login,
        stats=user_service.get_stats(db, current_user, content),
    )


@router.post("/logout", status_code=status.HTTP_200_OK)
def logout(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    """
    Logout endpoint - clear the refresh session

    The access token stays valid until it expires.
    """
    revoked = auth.logout(db, current_user, ip_address=client_ip(request))
    return {
        "success": True,
        "message": "Logged out successfully",
        "refreshSessionCleared": revoked,
    }


@router.delete("/account", status_code=status.HTTP_200_OK)
def delete_account(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
    content: AuthoredContentStore = Depends(get_content_store),
):
    """Delete the caller's account and everything it authored."""
    auth.delete_account(db, current_user, content, ip_address=client_ip(request))
    return {"success": True, "message": "Account deleted"}


@router.patch("/update-username", status_code=status.HTTP_200_OK)
def update_username(
    body: UpdateUsernameRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Rename the caller"""
    user = user_service.update_username(db, current_user, body.new_username)
    return {"success": True, "username": user.username}


@router.post("/change-password", status_code=status.HTTP_200_OK)
def change_password(
    body: ChangePasswordRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    """
    Change password; the refresh session is dropped, so other devices must log in again
    """
    auth.change_password(
        db, current_user, body.current_password, body.new_password, ip_address=client_ip(request)
    )
    return {"success": True, "message": "Password changed, please log in again"}
