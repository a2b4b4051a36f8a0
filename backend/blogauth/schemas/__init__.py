"""Pydantic schemas for API validation"""

from blogauth.schemas.user import (
    UserCreate,
    UserLogin,
    UserResponse,
    UserStats,
    UserSummary,
    AdminUserResponse,
    LoginResponse,
    TokenResponse,
    RefreshTokenRequest,
    UpdateUsernameRequest,
    ChangePasswordRequest,
)
from blogauth.schemas.response import APIResponse, ErrorResponse, HealthResponse, FollowStatusResponse
from blogauth.schemas.audit import AuditEventResponse

__all__ = [
    "UserCreate", "UserLogin", "UserResponse", "UserStats", "UserSummary", "AdminUserResponse",
    "LoginResponse", "TokenResponse", "RefreshTokenRequest", "UpdateUsernameRequest",
    "ChangePasswordRequest",
    "APIResponse", "ErrorResponse", "HealthResponse", "FollowStatusResponse",
    "AuditEventResponse",
]
