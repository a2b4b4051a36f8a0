"""User and authentication schemas"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime
from enum import Enum

# Letters of any script, digits, underscore and hyphen
USERNAME_PATTERN = r'^[\w-]+$'

# bcrypt refuses input longer than this many bytes
PASSWORD_MAX_BYTES = 72


def _password_fits_bcrypt(v: str) -> str:
    if len(v.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes in UTF-8")
    return v


class UserRole(str, Enum):
    """User role enumeration"""
    ADMIN = "admin"
    USER = "user"


class RequestModel(BaseModel):
    """Strict request body: unknown fields are rejected, camelCase accepted."""
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class ResponseModel(BaseModel):
    """Response body serialized with camelCase aliases."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class CredentialsRequest(RequestModel):
    """Login / register body"""
    username: str = Field(..., min_length=3, max_length=20, pattern=USERNAME_PATTERN)
    password: str = Field(..., min_length=6, max_length=64)
    captcha: str = Field(..., min_length=1, max_length=16)

    @field_validator('password')
    @classmethod
    def password_fits_bcrypt(cls, v):
        return _password_fits_bcrypt(v)


class UserLogin(CredentialsRequest):
    """User login schema"""


class UserCreate(CredentialsRequest):
    """User registration schema"""

    @field_validator('password')
    @classmethod
    def password_not_blank(cls, v):
        """Reject passwords made only of whitespace"""
        if not v.strip():
            raise ValueError('Password must not be blank')
        return v


class RefreshTokenRequest(RequestModel):
    """Refresh token exchange body"""
    refresh_token: str = Field(..., alias="refreshToken", min_length=1)


class UpdateUsernameRequest(RequestModel):
    """Username change body"""
    new_username: str = Field(
        ..., alias="newUsername", min_length=3, max_length=20, pattern=USERNAME_PATTERN
    )


class ChangePasswordRequest(RequestModel):
    """Password change body"""
    current_password: str = Field(..., alias="currentPassword", min_length=1, max_length=64)
    new_password: str = Field(..., alias="newPassword", min_length=6, max_length=64)

    @field_validator('new_password')
    @classmethod
    def new_password_fits_bcrypt(cls, v):
        return _password_fits_bcrypt(v)


class UserStats(ResponseModel):
    """Counters shown on the profile"""
    followers: int = 0
    following: int = 0
    collections: int = 0
    favorites: int = 0
    likes: int = 0
    posts: int = 0


class UserSummary(ResponseModel):
    """Public identity card"""
    id: str
    username: str
    avatar: str
    join_date: Optional[datetime] = Field(None, serialization_alias="joinDate")

    @classmethod
    def from_user(cls, user) -> "UserSummary":
        return cls(id=user.id, username=user.username, avatar=user.avatar, join_date=user.created_at)


class UserResponse(ResponseModel):
    """Current user profile"""
    id: str
    username: str
    role: str
    avatar: str
    join_date: Optional[datetime] = Field(None, serialization_alias="joinDate")
    last_login: Optional[datetime] = Field(None, serialization_alias="lastLogin")
    stats: UserStats = Field(default_factory=UserStats)


class AdminUserResponse(ResponseModel):
    """Identity as listed for administrators"""
    id: str
    username: str
    role: str
    join_date: Optional[datetime] = Field(None, serialization_alias="joinDate")
    last_login: Optional[datetime] = Field(None, serialization_alias="lastLogin")
    has_refresh_session: bool = Field(False, serialization_alias="hasRefreshSession")

    @classmethod
    def from_user(cls, user) -> "AdminUserResponse":
        return cls(
            id=user.id,
            username=user.username,
            role=user.role,
            join_date=user.created_at,
            last_login=user.last_login,
            has_refresh_session=user.has_refresh_session,
        )


class LoginResponse(ResponseModel):
    """Login result: access token plus refresh token"""
    success: bool = True
    token: str
    refresh_token: str = Field(..., serialization_alias="refreshToken")
    token_type: str = Field("bearer", serialization_alias="tokenType")
    expires_in: int = Field(..., serialization_alias="expiresIn")
    message: str = "Login successful"


class TokenResponse(ResponseModel):
    """Refresh result: rotated token pair"""
    access_token: str = Field(..., serialization_alias="accessToken")
    refresh_token: str = Field(..., serialization_alias="refreshToken")
    token_type: str = Field("bearer", serialization_alias="tokenType")
    expires_in: int = Field(..., serialization_alias="expiresIn")
