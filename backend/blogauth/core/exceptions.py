"""Custom exception classes for the application"""

from typing import Optional, Dict, Any

# Shared by every credential failure so responses do not reveal which usernames exist.
GENERIC_CREDENTIALS_MESSAGE = "Invalid username or password"


class BaseAPIException(Exception):
    """Base exception for all API errors"""

    code = "internal_error"

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# Authentication Errors
class AuthenticationError(BaseAPIException):
    """Base authentication error"""

    code = "unauthenticated"

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=401, details=details)


class InvalidCredentialsError(AuthenticationError):
    """Password did not match"""

    code = "invalid_credentials"

    def __init__(self):
        super().__init__(GENERIC_CREDENTIALS_MESSAGE)


class IdentityNotFoundError(AuthenticationError):
    """
    No identity for a username or id.

    On login the message is the same as for a bad password. Behind the token
    gate the identity was deleted after the token was issued.
    """

    code = "identity_not_found"

    def __init__(self, message: str = GENERIC_CREDENTIALS_MESSAGE, code: Optional[str] = None):
        super().__init__(message)
        if code:
            self.code = code


class TokenExpiredError(AuthenticationError):
    """JWT signature is valid but the token has expired"""

    code = "token_expired"

    def __init__(self, token_type: str = "access"):
        super().__init__(f"The {token_type} token has expired", details={"token_type": token_type})


class InvalidSignatureError(AuthenticationError):
    """JWT is forged, corrupted or of the wrong kind"""

    code = "invalid_signature"

    def __init__(self, token_type: str = "access"):
        super().__init__(f"Invalid {token_type} token", details={"token_type": token_type})


class SessionRevokedError(BaseAPIException):
    """Refresh token is well-formed but no longer backed by a live session"""

    code = "session_revoked"

    def __init__(self, message: str = "Session has been revoked, please log in again"):
        super().__init__(message, status_code=403)


# Authorization Errors
class AuthorizationError(BaseAPIException):
    """Insufficient permissions"""

    code = "forbidden"

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, status_code=403)


# Resource Errors
class ResourceNotFoundError(BaseAPIException):
    """Resource not found"""

    code = "not_found"

    def __init__(self, resource: str):
        super().__init__(f"{resource} not found", status_code=404)


# Validation Errors
class ValidationError(BaseAPIException):
    """Validation error"""

    code = "validation_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=400, details=details)


class CaptchaMismatchError(ValidationError):
    """Captcha answer wrong, missing or already used"""

    code = "captcha_mismatch"

    def __init__(self):
        super().__init__("Captcha is incorrect or expired, please fetch a new one")


# Business Logic Errors
class BusinessLogicError(BaseAPIException):
    """Business logic error"""

    code = "bad_request"

    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class UsernameTakenError(BusinessLogicError):
    """Username already exists"""

    code = "username_taken"

    def __init__(self, username: str):
        super().__init__(f"Username '{username}' already exists")


class RateLimitExceededError(BaseAPIException):
    """Rate limit exceeded"""

    code = "rate_limited"

    def __init__(
        self,
        message: str = "Rate limit exceeded. Please try again later.",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, status_code=429, details=details)
