"""Security utilities - password hashing, JWT issuance and verification"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Dict, Any
import hashlib
import secrets

from jose import ExpiredSignatureError, JWTError, jwt
import bcrypt

from blogauth.config import settings
from blogauth.core.exceptions import InvalidSignatureError, TokenExpiredError, ValidationError

ACCESS = "access"
REFRESH = "refresh"

# bcrypt only looks at the first 72 bytes and newer releases refuse longer input.
_BCRYPT_MAX_BYTES = 72


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash

    Args:
        plain_password: Plain text password
        hashed_password: Hashed password

    Returns:
        bool: True if password matches; False for a mismatch or a malformed hash
    """
    if not plain_password or not hashed_password:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        return False


def get_password_hash(password: str) -> str:
    """
    Hash a password using bcrypt

    Args:
        password: Plain text password

    Returns:
        str: Hashed password (fresh salt on every call)

    Raises:
        ValidationError: Password longer than bcrypt accepts
    """
    encoded = password.encode('utf-8')
    if len(encoded) > _BCRYPT_MAX_BYTES:
        raise ValidationError(
            f"Password must be at most {_BCRYPT_MAX_BYTES} bytes",
            details={"field": "password", "max_bytes": _BCRYPT_MAX_BYTES},
        )
    return bcrypt.hashpw(encoded, bcrypt.gensalt()).decode('utf-8')


def token_digest(token: str) -> str:
    """SHA-256 hex digest used to persist refresh tokens."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of a token."""

    identity_id: str
    token_type: str
    jti: str
    expires_at: datetime
    role: Optional[str] = None


class TokenIssuer:
    """Mint and verify access and refresh tokens.

    Access and refresh tokens are signed with different secrets, so a leaked
    access secret cannot be used to forge refresh tokens.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(hours=2),
        refresh_ttl: timedelta = timedelta(days=7),
    ):
        if access_secret == refresh_secret:
            raise ValueError("Access and refresh tokens must use different secrets")
        self._secrets = {ACCESS: access_secret, REFRESH: refresh_secret}
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    def _encode(self, claims: Dict[str, Any], token_type: str, expires_delta: timedelta) -> str:
        now = datetime.utcnow()
        to_encode = claims.copy()
        to_encode.update({
            "typ": token_type,
            "iat": now,
            "exp": now + expires_delta,
            "jti": secrets.token_urlsafe(16),  # Unique token ID
        })
        return jwt.encode(to_encode, self._secrets[token_type], algorithm=self.algorithm)

    def issue_access_token(
        self, identity_id: str, role: str, expires_delta: Optional[timedelta] = None
    ) -> str:
        """
        Create a signed access token

        Args:
            identity_id: Identity the token authenticates
            role: Role claim (user or admin)
            expires_delta: Override of the configured lifetime

        Returns:
            str: Encoded JWT
        """
        return self._encode(
            {"sub": str(identity_id), "role": role},
            ACCESS,
            expires_delta if expires_delta is not None else self.access_ttl,
        )

    def issue_refresh_token(self, identity_id: str, expires_delta: Optional[timedelta] = None) -> str:
        """Create a signed refresh token."""
        return self._encode(
            {"sub": str(identity_id)},
            REFRESH,
            expires_delta if expires_delta is not None else self.refresh_ttl,
        )

    def verify(self, token: str, which: str = ACCESS) -> TokenClaims:
        """
        Decode and verify a token of the given kind

        Args:
            token: JWT string
            which: "access" or "refresh"

        Returns:
            TokenClaims: Verified claims

        Raises:
            TokenExpiredError: Signature valid, expiry passed
            InvalidSignatureError: Tampered, foreign, malformed or wrong token kind
        """
        if which not in self._secrets:
            raise ValueError(f"Unknown token type: {which}")
        if not token:
            raise InvalidSignatureError(which)
        try:
            payload = jwt.decode(token, self._secrets[which], algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise TokenExpiredError(which)
        except JWTError:
            raise InvalidSignatureError(which)

        subject = payload.get("sub")
        exp = payload.get("exp")
        if payload.get("typ") != which or not subject or exp is None:
            raise InvalidSignatureError(which)

        return TokenClaims(
            identity_id=str(subject),
            token_type=which,
            jti=str(payload.get("jti", "")),
            expires_at=datetime.utcfromtimestamp(int(exp)),
            role=payload.get("role"),
        )


def peek_expiry(token: str) -> Optional[datetime]:
    """
    Read a token's expiry without checking the signature.

    Only for advisory use (client-side refresh scheduling).

    Returns:
        Optional[datetime]: Naive UTC expiry, or None if it cannot be read
    """
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return None
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        return None
    return datetime.utcfromtimestamp(exp)


def build_token_issuer() -> TokenIssuer:
    """TokenIssuer wired to application settings."""
    return TokenIssuer(
        access_secret=settings.SECRET_KEY,
        refresh_secret=settings.get_refresh_secret(),
        algorithm=settings.ALGORITHM,
        access_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        refresh_ttl=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )


token_issuer = build_token_issuer()
