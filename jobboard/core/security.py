"""Security utilities: JWT access/refresh tokens and password hashing."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from jobboard.config import Settings
from jobboard.utils.helpers import generate_token, utcnow

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class TokenError(Exception):
    """Base class for token codec failures."""


class TokenExpiredError(TokenError):
    """Token signature is valid but its lifetime has passed."""


class TokenInvalidError(TokenError):
    """Token is malformed, tampered with, or of the wrong type."""


class TokenConfigurationError(TokenError):
    """Signing secret is missing."""


@dataclass(frozen=True)
class TokenClaims:
    """Identity carried by access and refresh tokens."""

    id: str
    email: str
    role: str

    def as_dict(self) -> Dict[str, str]:
        return {"id": self.id, "email": self.email, "role": self.role}


class TokenCodec:
    """
    Signs and verifies access and refresh tokens.

    Access and refresh tokens carry the same claims but are signed with
    different secrets and tagged with a ``type`` claim, so one can never be
    accepted in place of the other.
    """

    def __init__(self, settings: Settings, clock: Optional[Callable[[], datetime]] = None):
        self.algorithm = settings.JWT_ALGORITHM
        self.access_secret = settings.JWT_SECRET
        self.refresh_secret = settings.JWT_REFRESH_SECRET
        self.access_ttl = settings.access_token_ttl
        self.refresh_ttl = settings.refresh_token_ttl
        self._clock = clock or utcnow

    def issue_access_token(self, user: Any) -> str:
        """Create a short-lived access token for ``user``."""
        return self._encode(user, self.access_secret, self.access_ttl, ACCESS_TOKEN_TYPE)

    def issue_refresh_token(self, user: Any) -> str:
        """Create a long-lived refresh token for ``user``."""
        return self._encode(user, self.refresh_secret, self.refresh_ttl, REFRESH_TOKEN_TYPE)

    def verify_access_token(self, token: str) -> TokenClaims:
        return self._decode(token, self.access_secret, ACCESS_TOKEN_TYPE)

    def verify_refresh_token(self, token: str) -> TokenClaims:
        return self._decode(token, self.refresh_secret, REFRESH_TOKEN_TYPE)

    def _encode(self, user: Any, secret: str, ttl: timedelta, token_type: str) -> str:
        if not secret:
            raise TokenConfigurationError(f"No signing secret configured for {token_type} tokens")

        now = self._clock()
        role = getattr(user.role, "value", user.role)
        to_encode = {
            "id": str(user.id),
            "email": user.email,
            "role": role,
            "type": token_type,
            "jti": generate_token(16),
            "iat": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
        }
        return jwt.encode(to_encode, secret, algorithm=self.algorithm)

    def _decode(self, token: str, secret: str, token_type: str) -> TokenClaims:
        if not secret:
            raise TokenConfigurationError(f"No signing secret configured for {token_type} tokens")

        try:
            payload = jwt.decode(token, secret, algorithms=[self.algorithm])
        except ExpiredSignatureError as exc:
            raise TokenExpiredError("Token has expired") from exc
        except JWTError as exc:
            raise TokenInvalidError("Could not validate token") from exc

        if payload.get("type") != token_type:
            raise TokenInvalidError(f"Expected a {token_type} token")

        try:
            claims = TokenClaims(
                id=payload["id"],
                email=payload["email"],
                role=payload["role"],
            )
        except KeyError as exc:
            raise TokenInvalidError(f"Token is missing the {exc.args[0]!r} claim") from exc

        if not all(isinstance(value, str) and value for value in claims.as_dict().values()):
            raise TokenInvalidError("Token claims are malformed")
        return claims


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password with bcrypt."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """Check a password against a bcrypt hash. Malformed hashes never match."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False
