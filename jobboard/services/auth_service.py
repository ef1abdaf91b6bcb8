"""
Authentication flows: register, login, refresh, logout and password
management.

Session state lives entirely on the user record: the stored refresh token is
the one live session, ``login_attempts``/``lock_until`` drive lockout and the
hashed reset token gates password resets. Every successful login or refresh
overwrites the stored refresh token, so a superseded token fails the
equality check even while its signature is still valid.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

import structlog

from jobboard.config import Settings
from jobboard.core.exceptions import (
    AccountDeactivated,
    AccountLocked,
    CurrentPasswordIncorrect,
    DuplicateEmail,
    InvalidCredentials,
    InvalidOrExpiredToken,
    InvalidRefreshToken,
    NoToken,
    UserNotFound,
    ValidationError,
)
from jobboard.core.roles import SELF_REGISTERABLE_ROLES, Role
from jobboard.core.security import TokenCodec, TokenExpiredError, TokenInvalidError
from jobboard.models.user import User
from jobboard.services.user_store import UserStore
from jobboard.utils.helpers import generate_hash, generate_token, utcnow

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AuthSession:
    """Tokens issued to a freshly authenticated user."""

    user: User
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class PasswordResetTicket:
    """Raw reset token; only its hash is stored."""

    token: str
    expires_at: datetime
    reset_url: str


class AuthService:
    """Auth state transitions over a ``UserStore`` and a ``TokenCodec``."""

    def __init__(
        self,
        store: UserStore,
        codec: TokenCodec,
        settings: Settings,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.codec = codec
        self.settings = settings
        self._clock = clock or utcnow

    async def register(
        self, *, name: str, email: str, password: str, role: Optional[Role] = None
    ) -> AuthSession:
        """Create an account and start its first session."""
        role = Role(role) if role is not None else Role.APPLICANT
        if role not in SELF_REGISTERABLE_ROLES:
            raise ValidationError("Role must be applicant or employer")

        if await self.store.find_by_email(email) is not None:
            raise DuplicateEmail()

        now = self._clock()
        user = await self.store.create(name=name, email=email, password=password, role=role, now=now)

        access_token = self.codec.issue_access_token(user)
        refresh_token = self.codec.issue_refresh_token(user)
        await self.store.set_refresh_token(user.id, refresh_token, now)

        logger.info("user_registered", user_id=user.id, role=role.value)
        return AuthSession(
            user=user.model_copy(update={"refresh_token": refresh_token}),
            access_token=access_token,
            refresh_token=refresh_token,
        )

    async def login(self, *, email: str, password: str) -> AuthSession:
        """
        Check credentials and start a new session.

        Unknown emails and wrong passwords fail identically so callers cannot
        probe which emails are registered.
        """
        user = await self.store.find_by_email(email)
        if user is None:
            logger.info("login_failed", reason="unknown_email")
            raise InvalidCredentials()

        if not user.is_active:
            logger.info("login_rejected", user_id=user.id, reason="deactivated")
            raise AccountDeactivated()

        now = self._clock()
        if user.is_locked(now):
            logger.info("login_rejected", user_id=user.id, reason="locked")
            raise AccountLocked()

        if not user.check_password(password):
            updated = await self.store.record_failed_login(
                user.id,
                max_attempts=self.settings.LOGIN_MAX_ATTEMPTS,
                lock_duration=self.settings.lock_duration,
                now=now,
            )
            attempts = updated.login_attempts if updated else None
            logger.info("login_failed", user_id=user.id, reason="bad_password", attempts=attempts)
            if updated is not None and updated.is_locked(now):
                logger.warning("account_locked", user_id=user.id, lock_until=updated.lock_until.isoformat())
            raise InvalidCredentials()

        access_token = self.codec.issue_access_token(user)
        refresh_token = self.codec.issue_refresh_token(user)
        await self.store.record_successful_login(user.id, refresh_token=refresh_token, now=now)

        logger.info("login_succeeded", user_id=user.id)
        user = user.model_copy(
            update={
                "login_attempts": 0,
                "lock_until": None,
                "last_login": now,
                "refresh_token": refresh_token,
                "password_reset_token": None,
                "password_reset_expires": None,
            }
        )
        return AuthSession(user=user, access_token=access_token, refresh_token=refresh_token)

    async def refresh(self, token: Optional[str]) -> TokenPair:
        """
        Exchange a refresh token for a new access/refresh pair.

        The stored token is swapped with a compare-and-set, so of two
        concurrent refreshes presenting the same token only one succeeds.
        """
        if not token:
            raise NoToken()

        try:
            claims = self.codec.verify_refresh_token(token)
        except (TokenExpiredError, TokenInvalidError) as e:
            logger.info("refresh_rejected", reason=type(e).__name__)
            raise InvalidRefreshToken("Invalid or expired refresh token") from e

        user = await self.store.find_by_id(claims.id)
        if user is None:
            raise InvalidRefreshToken()

        if user.refresh_token != token:
            logger.warning("refresh_token_reuse_detected", user_id=user.id)
            raise InvalidRefreshToken()

        access_token = self.codec.issue_access_token(user)
        refresh_token = self.codec.issue_refresh_token(user)
        rotated = await self.store.rotate_refresh_token(user.id, token, refresh_token, self._clock())
        if not rotated:
            logger.warning("refresh_token_rotation_lost", user_id=user.id)
            raise InvalidRefreshToken()

        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    async def logout(self, user_id: str) -> None:
        """End the user's session. Safe to call repeatedly."""
        await self.store.set_refresh_token(user_id, None, self._clock())
        logger.info("logout", user_id=user_id)

    async def get_user(self, user_id: str) -> User:
        user = await self.store.find_by_id(user_id)
        if user is None:
            raise UserNotFound()
        return user

    async def forgot_password(self, email: str) -> PasswordResetTicket:
        """Issue a password reset token for the account registered to ``email``."""
        user = await self.store.find_by_email(email)
        if user is None:
            raise UserNotFound("No user found with that email")

        now = self._clock()
        raw_token = generate_token(32)
        expires_at = now + self.settings.password_reset_ttl
        await self.store.set_password_reset(
            user.id, token_hash=generate_hash(raw_token), expires=expires_at, now=now
        )

        logger.info("password_reset_requested", user_id=user.id, expires_at=expires_at.isoformat())
        return PasswordResetTicket(
            token=raw_token,
            expires_at=expires_at,
            reset_url=f"{self.settings.CLIENT_URL.rstrip('/')}/reset-password/{raw_token}",
        )

    async def reset_password(self, token: str, new_password: str) -> str:
        """Consume a reset token and set a new password. Returns an access token."""
        user = await self.store.consume_password_reset(
            generate_hash(token), new_password=new_password, now=self._clock()
        )
        if user is None:
            raise InvalidOrExpiredToken()

        logger.info("password_reset_completed", user_id=user.id)
        return self.codec.issue_access_token(user)

    async def change_password(self, user_id: str, current_password: str, new_password: str) -> str:
        """Replace the password of an authenticated user. Returns an access token."""
        user = await self.store.find_by_id(user_id)
        if user is None:
            raise UserNotFound()

        if not user.check_password(current_password):
            raise CurrentPasswordIncorrect()

        await self.store.update_password(user.id, new_password, self._clock())
        logger.info("password_changed", user_id=user.id)
        return self.codec.issue_access_token(user)
