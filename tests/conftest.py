import asyncio
from datetime import timedelta
from typing import Dict, Optional

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from jobboard.config import Settings
from jobboard.core.exceptions import DuplicateEmail
from jobboard.core.roles import Role
from jobboard.core.security import TokenCodec, hash_password
from jobboard.main import create_app
from jobboard.models.user import User
from jobboard.services.auth_service import AuthService
from jobboard.services.user_store import UserStore
from jobboard.utils.helpers import normalize_email, utcnow

PASSWORD = "Sup3rSecret"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self):
        self.now = utcnow().replace(microsecond=0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class InMemoryUserStore(UserStore):
    """Dict-backed store with the same conditional-update semantics as MongoUserStore."""

    def __init__(self, bcrypt_rounds: int = 4):
        self.bcrypt_rounds = bcrypt_rounds
        self.users: Dict[str, User] = {}

    def _update(self, user_id: str, **fields) -> User:
        user = self.users[user_id].model_copy(update=fields)
        self.users[user_id] = user
        return user

    async def find_by_email(self, email: str) -> Optional[User]:
        email = normalize_email(email)
        return next((u for u in self.users.values() if u.email == email), None)

    async def find_by_id(self, user_id: str) -> Optional[User]:
        # Yield so concurrent callers interleave like they would against a database
        await asyncio.sleep(0)
        return self.users.get(user_id)

    async def create(self, *, name, email, password, role, now) -> User:
        if await self.find_by_email(email) is not None:
            raise DuplicateEmail()
        user = User(
            id=str(ObjectId()),
            name=name,
            email=normalize_email(email),
            role=Role(role),
            password_hash=hash_password(password, self.bcrypt_rounds),
            created_at=now,
            updated_at=now,
        )
        self.users[user.id] = user
        return user

    async def set_refresh_token(self, user_id, token, now) -> None:
        if user_id in self.users:
            self._update(user_id, refresh_token=token, updated_at=now)

    async def rotate_refresh_token(self, user_id, current, new, now) -> bool:
        user = self.users.get(user_id)
        if user is None or user.refresh_token != current:
            return False
        self._update(user_id, refresh_token=new, updated_at=now)
        return True

    async def record_failed_login(self, user_id, *, max_attempts, lock_duration, now):
        user = self.users.get(user_id)
        if user is None:
            return None
        if user.lock_until is not None and user.lock_until <= now:
            user = self._update(user_id, login_attempts=1, lock_until=None, updated_at=now)
        else:
            user = self._update(user_id, login_attempts=user.login_attempts + 1, updated_at=now)
        if user.login_attempts >= max_attempts and not user.is_locked(now):
            user = self._update(user_id, lock_until=now + lock_duration)
        return user

    async def record_successful_login(self, user_id, *, refresh_token, now) -> None:
        self._update(
            user_id,
            login_attempts=0,
            lock_until=None,
            last_login=now,
            refresh_token=refresh_token,
            password_reset_token=None,
            password_reset_expires=None,
            updated_at=now,
        )

    async def set_password_reset(self, user_id, *, token_hash, expires, now) -> None:
        self._update(user_id, password_reset_token=token_hash, password_reset_expires=expires, updated_at=now)

    async def consume_password_reset(self, token_hash, *, new_password, now):
        for user in self.users.values():
            if (
                user.password_reset_token == token_hash
                and user.password_reset_expires is not None
                and user.password_reset_expires > now
            ):
                return self._update(
                    user.id,
                    password_hash=hash_password(new_password, self.bcrypt_rounds),
                    login_attempts=0,
                    lock_until=None,
                    password_reset_token=None,
                    password_reset_expires=None,
                    updated_at=now,
                )
        return None

    async def update_password(self, user_id, new_password, now) -> None:
        self._update(user_id, password_hash=hash_password(new_password, self.bcrypt_rounds), updated_at=now)


def make_settings(**overrides) -> Settings:
    values = {
        "JWT_SECRET": "test-access-secret",
        "JWT_REFRESH_SECRET": "test-refresh-secret",
        "BCRYPT_ROUNDS": 4,
        "RATE_LIMIT_ENABLED": False,
        "ENVIRONMENT": "test",
        "CLIENT_URL": "http://localhost:5173",
        "LOG_FORMAT": "console",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryUserStore()


@pytest.fixture
def codec(settings, clock):
    return TokenCodec(settings, clock=clock)


@pytest.fixture
def auth_service(store, codec, settings, clock):
    return AuthService(store, codec, settings, clock=clock)


@pytest.fixture
def app(settings, store):
    return create_app(settings=settings, user_store=store)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def register_user(client):
    """Register through the API and return the parsed response body."""

    def _register(email="ada@acme.io", password=PASSWORD, name="Ada Lovelace", role=None):
        payload = {"name": name, "email": email, "password": password}
        if role is not None:
            payload["role"] = role
        response = client.post("/api/v1/auth/register", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    return _register
