"""
Dependency functions for FastAPI routes.

``authenticate`` and ``authorize`` form the request guard every service
mounts on its protected routes. Each service verifies access tokens itself
with the shared access secret; nothing here trusts the gateway.
"""

from dataclasses import dataclass
from typing import FrozenSet, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from jobboard.config import Settings
from jobboard.core.exceptions import Forbidden, InvalidToken, NotAuthenticated, TokenExpired
from jobboard.core.roles import Permission, Role, permissions_for
from jobboard.core.security import TokenClaims, TokenCodec, TokenExpiredError, TokenInvalidError
from jobboard.services.auth_service import AuthService
from jobboard.services.user_store import UserStore

# HTTPBearer for simple token authentication in Swagger (just paste the access token)
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """Caller identity resolved from a verified access token."""

    id: str
    email: str
    role: Role
    permissions: FrozenSet[Permission]

    @classmethod
    def from_claims(cls, claims: TokenClaims) -> "Principal":
        try:
            role = Role(claims.role)
        except ValueError as e:
            raise InvalidToken() from e
        return cls(id=claims.id, email=claims.email, role=role, permissions=permissions_for(role))

    def has_permission(self, permission: Permission) -> bool:
        return permission in self.permissions


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_codec(request: Request) -> TokenCodec:
    return request.app.state.token_codec


def get_user_store(request: Request) -> UserStore:
    return request.app.state.user_store


def get_auth_service(
    store: UserStore = Depends(get_user_store),
    codec: TokenCodec = Depends(get_token_codec),
    settings: Settings = Depends(get_settings),
) -> AuthService:
    return AuthService(store, codec, settings)


async def authenticate(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    codec: TokenCodec = Depends(get_token_codec),
) -> Principal:
    """Verify the bearer access token and attach the caller as the request principal."""
    if credentials is None or not credentials.credentials:
        raise NotAuthenticated()

    try:
        claims = codec.verify_access_token(credentials.credentials)
    except TokenExpiredError as e:
        raise TokenExpired() from e
    except TokenInvalidError as e:
        raise InvalidToken() from e

    principal = Principal.from_claims(claims)
    request.state.principal = principal
    return principal


def authorize(*roles: Role):
    """
    Dependency that admits only principals holding one of ``roles``.

    Must run after ``authenticate`` on the same request.
    """
    allowed = frozenset(Role(role) for role in roles)

    async def role_checker(request: Request) -> Principal:
        principal: Optional[Principal] = getattr(request.state, "principal", None)
        if principal is None:
            raise NotAuthenticated("Not authenticated.")
        if principal.role not in allowed:
            raise Forbidden()
        return principal

    return role_checker


def require_permission(permission: Permission):
    """Dependency to check if the caller's role grants ``permission``."""

    async def permission_checker(principal: Principal = Depends(authenticate)) -> Principal:
        if not principal.has_permission(permission):
            raise Forbidden(f"Permission denied: {permission.value}")
        return principal

    return permission_checker
