"""Authentication endpoints."""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Request, Response, status

from jobboard.config import Settings
from jobboard.core.deps import Principal, authenticate, get_auth_service, get_settings
from jobboard.core.rate_limit import auth_rate_limit
from jobboard.schemas.auth import (
    AccessTokenData,
    AuthData,
    AuthResponse,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RefreshTokenRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
    UserData,
    UserEnvelope,
    UserResponse,
)
from jobboard.services.auth_service import AuthService, AuthSession

router = APIRouter()


def set_refresh_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=token,
        max_age=int(settings.refresh_token_ttl.total_seconds()),
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


def clear_refresh_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


def _auth_response(session: AuthSession) -> AuthResponse:
    return AuthResponse(
        data=AuthData(
            user=UserResponse.model_validate(session.user),
            access_token=session.access_token,
        )
    )


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(auth_rate_limit)],
)
async def register(
    request: RegisterRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    """Register a new user and start a session."""
    session = await auth.register(
        name=request.name,
        email=request.email,
        password=request.password,
        role=request.role,
    )
    set_refresh_cookie(response, session.refresh_token, settings)
    return _auth_response(session)


@router.post("/login", response_model=AuthResponse, dependencies=[Depends(auth_rate_limit)])
async def login(
    request: LoginRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    """Login with email and password."""
    session = await auth.login(email=request.email, password=request.password)
    set_refresh_cookie(response, session.refresh_token, settings)
    return _auth_response(session)


@router.post("/refresh-token", response_model=TokenResponse, response_model_exclude_none=True)
async def refresh_token(
    request: Request,
    response: Response,
    payload: Optional[RefreshTokenRequest] = Body(default=None),
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    """
    Rotate the refresh token.

    The token is read from the httpOnly cookie, falling back to the
    ``refreshToken`` body field.
    """
    token = request.cookies.get(settings.REFRESH_COOKIE_NAME)
    if not token and payload is not None:
        token = payload.refresh_token

    pair = await auth.refresh(token)
    set_refresh_cookie(response, pair.refresh_token, settings)
    return TokenResponse(data=AccessTokenData(access_token=pair.access_token))


@router.post("/logout", response_model=MessageResponse, response_model_exclude_none=True)
async def logout(
    response: Response,
    principal: Principal = Depends(authenticate),
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    """Logout and invalidate the stored refresh token."""
    await auth.logout(principal.id)
    clear_refresh_cookie(response, settings)
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserEnvelope)
async def get_current_user_info(
    principal: Principal = Depends(authenticate),
    auth: AuthService = Depends(get_auth_service),
):
    """Get current user information."""
    user = await auth.get_user(principal.id)
    return UserEnvelope(data=UserData(user=UserResponse.model_validate(user)))


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(auth_rate_limit)],
)
async def forgot_password(
    request: ForgotPasswordRequest,
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    """
    Start a password reset.

    The reset link is delivered out of band; outside production it is also
    returned in the response so it can be used without a mail server.
    """
    ticket = await auth.forgot_password(request.email)
    return MessageResponse(
        message="Password reset link sent to email",
        reset_url=None if settings.is_production else ticket.reset_url,
    )


@router.post("/reset-password/{token}", response_model=TokenResponse, response_model_exclude_none=True)
async def reset_password(
    token: str,
    request: ResetPasswordRequest,
    auth: AuthService = Depends(get_auth_service),
):
    """Set a new password using a reset token."""
    access_token = await auth.reset_password(token, request.password)
    return TokenResponse(data=AccessTokenData(access_token=access_token))


@router.post("/change-password", response_model=TokenResponse, response_model_exclude_none=True)
async def change_password(
    request: ChangePasswordRequest,
    principal: Principal = Depends(authenticate),
    auth: AuthService = Depends(get_auth_service),
):
    """Change the password of the logged-in user."""
    access_token = await auth.change_password(
        principal.id, request.current_password, request.new_password
    )
    return TokenResponse(
        data=AccessTokenData(access_token=access_token),
        message="Password changed successfully",
    )
