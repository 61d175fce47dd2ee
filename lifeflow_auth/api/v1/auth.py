"""
Authentication endpoints.

Error kinds raised by the service are translated to responses by the
AuthError handler registered in main.py.
"""

from fastapi import APIRouter, status

from lifeflow_auth.api.deps import Auth, CurrentToken, Identities, Sessions
from lifeflow_auth.exceptions import IdentityNotFound
from lifeflow_auth.schemas.auth import (
    ForgotPasswordRequest,
    RefreshTokenRequest,
    ResetPasswordRequest,
    SessionResponse,
    TokenResponse,
    UserCreate,
    UserLogin,
    UserResponse,
    VerifyOtpRequest,
    VerifyOtpResponse,
)
from lifeflow_auth.schemas.common import SuccessResponse

router = APIRouter()


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(data: UserCreate, auth: Auth):
    """
    Register a new, unverified account.

    A verification code is mailed to the address.
    """
    return await auth.register(
        email=data.email,
        password=data.password,
        name=data.name,
        phone_number=data.phone_number,
        address_id=data.address_id,
    )


@router.post("/verify-otp", response_model=VerifyOtpResponse)
async def verify_otp(data: VerifyOtpRequest, auth: Auth):
    """Verify an account with the mailed code."""
    verified = await auth.verify_otp(data.user_id, data.code)
    return VerifyOtpResponse(verified=verified)


@router.post("/login", response_model=TokenResponse)
async def login(data: UserLogin, auth: Auth):
    """
    Authenticate user and return tokens.

    ``stay_signed`` requests a long-lived refresh token.
    """
    tokens = await auth.login(data.email, data.password, stay_signed=data.stay_signed)
    return TokenResponse(access_token=tokens.access_token, refresh_token=tokens.refresh_token)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(data: RefreshTokenRequest, auth: Auth):
    """
    Get a new access token for a valid refresh token.

    The refresh token is returned unchanged. A device mismatch revokes it.
    """
    tokens = await auth.refresh(data.refresh_token)
    return TokenResponse(access_token=tokens.access_token, refresh_token=tokens.refresh_token)


@router.post("/logout", response_model=SuccessResponse)
async def logout(data: RefreshTokenRequest, auth: Auth):
    """Invalidate the session bound to a refresh token."""
    await auth.logout(data.refresh_token)
    return SuccessResponse(message="Logged out successfully")


@router.post("/forgot-password", response_model=SuccessResponse)
async def forgot_password(data: ForgotPasswordRequest, auth: Auth):
    """Mail a temporary password."""
    await auth.forgot_password(data.email)
    return SuccessResponse(message="A temporary password has been sent to your email")


@router.post("/reset-password", response_model=TokenResponse)
async def reset_password(data: ResetPasswordRequest, auth: Auth):
    """
    Change password.

    Every existing session is invalidated and a fresh one is opened.
    """
    tokens = await auth.reset_password(data.email, data.password, data.new_password)
    return TokenResponse(access_token=tokens.access_token, refresh_token=tokens.refresh_token)


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(token: CurrentToken, identities: Identities):
    """Get current user's profile."""
    user = await identities.get_by_id(token.id)
    if user is None:
        raise IdentityNotFound()
    return UserResponse.model_validate(user)


@router.get("/sessions", response_model=list[SessionResponse])
async def list_my_sessions(token: CurrentToken, sessions: Sessions):
    """List the caller's sessions, newest first."""
    records = await sessions.find_all_by_identity(token.id)
    return [SessionResponse.model_validate(r) for r in records]
