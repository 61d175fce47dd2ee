"""
Authentication schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class UserCreate(BaseModel):
    """User registration request."""
    
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    name: str = Field(..., min_length=1, max_length=255)
    phone_number: Optional[str] = Field(None, max_length=32)
    address_id: Optional[int] = None


class UserLogin(BaseModel):
    """User login request."""
    
    email: EmailStr
    password: str
    stay_signed: bool = False


class UserResponse(BaseModel):
    """Public projection of a user; never carries digest or keying material."""
    
    id: int
    email: str
    name: str
    phone_number: Optional[str] = None
    address_id: Optional[int] = None
    is_verified: bool
    role: str
    login_attempts: int = 0
    
    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    """Authentication token response."""
    
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshTokenRequest(BaseModel):
    """Token refresh or logout request."""
    
    refresh_token: str


class VerifyOtpRequest(BaseModel):
    """Account verification request."""
    
    user_id: int
    code: str = Field(..., min_length=1, max_length=16)


class VerifyOtpResponse(BaseModel):
    """Outcome of an account verification attempt."""
    
    verified: bool


class ForgotPasswordRequest(BaseModel):
    """Temporary password request."""
    
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """Password change request; signs out every other device."""
    
    email: EmailStr
    password: str
    new_password: str = Field(..., min_length=1, max_length=128)


class SessionResponse(BaseModel):
    """Session record as shown to its owner or an admin."""
    
    id: int
    user_id: int
    created_at: datetime
    expires_at: datetime
    is_valid: bool
    ip_address: str
    user_agent: str
    device_type: str
    
    class Config:
        from_attributes = True
