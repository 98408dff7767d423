"""
Authentication Pydantic Models
Request/response schemas for authentication endpoints
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field


class RegisterRequest(BaseModel):
    """Registration request schema"""
    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)
    full_name: str = Field(..., alias="fullName", min_length=1, max_length=255)


class RegisterResponse(BaseModel):
    """Registration response schema"""
    model_config = ConfigDict(populate_by_name=True)

    message: str
    user_id: str = Field(..., alias="userId")


class LoginRequest(BaseModel):
    """Login request schema"""
    email: EmailStr
    password: str


class RefreshTokenRequest(BaseModel):
    """Refresh token request schema"""
    refresh_token: str


class UpdateProfileRequest(BaseModel):
    """Profile update schema; only the display name is editable"""
    model_config = ConfigDict(populate_by_name=True)

    full_name: str = Field(..., alias="fullName", min_length=1, max_length=255)


class UserResponse(BaseModel):
    """User response schema"""
    id: str
    email: str
    full_name: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_user_model(cls, user) -> "UserResponse":
        """Create UserResponse from SQLAlchemy User model"""
        return cls(
            id=str(user.id),
            email=user.email,
            full_name=user.full_name,
            created_at=user.created_at,
        )


class SessionResponse(BaseModel):
    """Token pair issued by the identity provider"""
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int


class AuthResponse(BaseModel):
    """Login / refresh response schema"""
    user: UserResponse
    session: SessionResponse


class MeResponse(BaseModel):
    """Current user response schema"""
    user: UserResponse
