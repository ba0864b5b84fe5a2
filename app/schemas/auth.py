from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from app.models.user import UserRole
from app.schemas.base import BaseResponseSchema


class LoginRequest(BaseModel):
    """Login request schema."""
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=6, description="User password")


class RefreshTokenRequest(BaseModel):
    """Refresh token request schema."""
    refresh_token: str = Field(..., description="JWT refresh token")


class TokenResponse(BaseModel):
    """Token response schema."""
    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Access token expiration in seconds")


class UserCreate(BaseModel):
    """Account created by an administrator."""
    email: EmailStr
    password: str = Field(..., min_length=8)
    full_name: str = Field(..., min_length=1, max_length=200)
    role: UserRole = UserRole.EMPLOYEE
    employee_id: Optional[UUID] = None


class UserResponse(BaseResponseSchema):
    id: UUID
    email: str
    full_name: str
    role: str
    employee_id: Optional[UUID] = None
    is_active: bool
    created_at: datetime
    last_login_at: Optional[datetime] = None


class CurrentUserResponse(UserResponse):
    """The signed-in user together with the permissions their role grants."""
    permissions: List[str] = []


class UserListResponse(BaseModel):
    items: List[UserResponse]
    total: int
    page: int = 1
    size: int = 50
    pages: int = 1
