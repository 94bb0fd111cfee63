"""
User Model - Defines the user data structure.
"""

from datetime import datetime
from typing import Optional
from pydantic import EmailStr, Field

from .base import CamelModel


class UserCreate(CamelModel):
    """Registration payload."""
    email: EmailStr
    password: str = Field(..., min_length=8)
    name: str = Field(..., min_length=2)


class LoginRequest(CamelModel):
    """Credential sign-in payload."""
    email: EmailStr
    password: str = Field(..., min_length=1)


class User(CamelModel):
    """User model as returned by the API (no password hash)."""
    id: str
    email: EmailStr
    name: str
    created_at: datetime
    updated_at: datetime


class RegisterResponse(CamelModel):
    success: bool = True
    message: str
    user: User


class Token(CamelModel):
    """JWT token response model."""
    access_token: str
    token_type: str = "bearer"


class TokenData(CamelModel):
    """Token payload data."""
    user_id: Optional[str] = None
    email: Optional[str] = None
