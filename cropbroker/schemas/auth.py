"""Pydantic schemas for registration and login."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from cropbroker.models import UserRole


class RegisterRequest(BaseModel):
    """Request schema for registering a user."""

    email: str = Field(..., min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=6)
    role: UserRole
    firm_name: str | None = None
    phone: str | None = None
    address: str | None = None
    pan_number: str | None = None
    aadhar_number: str | None = None
    upi_id: str | None = None
    bank_info: dict[str, Any] | None = None


class LoginRequest(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    """A user as returned by the API (never includes the password hash)."""

    id: str
    email: str | None
    role: UserRole
    firm_name: str | None
    phone: str | None
    address: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    token: str
    user: UserResponse
