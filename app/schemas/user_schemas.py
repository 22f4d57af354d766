from enum import Enum
from pydantic import BaseModel, EmailStr, field_validator, model_validator
from typing import Optional
import uuid
from datetime import datetime
import re


class UserRole(str, Enum):
    """Closed set of staff roles."""

    RECEPTIONIST = "receptionist"
    DOCTOR = "doctor"
    LAB_TECHNICIAN = "lab_technician"
    PHARMACIST = "pharmacist"
    ADMIN = "admin"
    TRIAGE_OFFICER = "triage_officer"


def _check_password_strength(v: str) -> str:
    if len(v) < 8:
        raise ValueError("Password must be at least 8 characters long")

    if len(v) > 128:
        raise ValueError("Password must not exceed 128 characters")

    if " " in v:
        raise ValueError("Password must not contain spaces")

    if not any(char.isdigit() for char in v):
        raise ValueError("Password must contain at least one digit")

    if not any(char.isupper() for char in v):
        raise ValueError("Password must contain at least one uppercase letter")

    if not any(char.islower() for char in v):
        raise ValueError("Password must contain at least one lowercase letter")

    if not re.search(r"[!@#$%^&*()_+=\[\]{}|;:,.<>?/\\-]", v):
        raise ValueError("Password must contain at least one special character")

    return v


class UserBaseSchema(BaseModel):
    """Base schema for staff accounts."""

    username: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    email: EmailStr

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        """Validate username format and constraints."""
        if not v or not v.strip():
            raise ValueError("Username cannot be empty")

        v = v.strip()

        if len(v) < 3 or len(v) > 50:
            raise ValueError("Username must be between 3 and 50 characters long")

        if not re.match(r"^[a-zA-Z0-9_-]+$", v):
            raise ValueError(
                "Username can only contain alphanumeric characters, underscores, and hyphens"
            )

        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be empty")
        if len(v) > 100:
            raise ValueError("Name must not exceed 100 characters")
        if any(char.isdigit() for char in v):
            raise ValueError("Name must not contain numbers")
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        """Validate phone number format."""
        if v is None:
            return v

        v = v.strip()

        if not re.match(r"^\+?\d{10,15}$", v):
            raise ValueError(
                "Phone number must be 10-15 digits, optionally starting with '+'"
            )

        return v

    model_config = {"from_attributes": True}


class AdminSignupSchema(UserBaseSchema):
    """First administrator account, accepted only while no admin exists."""

    password: str
    password_confirm: str

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password_strength(v)

    @model_validator(mode="after")
    def validate_passwords_match(self) -> "AdminSignupSchema":
        """Validate that password and password_confirm match."""
        if self.password != self.password_confirm:
            raise ValueError("Passwords do not match")
        return self


class UserCreateSchema(AdminSignupSchema):
    """Schema for an admin creating a staff account."""

    role: UserRole


class UserSchema(BaseModel):
    """Schema for returning user data."""

    id: uuid.UUID
    username: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    email: str
    role: UserRole
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DoctorSchema(BaseModel):
    """Doctor option for card assignment."""

    id: uuid.UUID
    first_name: str
    last_name: str

    model_config = {"from_attributes": True}


class UserLoginSchema(BaseModel):
    """Login by username or email."""

    username: str
    password: str

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Username cannot be empty")
        return v.strip()

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Password cannot be empty")
        return v


class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserSchema
