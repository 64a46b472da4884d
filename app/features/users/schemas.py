"""
Pydantic schemas for user-related requests and responses.
"""
import re
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, field_validator

from app.core.pagination import Pagination
from app.features.permissions.schemas import RoleSummary
from app.features.users.models import UserStatus, UserType


_PASSWORD_RULES = (
    (re.compile(r"[a-z]"), "a lowercase letter"),
    (re.compile(r"[A-Z]"), "an uppercase letter"),
    (re.compile(r"\d"), "a digit"),
)


def validate_password_strength(value: str) -> str:
    """At least 8 characters with a lowercase letter, an uppercase letter and a digit."""
    if len(value) < 8:
        raise ValueError("Password must be at least 8 characters long")
    for pattern, label in _PASSWORD_RULES:
        if not pattern.search(value):
            raise ValueError(f"Password must contain {label}")
    return value


class UserBase(BaseModel):
    """Base user schema with common fields."""
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    national_id: str = Field(..., pattern=r"^\d{6,15}$", description="Cédula, 6 to 15 digits")
    phone: str | None = Field(None, max_length=30)
    user_type: UserType
    profession: str | None = Field(None, max_length=100)
    experience: str | None = Field(None, max_length=1000)
    certifications: list[str] = []

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def strip_names(cls, v):
        return v.strip() if isinstance(v, str) else v


class UserCreate(UserBase):
    """Schema for creating a new user."""
    password: str

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        return validate_password_strength(v)


class UserUpdate(BaseModel):
    """Schema for updating user information (administrators)."""
    first_name: str | None = Field(None, min_length=1, max_length=50)
    last_name: str | None = Field(None, min_length=1, max_length=50)
    email: EmailStr | None = None
    national_id: str | None = Field(None, pattern=r"^\d{6,15}$")
    phone: str | None = Field(None, max_length=30)
    user_type: UserType | None = None
    profession: str | None = Field(None, max_length=100)
    experience: str | None = Field(None, max_length=1000)
    certifications: list[str] | None = None

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str | None) -> str | None:
        return v.lower() if v else v


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile."""
    first_name: str | None = Field(None, min_length=1, max_length=50)
    last_name: str | None = Field(None, min_length=1, max_length=50)
    phone: str | None = Field(None, max_length=30)
    profession: str | None = Field(None, max_length=100)
    experience: str | None = Field(None, max_length=1000)
    certifications: list[str] | None = None


class UserStatusUpdate(BaseModel):
    status: UserStatus


class UserResponse(BaseModel):
    """Schema for user responses."""
    id: str
    first_name: str
    last_name: str
    full_name: str
    email: str
    national_id: str
    phone: str | None = None
    user_type: UserType
    status: UserStatus
    profession: str | None = None
    experience: str | None = None
    certifications: list[str] = []
    roles: list[RoleSummary] = []
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UserListResponse(BaseModel):
    items: list[UserResponse]
    pagination: Pagination


class DailyCount(BaseModel):
    date: str
    count: int


class UserStatsResponse(BaseModel):
    total: int
    by_status: dict[str, int]
    by_type: dict[str, int]
    registrations_last_30_days: list[DailyCount]
