"""
User schemas
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, field_serializer, ConfigDict
from reportdesk.core.security import validate_password
from reportdesk.models.user import Role


def normalize_email(v: Optional[str]) -> Optional[str]:
    """Lower-case and sanity check an email address"""
    if v is None:
        return None
    v = v.strip().lower()
    local, _, domain = v.partition("@")
    if not local or "." not in domain:
        raise ValueError("Invalid email address")
    return v


class UserCreate(BaseModel):
    """Schema for creating a user (ADMIN/HR)"""
    username: str = Field(..., min_length=3, max_length=64, description="Login name (unique)")
    email: str = Field(..., description="Email address (unique)")
    name: str = Field(..., min_length=1, description="Display name")
    password: str = Field(..., description="Initial password")
    role: Role = Field(default=Role.STAFF, description="User role")
    department_id: Optional[int] = Field(None, description="Owning department (STAFF)")
    is_active: bool = Field(default=True, description="Account active status")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return normalize_email(v)

    @field_validator("password", mode="before")
    @classmethod
    def validate_password(cls, v):
        """Normalize and validate password"""
        return validate_password(v)


class RegisterRequest(BaseModel):
    """Self registration; always creates a STAFF account"""
    username: str = Field(..., min_length=3, max_length=64)
    email: str
    name: str = Field(..., min_length=1)
    password: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return normalize_email(v)

    @field_validator("password", mode="before")
    @classmethod
    def validate_password(cls, v):
        return validate_password(v)


class UserUpdate(BaseModel):
    """Schema for updating a user (ADMIN/HR). Send department_id=null explicitly to clear it."""
    name: Optional[str] = Field(None, min_length=1, description="Display name")
    email: Optional[str] = Field(None, description="Email address")
    role: Optional[Role] = Field(None, description="User role")
    department_id: Optional[int] = Field(None, description="Department ID")
    is_active: Optional[bool] = Field(None, description="Account active status")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return normalize_email(v)


class PasswordReset(BaseModel):
    """Schema for password reset"""
    new_password: str = Field(..., description="New password")

    @field_validator("new_password", mode="before")
    @classmethod
    def validate_password(cls, v):
        return validate_password(v)


class UserOut(BaseModel):
    """Schema for user output. Never includes the password hash."""
    id: int
    username: str
    email: str
    name: str
    role: Role
    department_id: Optional[int] = None
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("last_login", "created_at", "updated_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt):
        from reportdesk.utils.datetime_utils import iso_8601_utc
        return iso_8601_utc(dt)


class UserListResponse(BaseModel):
    items: List[UserOut]
    total: int
