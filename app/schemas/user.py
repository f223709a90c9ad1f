# app/schemas/user.py

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, EmailStr, Field, field_validator


class UserRole(str, Enum):
    """
    Advisory role of a user.

    Only ORGANIZER users may create meetings; any user may attend one.
    """

    ORGANIZER = "ORGANIZER"
    PARTICIPANT = "PARTICIPANT"


# --------------------------------------------------------------------------
# Create schema (POST /users)
# --------------------------------------------------------------------------

class UserCreate(BaseModel):
    """
    Schema for registering a user record.

    Credentials are owned by the upstream identity provider; only the
    profile lives here.
    """
    email: EmailStr = Field(
        ...,
        description="Unique e-mail address; stored lower-cased.",
        examples=["jane.doe@example.com"],
    )
    first_name: str = Field(..., min_length=2, max_length=50, examples=["Jane"])
    last_name: str = Field(..., min_length=2, max_length=50, examples=["Doe"])
    role: UserRole = Field(
        default=UserRole.PARTICIPANT,
        description="Advisory role; defaults to PARTICIPANT.",
    )

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return value.lower()


# --------------------------------------------------------------------------
# Update schema (PATCH /users/{id})
# --------------------------------------------------------------------------

class UserUpdate(BaseModel):
    """
    Self-service profile edit. Only provided fields are updated.

    Role and activity are not editable here; any other field is rejected.
    """
    first_name: str | None = Field(default=None, min_length=2, max_length=50)
    last_name: str | None = Field(default=None, min_length=2, max_length=50)

    class Config:
        extra = "forbid"


# --------------------------------------------------------------------------
# Read schemas
# --------------------------------------------------------------------------

class UserSummary(BaseModel):
    """
    Compact user representation embedded in meeting payloads.
    """

    id: str
    email: str
    first_name: str
    last_name: str
    role: UserRole

    class Config:
        from_attributes = True


class UserRead(UserSummary):
    """
    Full user record, including activity flag and timestamps.
    """

    is_active: bool = Field(..., description="Inactive users cannot be added to meetings.")
    created_at: datetime | None = None
    updated_at: datetime | None = None
