# protoshop/schemas/user.py
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator

Role = Literal["user", "admin"]


def _strip_required(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("field cannot be empty")
    return v


def _strip_optional(v: str | None) -> str | None:
    if v is None:
        return v
    v = v.strip()
    return v or None


# -------- Auth --------


class SignupRequest(BaseModel):
    """
    Payload for creating an account.

    Accepts `fullName` as well as `full_name`.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    email: EmailStr
    password: str = Field(min_length=6, max_length=72)
    full_name: str = Field(
        max_length=255,
        validation_alias=AliasChoices("full_name", "fullName"),
    )

    @field_validator("full_name")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        return _strip_required(v)


class LoginRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1, max_length=72)


class VerifyTokenRequest(BaseModel):
    token: str


class ChangePasswordRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    old_password: str = Field(
        min_length=1,
        max_length=72,
        validation_alias=AliasChoices("old_password", "oldPassword"),
    )
    new_password: str = Field(
        min_length=6,
        max_length=72,
        validation_alias=AliasChoices("new_password", "newPassword"),
    )


class UserRead(BaseModel):
    """Public view of an account (no password hash)."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    full_name: str | None
    phone_number: str | None = None
    avatar_url: str | None = None
    role: Role
    created_at: datetime


class AuthResponse(BaseModel):
    message: str
    user: UserRead
    token: str
    role: Role


class MeResponse(BaseModel):
    user: UserRead
    role: Role


class VerifyTokenResponse(BaseModel):
    valid: bool
    decoded: dict[str, Any] | None = None
    error: str | None = None


# -------- Profile --------


class ProfileUpdate(BaseModel):
    """
    Partial profile update; omitted fields are left untouched.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    full_name: str | None = Field(
        default=None,
        max_length=255,
        validation_alias=AliasChoices("full_name", "fullName"),
    )
    phone_number: str | None = Field(
        default=None,
        max_length=20,
        validation_alias=AliasChoices("phone_number", "phoneNumber"),
    )
    avatar_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("avatar_url", "avatarUrl"),
    )

    @field_validator("full_name", "phone_number", "avatar_url")
    @classmethod
    def normalize(cls, v: str | None) -> str | None:
        return _strip_optional(v)


class UserRoleUpdate(BaseModel):
    """
    Admin-only role update schema.
    """

    model_config = ConfigDict(extra="forbid")
    role: Role


# -------- Addresses --------


class AddressWrite(BaseModel):
    """
    Create / replace payload for a saved address.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    label: str = Field(default="Home", max_length=50)
    full_name: str = Field(
        max_length=255,
        validation_alias=AliasChoices("full_name", "fullName"),
    )
    phone: str = Field(
        max_length=20,
        validation_alias=AliasChoices("phone", "phoneNumber"),
    )
    email: EmailStr | None = None
    address_line1: str = Field(
        validation_alias=AliasChoices("address_line1", "addressLine1"),
    )
    city: str = Field(max_length=100)
    state: str = Field(max_length=100)
    pincode: str = Field(max_length=20)
    country: str = Field(default="India", max_length=100)
    is_default: bool = Field(
        default=False,
        validation_alias=AliasChoices("is_default", "isDefault"),
    )

    @field_validator("full_name", "phone", "address_line1", "city", "state", "pincode")
    @classmethod
    def not_empty(cls, v: str) -> str:
        return _strip_required(v)


class AddressRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    label: str
    full_name: str
    phone: str
    email: str | None
    address_line1: str
    city: str
    state: str
    pincode: str
    country: str
    is_default: bool
    created_at: datetime


class SavedModelRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    file_url: str
    preview_url: str | None
    file_size_mb: Decimal | None
    created_at: datetime
