# protoshop/models/user.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Index, text
from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    """
    Registered account.

    Role:
      - "user" | "admin"
      - guests are simply requests without a bearer token.
    """

    __tablename__ = "users"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    email: str = Field(
        unique=True,
        index=True,
        max_length=255,
        description="Lower-cased login email",
    )

    password_hash: str = Field(description="bcrypt hash")

    full_name: str | None = Field(default=None, max_length=255)
    phone_number: str | None = Field(default=None, max_length=20)
    avatar_url: str | None = None

    role: str = Field(
        default="user",
        index=True,
        description="Application role: user | admin",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class Address(SQLModel, table=True):
    """
    Saved shipping address. At most one default per user.
    """

    __tablename__ = "user_addresses"
    __table_args__ = (
        Index(
            "ux_user_default_address",
            "user_id",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default = 1"),
        ),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)

    label: str = Field(default="Home", max_length=50)
    full_name: str = Field(max_length=255)
    phone: str = Field(max_length=20)
    email: str | None = Field(default=None, max_length=255)
    address_line1: str
    city: str = Field(max_length=100)
    state: str = Field(max_length=100)
    pincode: str = Field(max_length=20)
    country: str = Field(default="India", max_length=100)
    is_default: bool = Field(default=False)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class SavedModel(SQLModel, table=True):
    """
    3D model file a customer kept in their account.
    """

    __tablename__ = "saved_models"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)
    name: str = Field(max_length=255)
    file_url: str
    preview_url: str | None = None
    file_size_mb: Decimal | None = Field(default=None, max_digits=10, decimal_places=2)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
