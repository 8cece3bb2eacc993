# protoshop/models/quote.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


class Quote(SQLModel, table=True):
    """
    Custom print quote request: uploaded model file + print settings.

    specifications holds whatever the storefront's model analyzer produced
    (material, quality, infill, scale, printDimensions, estimatedPrice, ...).
    """

    __tablename__ = "quotes"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    user_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="users.id",
        index=True,
    )

    email: str = Field(max_length=255, index=True)
    phone: str | None = Field(default=None, max_length=50)

    file_url: str
    file_name: str

    specifications: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )

    # pending | reviewed | approved | rejected | paid
    status: str = Field(default="pending", index=True, max_length=50)

    estimated_price: Decimal | None = Field(
        default=None,
        max_digits=10,
        decimal_places=2,
    )
    admin_notes: str | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
