# protoshop/schemas/quote.py
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import ConfigDict
from sqlmodel import SQLModel, Field

QuoteStatus = Literal["pending", "reviewed", "approved", "rejected", "paid"]


class QuoteRead(SQLModel):
    id: uuid.UUID
    user_id: uuid.UUID | None
    email: str
    phone: str | None
    file_url: str
    file_name: str
    specifications: dict[str, Any]
    status: QuoteStatus
    estimated_price: Decimal | None
    admin_notes: str | None
    created_at: datetime


class QuoteRequested(SQLModel):
    success: bool = True
    message: str
    quote: QuoteRead


class QuoteStatusUpdate(SQLModel):
    """
    Admin payload: new status, optionally with a revised price or notes.
    """

    model_config = ConfigDict(extra="forbid")

    status: QuoteStatus
    estimated_price: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    admin_notes: str | None = None
