# protoshop/models/order.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


class Order(SQLModel, table=True):
    """
    Customer order.

    Money fields are computed once at checkout and never change.
    shipping_address is a snapshot copied from the request, not a FK, so
    later address-book edits do not rewrite history.
    """

    __tablename__ = "orders"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    subtotal_amount: Decimal = Field(max_digits=10, decimal_places=2)
    tax_amount: Decimal = Field(max_digits=10, decimal_places=2)
    shipping_amount: Decimal = Field(max_digits=10, decimal_places=2)
    total_amount: Decimal = Field(
        max_digits=10,
        decimal_places=2,
        description="subtotal + tax + shipping",
    )

    # pending | pending_payment | processing | shipped | delivered | completed | cancelled
    status: str = Field(
        default="pending",
        index=True,
        max_length=50,
    )

    # phonepe | cod
    payment_gateway: str = Field(max_length=50)

    # pending | paid | failed | cod
    payment_status: str = Field(default="pending", max_length=50)

    shipping_address: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class OrderItem(SQLModel, table=True):
    """
    Line item inside an order, with price snapshot.
    """

    __tablename__ = "order_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    product_name: str = Field(max_length=255)

    quantity: int = Field(
        gt=0,
        description="Quantity ordered (>=1)",
    )

    price: Decimal = Field(
        max_digits=10,
        decimal_places=2,
        description="Unit price at time of order",
    )

    line_total: Decimal = Field(
        max_digits=10,
        decimal_places=2,
        description="price * quantity at time of order",
    )
