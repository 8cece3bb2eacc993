# protoshop/schemas/order.py
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from sqlmodel import SQLModel

OrderStatus = Literal[
    "pending",
    "pending_payment",
    "processing",
    "shipped",
    "delivered",
    "completed",
    "cancelled",
]
PaymentStatus = Literal["pending", "paid", "failed", "cod"]


class ShippingAddress(BaseModel):
    """
    Address snapshot stored on the order.

    Unknown keys are ignored; camelCase keys from the storefront are accepted.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    full_name: str = Field(
        max_length=255,
        validation_alias=AliasChoices("full_name", "fullName", "name"),
    )
    phone: str = Field(
        max_length=20,
        validation_alias=AliasChoices("phone", "phoneNumber"),
    )
    email: str | None = None
    address_line1: str = Field(
        validation_alias=AliasChoices("address_line1", "addressLine1", "address"),
    )
    city: str = Field(max_length=100)
    state: str = Field(max_length=100)
    pincode: str = Field(max_length=20)
    country: str = "India"

    @field_validator("full_name", "phone", "address_line1", "city", "state", "pincode")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v


class OrderItemIn(BaseModel):
    """
    Requested line. Any client-side price is ignored.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    product_id: uuid.UUID = Field(validation_alias=AliasChoices("product_id", "productId"))
    quantity: int = Field(default=1, gt=0)


class OrderCreate(BaseModel):
    """
    Payload for placing an order.

    Backend derives:
      - user_id from token
      - prices, tax, shipping and total from the catalog
      - status = 'pending'
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    items: list[OrderItemIn] = Field(default_factory=list)
    shipping_address: ShippingAddress | None = Field(
        default=None,
        validation_alias=AliasChoices("shipping_address", "shippingAddress"),
    )
    payment_gateway: str = Field(
        default="phonepe",
        validation_alias=AliasChoices("payment_gateway", "paymentGateway"),
    )

    @field_validator("payment_gateway")
    @classmethod
    def normalize_gateway(cls, v: str) -> str:
        return v.strip().lower()


class OrderCreated(BaseModel):
    message: str
    order_id: uuid.UUID
    redirect_url: str | None = None


class OrderItemRead(SQLModel):
    """
    Representation of a single order line item.
    """

    product_id: uuid.UUID
    product_name: str
    quantity: int
    price: Decimal
    line_total: Decimal


class OrderRead(SQLModel):
    """
    Full order view including items.
    """

    id: uuid.UUID
    user_id: uuid.UUID
    subtotal_amount: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal
    total_amount: Decimal
    status: OrderStatus
    payment_gateway: str
    payment_status: PaymentStatus
    shipping_address: dict[str, Any]
    created_at: datetime
    updated_at: datetime
    items: list[OrderItemRead] = []


class AdminOrderRead(OrderRead):
    user_email: str | None = None
    user_name: str | None = None


class OrderStatusUpdate(BaseModel):
    """
    Admin payload to change order status.
    """

    model_config = ConfigDict(extra="forbid")

    status: OrderStatus


class OrderAddressUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    address: ShippingAddress


class PaymentCallbackAck(BaseModel):
    status: str = "ok"
