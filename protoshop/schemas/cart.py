# protoshop/schemas/cart.py
import uuid
from decimal import Decimal

from pydantic import ConfigDict
from sqlmodel import SQLModel, Field


class CartItemCreate(SQLModel):
    """
    Payload for adding to cart. Quantity is merged with an existing line.
    """

    model_config = ConfigDict(extra="forbid")

    product_id: uuid.UUID
    quantity: int = Field(default=1, gt=0)


class CartItemUpdate(SQLModel):
    """
    Payload for setting the quantity of a cart line.
    """

    model_config = ConfigDict(extra="forbid")

    quantity: int = Field(gt=0)


class CartItemRead(SQLModel):
    """
    Cart line joined with the current catalog data.
    """

    id: uuid.UUID
    product_id: uuid.UUID
    name: str
    price: Decimal
    quantity: int
    line_total: Decimal
    image_url: str | None = None
    stock: int


class CartSummary(SQLModel):
    """
    Full cart response model with totals.
    """

    id: uuid.UUID | None = None
    items: list[CartItemRead]
    total_quantity: int
    total_price: Decimal
