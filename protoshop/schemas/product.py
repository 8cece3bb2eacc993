# protoshop/schemas/product.py
import json
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field


def _parse_specifications(v: Any) -> dict[str, Any]:
    """
    Multipart forms carry specifications as a JSON string.
    Accept a dict, a JSON object string, or nothing.
    """
    if v is None or v == "":
        return {}
    if isinstance(v, str):
        try:
            v = json.loads(v)
        except ValueError:
            raise ValueError("specifications must be a JSON object")
    if not isinstance(v, dict):
        raise ValueError("specifications must be a JSON object")
    return v


class ProductCreate(SQLModel):
    """
    Payload for creating a product (built from multipart form fields).
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(max_length=255)
    description: str | None = None
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    stock: int = Field(default=0, ge=0)
    category: str = Field(default="3d_printer", max_length=50)
    specifications: dict[str, Any] = Field(default_factory=dict)

    @field_validator("name", "category")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v

    @field_validator("specifications", mode="before")
    @classmethod
    def parse_specifications(cls, v: Any) -> dict[str, Any]:
        return _parse_specifications(v)


class ProductUpdate(SQLModel):
    """
    Partial update payload for products.
    All fields are optional.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=255)
    description: str | None = None
    price: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    stock: int | None = Field(default=None, ge=0)
    category: str | None = Field(default=None, max_length=50)
    specifications: dict[str, Any] | None = None

    @field_validator("name", "category")
    @classmethod
    def not_empty(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v

    @field_validator("specifications", mode="before")
    @classmethod
    def parse_specifications(cls, v: Any) -> dict[str, Any] | None:
        if v is None:
            return None
        return _parse_specifications(v)


class ProductImageRead(SQLModel):
    """
    Read model for gallery images.
    """

    id: uuid.UUID
    product_id: uuid.UUID
    image_url: str
    display_order: int


class ReviewCreate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    rating: int = Field(ge=1, le=5)
    comment: str | None = Field(default=None, max_length=2000)


class ReviewRead(SQLModel):
    id: uuid.UUID
    product_id: uuid.UUID
    user_id: uuid.UUID
    user_name: str | None = None
    rating: int
    comment: str | None
    created_at: datetime


class ProductRead(SQLModel):
    """
    Product representation for clients, with gallery images.
    """

    id: uuid.UUID
    name: str
    description: str | None
    price: Decimal
    stock: int
    category: str
    specifications: dict[str, Any]
    image_url: str | None
    video_url: str | None = None
    likes_count: int
    average_rating: Decimal
    review_count: int
    is_archived: bool
    created_at: datetime
    images: list[ProductImageRead] = []


class ProductDetailRead(ProductRead):
    reviews: list[ReviewRead] = []


class LikeToggleRead(SQLModel):
    liked: bool
    likes_count: int
