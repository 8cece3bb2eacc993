# protoshop/models/product.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import SQLModel, Field


class Product(SQLModel, table=True):
    """
    Catalog entry (printers, filaments, printed parts, model files).

    likes_count / average_rating / review_count are denormalized and kept
    in step by the like/review endpoints. Products are never hard-deleted;
    `is_archived` hides them from the storefront while historical orders
    keep pointing at them.
    """

    __tablename__ = "products"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(
        max_length=255,
        index=True,
        description="Display name",
    )

    description: str | None = None

    price: Decimal = Field(
        default=Decimal("0.00"),
        max_digits=10,
        decimal_places=2,
        ge=0,
        description="Unit price (INR)",
    )

    stock: int = Field(
        default=0,
        ge=0,
        description="Units currently in stock",
    )

    category: str = Field(
        default="3d_printer",
        max_length=50,
        index=True,
    )

    specifications: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )

    image_url: str | None = Field(
        default=None,
        description="Main image (first uploaded)",
    )

    video_url: str | None = Field(
        default=None,
        description="Optional product video",
    )

    likes_count: int = Field(default=0, ge=0)
    average_rating: Decimal = Field(
        default=Decimal("0.00"),
        max_digits=3,
        decimal_places=2,
    )
    review_count: int = Field(default=0, ge=0)

    is_archived: bool = Field(default=False, index=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class ProductImage(SQLModel, table=True):
    """
    Gallery image for a product, ordered by display_order.
    """

    __tablename__ = "product_images"
    __table_args__ = (
        UniqueConstraint("product_id", "display_order", name="u_product_image_order"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    image_url: str = Field(description="Public URL in blob storage")

    display_order: int = Field(default=0, ge=0)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class Review(SQLModel, table=True):
    __tablename__ = "reviews"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    product_id: uuid.UUID = Field(foreign_key="products.id", index=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)
    rating: int = Field(ge=1, le=5)
    comment: str | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class ProductLike(SQLModel, table=True):
    __tablename__ = "product_likes"
    __table_args__ = (
        UniqueConstraint("user_id", "product_id", name="u_user_product_like"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)
    product_id: uuid.UUID = Field(foreign_key="products.id", index=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
