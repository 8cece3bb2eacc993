# protoshop/routers/products.py
import uuid
from typing import Any

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from pydantic import ValidationError as PydanticValidationError
from sqlmodel import Session

from protoshop.core.auth import get_current_user, require_admin
from protoshop.core.errors import ValidationError
from protoshop.database import get_session
from protoshop.models.user import User
from protoshop.repositories.product_repo import ProductRepository
from protoshop.schemas.product import (
    LikeToggleRead,
    ProductCreate,
    ProductDetailRead,
    ProductRead,
    ProductUpdate,
    ReviewCreate,
    ReviewRead,
)
from protoshop.services.product_service import ProductService

router = APIRouter(prefix="/products", tags=["Products"])

repo = ProductRepository()
service = ProductService(repo)


def get_product_service() -> ProductService:
    return service


def _validate_form(model, fields: dict[str, Any]):
    """
    Build a schema from multipart form fields, dropping the ones that were
    not sent, and report problems as a 400.
    """
    try:
        return model.model_validate({k: v for k, v in fields.items() if v is not None})
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ()))
        raise ValidationError(f"{field}: {first.get('msg')}" if field else first.get("msg"))


def _read_uploads(images: list[UploadFile] | None) -> list[tuple[str | None, bytes]]:
    return [(img.content_type, img.file.read()) for img in images or [] if img.filename]


def _read_upload(upload: UploadFile | None) -> tuple[str | None, bytes] | None:
    if upload is None or not upload.filename:
        return None
    return upload.content_type, upload.file.read()


# -------- Public endpoints --------


@router.get("", response_model=list[ProductRead])
def list_products(
    session: Session = Depends(get_session),
    category: str | None = None,
    search: str | None = None,
    show_archived: bool = False,
    skip: int = 0,
    limit: int = 50,
    service: ProductService = Depends(get_product_service),
):
    """
    List products with their gallery images.

    - Public endpoint.
    - Archived products are hidden unless `show_archived=true`.
    - `search` matches name or description, case-insensitive.
    """
    return service.list_products(
        session,
        category=category,
        search=search,
        show_archived=show_archived,
        skip=skip,
        limit=limit,
    )


@router.get("/{product_id}", response_model=ProductDetailRead)
def get_product(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
    service: ProductService = Depends(get_product_service),
):
    """
    Get a single product with images and reviews.
    """
    return service.get_product_detail(session, product_id)


@router.get("/{product_id}/reviews", response_model=list[ReviewRead])
def list_reviews(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
    service: ProductService = Depends(get_product_service),
):
    service.get_product(session, product_id)
    return service.list_reviews(session, product_id)


@router.post(
    "/{product_id}/reviews",
    response_model=ReviewRead,
    status_code=status.HTTP_201_CREATED,
)
def add_review(
    product_id: uuid.UUID,
    payload: ReviewCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    service: ProductService = Depends(get_product_service),
):
    """
    Post a review; the product's average rating and count are recomputed.
    """
    return service.add_review(session, product_id, current_user, payload)


@router.post("/{product_id}/like", response_model=LikeToggleRead)
def toggle_like(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    service: ProductService = Depends(get_product_service),
):
    """Like the product, or unlike it if already liked."""
    return service.toggle_like(session, product_id, current_user)


# -------- Admin endpoints --------


@router.post(
    "",
    response_model=ProductRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_product(
    name: str = Form(...),
    price: str = Form(...),
    description: str | None = Form(None),
    stock: int | None = Form(None),
    category: str | None = Form(None),
    specifications: str | None = Form(None),
    images: list[UploadFile] | None = File(None),
    video: UploadFile | None = File(None),
    session: Session = Depends(get_session),
    service: ProductService = Depends(get_product_service),
):
    """
    Create a product from multipart form fields (admin only).

    `specifications` is a JSON object string. Any `images` are uploaded to
    Storage in the order sent (JPEG/PNG/WEBP, max 5MB each); `video` is an
    optional MP4/WEBM/MOV clip up to 50MB.
    """
    payload = _validate_form(
        ProductCreate,
        {
            "name": name,
            "price": price,
            "description": description,
            "stock": stock,
            "category": category,
            "specifications": specifications,
        },
    )
    return service.create_product(
        session, payload, _read_uploads(images), _read_upload(video)
    )


@router.put(
    "/{product_id}",
    response_model=ProductRead,
    dependencies=[Depends(require_admin)],
)
def update_product(
    product_id: uuid.UUID,
    name: str | None = Form(None),
    price: str | None = Form(None),
    description: str | None = Form(None),
    stock: int | None = Form(None),
    category: str | None = Form(None),
    specifications: str | None = Form(None),
    images: list[UploadFile] | None = File(None),
    video: UploadFile | None = File(None),
    session: Session = Depends(get_session),
    service: ProductService = Depends(get_product_service),
):
    """
    Partial update (admin only). Only the form fields sent are changed;
    new images are appended after the existing gallery and a new video
    replaces the current one.
    """
    payload = _validate_form(
        ProductUpdate,
        {
            "name": name,
            "price": price,
            "description": description,
            "stock": stock,
            "category": category,
            "specifications": specifications,
        },
    )
    return service.update_product(
        session, product_id, payload, _read_uploads(images), _read_upload(video)
    )


@router.delete(
    "/{product_id}",
    dependencies=[Depends(require_admin)],
)
def archive_product(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
    service: ProductService = Depends(get_product_service),
):
    """
    Archive a product (admin only). Orders that reference it are untouched.
    """
    service.set_archived(session, product_id, True)
    return {"message": "Product archived"}


@router.patch(
    "/{product_id}/restore",
    response_model=ProductRead,
    dependencies=[Depends(require_admin)],
)
def restore_product(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
    service: ProductService = Depends(get_product_service),
):
    product = service.set_archived(session, product_id, False)
    return service.get_product_detail(session, product.id)


@router.delete(
    "/{product_id}/images/{image_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
def delete_product_image(
    product_id: uuid.UUID,
    image_id: uuid.UUID,
    session: Session = Depends(get_session),
    service: ProductService = Depends(get_product_service),
):
    """
    Delete a single gallery image (admin only).
    """
    service.remove_image(session, product_id, image_id)
