# protoshop/services/product_service.py
import uuid
from datetime import datetime, timezone
from typing import Iterable

from fastapi import status
from sqlmodel import Session

from protoshop.core.errors import AppError, NotFoundError, ProductNotFound, ValidationError
from protoshop.core.logging import get_logger
from protoshop.core.storage_utils import (
    delete_public_url,
    generate_filename,
    upload_to_storage,
)
from protoshop.models.product import Product, ProductImage, Review
from protoshop.models.user import User
from protoshop.repositories.product_repo import ProductRepository
from protoshop.schemas.product import (
    LikeToggleRead,
    ProductCreate,
    ProductDetailRead,
    ProductImageRead,
    ProductRead,
    ProductUpdate,
    ReviewCreate,
    ReviewRead,
)

logger = get_logger(__name__)


# --- Image config ---

MAX_IMAGE_BYTES = 5 * 1024 * 1024  # 5MB per image

ALLOWED_IMAGE_CONTENT_TYPES: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}

MAX_VIDEO_BYTES = 50 * 1024 * 1024  # 50MB per video

ALLOWED_VIDEO_CONTENT_TYPES: dict[str, str] = {
    "video/mp4": "mp4",
    "video/webm": "webm",
    "video/quicktime": "mov",
}


class ImageTooLarge(AppError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE


class VideoTooLarge(AppError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE


class ProductService:
    """
    Business logic for the catalog.

    Responsibilities:
      - storefront listing / detail with gallery images and reviews
      - image upload/delete orchestration with Supabase Storage
      - archive / restore (products are never hard-deleted)
      - reviews and likes, keeping the denormalized counters in step
      - admin-only operations (enforced at router via require_admin)
    """

    def __init__(self, repo: ProductRepository):
        self.repo = repo

    # ----- Helpers -----

    @staticmethod
    def _validate_and_get_ext(content_type: str | None, file_bytes: bytes) -> str:
        if content_type not in ALLOWED_IMAGE_CONTENT_TYPES:
            raise ValidationError("Unsupported image type. Allowed: JPEG, PNG, WEBP.")

        if len(file_bytes) > MAX_IMAGE_BYTES:
            raise ImageTooLarge("Image too large (max 5MB).")

        return ALLOWED_IMAGE_CONTENT_TYPES[content_type]

    def _validate_all(self, files: list[tuple[str | None, bytes]]) -> list[str]:
        return [self._validate_and_get_ext(ct, data) for ct, data in files]

    @staticmethod
    def _validate_video(video: tuple[str | None, bytes] | None) -> str | None:
        if video is None:
            return None
        content_type, file_bytes = video
        if content_type not in ALLOWED_VIDEO_CONTENT_TYPES:
            raise ValidationError("Unsupported video type. Allowed: MP4, WEBM, MOV.")
        if len(file_bytes) > MAX_VIDEO_BYTES:
            raise VideoTooLarge("Video too large (max 50MB).")
        return ALLOWED_VIDEO_CONTENT_TYPES[content_type]

    def _replace_video(
        self,
        session: Session,
        product: Product,
        video: tuple[str, bytes],
        ext: str,
    ) -> None:
        """
        Upload the product video and drop the previous one, if any.

        Path pattern:
            products/videos/<uuid>.<ext>
        """
        content_type, file_bytes = video
        previous = product.video_url
        product.video_url = upload_to_storage(
            f"products/videos/{generate_filename(ext)}", file_bytes, content_type
        )
        self.repo.save(session, product)
        if previous:
            delete_public_url(previous)

    def _upload_gallery_image(
        self,
        product_id: uuid.UUID,
        ext: str,
        content_type: str,
        file_bytes: bytes,
    ) -> str:
        """
        Upload a gallery image to a random filename.

        Path pattern:
            products/<product_id>/<uuid>.<ext>
        """
        path = f"products/{product_id}/{generate_filename(ext)}"
        return upload_to_storage(path, file_bytes, content_type)

    def _with_images(self, session: Session, products: list[Product]) -> list[ProductRead]:
        images = self.repo.list_images_for_products(session, [p.id for p in products])
        return [
            ProductRead.model_validate(
                {
                    **p.model_dump(),
                    "images": [ProductImageRead.model_validate(i.model_dump()) for i in images[p.id]],
                }
            )
            for p in products
        ]

    # ----- Products -----

    def list_products(
        self,
        session: Session,
        category: str | None = None,
        search: str | None = None,
        show_archived: bool = False,
        skip: int = 0,
        limit: int = 50,
    ) -> list[ProductRead]:
        products = self.repo.list_products(
            session,
            category=category,
            search=search,
            show_archived=show_archived,
            skip=skip,
            limit=limit,
        )
        return self._with_images(session, products)

    def get_product(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.repo.get_by_id(session, product_id)
        if not product:
            raise ProductNotFound("Product not found")
        return product

    def get_product_detail(self, session: Session, product_id: uuid.UUID) -> ProductDetailRead:
        product = self.get_product(session, product_id)
        [base] = self._with_images(session, [product])
        return ProductDetailRead(
            **base.model_dump(),
            reviews=self.list_reviews(session, product_id),
        )

    def create_product(
        self,
        session: Session,
        payload: ProductCreate,
        files: Iterable[tuple[str | None, bytes]] = (),
        video: tuple[str | None, bytes] | None = None,
    ) -> ProductRead:
        """
        Create a product, then upload any attached images in order and the
        optional video.
        """
        files = list(files)
        self._validate_all(files)
        video_ext = self._validate_video(video)

        product = Product(**payload.model_dump())
        product = self.repo.save(session, product)
        logger.info("Created product %s (%s)", product.id, product.name)

        self.add_images(session, product, files)
        if video_ext:
            self._replace_video(session, product, video, video_ext)
        return self._with_images(session, [product])[0]

    def update_product(
        self,
        session: Session,
        product_id: uuid.UUID,
        payload: ProductUpdate,
        files: Iterable[tuple[str | None, bytes]] = (),
        video: tuple[str | None, bytes] | None = None,
    ) -> ProductRead:
        """
        Partial update of a product.
        New images are appended after the existing gallery; a new video
        replaces the current one.
        """
        product = self.get_product(session, product_id)
        files = list(files)
        self._validate_all(files)
        video_ext = self._validate_video(video)

        for field, value in payload.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(product, field, value)
        product.updated_at = datetime.now(timezone.utc)
        product = self.repo.save(session, product)

        self.add_images(session, product, files)
        if video_ext:
            self._replace_video(session, product, video, video_ext)
        return self._with_images(session, [product])[0]

    def set_archived(
        self,
        session: Session,
        product_id: uuid.UUID,
        archived: bool,
    ) -> Product:
        """
        Archive hides a product from the storefront and checkout; restore
        brings it back. Order history keeps referencing it either way.
        """
        product = self.get_product(session, product_id)
        product.is_archived = archived
        product.updated_at = datetime.now(timezone.utc)
        return self.repo.save(session, product)

    # ----- Gallery images -----

    def add_images(
        self,
        session: Session,
        product: Product,
        files: Iterable[tuple[str | None, bytes]],
    ) -> list[ProductImage]:
        """
        Upload images for a product, placed after the current highest
        display_order. The first image also becomes the main image when
        the product has none.

        Args:
            files: iterable of (content_type, file_bytes)
        """
        files = list(files)
        if not files:
            return []

        # Validate everything before uploading anything
        exts = self._validate_all(files)

        next_order = self.repo.max_display_order(session, product.id) + 1
        new_images: list[ProductImage] = []
        for idx, ((content_type, file_bytes), ext) in enumerate(zip(files, exts)):
            url = self._upload_gallery_image(product.id, ext, content_type, file_bytes)
            new_images.append(
                ProductImage(
                    product_id=product.id,
                    image_url=url,
                    display_order=next_order + idx,
                )
            )

        created = self.repo.add_images(session, new_images)
        if not product.image_url:
            product.image_url = created[0].image_url
            self.repo.save(session, product)
        return created

    def remove_image(
        self,
        session: Session,
        product_id: uuid.UUID,
        image_id: uuid.UUID,
    ) -> None:
        """
        Delete a single gallery image and its Storage file.

        - Ensures the image belongs to the given product_id.
        """
        image = self.repo.get_image_by_id(session, image_id)
        if not image or image.product_id != product_id:
            raise NotFoundError("Image not found for this product")

        url = image.image_url
        self.repo.delete_image(session, image)

        product = self.get_product(session, product_id)
        if product.image_url == url:
            remaining = self.repo.list_images_for_products(session, [product_id])[product_id]
            product.image_url = remaining[0].image_url if remaining else None
            self.repo.save(session, product)

        try:
            delete_public_url(url)
        except Exception:
            logger.warning("Could not remove %s from storage", url, exc_info=True)

    # ----- Reviews -----

    def list_reviews(self, session: Session, product_id: uuid.UUID) -> list[ReviewRead]:
        return [
            ReviewRead(**review.model_dump(), user_name=user_name)
            for review, user_name in self.repo.list_reviews(session, product_id)
        ]

    def add_review(
        self,
        session: Session,
        product_id: uuid.UUID,
        user: User,
        payload: ReviewCreate,
    ) -> ReviewRead:
        product = self.get_product(session, product_id)
        if product.is_archived:
            raise ProductNotFound("Product not found")

        review = Review(
            product_id=product_id,
            user_id=user.id,
            rating=payload.rating,
            comment=payload.comment,
        )
        review = self.repo.add_review(session, review)
        return ReviewRead(**review.model_dump(), user_name=user.full_name)

    # ----- Likes -----

    def toggle_like(
        self,
        session: Session,
        product_id: uuid.UUID,
        user: User,
    ) -> LikeToggleRead:
        product = self.get_product(session, product_id)
        liked = self.repo.toggle_like(session, user.id, product_id)
        session.refresh(product)
        return LikeToggleRead(liked=liked, likes_count=product.likes_count)
