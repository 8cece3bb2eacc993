# protoshop/repositories/product_repo.py
import uuid
from collections.abc import Iterable
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import func, or_, update
from sqlmodel import Session, select

from protoshop.models.product import Product, ProductImage, ProductLike, Review
from protoshop.models.user import User


class ProductRepository:
    """
    Data access layer for Product, ProductImage, Review and ProductLike.

    - Pure DB operations (CRUD + queries).
    - No FastAPI, no business logic.
    - Stock helpers do not commit; they run inside the order transaction.
    """

    # ----- Products -----

    def get_by_id(self, session: Session, product_id: uuid.UUID) -> Product | None:
        return session.get(Product, product_id)

    def get_many(
        self,
        session: Session,
        product_ids: Iterable[uuid.UUID],
    ) -> dict[uuid.UUID, Product]:
        """Fetch several products in one query, keyed by id."""
        ids = list(product_ids)
        if not ids:
            return {}
        stmt = select(Product).where(Product.id.in_(ids))
        return {p.id: p for p in session.exec(stmt).all()}

    def list_products(
        self,
        session: Session,
        *,
        category: str | None = None,
        search: str | None = None,
        show_archived: bool = False,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Product]:
        stmt = select(Product)
        if not show_archived:
            stmt = stmt.where(Product.is_archived == False)
        if category:
            stmt = stmt.where(Product.category == category)
        if search:
            pattern = f"%{search.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Product.name).like(pattern),
                    func.lower(Product.description).like(pattern),
                )
            )
        stmt = stmt.order_by(Product.created_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def save(self, session: Session, product: Product) -> Product:
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    # ----- Stock -----

    def decrement_stock(self, session: Session, product_id: uuid.UUID, quantity: int) -> bool:
        """
        Conditionally take `quantity` units out of stock.

        Returns False when fewer than `quantity` units remain; the row is
        left untouched in that case.
        """
        stmt = (
            update(Product)
            .where(Product.id == product_id, Product.stock >= quantity)
            .values(stock=Product.stock - quantity)
        )
        result = session.exec(stmt)
        return result.rowcount == 1

    def increment_stock(self, session: Session, product_id: uuid.UUID, quantity: int) -> None:
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(stock=Product.stock + quantity)
        )
        session.exec(stmt)

    # ----- Product images -----

    def list_images_for_products(
        self,
        session: Session,
        product_ids: Iterable[uuid.UUID],
    ) -> dict[uuid.UUID, list[ProductImage]]:
        ids = list(product_ids)
        grouped: dict[uuid.UUID, list[ProductImage]] = {pid: [] for pid in ids}
        if not ids:
            return grouped
        stmt = (
            select(ProductImage)
            .where(ProductImage.product_id.in_(ids))
            .order_by(ProductImage.display_order)
        )
        for image in session.exec(stmt).all():
            grouped[image.product_id].append(image)
        return grouped

    def max_display_order(self, session: Session, product_id: uuid.UUID) -> int:
        """Highest display_order in use, or -1 when the product has no images."""
        stmt = select(func.max(ProductImage.display_order)).where(
            ProductImage.product_id == product_id
        )
        value = session.exec(stmt).one()
        return -1 if value is None else value

    def get_image_by_id(self, session: Session, image_id: uuid.UUID) -> ProductImage | None:
        return session.get(ProductImage, image_id)

    def add_images(self, session: Session, images: list[ProductImage]) -> list[ProductImage]:
        session.add_all(images)
        session.commit()
        for image in images:
            session.refresh(image)
        return images

    def delete_image(self, session: Session, image: ProductImage) -> None:
        session.delete(image)
        session.commit()

    # ----- Reviews -----

    def list_reviews(
        self,
        session: Session,
        product_id: uuid.UUID,
    ) -> list[tuple[Review, str | None]]:
        """Reviews for a product, newest first, paired with the reviewer's name."""
        stmt = (
            select(Review, User.full_name)
            .join(User, User.id == Review.user_id)
            .where(Review.product_id == product_id)
            .order_by(Review.created_at.desc())
        )
        return session.exec(stmt).all()

    def add_review(self, session: Session, review: Review) -> Review:
        """
        Insert a review and refresh the product's rating aggregate in the
        same transaction.
        """
        session.add(review)
        session.flush()

        stmt = select(func.count(Review.id), func.avg(Review.rating)).where(
            Review.product_id == review.product_id
        )
        count, average = session.exec(stmt).one()
        average = Decimal(str(average or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

        session.exec(
            update(Product)
            .where(Product.id == review.product_id)
            .values(review_count=count, average_rating=average)
        )
        session.commit()
        session.refresh(review)
        return review

    # ----- Likes -----

    def get_like(
        self,
        session: Session,
        user_id: uuid.UUID,
        product_id: uuid.UUID,
    ) -> ProductLike | None:
        stmt = select(ProductLike).where(
            ProductLike.user_id == user_id,
            ProductLike.product_id == product_id,
        )
        return session.exec(stmt).first()

    def toggle_like(
        self,
        session: Session,
        user_id: uuid.UUID,
        product_id: uuid.UUID,
    ) -> bool:
        """
        Add or remove the user's like and move likes_count with it.
        Returns True when the product is now liked.
        """
        existing = self.get_like(session, user_id, product_id)
        if existing:
            session.delete(existing)
            delta = -1
        else:
            session.add(ProductLike(user_id=user_id, product_id=product_id))
            delta = 1
        session.flush()

        stmt = update(Product).where(Product.id == product_id)
        if delta < 0:
            stmt = stmt.where(Product.likes_count > 0)
        session.exec(stmt.values(likes_count=Product.likes_count + delta))
        session.commit()
        return existing is None
