# protoshop/repositories/cart_repo.py
import uuid
from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import delete
from sqlmodel import Session, select

from protoshop.models.cart import Cart, CartItem
from protoshop.models.product import Product


class CartRepository:

    # Carts
    def get_cart(self, session: Session, user_id: uuid.UUID) -> Cart | None:
        stmt = select(Cart).where(Cart.user_id == user_id)
        return session.exec(stmt).first()

    def get_or_create_cart(self, session: Session, user_id: uuid.UUID) -> Cart:
        cart = self.get_cart(session, user_id)
        if cart:
            return cart
        cart = Cart(user_id=user_id)
        session.add(cart)
        session.flush()
        return cart

    # Items
    def list_items_with_products(
        self, session: Session, cart_id: uuid.UUID
    ) -> list[tuple[CartItem, Product]]:
        stmt = (
            select(CartItem, Product)
            .join(Product, Product.id == CartItem.product_id)
            .where(CartItem.cart_id == cart_id)
            .order_by(CartItem.created_at)
        )
        return session.exec(stmt).all()

    def get_item(
        self, session: Session, cart_id: uuid.UUID, product_id: uuid.UUID
    ) -> CartItem | None:
        stmt = select(CartItem).where(
            CartItem.cart_id == cart_id, CartItem.product_id == product_id
        )
        return session.exec(stmt).first()

    def save_item(self, session: Session, item: CartItem) -> CartItem:
        item.updated_at = datetime.now(timezone.utc)
        session.add(item)
        session.commit()
        session.refresh(item)
        return item

    def delete_item(self, session: Session, item: CartItem) -> None:
        session.delete(item)
        session.commit()

    def delete_cart(self, session: Session, cart: Cart) -> None:
        """Drop every line and the cart row itself."""
        session.exec(delete(CartItem).where(CartItem.cart_id == cart.id))
        session.delete(cart)
        session.commit()

    def remove_products(
        self,
        session: Session,
        user_id: uuid.UUID,
        product_ids: Iterable[uuid.UUID],
    ) -> None:
        """
        Drop the given products from the user's cart.

        No commit: called from inside the order transaction.
        """
        cart = self.get_cart(session, user_id)
        ids = list(product_ids)
        if cart is None or not ids:
            return
        session.exec(
            delete(CartItem).where(
                CartItem.cart_id == cart.id,
                CartItem.product_id.in_(ids),
            )
        )
