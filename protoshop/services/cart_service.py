# protoshop/services/cart_service.py
import uuid
from decimal import Decimal

from sqlmodel import Session

from protoshop.core.errors import InsufficientStock, NotFoundError, ProductNotFound
from protoshop.models.cart import CartItem
from protoshop.models.product import Product
from protoshop.repositories.cart_repo import CartRepository
from protoshop.repositories.product_repo import ProductRepository
from protoshop.schemas.cart import (
    CartItemCreate,
    CartItemRead,
    CartItemUpdate,
    CartSummary,
)


class CartService:
    """
    Business logic for cart operations.

    Responsibilities:
      - create the cart lazily on first add
      - validate product existence and archived flag
      - enforce quantity <= stock
      - price lines from the current catalog price
    """

    def __init__(self, cart_repo: CartRepository, product_repo: ProductRepository):
        self.cart_repo = cart_repo
        self.product_repo = product_repo

    # ---- internal helpers ----

    def _get_valid_product(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.product_repo.get_by_id(session, product_id)
        if not product or product.is_archived:
            raise ProductNotFound("Product not found")
        return product

    @staticmethod
    def _check_stock(product: Product, quantity: int) -> None:
        if quantity > product.stock:
            raise InsufficientStock(product.name, product.stock, quantity)

    # ---- public operations ----

    def get_cart_summary(
        self,
        session: Session,
        user_id: uuid.UUID,
    ) -> CartSummary:
        """
        Return full cart summary:
          - list of CartItemRead (with line_total)
          - total_quantity
          - total_price
        """
        cart = self.cart_repo.get_cart(session, user_id)
        if cart is None:
            return CartSummary(items=[], total_quantity=0, total_price=Decimal("0.00"))

        item_reads: list[CartItemRead] = []
        total_qty = 0
        total_price = Decimal("0.00")

        for it, product in self.cart_repo.list_items_with_products(session, cart.id):
            line_total = product.price * it.quantity
            total_qty += it.quantity
            total_price += line_total

            item_reads.append(
                CartItemRead(
                    id=it.id,
                    product_id=product.id,
                    name=product.name,
                    price=product.price,
                    quantity=it.quantity,
                    line_total=line_total,
                    image_url=product.image_url,
                    stock=product.stock,
                )
            )

        return CartSummary(
            id=cart.id,
            items=item_reads,
            total_quantity=total_qty,
            total_price=total_price,
        )

    def add_to_cart(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: CartItemCreate,
    ) -> CartSummary:
        """
        Add a product to the user's cart.

        Rules:
          - product must exist and not be archived
          - quantity + existing_quantity <= stock
        """
        product = self._get_valid_product(session, payload.product_id)
        cart = self.cart_repo.get_or_create_cart(session, user_id)

        existing = self.cart_repo.get_item(session, cart.id, payload.product_id)
        if existing:
            new_qty = existing.quantity + payload.quantity
            self._check_stock(product, new_qty)
            existing.quantity = new_qty
            self.cart_repo.save_item(session, existing)
        else:
            self._check_stock(product, payload.quantity)
            item = CartItem(
                cart_id=cart.id,
                product_id=payload.product_id,
                quantity=payload.quantity,
            )
            self.cart_repo.save_item(session, item)

        return self.get_cart_summary(session, user_id)

    def update_quantity(
        self,
        session: Session,
        user_id: uuid.UUID,
        product_id: uuid.UUID,
        payload: CartItemUpdate,
    ) -> CartSummary:
        """
        Set the quantity of an item already in the cart.
        """
        cart = self.cart_repo.get_cart(session, user_id)
        item = self.cart_repo.get_item(session, cart.id, product_id) if cart else None
        if not item:
            raise NotFoundError("Item not in cart")

        product = self._get_valid_product(session, product_id)
        self._check_stock(product, payload.quantity)

        item.quantity = payload.quantity
        self.cart_repo.save_item(session, item)

        return self.get_cart_summary(session, user_id)

    def remove_item(
        self,
        session: Session,
        user_id: uuid.UUID,
        product_id: uuid.UUID,
    ) -> CartSummary:
        """
        Remove a product from the cart and return updated summary.
        """
        cart = self.cart_repo.get_cart(session, user_id)
        item = self.cart_repo.get_item(session, cart.id, product_id) if cart else None
        if not item:
            raise NotFoundError("Item not found in cart")

        self.cart_repo.delete_item(session, item)
        return self.get_cart_summary(session, user_id)

    def clear_cart(
        self,
        session: Session,
        user_id: uuid.UUID,
    ) -> CartSummary:
        """
        Drop the cart entirely and return an empty summary.
        """
        cart = self.cart_repo.get_cart(session, user_id)
        if cart:
            self.cart_repo.delete_cart(session, cart)
        return CartSummary(items=[], total_quantity=0, total_price=Decimal("0.00"))
