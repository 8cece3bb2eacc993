# protoshop/services/order_service.py
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Protocol

from fastapi import BackgroundTasks
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from protoshop.core.config import Settings
from protoshop.core.errors import (
    AppError,
    GatewayError,
    InsufficientStock,
    InternalError,
    InvalidRequest,
    InvalidStateTransition,
    NotFoundError,
    PaymentMethodNotAllowed,
    ProductNotFound,
)
from protoshop.core.logging import get_logger
from protoshop.core.payment_gateway import PaymentState
from protoshop.models.order import Order, OrderItem
from protoshop.models.product import Product
from protoshop.models.user import User
from protoshop.repositories.cart_repo import CartRepository
from protoshop.repositories.order_repo import OrderRepository
from protoshop.repositories.product_repo import ProductRepository
from protoshop.repositories.user_repo import UserRepository
from protoshop.schemas.order import (
    AdminOrderRead,
    OrderAddressUpdate,
    OrderCreate,
    OrderCreated,
    OrderItemRead,
    OrderRead,
    OrderStatusUpdate,
)
from protoshop.services.notification_service import NotificationService

logger = get_logger(__name__)

CASH_ON_DELIVERY = "cod"

CENT = Decimal("0.01")

# Admin-driven order lifecycle
ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"processing", "cancelled"},
    "pending_payment": {"processing", "cancelled"},
    "processing": {"shipped", "cancelled"},
    "shipped": {"delivered"},
    "delivered": {"completed"},
    "completed": set(),
    "cancelled": set(),
}

# Statuses in which the customer may still cancel or change the address
CUSTOMER_EDITABLE = ("pending", "pending_payment", "processing")

AWAITING_PAYMENT = ("pending", "pending_payment")


def sources_for(new_status: str) -> list[str]:
    return [src for src, targets in ALLOWED_TRANSITIONS.items() if new_status in targets]


class PaymentGateway(Protocol):
    name: str

    def initiate(
        self,
        order_id: str,
        amount: Decimal,
        payer_id: str,
        phone: str | None = None,
    ) -> str: ...

    def check_status(self, order_id: str) -> PaymentState: ...


@dataclass
class OrderTotals:
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal

    @property
    def total(self) -> Decimal:
        return self.subtotal + self.tax + self.shipping


def compute_totals(
    subtotal: Decimal,
    categories: Iterable[str],
    cash_on_delivery: bool,
    settings: Settings,
) -> OrderTotals:
    """
    tax      = subtotal * TAX_RATE, rounded half-up to the paisa
    shipping = flat fee, waived when every line is free-shipping,
               plus the COD surcharge for cash on delivery
    """
    categories = list(categories)
    tax = (subtotal * settings.TAX_RATE).quantize(CENT, rounding=ROUND_HALF_UP)

    free = set(settings.FREE_SHIPPING_CATEGORIES)
    if categories and all(c in free for c in categories):
        shipping = Decimal("0.00")
    else:
        shipping = settings.SHIPPING_FLAT_FEE
    if cash_on_delivery:
        shipping += settings.COD_SURCHARGE

    return OrderTotals(
        subtotal=subtotal.quantize(CENT),
        tax=tax,
        shipping=shipping.quantize(CENT),
    )


class OrderService:
    """
    Business logic for orders.

    Responsibilities:
      - Create an order from an explicit item list (prices from the catalog)
      - Reserve stock with conditional decrements inside one transaction
      - Hand prepaid orders to the payment gateway after commit
      - Enforce the status machine for admins and the cancel/address rules
        for customers
      - Schedule customer emails for shipped / delivered / cancelled
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        product_repo: ProductRepository,
        cart_repo: CartRepository,
        user_repo: UserRepository,
        notifications: NotificationService,
        settings: Settings,
        gateways: dict[str, PaymentGateway],
    ):
        self.order_repo = order_repo
        self.product_repo = product_repo
        self.cart_repo = cart_repo
        self.user_repo = user_repo
        self.notifications = notifications
        self.settings = settings
        self.gateways = gateways

    # -------- Checkout --------

    def _load_products(
        self,
        session: Session,
        quantities: dict[uuid.UUID, int],
    ) -> dict[uuid.UUID, Product]:
        products = self.product_repo.get_many(session, quantities.keys())
        for product_id in quantities:
            product = products.get(product_id)
            if product is None or product.is_archived:
                raise ProductNotFound(f"Product {product_id} not found")
        return products

    def _check_cod_allowed(self, subtotal: Decimal, products: Iterable[Product]) -> None:
        if subtotal >= self.settings.COD_MAX_SUBTOTAL:
            raise PaymentMethodNotAllowed(
                f"Cash on Delivery is not available for orders of "
                f"{self.settings.COD_MAX_SUBTOTAL} or more"
            )
        prepaid_only = set(self.settings.PREPAID_ONLY_CATEGORIES)
        for product in products:
            if product.category in prepaid_only:
                raise PaymentMethodNotAllowed(
                    f"Cash on Delivery is not available for {product.name}"
                )

    def create_order(
        self,
        session: Session,
        user: User,
        payload: OrderCreate,
        background_tasks: BackgroundTasks,
    ) -> OrderCreated:
        """
        Place an order.

        Steps:
          1. Validate payload (items, address, gateway).
          2. Load every product in one query; missing/archived -> 404.
          3. Price lines from the stored price; check stock.
          4. Apply the COD rules and compute tax/shipping/total.
          5. In one transaction: insert order + items, decrement stock
             conditionally, drop the products from the user's cart.
          6. After commit: start the gateway payment, or schedule the COD
             confirmation email.
        """
        # 1) Payload
        if not payload.items:
            raise InvalidRequest("No items in order")
        if payload.shipping_address is None:
            raise InvalidRequest("Shipping address is required")

        gateway_name = payload.payment_gateway
        cash_on_delivery = gateway_name == CASH_ON_DELIVERY
        if not cash_on_delivery and gateway_name not in self.gateways:
            raise InvalidRequest(f"Unsupported payment gateway: {gateway_name}")

        quantities: dict[uuid.UUID, int] = {}
        for item in payload.items:
            quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity

        # 2) Products
        products = self._load_products(session, quantities)

        # 3) Lines
        subtotal = Decimal("0.00")
        lines: list[OrderItem] = []
        for product_id, quantity in quantities.items():
            product = products[product_id]
            if quantity > product.stock:
                raise InsufficientStock(product.name, product.stock, quantity)
            line_total = product.price * quantity
            subtotal += line_total
            lines.append(
                OrderItem(
                    product_id=product_id,
                    product_name=product.name,
                    quantity=quantity,
                    price=product.price,
                    line_total=line_total,
                )
            )

        # 4) Payment rules + totals
        if cash_on_delivery:
            self._check_cod_allowed(subtotal, products.values())
        totals = compute_totals(
            subtotal,
            (p.category for p in products.values()),
            cash_on_delivery,
            self.settings,
        )

        # 5) Transaction
        order = Order(
            user_id=user.id,
            subtotal_amount=totals.subtotal,
            tax_amount=totals.tax,
            shipping_amount=totals.shipping,
            total_amount=totals.total,
            status="pending",
            payment_gateway=gateway_name,
            payment_status=CASH_ON_DELIVERY if cash_on_delivery else "pending",
            shipping_address=payload.shipping_address.model_dump(),
        )
        try:
            order = self.order_repo.create_order(session, order)
            for line in lines:
                line.order_id = order.id
            self.order_repo.create_items(session, lines)

            for line in lines:
                if not self.product_repo.decrement_stock(session, line.product_id, line.quantity):
                    session.rollback()
                    current = self.product_repo.get_by_id(session, line.product_id)
                    raise InsufficientStock(
                        line.product_name,
                        current.stock if current else 0,
                        line.quantity,
                    )

            self.cart_repo.remove_products(session, user.id, quantities.keys())
            order_id = order.id
            summary = [(line.product_name, line.quantity, line.price) for line in lines]
            session.commit()
        except AppError:
            session.rollback()
            raise
        except SQLAlchemyError:
            session.rollback()
            logger.exception("Order insert failed for user %s", user.id)
            raise InternalError("Failed to create order")

        logger.info(
            "Order %s created: %s items, total %s, via %s",
            order_id,
            len(lines),
            totals.total,
            gateway_name,
        )

        # 6) After commit
        if cash_on_delivery:
            self.notifications.schedule(
                background_tasks,
                self.notifications.send_order_confirmation,
                user.email,
                str(order_id),
                totals.total,
                summary,
            )
            return OrderCreated(
                message="Order placed successfully (Cash on Delivery)",
                order_id=order_id,
            )

        gateway = self.gateways[gateway_name]
        phone = user.phone_number or payload.shipping_address.phone
        try:
            redirect_url = gateway.initiate(str(order_id), totals.total, str(user.id), phone)
        except GatewayError:
            logger.warning("Payment initiation failed for order %s; cancelling", order_id)
            self.transition(
                session,
                order_id,
                "cancelled",
                from_statuses=AWAITING_PAYMENT,
                payment_status="failed",
            )
            raise

        return OrderCreated(
            message="Payment initiated",
            order_id=order_id,
            redirect_url=redirect_url,
        )

    # -------- Transitions --------

    def transition(
        self,
        session: Session,
        order_id: uuid.UUID,
        new_status: str,
        from_statuses: Iterable[str] | None = None,
        payment_status: str | None = None,
        background_tasks: BackgroundTasks | None = None,
    ) -> bool:
        """
        Conditionally move an order into `new_status`.

        Only rows currently in `from_statuses` (default: every status that
        may legally precede `new_status`) are touched. Returns False when
        nothing matched, e.g. a replayed webhook.

        Entering 'cancelled' restocks the order's lines when
        RESTOCK_ON_CANCEL is on.
        """
        sources = list(from_statuses) if from_statuses is not None else sources_for(new_status)
        try:
            changed = self.order_repo.transition_status(
                session, order_id, new_status, sources, payment_status
            )
            if changed and new_status == "cancelled" and self.settings.RESTOCK_ON_CANCEL:
                items = self.order_repo.list_items_for_orders(session, [order_id])[order_id]
                for item in items:
                    self.product_repo.increment_stock(session, item.product_id, item.quantity)
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            logger.exception("Status change to %s failed for order %s", new_status, order_id)
            raise InternalError("Failed to update order")

        if not changed:
            logger.debug("Order %s not in %s; %s skipped", order_id, sources, new_status)
            return False

        logger.info("Order %s -> %s", order_id, new_status)
        if background_tasks is not None:
            self._schedule_status_email(session, order_id, new_status, background_tasks)
        return True

    def _schedule_status_email(
        self,
        session: Session,
        order_id: uuid.UUID,
        new_status: str,
        background_tasks: BackgroundTasks,
    ) -> None:
        if new_status not in ("shipped", "delivered", "cancelled"):
            return
        order = self.order_repo.get_by_id(session, order_id)
        user = self.user_repo.get_by_id(session, order.user_id) if order else None
        if user is None:
            return
        self.notifications.schedule(
            background_tasks,
            self.notifications.send_order_status,
            user.email,
            user.full_name,
            str(order_id),
            new_status,
        )

    def update_status(
        self,
        session: Session,
        order_id: uuid.UUID,
        payload: OrderStatusUpdate,
        background_tasks: BackgroundTasks,
    ) -> OrderRead:
        """
        Admin-only status update.

          pending | pending_payment -> processing, cancelled
          processing                -> shipped, cancelled
          shipped                   -> delivered
          delivered                 -> completed

        Same status is a no-op; anything else raises 409.
        """
        order = self.order_repo.get_by_id(session, order_id)
        if not order:
            raise NotFoundError("Order not found")

        current = order.status
        new = payload.status
        if current == new:
            return self._to_reads(session, [order])[0]

        if new not in ALLOWED_TRANSITIONS.get(current, set()):
            raise InvalidStateTransition(current, new)

        if not self.transition(
            session,
            order_id,
            new,
            from_statuses=[current],
            background_tasks=background_tasks,
        ):
            # Someone else moved it first
            session.refresh(order)
            raise InvalidStateTransition(order.status, new)

        session.refresh(order)
        return self._to_reads(session, [order])[0]

    # -------- Customer operations --------

    def _get_own_order(self, session: Session, user: User, order_id: uuid.UUID) -> Order:
        order = self.order_repo.get_by_id(session, order_id)
        if not order or order.user_id != user.id:
            raise NotFoundError("Order not found")
        return order

    def cancel_order(
        self,
        session: Session,
        user: User,
        order_id: uuid.UUID,
        background_tasks: BackgroundTasks,
    ) -> OrderRead:
        order = self._get_own_order(session, user, order_id)
        if order.status not in CUSTOMER_EDITABLE:
            raise InvalidStateTransition(order.status, "cancelled")

        if not self.transition(
            session,
            order_id,
            "cancelled",
            from_statuses=CUSTOMER_EDITABLE,
            background_tasks=background_tasks,
        ):
            session.refresh(order)
            raise InvalidStateTransition(order.status, "cancelled")

        session.refresh(order)
        return self._to_reads(session, [order])[0]

    def update_address(
        self,
        session: Session,
        user: User,
        order_id: uuid.UUID,
        payload: OrderAddressUpdate,
    ) -> OrderRead:
        """
        Replace the shipping address snapshot while the order has not shipped.
        """
        order = self._get_own_order(session, user, order_id)
        if order.status not in CUSTOMER_EDITABLE:
            raise InvalidStateTransition(order.status, order.status)

        try:
            changed = self.order_repo.update_shipping_address(
                session, order_id, payload.address.model_dump(), CUSTOMER_EDITABLE
            )
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            logger.exception("Address update failed for order %s", order_id)
            raise InternalError("Failed to update order")

        session.refresh(order)
        if not changed:
            raise InvalidStateTransition(order.status, order.status)
        return self._to_reads(session, [order])[0]

    # -------- Reads --------

    def _to_reads(self, session: Session, orders: list[Order]) -> list[OrderRead]:
        items = self.order_repo.list_items_for_orders(session, [o.id for o in orders])
        return [
            OrderRead.model_validate(
                {
                    **o.model_dump(),
                    "items": [OrderItemRead.model_validate(i.model_dump()) for i in items[o.id]],
                }
            )
            for o in orders
        ]

    def list_user_orders(
        self,
        session: Session,
        user: User,
        skip: int = 0,
        limit: int = 50,
    ) -> list[OrderRead]:
        """
        List the user's orders with items, newest first.
        """
        orders = self.order_repo.list_for_user(session, user.id, skip, limit)
        return self._to_reads(session, orders)

    def get_user_order(
        self,
        session: Session,
        user: User,
        order_id: uuid.UUID,
    ) -> OrderRead:
        """
        Get a single order for the user, including items.

        - 404 if order not found or does not belong to this user.
        """
        order = self._get_own_order(session, user, order_id)
        return self._to_reads(session, [order])[0]

    def list_all_orders(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
    ) -> list[AdminOrderRead]:
        """
        List all orders with customer email/name (admin only).
        """
        rows = self.order_repo.list_all_with_customers(session, skip, limit)
        reads = self._to_reads(session, [order for order, _, _ in rows])
        return [
            AdminOrderRead(**read.model_dump(), user_email=email, user_name=name)
            for read, (_, email, name) in zip(reads, rows)
        ]
