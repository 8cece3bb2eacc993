# protoshop/routers/orders.py
import uuid
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Header, status
from sqlmodel import Session

from protoshop.core.auth import get_current_user, require_admin
from protoshop.core.config import Settings, get_settings
from protoshop.core.errors import AuthError
from protoshop.core.payment_gateway import PhonePeGateway, verify_callback_authorization
from protoshop.database import get_session
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
    OrderRead,
    OrderStatusUpdate,
    PaymentCallbackAck,
)
from protoshop.services.notification_service import (
    NotificationService,
    get_notification_service,
)
from protoshop.services.order_service import OrderService
from protoshop.services.payment_service import PaymentService

router = APIRouter(prefix="/orders", tags=["Orders"])

order_repo = OrderRepository()
cart_repo = CartRepository()
product_repo = ProductRepository()
user_repo = UserRepository()


def get_order_service(
    notifications: NotificationService = Depends(get_notification_service),
    settings: Settings = Depends(get_settings),
) -> OrderService:
    gateway = PhonePeGateway(settings)
    return OrderService(
        order_repo,
        product_repo,
        cart_repo,
        user_repo,
        notifications,
        settings,
        gateways={gateway.name: gateway},
    )


def get_payment_service(
    order_service: OrderService = Depends(get_order_service),
) -> PaymentService:
    return PaymentService(order_repo, order_service, order_service.gateways)


# -------- User-facing endpoints --------


@router.post("", response_model=OrderCreated, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """
    Place an order for the given items.

    - `phonepe`: returns `redirect_url` for the hosted payment page.
    - `cod`: order is confirmed immediately and an email is sent.
    """
    return service.create_order(session, current_user, payload, background_tasks)


@router.get("", response_model=list[OrderRead])
def list_my_orders(
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
    payments: PaymentService = Depends(get_payment_service),
    skip: int = 0,
    limit: int = 50,
):
    """
    List the authenticated user's orders with items, newest first.

    Orders still waiting on the payment gateway are checked with the
    provider first.
    """
    payments.reconcile_user_orders(session, current_user.id, background_tasks)
    return service.list_user_orders(session, current_user, skip, limit)


# -------- Admin endpoints --------


@router.get(
    "/admin/all",
    response_model=list[AdminOrderRead],
    dependencies=[Depends(require_admin)],
)
def list_all_orders(
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 50,
    service: OrderService = Depends(get_order_service),
):
    """
    List all orders with customer email and name (admin only).
    """
    return service.list_all_orders(session, skip, limit)


# -------- Payment provider --------


@router.post("/payment/callback", response_model=PaymentCallbackAck)
def payment_callback(
    background_tasks: BackgroundTasks,
    body: dict[str, Any] = Body(...),
    authorization: str | None = Header(None),
    session: Session = Depends(get_session),
    payments: PaymentService = Depends(get_payment_service),
    settings: Settings = Depends(get_settings),
):
    """
    Server-to-server settlement notification from the payment gateway.

    Unauthenticated as far as users go; the Authorization header must
    match the configured callback credentials. Replays are harmless.
    """
    if not verify_callback_authorization(settings, authorization):
        raise AuthError("Invalid callback authorization")

    payments.handle_callback(session, body, background_tasks)
    return PaymentCallbackAck()


# -------- Single order --------


@router.get("/{order_id}", response_model=OrderRead)
def get_my_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """
    Get a single order (with items) belonging to the current user.
    """
    return service.get_user_order(session, current_user, order_id)


@router.put(
    "/{order_id}",
    response_model=OrderRead,
    dependencies=[Depends(require_admin)],
)
def update_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    service: OrderService = Depends(get_order_service),
):
    """
    Update order status (admin only).

      pending | pending_payment -> processing, cancelled

      processing -> shipped, cancelled

      shipped -> delivered

      delivered -> completed

    Shipped, delivered and cancelled notify the customer by email.
    """
    return service.update_status(session, order_id, payload, background_tasks)


@router.post("/{order_id}/cancel", response_model=OrderRead)
def cancel_order(
    order_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """
    Cancel one of your own orders before it ships.
    """
    return service.cancel_order(session, current_user, order_id, background_tasks)


@router.put("/{order_id}/address", response_model=OrderRead)
def update_order_address(
    order_id: uuid.UUID,
    payload: OrderAddressUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """
    Change the shipping address of one of your own orders before it ships.
    """
    return service.update_address(session, current_user, order_id, payload)
