# protoshop/services/payment_service.py
"""
Bringing order status in line with the payment provider.

Two entry points, both funnelled into `apply_state`:

  - polling: when a customer lists their orders, every order still
    awaiting a redirect-gateway payment is checked with the provider
  - webhook: the provider POSTs the settlement to the callback endpoint

`apply_state` only ever moves orders out of pending/pending_payment, and it
does so with a conditional UPDATE, so replays and races are no-ops.
"""
import base64
import binascii
import json
import uuid
from typing import Any

from fastapi import BackgroundTasks
from sqlmodel import Session

from protoshop.core.errors import (
    GatewayError,
    GatewayHTTPError,
    GatewayTimeoutError,
    InvalidRequest,
)
from protoshop.core.logging import get_logger
from protoshop.core.payment_gateway import PaymentState, dig, normalize_state
from protoshop.models.order import Order
from protoshop.repositories.order_repo import OrderRepository
from protoshop.services.order_service import AWAITING_PAYMENT, OrderService, PaymentGateway

logger = get_logger(__name__)

# Upstream answers that mean "this payment never happened"
ABANDONED_STATUS_CODES = {400, 404}


def decode_callback(body: Any) -> dict[str, Any]:
    """
    Unwrap a callback body. The provider either posts the JSON directly or
    wraps it as {"response": "<base64 json>"}.

    Raises:
        InvalidRequest: body is not an object or the wrapper does not decode.
    """
    if not isinstance(body, dict):
        raise InvalidRequest("Invalid callback")

    wrapped = body.get("response")
    if wrapped is None:
        return body

    try:
        decoded = json.loads(base64.b64decode(wrapped, validate=True).decode("utf-8"))
    except (binascii.Error, ValueError, TypeError):
        logger.warning("Payment callback could not be decoded")
        raise InvalidRequest("Invalid callback")
    if not isinstance(decoded, dict):
        raise InvalidRequest("Invalid callback")
    return decoded


def extract_callback_fields(notification: dict[str, Any]) -> tuple[str | None, str | None, str | None]:
    """Return (order_id, code, state) from a decoded callback."""
    order_id = (
        dig(notification, ("data", "merchantOrderId"))
        or dig(notification, ("data", "merchantTransactionId"))
        or notification.get("orderId")
    )
    state = dig(notification, ("data", "state")) or notification.get("state")
    code = notification.get("code")
    return order_id, code, state


class PaymentService:
    def __init__(
        self,
        order_repo: OrderRepository,
        order_service: OrderService,
        gateways: dict[str, PaymentGateway],
    ):
        self.order_repo = order_repo
        self.order_service = order_service
        self.gateways = gateways

    def apply_state(
        self,
        session: Session,
        order_id: uuid.UUID,
        state: PaymentState,
        background_tasks: BackgroundTasks | None = None,
    ) -> bool:
        """
        success            -> processing / paid
        failed, cancelled  -> cancelled / failed
        pending, unknown   -> left alone

        Returns True when the order row changed.
        """
        if state == PaymentState.SUCCESS:
            return self.order_service.transition(
                session,
                order_id,
                "processing",
                from_statuses=AWAITING_PAYMENT,
                payment_status="paid",
                background_tasks=background_tasks,
            )
        if state in (PaymentState.FAILED, PaymentState.CANCELLED):
            return self.order_service.transition(
                session,
                order_id,
                "cancelled",
                from_statuses=AWAITING_PAYMENT,
                payment_status="failed",
                background_tasks=background_tasks,
            )
        return False

    # ----- polling -----

    def check_order(
        self,
        session: Session,
        order: Order,
        background_tasks: BackgroundTasks | None = None,
    ) -> bool:
        gateway = self.gateways.get(order.payment_gateway)
        if gateway is None:
            return False

        order_id = order.id
        try:
            state = gateway.check_status(str(order_id))
        except GatewayTimeoutError:
            logger.warning("Status check timed out for order %s; treating as abandoned", order_id)
            state = PaymentState.CANCELLED
        except GatewayHTTPError as exc:
            if exc.upstream_status not in ABANDONED_STATUS_CODES:
                logger.error("Status check failed for order %s: %s", order_id, exc)
                return False
            logger.info("Provider has no payment for order %s (%s)", order_id, exc.upstream_status)
            state = PaymentState.CANCELLED
        except GatewayError as exc:
            logger.error("Status check failed for order %s: %s", order_id, exc)
            return False

        return self.apply_state(session, order_id, state, background_tasks)

    def reconcile_user_orders(
        self,
        session: Session,
        user_id: uuid.UUID,
        background_tasks: BackgroundTasks | None = None,
    ) -> int:
        """
        Poll the provider for each of the user's orders still awaiting a
        redirect payment. Returns how many orders changed.
        """
        orders = [
            o
            for o in self.order_repo.list_for_user(session, user_id, limit=100)
            if o.status in AWAITING_PAYMENT and o.payment_gateway in self.gateways
        ]
        changed = 0
        for order in orders:
            if self.check_order(session, order, background_tasks):
                changed += 1
        return changed

    # ----- webhook -----

    def handle_callback(
        self,
        session: Session,
        body: Any,
        background_tasks: BackgroundTasks | None = None,
    ) -> bool:
        """
        Apply a provider callback.

        Raises:
            InvalidRequest: undecodable payload or no order id.

        Unknown orders are acknowledged (logged, nothing changes).
        """
        notification = decode_callback(body)
        raw_order_id, code, state = extract_callback_fields(notification)
        if not raw_order_id:
            raise InvalidRequest("Missing Order ID")

        try:
            order_id = uuid.UUID(str(raw_order_id))
        except ValueError:
            logger.warning("Callback for unknown order %s ignored", raw_order_id)
            return False

        if self.order_repo.get_by_id(session, order_id) is None:
            logger.warning("Callback for unknown order %s ignored", order_id)
            return False

        payment_state = normalize_state(code, state)
        logger.info("Callback for order %s: code=%s state=%s -> %s", order_id, code, state, payment_state.value)
        return self.apply_state(session, order_id, payment_state, background_tasks)
