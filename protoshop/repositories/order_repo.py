# protoshop/repositories/order_repo.py
import uuid
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import update
from sqlmodel import Session, select

from protoshop.models.order import Order, OrderItem
from protoshop.models.user import User


class OrderRepository:
    """
    Data access layer for orders and order_items.

    NOTE:
      - No commits here; order creation and status changes are multi-step
        transactions. The service is responsible for calling session.commit().
    """

    # ---- Orders ----

    def list_for_user(
        self,
        session: Session,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return session.exec(stmt).all()

    def list_all_with_customers(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
    ) -> list[tuple[Order, str | None, str | None]]:
        """All orders, newest first, with the customer's email and name."""
        stmt = (
            select(Order, User.email, User.full_name)
            .join(User, User.id == Order.user_id, isouter=True)
            .order_by(Order.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return session.exec(stmt).all()

    def get_by_id(self, session: Session, order_id: uuid.UUID) -> Order | None:
        return session.get(Order, order_id)

    def create_order(self, session: Session, order: Order) -> Order:
        """
        Insert an Order without committing, but ensure id is populated.
        """
        session.add(order)
        session.flush()  # Assign PK
        return order

    def transition_status(
        self,
        session: Session,
        order_id: uuid.UUID,
        new_status: str,
        from_statuses: Iterable[str],
        payment_status: str | None = None,
    ) -> int:
        """
        Move an order to `new_status` only if it is currently in one of
        `from_statuses`.

        Returns the number of rows changed (0 or 1). A second caller racing
        on the same order, or a replayed webhook, gets 0.
        """
        values: dict[str, Any] = {
            "status": new_status,
            "updated_at": datetime.now(timezone.utc),
        }
        if payment_status is not None:
            values["payment_status"] = payment_status

        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.status.in_(list(from_statuses)))
            .values(**values)
        )
        result = session.exec(stmt)
        return result.rowcount

    def update_shipping_address(
        self,
        session: Session,
        order_id: uuid.UUID,
        address: dict[str, Any],
        from_statuses: Iterable[str],
    ) -> int:
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.status.in_(list(from_statuses)))
            .values(shipping_address=address, updated_at=datetime.now(timezone.utc))
        )
        result = session.exec(stmt)
        return result.rowcount

    # ---- Order items ----

    def list_items_for_orders(
        self,
        session: Session,
        order_ids: Iterable[uuid.UUID],
    ) -> dict[uuid.UUID, list[OrderItem]]:
        ids = list(order_ids)
        grouped: dict[uuid.UUID, list[OrderItem]] = {oid: [] for oid in ids}
        if not ids:
            return grouped
        stmt = select(OrderItem).where(OrderItem.order_id.in_(ids))
        for item in session.exec(stmt).all():
            grouped[item.order_id].append(item)
        return grouped

    def create_items(
        self,
        session: Session,
        items: list[OrderItem],
    ) -> list[OrderItem]:
        session.add_all(items)
        session.flush()
        return items
