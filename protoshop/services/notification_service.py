# protoshop/services/notification_service.py
"""
Outgoing customer / staff emails.

Everything here runs after the response has been decided: callers hand a
builder method to `schedule(...)`, which queues it on FastAPI's
BackgroundTasks. A failing SMTP server is logged and otherwise ignored.

Builders take plain values (ids, names, amounts) rather than ORM rows,
because the request's DB session is closed by the time they run.
"""
from decimal import Decimal
from typing import Any, Callable

from fastapi import BackgroundTasks, Depends

from protoshop.core.config import Settings, get_settings
from protoshop.core.email_client import EmailClient
from protoshop.core.logging import get_logger

logger = get_logger(__name__)

# Attach the uploaded model to the staff email only below this size
MAX_ATTACHMENT_BYTES = 10 * 1024 * 1024

STATUS_SUBJECTS: dict[str, str] = {
    "shipped": "Your order has shipped",
    "delivered": "Your order has been delivered",
    "cancelled": "Order cancellation notice",
}

STATUS_MESSAGES: dict[str, str] = {
    "shipped": "Great news! Your items are on the way. They should arrive soon.",
    "delivered": "Your order has been marked as delivered. We hope you enjoy your prints!",
    "cancelled": (
        "Your order has been cancelled. "
        "If you did not request this, please contact support."
    ),
}


def short_id(order_id: Any) -> str:
    return str(order_id)[:8]


class NotificationService:
    def __init__(self, email_client: EmailClient, settings: Settings):
        self.email_client = email_client
        self.settings = settings

    # ----- dispatch -----

    def schedule(
        self,
        background_tasks: BackgroundTasks,
        fn: Callable[..., None],
        *args: Any,
    ) -> None:
        """Queue `fn(*args)` to run after the response is sent."""
        background_tasks.add_task(self._run_safely, fn, *args)

    @staticmethod
    def _run_safely(fn: Callable[..., None], *args: Any) -> None:
        try:
            fn(*args)
        except Exception:
            logger.exception("Notification %s failed", getattr(fn, "__name__", fn))

    # ----- builders -----

    def send_welcome(self, to_email: str, full_name: str | None) -> None:
        name = full_name or "there"
        text = (
            f"Welcome, {name}!\n\n"
            "We are thrilled to have you on board. Start browsing our catalog "
            "or upload your custom models today.\n\n"
            f"{self.settings.FRONTEND_URL}"
        )
        html = (
            f"<h2>Welcome, {name}!</h2>"
            "<p>We are thrilled to have you on board. Start browsing our catalog "
            "or upload your custom models today.</p>"
            f'<p><a href="{self.settings.FRONTEND_URL}">Go to Store</a></p>'
        )
        self.email_client.send_email(
            to_email, f"Welcome to {self.settings.SMTP_FROM_NAME}!", text, html
        )

    def send_order_confirmation(
        self,
        to_email: str,
        order_id: str,
        total_amount: Decimal,
        lines: list[tuple[str, int, Decimal]],
    ) -> None:
        """
        Args:
            lines: (product_name, quantity, unit_price) per order item.
        """
        text_lines = "\n".join(f"  {qty} x {name} - Rs. {price}" for name, qty, price in lines)
        html_lines = "".join(
            f"<li>{qty} x <strong>{name}</strong> - &#8377;{price}</li>"
            for name, qty, price in lines
        )
        text = (
            f"Thank you for your order!\n\n"
            f"Your order #{order_id} has been placed successfully.\n\n"
            f"Order summary:\n{text_lines}\n\n"
            f"Total: Rs. {total_amount}\n\n"
            "We will notify you when your items are shipped."
        )
        html = (
            "<h2>Thank you for your order!</h2>"
            f"<p>Your order <strong>#{order_id}</strong> has been placed successfully.</p>"
            f"<h3>Order Summary:</h3><ul>{html_lines}</ul>"
            f"<p><strong>Total: &#8377;{total_amount}</strong></p>"
            "<p>We will notify you when your items are shipped.</p>"
        )
        self.email_client.send_email(
            to_email, f"Order Confirmation #{short_id(order_id)}", text, html
        )

    def send_order_status(
        self,
        to_email: str,
        full_name: str | None,
        order_id: str,
        status: str,
    ) -> None:
        """Only shipped / delivered / cancelled produce an email."""
        subject = STATUS_SUBJECTS.get(status)
        if subject is None:
            return

        name = full_name or "there"
        message = STATUS_MESSAGES[status]
        orders_url = f"{self.settings.FRONTEND_URL}/orders"
        text = (
            f"Hello {name},\n\n{message}\n\n"
            f"Order ID: {order_id}\nNew status: {status}\n\n"
            f"Track your order: {orders_url}"
        )
        html = (
            f"<h2>Hello {name},</h2><p>{message}</p>"
            f"<p><strong>Order ID:</strong> {order_id}<br/>"
            f"<strong>New Status:</strong> {status}</p>"
            f'<p>Track your order in your <a href="{orders_url}">Dashboard</a>.</p>'
        )
        self.email_client.send_email(to_email, f"{subject} #{short_id(order_id)}", text, html)

    def send_quote_to_staff(
        self,
        file_name: str,
        file_bytes: bytes,
        email: str,
        phone: str | None,
        notes: str | None,
        specifications: dict[str, Any],
        estimated_price: Decimal | None,
    ) -> None:
        to_email = self.settings.ADMIN_EMAIL or self.settings.SMTP_FROM_EMAIL
        if not to_email:
            logger.warning("No ADMIN_EMAIL configured; quote for %s not forwarded", file_name)
            return

        spec_lines = "\n".join(f"  {key}: {value}" for key, value in specifications.items())
        text = (
            f"New custom print request\n\n"
            f"File: {file_name}\n"
            f"Customer: {email} / {phone or '-'}\n"
            f"Estimated price: {estimated_price if estimated_price is not None else '-'}\n"
            f"Notes: {notes or '-'}\n\n"
            f"Specifications:\n{spec_lines or '  -'}"
        )
        attachments = []
        if len(file_bytes) < MAX_ATTACHMENT_BYTES:
            attachments.append((file_name, file_bytes))

        self.email_client.send_email(
            to_email,
            f"New Request: {file_name} - Rs. {estimated_price if estimated_price is not None else '?'}",
            text,
            attachments=attachments,
        )

    def send_quote_confirmation(self, to_email: str, file_name: str) -> None:
        text = (
            f"We received your model '{file_name}'.\n\n"
            "Our team will review it and get back to you with a final quote shortly."
        )
        html = (
            f"<h2>Request received</h2><p>We received your model <strong>{file_name}</strong>.</p>"
            "<p>Our team will review it and get back to you with a final quote shortly.</p>"
        )
        self.email_client.send_email(to_email, f"Order Received: {file_name}", text, html)


def get_notification_service(settings: Settings = Depends(get_settings)) -> NotificationService:
    return NotificationService(EmailClient(settings), settings)
