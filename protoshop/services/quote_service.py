# protoshop/services/quote_service.py
import json
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from fastapi import BackgroundTasks, status
from sqlmodel import Session

from protoshop.core.errors import AppError, NotFoundError, ValidationError
from protoshop.core.logging import get_logger
from protoshop.core.storage_utils import safe_object_name, upload_to_storage
from protoshop.models.quote import Quote
from protoshop.models.user import User
from protoshop.repositories.quote_repo import QuoteRepository
from protoshop.schemas.quote import QuoteStatusUpdate
from protoshop.services.notification_service import NotificationService

logger = get_logger(__name__)

MAX_MODEL_BYTES = 100 * 1024 * 1024  # 100MB per model file
MAX_ESTIMATED_PRICE = Decimal("100000000")  # fits NUMERIC(10,2)


class ModelFileTooLarge(AppError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE


def parse_specifications(raw: str | None) -> dict[str, Any]:
    """Lenient: anything that is not a JSON object becomes {}. NaN and Infinity become null."""
    if not raw:
        return {}
    try:
        value = json.loads(raw, parse_constant=lambda _: None)
    except ValueError:
        logger.debug("Quote specifications were not valid JSON; ignoring")
        return {}
    return value if isinstance(value, dict) else {}


def estimated_price_from(specifications: dict[str, Any]) -> Decimal | None:
    raw = specifications.get("estimatedPrice")
    if raw is None or raw == "":
        return None
    try:
        value = Decimal(str(raw)).quantize(Decimal("0.01"))
    except InvalidOperation:
        return None
    if not value.is_finite() or not 0 <= value < MAX_ESTIMATED_PRICE:
        return None
    return value


class QuoteService:
    """
    Custom print requests: the customer uploads a model file with print
    settings; staff review it and set a final status / price.
    """

    def __init__(self, repo: QuoteRepository, notifications: NotificationService):
        self.repo = repo
        self.notifications = notifications

    def request_quote(
        self,
        session: Session,
        user: User,
        *,
        file_name: str | None,
        file_bytes: bytes | None,
        content_type: str | None,
        email: str | None,
        phone: str | None,
        notes: str | None,
        specifications: str | None,
        background_tasks: BackgroundTasks,
    ) -> Quote:
        if not file_bytes or not file_name:
            raise ValidationError("No file uploaded")
        if len(file_bytes) > MAX_MODEL_BYTES:
            raise ModelFileTooLarge("File too large (max 100MB).")

        specs = parse_specifications(specifications)
        contact_email = (email or "").strip() or user.email
        contact_phone = (phone or "").strip() or user.phone_number

        path = f"quotes/models/{safe_object_name(file_name)}"
        file_url = upload_to_storage(path, file_bytes, content_type or "application/octet-stream")

        quote = Quote(
            user_id=user.id,
            email=contact_email,
            phone=contact_phone,
            file_url=file_url,
            file_name=file_name,
            specifications=specs,
            estimated_price=estimated_price_from(specs),
            admin_notes=(notes or "").strip() or None,
            status="pending",
        )
        quote = self.repo.save(session, quote)
        logger.info("Quote %s requested for %s", quote.id, file_name)

        self.notifications.schedule(
            background_tasks,
            self.notifications.send_quote_to_staff,
            file_name,
            file_bytes,
            contact_email,
            contact_phone,
            notes,
            specs,
            quote.estimated_price,
        )
        self.notifications.schedule(
            background_tasks,
            self.notifications.send_quote_confirmation,
            contact_email,
            file_name,
        )
        return quote

    def list_my_quotes(self, session: Session, user: User) -> list[Quote]:
        return self.repo.list_for_user(session, user.id)

    def list_all_quotes(
        self,
        session: Session,
        status_filter: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Quote]:
        return self.repo.list_all(session, status=status_filter, skip=skip, limit=limit)

    def update_status(
        self,
        session: Session,
        quote_id: uuid.UUID,
        payload: QuoteStatusUpdate,
    ) -> Quote:
        quote = self.repo.get_by_id(session, quote_id)
        if not quote:
            raise NotFoundError("Quote not found")

        quote.status = payload.status
        if payload.estimated_price is not None:
            quote.estimated_price = payload.estimated_price
        if payload.admin_notes is not None:
            quote.admin_notes = payload.admin_notes
        quote.updated_at = datetime.now(timezone.utc)
        return self.repo.save(session, quote)
