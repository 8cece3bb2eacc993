# protoshop/routers/quotes.py
import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, UploadFile, status
from sqlmodel import Session

from protoshop.core.auth import get_current_user, require_admin
from protoshop.database import get_session
from protoshop.models.user import User
from protoshop.repositories.quote_repo import QuoteRepository
from protoshop.schemas.quote import QuoteRead, QuoteRequested, QuoteStatusUpdate
from protoshop.services.notification_service import (
    NotificationService,
    get_notification_service,
)
from protoshop.services.quote_service import QuoteService

router = APIRouter(prefix="/quotes", tags=["Quotes"])

repo = QuoteRepository()


def get_quote_service(
    notifications: NotificationService = Depends(get_notification_service),
) -> QuoteService:
    return QuoteService(repo, notifications)


@router.post("/request", response_model=QuoteRequested, status_code=status.HTTP_201_CREATED)
def request_quote(
    background_tasks: BackgroundTasks,
    file: UploadFile | None = File(None),
    email: str | None = Form(None),
    phone: str | None = Form(None),
    notes: str | None = Form(None),
    specifications: str | None = Form(None),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    service: QuoteService = Depends(get_quote_service),
):
    """
    Upload a 3D model for a custom print quote (max 100MB).

    `specifications` is the JSON produced by the storefront's analyzer;
    its `estimatedPrice` becomes the initial estimate. Staff get the model
    by email and the customer gets a confirmation.
    """
    quote = service.request_quote(
        session,
        current_user,
        file_name=file.filename if file else None,
        file_bytes=file.file.read() if file else None,
        content_type=file.content_type if file else None,
        email=email,
        phone=phone,
        notes=notes,
        specifications=specifications,
        background_tasks=background_tasks,
    )
    return QuoteRequested(
        message="Quote requested successfully",
        quote=QuoteRead.model_validate(quote.model_dump()),
    )


@router.get("/my", response_model=list[QuoteRead])
def list_my_quotes(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    service: QuoteService = Depends(get_quote_service),
):
    return service.list_my_quotes(session, current_user)


# -------- Admin endpoints --------


@router.get(
    "/admin/all",
    response_model=list[QuoteRead],
    dependencies=[Depends(require_admin)],
)
def list_all_quotes(
    session: Session = Depends(get_session),
    status_filter: str | None = None,
    skip: int = 0,
    limit: int = 50,
    service: QuoteService = Depends(get_quote_service),
):
    """
    All quote requests, newest first (admin only).
    Optional `status_filter` narrows to one status.
    """
    return service.list_all_quotes(session, status_filter, skip, limit)


@router.put(
    "/{quote_id}/status",
    response_model=QuoteRead,
    dependencies=[Depends(require_admin)],
)
def update_quote_status(
    quote_id: uuid.UUID,
    payload: QuoteStatusUpdate,
    session: Session = Depends(get_session),
    service: QuoteService = Depends(get_quote_service),
):
    """
    Set status (pending | reviewed | approved | rejected | paid), optionally
    with a revised price or notes (admin only).
    """
    return service.update_status(session, quote_id, payload)
