import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["ENVIRONMENT"] = "test"
os.environ["ADMIN_EMAIL"] = "staff@example.com"
os.environ["PHONEPE_CALLBACK_USERNAME"] = "merchant"
os.environ["PHONEPE_CALLBACK_PASSWORD"] = "hunter2"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from protoshop.core.config import get_settings
from protoshop.core.payment_gateway import PaymentState
from protoshop.core.security import create_access_token, hash_password
from protoshop.database import engine
from protoshop.main import app
from protoshop.models.product import Product
from protoshop.models.user import User
from protoshop.routers import orders as orders_router
from protoshop.routers.orders import get_order_service
from protoshop.services import product_service, quote_service
from protoshop.services.notification_service import (
    NotificationService,
    get_notification_service,
)
from protoshop.services.order_service import OrderService


class RecordingEmailClient:
    def __init__(self):
        self.sent: list[dict] = []

    def send_email(self, to_email, subject, text_body, html_body=None, attachments=None):
        self.sent.append(
            {
                "to": to_email,
                "subject": subject,
                "text": text_body,
                "html": html_body,
                "attachments": attachments or [],
            }
        )

    def subjects(self) -> list[str]:
        return [m["subject"] for m in self.sent]


class FakeGateway:
    name = "phonepe"

    def __init__(self):
        self.initiated: list[tuple[str, Decimal, str, str | None]] = []
        self.states: dict[str, PaymentState] = {}
        self.initiate_error: Exception | None = None
        self.status_error: Exception | None = None

    def initiate(self, order_id, amount, payer_id, phone=None):
        if self.initiate_error:
            raise self.initiate_error
        self.initiated.append((order_id, amount, payer_id, phone))
        return f"https://pay.example.test/checkout/{order_id}"

    def check_status(self, order_id):
        if self.status_error:
            raise self.status_error
        return self.states.get(order_id, PaymentState.PENDING)


@pytest.fixture(autouse=True)
def db():
    SQLModel.metadata.create_all(engine)
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(db):
    with Session(engine) as s:
        yield s


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def email_client():
    return RecordingEmailClient()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def order_settings(settings):
    """Settings handed to the order service; tests may replace fields."""
    return {"value": settings}


@pytest.fixture
def client(settings, email_client, gateway, order_settings):
    notifications = NotificationService(email_client, settings)

    def _order_service():
        return OrderService(
            orders_router.order_repo,
            orders_router.product_repo,
            orders_router.cart_repo,
            orders_router.user_repo,
            notifications,
            order_settings["value"],
            gateways={gateway.name: gateway},
        )

    app.dependency_overrides[get_notification_service] = lambda: notifications
    app.dependency_overrides[get_order_service] = _order_service
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def uploads(monkeypatch):
    """Replace blob storage with an in-memory record of uploads."""
    stored: dict[str, bytes] = {}

    def fake_upload(path, file_bytes, content_type=None):
        stored[path] = file_bytes
        return f"https://storage.example.test/assets/{path}"

    monkeypatch.setattr(product_service, "upload_to_storage", fake_upload)
    monkeypatch.setattr(product_service, "delete_public_url", lambda url: None)
    monkeypatch.setattr(quote_service, "upload_to_storage", fake_upload)
    return stored


@pytest.fixture
def make_user(session, settings):
    counter = {"n": 0}

    def _make(role: str = "user", email: str | None = None, password: str = "secret123"):
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            password_hash=hash_password(password),
            full_name=f"Test User {counter['n']}",
            role=role,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        token = create_access_token(settings, user.id, user.email, user.role)
        return user, {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture
def make_product(session):
    def _make(
        name: str = "PLA Filament",
        price: str = "100.00",
        stock: int = 10,
        category: str = "filament",
        **extra,
    ) -> Product:
        product = Product(
            name=name,
            price=Decimal(price),
            stock=stock,
            category=category,
            **extra,
        )
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    return _make


@pytest.fixture
def fetch():
    """Read a row through a fresh session, bypassing any cached state."""

    def _fetch(model, pk):
        with Session(engine) as s:
            return s.get(model, pk)

    return _fetch


@pytest.fixture
def address():
    return {
        "fullName": "Asha Rao",
        "phone": "9876543210",
        "addressLine1": "12 MG Road",
        "city": "Bengaluru",
        "state": "KA",
        "pincode": "560001",
    }
