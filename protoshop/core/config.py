# protoshop/core/config.py
from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Built once by `get_settings()` and handed to every service constructor.

    Required in production (.env):
      - DATABASE_URL
      - JWT_SECRET
      - PHONEPE_CLIENT_ID / PHONEPE_CLIENT_SECRET
      - SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY (uploads)
      - SMTP_HOST / SMTP_USERNAME / SMTP_PASSWORD (emails)
    """

    PROJECT_NAME: str = "ProtoShop API"
    API_PREFIX: str = "/api"

    # development | production
    ENVIRONMENT: str = "development"

    DATABASE_URL: str = "sqlite:///./protoshop.db"

    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://localhost:8080",
        "http://localhost:3000",
    ]

    # JWT issuing/verification
    JWT_SECRET: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_MINUTES: int = 7 * 24 * 60

    # Checkout pricing rules
    TAX_RATE: Decimal = Decimal("0.18")
    SHIPPING_FLAT_FEE: Decimal = Decimal("50.00")
    COD_SURCHARGE: Decimal = Decimal("30.00")
    COD_MAX_SUBTOTAL: Decimal = Decimal("999.00")
    PREPAID_ONLY_CATEGORIES: list[str] = ["3d_printer"]
    FREE_SHIPPING_CATEGORIES: list[str] = ["digital_model"]

    # Stock is written off on cancellation unless this is enabled
    RESTOCK_ON_CANCEL: bool = False

    # PhonePe (redirect payment gateway)
    PHONEPE_ENV: str = "sandbox"
    PHONEPE_CLIENT_ID: str = ""
    PHONEPE_CLIENT_SECRET: str = ""
    PHONEPE_CLIENT_VERSION: str = "1"
    PHONEPE_TIMEOUT_SECONDS: float = 10.0
    PHONEPE_CALLBACK_USERNAME: str | None = None
    PHONEPE_CALLBACK_PASSWORD: str | None = None

    FRONTEND_URL: str = "http://localhost:5173"
    BACKEND_URL: str = "http://localhost:3001"

    # Supabase Storage (uploaded images and model files)
    SUPABASE_URL: str | None = None
    SUPABASE_SERVICE_ROLE_KEY: str | None = None
    STORAGE_BUCKET: str = "assets"

    # SMTP
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_FROM_EMAIL: str | None = None
    SMTP_FROM_NAME: str = "ProtoShop"
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False

    # Staff inbox for custom print quotes
    ADMIN_EMAIL: str | None = None

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
