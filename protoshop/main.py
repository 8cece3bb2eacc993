# protoshop/main.py
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from protoshop.core.config import Settings, get_settings
from protoshop.core.errors import AppError
from protoshop.core.logging import configure_logging, get_logger
from protoshop.database import create_db_and_tables

# Import models so SQLModel metadata is populated before create_all()
from protoshop.models import user as _user_models  # noqa: F401
from protoshop.models import product as _product_models  # noqa: F401
from protoshop.models import cart as _cart_models  # noqa: F401
from protoshop.models import order as _order_models  # noqa: F401
from protoshop.models import quote as _quote_models  # noqa: F401

# Routers
from protoshop.routers.auth import router as auth_router
from protoshop.routers.users import router as users_router
from protoshop.routers.products import router as products_router
from protoshop.routers.cart import router as cart_router
from protoshop.routers.orders import router as orders_router
from protoshop.routers.quotes import router as quotes_router

logger = get_logger("protoshop")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Verify DB connectivity and create tables.

    Shutdown:
      - No special cleanup needed for sync engine.
    """
    logger.info("Startup: connecting to database...")
    try:
        create_db_and_tables()
        logger.info("Startup: DB connection OK, tables verified.")
    except Exception:
        logger.exception("Startup: DB connection FAILED")
        raise
    yield


def register_error_handlers(app: FastAPI, settings: Settings) -> None:
    """Every error leaves the API as {"error": "<message>"}."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        details = [
            {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg")}
            for err in exc.errors()
        ]
        message = details[0]["message"] if details else "Invalid request"
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": message, "details": details},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        content = {"error": "Internal Server Error"}
        if not settings.is_production:
            content["trace"] = "".join(traceback.format_exception(exc))
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="0.1.0",
        lifespan=lifespan,
    )

    # --- CORS configuration ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app, settings)

    for router in (
        auth_router,
        users_router,
        products_router,
        cart_router,
        orders_router,
        quotes_router,
    ):
        app.include_router(router, prefix=settings.API_PREFIX)

    @app.get(f"{settings.API_PREFIX}/health")
    def health():
        """Health check endpoint."""
        return {"status": "ok", "service": "protoshop-backend"}

    return app


app = create_app()
