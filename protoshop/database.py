# protoshop/database.py
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session

from protoshop.core.config import get_settings

settings = get_settings()

# ---------------------------------------------------------
# Postgres (production):
#
# - sslmode=require   : enforce SSL when running in the cloud
# - pool_size=5       : managed Postgres plans cap client connections
# - pool_pre_ping=True: validate connections before using them
#
# SQLite (local dev / tests):
#
# - check_same_thread=False: FastAPI runs sync endpoints in a threadpool
# - StaticPool for in-memory URLs so every session sees the same database
# ---------------------------------------------------------


def _build_engine(db_url: str):
    if db_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if db_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(db_url, echo=False, **kwargs)

    # Append sslmode=require if it is not already present
    if "sslmode=" not in db_url and "localhost" not in db_url:
        db_url += "&sslmode=require" if "?" in db_url else "?sslmode=require"

    return create_engine(
        db_url,
        echo=False,  # set to True if you want to debug SQL queries
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=5,
    )


engine = _build_engine(settings.DATABASE_URL)


def create_db_and_tables() -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    SQLModel.metadata.create_all(engine)


def get_session():
    """
    FastAPI dependency that yields a SQLModel Session.

    Usage:

        @router.get("/example")
        def example_endpoint(session: Session = Depends(get_session)):
            ...
    """
    with Session(engine) as session:
        yield session
