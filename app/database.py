# app/database.py
from functools import lru_cache

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session

from app.core.config import get_settings

# ---------------------------------------------------------
# Supabase Postgres connection (via pooler)
#
# - sslmode=require   : enforce SSL when running in the cloud
# - pool_size=1       : keep only 1 connection to the Supabase pooler
# - max_overflow=0    : do not open extra connections beyond the pool
# - pool_pre_ping=True: validate connections before using them
#
# Supabase Session mode limits the number of clients; SQLAlchemy's
# default pool (5+) per process quickly hits
#   "MaxClientsInSessionMode: max clients reached"
# ---------------------------------------------------------


def normalize_database_url(db_url: str) -> str:
    """Append sslmode=require to Postgres URLs that do not set it."""
    if not db_url.startswith("postgres"):
        return db_url
    if "sslmode=" in db_url:
        return db_url
    separator = "&" if "?" in db_url else "?"
    return f"{db_url}{separator}sslmode=require"


@lru_cache
def get_engine() -> Engine:
    """Build the process-wide engine on first use."""
    db_url = normalize_database_url(get_settings().DATABASE_URL)
    if db_url.startswith("postgres"):
        return create_engine(
            db_url,
            echo=False,  # set to True if you want to debug SQL queries
            pool_pre_ping=True,
            pool_size=1,
            max_overflow=0,
        )
    return create_engine(db_url, echo=False)


def create_db_and_tables(engine: Engine | None = None) -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    SQLModel.metadata.create_all(engine or get_engine())


def get_session():
    """
    FastAPI dependency that yields a SQLModel Session.

    Usage:

        from fastapi import Depends

        @router.get("/example")
        def example_endpoint(session: Session = Depends(get_session)):
            ...
    """
    with Session(get_engine()) as session:
        yield session
