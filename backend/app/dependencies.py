from contextlib import contextmanager
import os
import urllib.parse
from typing import Iterator, Optional, Union

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

load_dotenv()

# Safe conversion utilities for DECIMAL/TEXT to float conversion
def safe_float(value: Optional[Union[str, float, int]]) -> float:
    """
    Safely convert a value to float, handling None, empty strings, and invalid values.

    Args:
        value: Value to convert (can be str, float, int, Decimal, or None)

    Returns:
        float: Converted value or 0.0 if conversion fails
    """
    if value is None:
        return 0.0

    if isinstance(value, str):
        value = value.strip()
        if not value or value.lower() in ['null', 'none', 'nan']:
            return 0.0

    try:
        return float(value)
    except (ValueError, TypeError):
        return 0.0


def optional_float(value) -> Optional[float]:
    """Float for DECIMAL columns that may be NULL."""
    return float(value) if value is not None else None


def build_database_url() -> str:
    """DATABASE_URL wins; otherwise assemble a PostgreSQL URL from POSTGRES_* settings."""
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return database_url

    POSTGRES_USER = os.getenv("POSTGRES_USER")
    POSTGRES_PASSWORD = urllib.parse.quote_plus(os.getenv("POSTGRES_PASSWORD", ""))
    POSTGRES_DB = os.getenv("POSTGRES_DB")
    POSTGRES_HOST = os.getenv("POSTGRES_HOST")
    POSTGRES_PORT = os.getenv("POSTGRES_PORT", "5432")
    return f"postgresql://{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB}"


SQLALCHEMY_DATABASE_URL = build_database_url()


def _engine_options(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        # In-memory databases live as long as their single connection
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            options["poolclass"] = StaticPool
        return options
    return {
        "connect_args": {"connect_timeout": 10},
        "pool_timeout": 20,
        "pool_recycle": 3600,
        "pool_pre_ping": True,
    }


engine = create_engine(SQLALCHEMY_DATABASE_URL, **_engine_options(SQLALCHEMY_DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# Dependency to get the database session
def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def run_atomic(db: Session) -> Iterator[Session]:
    """
    Unit of work: everything done on ``db`` inside the block commits together,
    or is rolled back if the block raises.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
