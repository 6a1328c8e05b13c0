"""Engine, session factory and declarative base for the SQL document store."""

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from guestbot.core.settings import settings


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""


# Register the ORM tables on Base.metadata.
import guestbot.models  # noqa: E402,F401


def build_engine(url: str | None = None) -> Engine:
    """Create an engine for ``url`` (defaults to the configured database)."""
    return create_engine(
        url or settings.database_url,
        pool_pre_ping=True,
        echo=settings.sql_debug,
    )


engine = build_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def create_tables(bind: Engine | None = None) -> None:
    """Create the documents table if it does not exist."""
    Base.metadata.create_all(bind=bind or engine)
