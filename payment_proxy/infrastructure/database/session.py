"""Database engine and session management"""

from functools import lru_cache
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from payment_proxy.config import settings
from payment_proxy.infrastructure.database.models import Base


@lru_cache(maxsize=None)
def get_engine(database_url: str | None = None) -> Engine:
    """Create the pooled engine once per URL, on first use"""
    url = database_url or settings.database_url
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})

    # Pool: max 20 connections, recycled hourly to avoid stale connections
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=10,
        pool_recycle=3600,
    )


@lru_cache(maxsize=None)
def get_session_factory(database_url: str | None = None) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine(database_url))


def init_db(database_url: str | None = None) -> None:
    """Create tables that do not exist yet"""
    Base.metadata.create_all(bind=get_engine(database_url))


def get_db(request: Request) -> Iterator[Session]:
    """Dependency injection for database sessions bound to the app's database"""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
