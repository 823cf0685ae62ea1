"""Database engine and session factory"""

from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from debit_gateway.config import settings


def build_engine(database_url: str, statement_timeout: Optional[float] = None) -> Engine:
    """
    Create an engine for the given URL.

    Store calls run in worker threads, so SQLite connections must be shareable
    across threads. Server databases get a pre-pinged, recycled pool.

    statement_timeout (seconds, default store_timeout_seconds) is enforced by
    the database itself, so a slow statement is cancelled there rather than
    left running after the service has stopped waiting for it.
    """
    if statement_timeout is None:
        statement_timeout = settings.store_timeout_seconds

    if database_url.startswith("sqlite"):
        # SQLite has no statement timeout; bound the wait for its write lock instead
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": statement_timeout},
        )

    connect_args = {}
    if database_url.startswith("postgresql"):
        connect_args["options"] = f"-c statement_timeout={int(statement_timeout * 1000)}"

    return create_engine(
        database_url,
        connect_args=connect_args,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=10,
        pool_recycle=3600,
    )


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Iterator[Session]:
    """Request-scoped session for FastAPI dependencies"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
