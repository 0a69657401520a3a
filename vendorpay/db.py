from __future__ import annotations

from collections.abc import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from vendorpay.config import get_settings


def _is_sqlite(database_url: str) -> bool:
    return database_url.startswith("sqlite")


def build_engine(database_url: str, *, busy_timeout_ms: int) -> Engine:
    """Create an engine whose connections wait at most ``busy_timeout_ms`` for the store.

    SQLite gets WAL journaling, a busy timeout and enforced foreign keys on
    every new connection. Other backends get a bounded pool checkout instead.
    """
    timeout_seconds = busy_timeout_ms / 1000
    if _is_sqlite(database_url):
        engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            connect_args={"check_same_thread": False, "timeout": timeout_seconds},
        )

        @event.listens_for(engine, "connect")
        def _apply_sqlite_pragmas(dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL;")
            cursor.execute(f"PRAGMA busy_timeout={busy_timeout_ms};")
            cursor.execute("PRAGMA foreign_keys=ON;")
            cursor.close()

        return engine

    return create_engine(database_url, future=True, pool_pre_ping=True, pool_timeout=timeout_seconds)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


settings = get_settings()
engine = build_engine(settings.database_url, busy_timeout_ms=settings.sqlite_busy_timeout_ms)
SessionLocal = create_session_factory(engine)


def get_db_session() -> Generator[Session, None, None]:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
