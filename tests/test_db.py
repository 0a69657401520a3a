from __future__ import annotations

from vendorpay.db import build_engine, create_session_factory


def test_sqlite_engine_applies_connection_pragmas(tmp_path) -> None:
    engine = build_engine(f"sqlite:///{tmp_path / 'pragmas.db'}", busy_timeout_ms=1500)
    with engine.connect() as conn:
        assert conn.exec_driver_sql("PRAGMA journal_mode").scalar() == "wal"
        assert conn.exec_driver_sql("PRAGMA busy_timeout").scalar() == 1500
        assert conn.exec_driver_sql("PRAGMA foreign_keys").scalar() == 1
    engine.dispose()


def test_session_factory_does_not_autoflush(tmp_path) -> None:
    engine = build_engine(f"sqlite:///{tmp_path / 'factory.db'}", busy_timeout_ms=1000)
    factory = create_session_factory(engine)
    with factory() as session:
        assert session.autoflush is False
        assert session.bind is engine
    engine.dispose()
