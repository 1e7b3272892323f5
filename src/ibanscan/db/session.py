from __future__ import annotations

import logging

from sqlalchemy import create_engine, event
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import sessionmaker

log = logging.getLogger(__name__)


def make_engine(db_path: str):
    eng = create_engine(
        f"sqlite:///{db_path}",
        future=True,
        pool_pre_ping=True,
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(eng, "connect")
    def _set_sqlite_pragmas(dbapi_connection, connection_record):
        cur = dbapi_connection.cursor()
        try:
            cur.execute("PRAGMA journal_mode=WAL")
            cur.execute("PRAGMA synchronous=NORMAL")
            cur.execute("PRAGMA busy_timeout=5000")
            cur.execute("PRAGMA temp_store=MEMORY")
        except Exception as exc:
            # older SQLite builds reject some pragmas; the history still works
            log.warning("SQLite pragma setup failed: %s", exc)
        finally:
            cur.close()

    return eng


def make_session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False, future=True)


def dispose_engine(engine) -> None:
    """Release pooled SQLite connections (file locks on Windows)."""
    try:
        engine.dispose()
    except DBAPIError as exc:
        log.warning("Engine dispose failed: %s", exc)
