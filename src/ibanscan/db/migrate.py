from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.engine import Engine

from .base import Base


def _ensure_indexes(engine: Engine) -> None:
    # Deterministic and idempotent; no external migration tool.
    with engine.begin() as con:
        con.execute(text("CREATE INDEX IF NOT EXISTS ix_iban_history_iban ON iban_history(iban)"))
        con.execute(text("CREATE INDEX IF NOT EXISTS ix_iban_history_created_at ON iban_history(created_at)"))


def init_db(engine: Engine) -> None:
    Base.metadata.create_all(engine)
    _ensure_indexes(engine)
