from __future__ import annotations

from typing import List, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from ibanscan.iban.countries import DEFAULT_LANG
from ibanscan.iban.formatter import normalize_iban
from ibanscan.iban.validator import validate

from .models import IbanRecord


def get_by_iban(session: Session, iban: str) -> Optional[IbanRecord]:
    """Exact lookup by canonical IBAN (input is normalized first)."""
    canonical = normalize_iban(iban)
    return session.execute(
        select(IbanRecord).where(IbanRecord.iban == canonical).order_by(IbanRecord.id).limit(1)
    ).scalar_one_or_none()


def save_iban(session: Session, raw: str, lang: str = DEFAULT_LANG) -> Tuple[Optional[IbanRecord], bool]:
    """
    Persist an IBAN into the history.

    The canonical string is validated again here; a validity flag computed
    elsewhere is never trusted, and an IBAN that does not validate is not
    stored: (None, False) is returned. If the same canonical IBAN is already
    stored, that record is returned and nothing is inserted. Returns
    (record, created). The caller commits.
    """
    canonical = normalize_iban(raw)
    outcome = validate(canonical, lang)
    if not outcome.is_valid:
        return None, False

    existing = get_by_iban(session, canonical)
    if existing is not None:
        return existing, False

    rec = IbanRecord(
        iban=canonical,
        country_code=outcome.country_code,
        country_name=outcome.country_name,
        is_valid=True,
    )
    session.add(rec)
    session.flush()
    return rec, True


def list_records(session: Session, limit: int | None = None) -> List[IbanRecord]:
    stmt = select(IbanRecord).order_by(IbanRecord.created_at.desc(), IbanRecord.id.desc())
    if limit is not None:
        stmt = stmt.limit(int(limit))
    return list(session.execute(stmt).scalars())


def search_records(session: Session, query: str) -> List[IbanRecord]:
    """Substring search on the canonical IBAN, newest first."""
    needle = normalize_iban(query)
    if not needle:
        return list_records(session)
    pattern = "%" + needle.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"
    stmt = (
        select(IbanRecord)
        .where(IbanRecord.iban.like(pattern, escape="\\"))
        .order_by(IbanRecord.created_at.desc(), IbanRecord.id.desc())
    )
    return list(session.execute(stmt).scalars())


def delete_record(session: Session, record_id: int) -> bool:
    rec = session.get(IbanRecord, int(record_id))
    if rec is None:
        return False
    session.delete(rec)
    session.flush()
    return True


def clear_records(session: Session) -> int:
    res = session.execute(delete(IbanRecord))
    return int(res.rowcount or 0)


def count_records(session: Session) -> int:
    return int(session.execute(select(func.count()).select_from(IbanRecord)).scalar_one())
