from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from ibanscan.db import queries
from ibanscan.db.models import IbanRecord
from ibanscan.iban.countries import DEFAULT_LANG
from ibanscan.iban.formatter import mask_iban
from ibanscan.utils.forensic_context import forensic_scope
from ibanscan.utils.logging_setup import log_event


class HistoryService:
    """Saved IBANs; one session per operation."""

    def __init__(self, session_factory, logger: logging.Logger | None = None, lang: str = DEFAULT_LANG):
        self.sf = session_factory
        self.log = logger or logging.getLogger(__name__)
        self.lang = lang

    def save(self, raw: str) -> Tuple[Optional[IbanRecord], bool]:
        with forensic_scope(phase="history.save"), self.sf() as session:
            rec, created = queries.save_iban(session, raw, self.lang)
            session.commit()
        if rec is None:
            log_event(self.log, "history.reject", "IBAN not saved, validation failed", iban=mask_iban(raw))
            return None, False
        log_event(
            self.log,
            "history.save",
            "IBAN saved" if created else "IBAN already in history",
            record_id=rec.id,
            iban=mask_iban(rec.iban),
            created=created,
        )
        return rec, created

    def list(self, limit: int | None = None) -> List[IbanRecord]:
        with self.sf() as session:
            return queries.list_records(session, limit)

    def search(self, query: str) -> List[IbanRecord]:
        with self.sf() as session:
            return queries.search_records(session, query)

    def delete(self, record_id: int) -> bool:
        with forensic_scope(phase="history.delete", record_id=record_id), self.sf() as session:
            ok = queries.delete_record(session, record_id)
            session.commit()
        if ok:
            log_event(self.log, "history.delete", "History record deleted", record_id=record_id)
        return ok

    def clear(self) -> int:
        with forensic_scope(phase="history.clear"), self.sf() as session:
            n = queries.clear_records(session)
            session.commit()
        log_event(self.log, "history.clear", "History cleared", deleted=n)
        return n

    def count(self) -> int:
        with self.sf() as session:
            return queries.count_records(session)
