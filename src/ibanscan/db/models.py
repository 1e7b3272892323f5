from __future__ import annotations

import datetime as dt

from sqlalchemy import Boolean, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ibanscan.iban.formatter import format_iban
from ibanscan.utils.time import utc_now_naive

from .base import Base


class IbanRecord(Base):
    __tablename__ = "iban_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # canonical form: no spaces, upper-case
    iban: Mapped[str] = mapped_column(String(64))
    country_code: Mapped[str] = mapped_column(String(2), default="")
    country_name: Mapped[str] = mapped_column(String(64), default="")
    is_valid: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utc_now_naive)

    __table_args__ = (
        Index("ix_iban_history_iban", "iban"),
        Index("ix_iban_history_created_at", "created_at"),
    )

    @property
    def formatted_iban(self) -> str:
        return format_iban(self.iban)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "iban": self.iban,
            "formatted": self.formatted_iban,
            "country_code": self.country_code,
            "country_name": self.country_name,
            "is_valid": bool(self.is_valid),
            "created_at": self.created_at.isoformat(timespec="seconds") if self.created_at else None,
        }
