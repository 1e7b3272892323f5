from __future__ import annotations

from typing import Mapping

# Letters OCR commonly returns in place of digits. Applied globally, so a
# genuine O or I inside an IBAN tail is turned into a digit as well.
OCR_CONFUSIONS: Mapping[str, str] = {
    "O": "0",
    "I": "1",
}

_TABLE = str.maketrans(dict(OCR_CONFUSIONS))


def correct_ocr_confusions(text: str | None) -> str:
    """Upper-case the text and replace confusable letters with digits."""
    return (text or "").upper().translate(_TABLE)


def confuse_code(code: str) -> str:
    """How a country code looks after `correct_ocr_confusions` ran over it."""
    return code.upper().translate(_TABLE)
