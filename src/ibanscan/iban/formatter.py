from __future__ import annotations

import re

_WS_RE = re.compile(r"\s+")

GROUP_SIZE = 4


def normalize_iban(raw: str | None) -> str:
    """Normalize IBAN-like string: remove all whitespace, upper-case."""
    return _WS_RE.sub("", raw or "").upper()


def format_iban(raw: str | None) -> str:
    """Group the normalized IBAN in blocks of four separated by single spaces."""
    clean = normalize_iban(raw)
    return " ".join(clean[i:i + GROUP_SIZE] for i in range(0, len(clean), GROUP_SIZE))


def mask_iban(raw: str | None) -> str:
    clean = normalize_iban(raw)
    if len(clean) < 8:
        return clean
    return clean[:4] + "*" * (len(clean) - 8) + clean[-4:]
