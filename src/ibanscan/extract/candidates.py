from __future__ import annotations

import logging
import re
from typing import Dict, Iterator, List, Optional, Tuple

from ibanscan.extract.ocr_confusion import confuse_code, correct_ocr_confusions
from ibanscan.iban.countries import DEFAULT_LANG, all_codes, lookup_expected_length
from ibanscan.iban.validator import ValidationOutcome, validate

log = logging.getLogger(__name__)

# Corrected-text spelling of each supported code -> real code ("1Q" -> "IQ").
_CODE_BY_SCAN_FORM: Dict[str, str] = {confuse_code(c): c for c in sorted(all_codes())}

# Tail admits whitespace and is looser than any per-country length, so
# spaced-out groups in scanned text still produce a match.
_SCAN_RE = re.compile(
    r"(?P<country>" + "|".join(re.escape(k) for k in _CODE_BY_SCAN_FORM) + r")"
    r"[0-9]{2}[A-Z0-9\s]{15,34}"
)
_TOKEN_RE = re.compile(r"\S+")


def _fit_candidate(country: str, matched: str) -> Tuple[Optional[str], int]:
    """
    Strip whitespace from a scan match and keep it when its length equals
    the expected length for `country`.

    The match is consumed one whitespace-separated run at a time, so words
    trailing the IBAN ("... 7519 thanks") are dropped, while a run that is
    glued past the expected length rejects the match. Returns the candidate
    (or None) and the offset within `matched` where scanning resumes.
    """
    expected = lookup_expected_length(country) or 0
    parts: List[str] = []
    size = 0
    first_end: Optional[int] = None
    for tok in _TOKEN_RE.finditer(matched):
        if first_end is None:
            first_end = tok.end()
        parts.append(tok.group(0))
        size += len(tok.group(0))
        if size == expected:
            return country + "".join(parts)[2:], tok.end()
        if size > expected:
            break
    return None, first_end or len(matched)


def iter_candidates(text: str | None) -> Iterator[str]:
    """
    Lazily yield structurally plausible IBANs found in free-form (OCR) text.

    Candidates come out normalized, in order of first appearance, each
    distinct string once. No checksum is run here.
    """
    corrected = correct_ocr_confusions(text)
    seen: set[str] = set()
    pos = 0
    while True:
        m = _SCAN_RE.search(corrected, pos)
        if m is None:
            return
        country = _CODE_BY_SCAN_FORM[m.group("country")]
        candidate, offset = _fit_candidate(country, m.group(0))
        pos = m.start() + offset
        if candidate is None:
            log.debug("scan match rejected at %d (country=%s)", m.start(), country)
            continue
        if candidate in seen:
            continue
        seen.add(candidate)
        yield candidate


def extract_candidates(text: str | None) -> List[str]:
    return list(iter_candidates(text))


def first_valid_candidate(
    text: str | None, lang: str = DEFAULT_LANG
) -> Optional[Tuple[str, ValidationOutcome]]:
    """First extracted candidate that also passes full validation."""
    for candidate in iter_candidates(text):
        outcome = validate(candidate, lang)
        if outcome.is_valid:
            return candidate, outcome
    return None
