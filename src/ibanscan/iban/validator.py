from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from typing import Optional

from ibanscan.iban.checksum import is_checksum_valid
from ibanscan.iban.countries import DEFAULT_LANG, display_name, lookup_expected_length
from ibanscan.iban.formatter import mask_iban, normalize_iban

log = logging.getLogger(__name__)

MIN_LENGTH = 4

# 2 letters, 2 check digits, 15-30 alphanumerics; the per-country length
# has already been enforced when this runs.
_FORMAT_RE = re.compile(r"[A-Z]{2}[0-9]{2}[A-Z0-9]{15,30}")


class FailureReason(str, enum.Enum):
    EMPTY_INPUT = "EmptyInput"
    INVALID_LENGTH = "InvalidLength"
    UNSUPPORTED_COUNTRY = "UnsupportedCountry"
    INVALID_FORMAT = "InvalidFormat"
    INVALID_CHECKSUM = "InvalidChecksum"


@dataclass(frozen=True)
class ValidationOutcome:
    is_valid: bool
    country_code: str
    country_name: str
    length: int
    expected_length: int
    reason: Optional[FailureReason] = None

    def as_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "country_code": self.country_code,
            "country_name": self.country_name,
            "length": self.length,
            "expected_length": self.expected_length,
            "reason": self.reason.value if self.reason else None,
        }


def validate(raw: str | None, lang: str = DEFAULT_LANG) -> ValidationOutcome:
    """
    Classify an IBAN-like string.

    Never raises: every malformed input yields an outcome with a reason.
    Stages short-circuit in a fixed order (empty, minimum length, country,
    country length, format, checksum) and the outcome carries everything
    known up to the failing stage. The country is always taken from the
    first two normalized characters once the input has at least 4 of them.
    """
    iban = normalize_iban(raw)
    length = len(iban)

    if not iban:
        return ValidationOutcome(False, "", "", 0, 0, FailureReason.EMPTY_INPUT)

    if length < MIN_LENGTH:
        return ValidationOutcome(False, "", "", length, 0, FailureReason.INVALID_LENGTH)

    country = iban[:2]
    name = display_name(country, lang)
    expected = lookup_expected_length(country)

    if expected is None:
        return ValidationOutcome(False, country, name, length, 0, FailureReason.UNSUPPORTED_COUNTRY)

    if length != expected:
        return ValidationOutcome(False, country, name, length, expected, FailureReason.INVALID_LENGTH)

    if not _FORMAT_RE.fullmatch(iban):
        return ValidationOutcome(False, country, name, length, expected, FailureReason.INVALID_FORMAT)

    try:
        checksum_ok = is_checksum_valid(iban)
    except Exception:
        # format check already guaranteed a mappable string; this is a defect
        log.exception("checksum stage failed for %s", mask_iban(iban))
        checksum_ok = False

    if not checksum_ok:
        return ValidationOutcome(False, country, name, length, expected, FailureReason.INVALID_CHECKSUM)
    return ValidationOutcome(True, country, name, length, expected)


_MESSAGES = {
    "en": {
        None: "Valid IBAN",
        FailureReason.EMPTY_INPUT: "Please enter an IBAN",
        FailureReason.INVALID_LENGTH: "Invalid IBAN length",
        FailureReason.UNSUPPORTED_COUNTRY: "Unsupported country",
        FailureReason.INVALID_FORMAT: "Invalid IBAN format",
        FailureReason.INVALID_CHECKSUM: "Invalid IBAN check digits",
    },
    "ar": {
        None: "رقم الإيبان صحيح",
        FailureReason.EMPTY_INPUT: "الرجاء إدخال رقم الإيبان",
        FailureReason.INVALID_LENGTH: "طول الإيبان غير صحيح",
        FailureReason.UNSUPPORTED_COUNTRY: "الدولة غير مدعومة",
        FailureReason.INVALID_FORMAT: "تنسيق الإيبان غير صحيح",
        FailureReason.INVALID_CHECKSUM: "رقم التحقق غير صحيح",
    },
}

_LENGTH_DETAIL = {
    "en": "{name}: expected {expected} characters, got {length}",
    "ar": "{name}: المتوقع {expected} حرفاً، الموجود {length}",
}


def describe(outcome: ValidationOutcome, lang: str = DEFAULT_LANG) -> str:
    """Human-readable message for an outcome."""
    lang = lang if lang in _MESSAGES else DEFAULT_LANG
    msg = _MESSAGES[lang][outcome.reason]
    if outcome.reason is FailureReason.INVALID_LENGTH and outcome.expected_length:
        detail = _LENGTH_DETAIL[lang].format(
            name=outcome.country_name,
            expected=outcome.expected_length,
            length=outcome.length,
        )
        return f"{msg} ({detail})"
    if outcome.reason is FailureReason.UNSUPPORTED_COUNTRY:
        return f"{msg}: {outcome.country_code}"
    if outcome.is_valid:
        return f"{msg} ({outcome.country_name})"
    return msg
