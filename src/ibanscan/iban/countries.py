from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional


@dataclass(frozen=True)
class CountryRule:
    code: str
    expected_length: int
    name_en: str
    name_ar: str


UNKNOWN_NAMES = {
    "en": "Unknown",
    "ar": "غير معروف",
}

DEFAULT_LANG = "en"

_RULES = (
    CountryRule("IQ", 23, "Iraq", "العراق"),
    CountryRule("SA", 24, "Saudi Arabia", "السعودية"),
    CountryRule("AE", 23, "United Arab Emirates", "الإمارات"),
    CountryRule("KW", 30, "Kuwait", "الكويت"),
    CountryRule("BH", 22, "Bahrain", "البحرين"),
    CountryRule("QA", 29, "Qatar", "قطر"),
    CountryRule("OM", 23, "Oman", "عمان"),
    CountryRule("JO", 30, "Jordan", "الأردن"),
    CountryRule("EG", 29, "Egypt", "مصر"),
    CountryRule("LB", 28, "Lebanon", "لبنان"),
)

# Closed set, built once at import.
COUNTRY_RULES: Mapping[str, CountryRule] = MappingProxyType({r.code: r for r in _RULES})

_ALL_CODES = frozenset(COUNTRY_RULES)


def _clean_code(code: Optional[str]) -> str:
    return str(code or "").strip().upper()


def get_rule(code: Optional[str]) -> Optional[CountryRule]:
    return COUNTRY_RULES.get(_clean_code(code))


def lookup_expected_length(code: Optional[str]) -> Optional[int]:
    """Expected total IBAN length for a supported country, otherwise None."""
    rule = get_rule(code)
    return rule.expected_length if rule else None


def display_name(code: Optional[str], lang: str = DEFAULT_LANG) -> str:
    """
    Localized country name for display.

    Unsupported codes get the "unknown" sentinel; unsupported languages fall
    back to English.
    """
    lang = lang if lang in UNKNOWN_NAMES else DEFAULT_LANG
    rule = get_rule(code)
    if rule is None:
        return UNKNOWN_NAMES[lang]
    return rule.name_ar if lang == "ar" else rule.name_en


def all_codes() -> frozenset[str]:
    return _ALL_CODES
