from .checksum import compute_check_digits, is_checksum_valid
from .countries import COUNTRY_RULES, CountryRule, all_codes, display_name, lookup_expected_length
from .formatter import format_iban, mask_iban, normalize_iban
from .validator import FailureReason, ValidationOutcome, describe, validate

country_display_name = display_name

__all__ = [
    "COUNTRY_RULES",
    "CountryRule",
    "FailureReason",
    "ValidationOutcome",
    "all_codes",
    "compute_check_digits",
    "country_display_name",
    "describe",
    "display_name",
    "format_iban",
    "is_checksum_valid",
    "lookup_expected_length",
    "mask_iban",
    "normalize_iban",
    "validate",
]
