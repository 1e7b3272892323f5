from __future__ import annotations

import logging

log = logging.getLogger(__name__)

_DIGITS = frozenset("0123456789")
_LETTERS = frozenset("ABCDEFGHIJKLMNOPQRSTUVWXYZ")
_ALPHABET = _DIGITS | _LETTERS


def _char_value(ch: str) -> int:
    """A=10, B=11, ..., Z=35; digits map to themselves."""
    if ch in _DIGITS:
        return ord(ch) - ord("0")
    if ch in _LETTERS:
        return ord(ch) - ord("A") + 10
    raise ValueError(f"character not mappable to IBAN digits: {ch!r}")


def _mod97(value: str) -> int:
    """
    Remainder of the decimal numeral produced by mapping `value` mod 97.

    Streams Horner's rule over the mapped digits, so the intermediate value
    never exceeds 97 * 10 + 9 regardless of IBAN length.
    """
    acc = 0
    for ch in value:
        for digit in str(_char_value(ch)):
            acc = (acc * 10 + int(digit)) % 97
    return acc


def is_checksum_valid(normalized: str) -> bool:
    """Offline IBAN checksum validation (ISO 7064 MOD 97-10)."""
    s = normalized or ""
    if len(s) < 4 or not _ALPHABET.issuperset(s):
        log.debug("checksum skipped for malformed input (len=%d)", len(s))
        return False
    # Move country code and check digits to the end
    rearranged = s[4:] + s[:4]
    return _mod97(rearranged) == 1


def compute_check_digits(country_code: str, bban: str) -> str:
    """
    Check digits for `country_code` + `bban`, zero padded to two characters.

    Inverse of the validation: the remainder of bban + code + "00" is
    subtracted from 98.
    """
    code = str(country_code or "").upper()
    body = str(bban or "").upper()
    if len(code) != 2 or not _LETTERS.issuperset(code):
        raise ValueError(f"invalid country code: {country_code!r}")
    if not body or not _ALPHABET.issuperset(body):
        raise ValueError(f"invalid BBAN: {bban!r}")
    return f"{98 - _mod97(body + code + '00'):02d}"
