from __future__ import annotations

import logging

import pytest

from ibanscan.iban import validator
from ibanscan.iban.checksum import compute_check_digits
from ibanscan.iban.countries import COUNTRY_RULES
from ibanscan.iban.validator import FailureReason, describe, validate


@pytest.mark.parametrize("code", sorted(COUNTRY_RULES))
def test_generated_iban_valid_for_every_country(code: str) -> None:
    length = COUNTRY_RULES[code].expected_length
    bban = ("AB12CD34EF56GH78JK90" * 2)[: length - 4]
    iban = code + compute_check_digits(code, bban) + bban

    out = validate(iban)

    assert out.is_valid is True
    assert out.reason is None
    assert out.country_code == code
    assert out.length == length
    assert out.expected_length == length


def test_valid_with_spaces_lowercase_and_tabs() -> None:
    assert validate("sa03 8000 0000 6080 1016 7519").is_valid is True
    assert validate("SA03\t8000\n0000 6080 1016 7519").is_valid is True


def test_empty_input() -> None:
    for raw in ("", "   ", None):
        out = validate(raw)
        assert out.reason is FailureReason.EMPTY_INPUT
        assert out.length == 0
        assert out.country_code == ""


@pytest.mark.parametrize("raw", ["a", "SA", "SA0", "s a 0", "12"])
def test_short_input_never_reports_checksum(raw: str) -> None:
    out = validate(raw)
    assert out.is_valid is False
    assert out.reason in (FailureReason.EMPTY_INPUT, FailureReason.INVALID_LENGTH)
    assert out.country_code == ""
    assert out.expected_length == 0


@pytest.mark.parametrize("raw", ["DE89370400440532013000", "1234567890", "GB29 NWBK 6016 1331 9268 19", "XX00"])
def test_unsupported_country(raw: str) -> None:
    out = validate(raw)
    assert out.reason is FailureReason.UNSUPPORTED_COUNTRY
    assert out.country_code == raw.replace(" ", "")[:2]
    assert out.country_name == "Unknown"
    assert out.expected_length == 0


def test_length_mismatch_keeps_country_details() -> None:
    out = validate("IQ98NBIQ8501234567891")
    assert out.reason is FailureReason.INVALID_LENGTH
    assert out.country_code == "IQ"
    assert out.country_name == "Iraq"
    assert out.length == 21
    assert out.expected_length == 23
    assert describe(out) == "Invalid IBAN length (Iraq: expected 23 characters, got 21)"


@pytest.mark.parametrize("raw", ["SA03800000006080101675-9", "SAX380000000608010167519", "SA0380000000608010167_19"])
def test_invalid_format(raw: str) -> None:
    out = validate(raw)
    assert out.reason is FailureReason.INVALID_FORMAT
    assert out.country_code == "SA"
    assert out.expected_length == 24


def test_invalid_checksum() -> None:
    out = validate("IQ98NBIQ850123456789123")
    assert out.is_valid is False
    assert out.reason is FailureReason.INVALID_CHECKSUM
    assert out.country_code == "IQ"
    assert out.length == out.expected_length == 23


def test_length_checked_before_format() -> None:
    # both too long and malformed: length wins
    out = validate("SA03-8000-0000-6080-1016-7519")
    assert out.reason is FailureReason.INVALID_LENGTH


def test_checksum_stage_fault_is_logged_and_reported_as_checksum(monkeypatch, caplog) -> None:
    def _boom(_iban: str) -> bool:
        raise RuntimeError("arithmetic fault")

    monkeypatch.setattr(validator, "is_checksum_valid", _boom)
    caplog.set_level(logging.ERROR, logger="ibanscan.iban.validator")

    out = validate("SA0380000000608010167519")

    assert out.is_valid is False
    assert out.reason is FailureReason.INVALID_CHECKSUM
    assert "checksum stage failed" in caplog.text
    assert "SA0380000000608010167519" not in caplog.text


def test_outcome_is_immutable_and_serializable() -> None:
    out = validate("SA0380000000608010167519", lang="ar")
    with pytest.raises(AttributeError):
        out.is_valid = False  # type: ignore[misc]
    d = out.as_dict()
    assert d["country_name"] == "السعودية"
    assert d["reason"] is None


def test_describe_messages() -> None:
    assert describe(validate("SA0380000000608010167519")) == "Valid IBAN (Saudi Arabia)"
    assert describe(validate("DE89370400440532013000")) == "Unsupported country: DE"
    assert describe(validate("")) == "Please enter an IBAN"
    assert describe(validate("IQ98NBIQ850123456789123"), "ar") == "رقم التحقق غير صحيح"
