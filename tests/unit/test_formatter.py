from __future__ import annotations

import pytest

from ibanscan.iban.formatter import format_iban, mask_iban, normalize_iban
from ibanscan.iban.validator import validate

SAMPLES = [
    "",
    "sa03 8000 0000 6080 1016 7519",
    "SA0380000000608010167519",
    "  kw81cbku0000000000001234560101 ",
    "IQ98NBIQ850123456789123",
    "SA03  8000\t0000\n6080 1016 7519",
    "abc",
    "DE89 3704 0044 0532 0130 00",
]


def test_format_groups_of_four() -> None:
    assert format_iban("SA0380000000608010167519") == "SA03 8000 0000 6080 1016 7519"
    assert format_iban("iq98nbiq850123456789012") == "IQ98 NBIQ 8501 2345 6789 012"
    assert format_iban("") == ""
    assert format_iban(None) == ""


@pytest.mark.parametrize("raw", SAMPLES)
def test_format_is_idempotent(raw: str) -> None:
    once = format_iban(raw)
    assert format_iban(once) == once
    assert not once.endswith(" ")
    assert "  " not in once


@pytest.mark.parametrize("raw", SAMPLES)
def test_format_strips_back_to_normalized(raw: str) -> None:
    assert format_iban(raw).replace(" ", "") == normalize_iban(raw)


@pytest.mark.parametrize("raw", SAMPLES)
def test_format_never_changes_validity(raw: str) -> None:
    assert validate(format_iban(raw)).is_valid == validate(raw).is_valid


def test_mask_iban() -> None:
    assert mask_iban("SA03 8000 0000 6080 1016 7519") == "SA03" + "*" * 16 + "7519"
    assert mask_iban("SA03") == "SA03"
