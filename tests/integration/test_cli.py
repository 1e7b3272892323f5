from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
from PIL import Image

from ibanscan import cli
from ibanscan.utils.config import load_config, save_yaml

SA = "SA0380000000608010167519"
IQ = "IQ98NBIQ850123456789012"


class _FakeEngine:
    name = "fake"

    def __init__(self, text: str):
        self.text = text

    def is_available(self) -> bool:
        return True

    def image_to_text(self, image):
        return self.text, 0.9

    def image_to_text_candidates(self, image):
        return [(self.text, 0.9, {"rotation": 0})]


@pytest.fixture()
def config_path(tmp_path: Path, monkeypatch) -> Path:
    p = tmp_path / "config.yaml"
    save_yaml(p, {"app": {"data_dir": str(tmp_path / "data")}})
    monkeypatch.setattr(cli, "setup_logging", lambda log_dir, name="ibanscan": logging.getLogger(name))
    return p


def _run(config_path: Path, *argv: str) -> int:
    return cli.main(["--config", str(config_path), *argv])


def test_validate_exit_codes(config_path, capsys):
    assert _run(config_path, "validate", "iq98 nbiq 8501 2345 6789 012") == 0
    out = capsys.readouterr().out
    assert "IQ98 NBIQ 8501 2345 6789 012" in out
    assert "Valid IBAN (Iraq)" in out

    assert _run(config_path, "validate", "DE89370400440532013000") == 1
    assert "Unsupported country: DE" in capsys.readouterr().out


def test_validate_json_and_arabic(config_path, capsys):
    assert _run(config_path, "--json", "--lang", "ar", "validate", IQ[:-2]) == 1
    payload = json.loads(capsys.readouterr().out)
    assert payload["is_valid"] is False
    assert payload["reason"] == "InvalidLength"
    assert payload["expected_length"] == 23
    assert payload["country_name"] == "العراق"


def test_format(config_path, capsys):
    assert _run(config_path, "format", " sa03 8000000060801016 7519 ") == 0
    assert capsys.readouterr().out.strip() == "SA03 8000 0000 6080 1016 7519"


def test_extract_text_and_file(config_path, tmp_path, capsys):
    assert _run(config_path, "extract", "Please send to SA03 8000 0000 6080 1016 7519 thanks") == 0
    assert capsys.readouterr().out.strip() == SA

    f = tmp_path / "note.txt"
    f.write_text(f"first {SA}\nsecond AE07 0331 2345 6789 0123 000\n", encoding="utf-8")
    assert _run(config_path, "--json", "extract", "--file", str(f), "--valid-only") == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["candidates"] == [SA]

    assert _run(config_path, "extract", "nothing to see here") == 1


def test_save_and_history_commands(config_path, capsys):
    assert _run(config_path, "save", "SA03 8000 0000 6080 1016 7519") == 0
    assert "Saved #1" in capsys.readouterr().out
    assert _run(config_path, "--json", "save", SA.lower()) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["created"] is False
    assert payload["id"] == 1

    assert _run(config_path, "save", IQ) == 0
    capsys.readouterr()

    assert _run(config_path, "history", "count") == 0
    assert capsys.readouterr().out.strip() == "2"

    assert _run(config_path, "--json", "history", "list") == 0
    rows = json.loads(capsys.readouterr().out)
    assert [r["iban"] for r in rows] == [IQ, SA]

    assert _run(config_path, "--json", "history", "search", "nbiq") == 0
    rows = json.loads(capsys.readouterr().out)
    assert [r["iban"] for r in rows] == [IQ]

    assert _run(config_path, "history", "delete", "1") == 0
    assert _run(config_path, "history", "delete", "1") == 1
    capsys.readouterr()

    assert _run(config_path, "history", "clear") == 0
    assert "Deleted 1 records" in capsys.readouterr().out
    assert _run(config_path, "history", "list") == 0
    assert "History is empty" in capsys.readouterr().out


def test_countries(config_path, capsys):
    assert _run(config_path, "--json", "countries") == 0
    rows = json.loads(capsys.readouterr().out)
    assert {r["code"] for r in rows} == {"IQ", "SA", "AE", "KW", "BH", "QA", "OM", "JO", "EG", "LB"}
    kw = next(r for r in rows if r["code"] == "KW")
    assert kw["expected_length"] == 30
    assert kw["name"] == "Kuwait"


def test_scan_with_save(config_path, tmp_path, monkeypatch, capsys):
    img = tmp_path / "card.png"
    Image.new("RGB", (80, 40), "white").save(img)
    monkeypatch.setattr(cli, "build_engine", lambda cfg, models_dir=None, name=None: _FakeEngine(f"IBAN {SA}"))

    assert _run(config_path, "scan", str(img), "--save") == 0
    out = capsys.readouterr().out
    assert "SA03 8000 0000 6080 1016 7519" in out
    assert "Saved #1" in out

    monkeypatch.setattr(cli, "build_engine", lambda cfg, models_dir=None, name=None: _FakeEngine("no numbers"))
    assert _run(config_path, "scan", str(img)) == 1
    assert "No IBAN found" in capsys.readouterr().out


def test_scan_errors_exit_2(config_path, tmp_path, capsys):
    assert _run(config_path, "scan", str(tmp_path / "missing.png"), "--engine", "tesseract") == 2
    capsys.readouterr()

    cfg_bad = tmp_path / "bad.yaml"
    save_yaml(cfg_bad, {"app": {"data_dir": str(tmp_path / "data")}, "ocr": {"engine": "nope"}})
    assert cli.main(["--config", str(cfg_bad), "scan", str(tmp_path / "x.png")]) == 2
    assert "unknown OCR engine" in capsys.readouterr().err


def test_init_config(tmp_path, capsys):
    target = tmp_path / "cfg" / "config.yaml"
    assert cli.main(["init-config", str(target)]) == 0
    assert load_config(target)["ocr"]["engine"] == "rapidocr"
    assert cli.main(["init-config", str(target)]) == 2
    assert cli.main(["init-config", str(target), "--force"]) == 0


def test_save_refuses_invalid_input(config_path, capsys):
    assert _run(config_path, "save", "") == 1
    assert _run(config_path, "save", "hello") == 1
    assert "Not saved" in capsys.readouterr().out
    assert _run(config_path, "--json", "save", "IQ98NBIQ850123456789123") == 1
    payload = json.loads(capsys.readouterr().out)
    assert payload["saved"] is False
    assert payload["reason"] == "InvalidChecksum"

    assert _run(config_path, "history", "count") == 0
    assert capsys.readouterr().out.strip() == "0"


def test_history_list_limit_zero(config_path, capsys):
    assert _run(config_path, "save", SA) == 0
    capsys.readouterr()
    assert _run(config_path, "--json", "history", "list", "--limit", "0") == 0
    assert json.loads(capsys.readouterr().out) == []


def test_extract_missing_file_exits_2(config_path, tmp_path, capsys):
    assert _run(config_path, "extract", "--file", str(tmp_path / "nope.txt")) == 2
    err = capsys.readouterr().err
    assert err.startswith("error: cannot read")
    assert "nope.txt" in err
