from __future__ import annotations

import pytest

from ibanscan.ocr import RapidOcrEngine, TesseractEngine, build_engine
from ibanscan.ocr.rapidocr_engine import OcrItem


def _box(x0: float, y0: float, x1: float, y1: float) -> list:
    return [[x0, y0], [x1, y0], [x1, y1], [x0, y1]]


def test_tesseract_engine_is_available_returns_bool() -> None:
    eng = TesseractEngine(lang="eng")
    assert isinstance(eng.is_available(), bool)


def test_reconstructed_text_orders_boxes_by_line_then_x() -> None:
    items = [
        OcrItem(box=_box(200, 10, 260, 30), text="8000", confidence=0.9),
        OcrItem(box=_box(10, 60, 120, 80), text="Bank XYZ", confidence=0.9),
        OcrItem(box=_box(100, 12, 180, 31), text="SA03", confidence=0.9),
        OcrItem(box=_box(10, 11, 90, 29), text="IBAN:", confidence=0.9),
    ]
    text = RapidOcrEngine._items_to_reconstructed_text(items)
    assert text.splitlines() == ["IBAN: SA03 8000", "Bank XYZ"]


def test_build_engine_by_config_and_override() -> None:
    cfg = {"ocr": {"engine": "tesseract", "tesseract_lang": "ara"}}
    eng = build_engine(cfg)
    assert isinstance(eng, TesseractEngine)
    assert eng.lang == "ara"

    eng = build_engine(cfg, name="rapidocr")
    assert isinstance(eng, RapidOcrEngine)
    assert eng.rotations == (0, 90, 180, 270)


def test_build_engine_unknown_name() -> None:
    with pytest.raises(ValueError):
        build_engine({"ocr": {"engine": "magic"}})


def test_unavailable_engines_return_empty_text(monkeypatch) -> None:
    from ibanscan.ocr import rapidocr_engine

    monkeypatch.setattr(rapidocr_engine, "RapidOCR", None)
    eng = RapidOcrEngine()
    assert eng.is_available() is False
    assert eng.image_to_text(object()) == ("", 0.0)
    assert eng.image_to_text_candidates(object()) == []
