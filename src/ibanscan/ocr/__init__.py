from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

from .base import TextOcrEngine
from .rapidocr_engine import RapidOcrEngine
from .tesseract_engine import TesseractEngine

ENGINE_NAMES = ("rapidocr", "tesseract")


def build_engine(cfg: Dict[str, Any], models_dir: Path | None = None, name: str | None = None) -> TextOcrEngine:
    """Instantiate the OCR backend selected by `name` or `cfg['ocr']['engine']`."""
    ocr_cfg = cfg.get("ocr", {}) if isinstance(cfg, dict) else {}
    engine_name = str(name or ocr_cfg.get("engine") or "rapidocr").strip().lower()
    if engine_name == "tesseract":
        return TesseractEngine(lang=ocr_cfg.get("tesseract_lang") or "eng")
    if engine_name == "rapidocr":
        return RapidOcrEngine(
            models_dir=models_dir,
            rotations=ocr_cfg.get("rotations") or (0, 90, 180, 270),
            max_candidates=int(ocr_cfg.get("max_candidates") or 6),
        )
    raise ValueError(f"unknown OCR engine: {engine_name!r} (expected one of {', '.join(ENGINE_NAMES)})")


__all__ = ["ENGINE_NAMES", "RapidOcrEngine", "TesseractEngine", "TextOcrEngine", "build_engine"]
