from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from ibanscan.extract.candidates import extract_candidates
from ibanscan.iban.countries import DEFAULT_LANG
from ibanscan.iban.formatter import mask_iban
from ibanscan.iban.validator import ValidationOutcome, validate
from ibanscan.ocr.base import TextOcrEngine
from ibanscan.utils.forensic_context import forensic_scope, new_correlation_id
from ibanscan.utils.logging_setup import log_event


class ScanError(Exception):
    """Input image could not be read."""


class OcrUnavailableError(ScanError):
    """Configured OCR backend has no usable runtime."""


@dataclass(frozen=True)
class ScanResult:
    source: str
    text: str
    candidates: List[str]
    selected: Optional[str] = None
    outcome: Optional[ValidationOutcome] = None
    meta: Dict[str, Any] = field(default_factory=dict)

    @property
    def detected(self) -> bool:
        return self.outcome is not None and self.outcome.is_valid

    def as_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "candidates": list(self.candidates),
            "selected": self.selected,
            "detected": self.detected,
            "outcome": self.outcome.as_dict() if self.outcome else None,
            "meta": dict(self.meta),
        }


class Scanner:
    """
    OCR text -> candidates -> validated IBAN.

    As on the camera screen, the first extracted candidate is the one that
    gets validated. For images each OCR text variant is tried in rank order;
    the first variant whose selection validates wins, otherwise the first
    variant that produced any candidate is reported.
    """

    def __init__(self, engine: TextOcrEngine | None, logger: logging.Logger | None = None, lang: str = DEFAULT_LANG):
        self.engine = engine
        self.log = logger or logging.getLogger(__name__)
        self.lang = lang

    def scan_text(self, text: str, *, source: str = "text", meta: Dict[str, Any] | None = None) -> ScanResult:
        candidates = extract_candidates(text)
        if not candidates:
            return ScanResult(source=source, text=text or "", candidates=[], meta=dict(meta or {}))
        selected = candidates[0]
        outcome = validate(selected, self.lang)
        return ScanResult(
            source=source,
            text=text or "",
            candidates=candidates,
            selected=selected,
            outcome=outcome,
            meta=dict(meta or {}),
        )

    def _load_image(self, path: Path) -> Image.Image:
        try:
            with Image.open(path) as img:
                img.load()
                return ImageOps.exif_transpose(img) or img
        except (OSError, UnidentifiedImageError) as exc:
            raise ScanError(f"cannot read image {path}: {exc}") from exc

    def scan_image(self, path: Path | str) -> ScanResult:
        path = Path(path)
        if self.engine is None or not self.engine.is_available():
            name = getattr(self.engine, "name", "none")
            raise OcrUnavailableError(f"OCR engine '{name}' is not available")

        with forensic_scope(correlation_id=new_correlation_id(), source=str(path), phase="load"):
            image = self._load_image(path)
            with forensic_scope(phase="ocr"):
                variants = self.engine.image_to_text_candidates(image)
            self.log.debug("OCR returned %d text variants for %s", len(variants), path.name)

            fallback: Optional[ScanResult] = None
            with forensic_scope(phase="extract"):
                for rank, (text, conf, meta) in enumerate(variants):
                    info = dict(meta or {}, rank=rank, confidence=round(float(conf), 4))
                    result = self.scan_text(text, source=str(path), meta=info)
                    if result.detected:
                        self._log_result(result)
                        return result
                    if fallback is None and result.candidates:
                        fallback = result

            result = fallback or ScanResult(source=str(path), text="", candidates=[], meta={"variants": len(variants)})
            self._log_result(result)
            return result

    def _log_result(self, result: ScanResult) -> None:
        log_event(
            self.log,
            "scan.result",
            "Scan finished",
            source=result.source,
            candidates=len(result.candidates),
            selected=mask_iban(result.selected) if result.selected else None,
            detected=result.detected,
            reason=result.outcome.reason.value if result.outcome and result.outcome.reason else None,
        )
