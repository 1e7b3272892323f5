from __future__ import annotations

from typing import List, Tuple

try:
    import pytesseract
except ImportError:  # pragma: no cover
    pytesseract = None  # type: ignore


class TesseractEngine:
    """Offline OCR backend through pytesseract (needs the tesseract binary)."""

    name = "tesseract"

    def __init__(self, *, lang: str = "eng", psm: int = 6, oem: int = 1):
        self.lang = str(lang or "eng")
        self.psm = int(psm)
        self.oem = int(oem)

    def is_available(self) -> bool:
        if pytesseract is None:
            return False
        try:
            pytesseract.get_tesseract_version()
            return True
        except (pytesseract.TesseractNotFoundError, OSError):
            return False

    def image_to_text(self, image) -> Tuple[str, float]:
        if not self.is_available():
            return "", 0.0
        cfg = f"--oem {self.oem} --psm {self.psm}"
        txt = pytesseract.image_to_string(image, lang=self.lang, config=cfg) or ""
        # tesseract gives no stable whole-page confidence; use a fixed pseudo value
        conf = 0.55 if txt.strip() else 0.0
        return txt, float(conf)

    def image_to_text_candidates(self, image) -> List[Tuple[str, float, dict]]:
        txt, conf = self.image_to_text(image)
        if not txt.strip():
            return []
        return [(txt, conf, {"engine": self.name, "mode": "plain"})]
