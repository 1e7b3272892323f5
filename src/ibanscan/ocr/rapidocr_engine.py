from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np
from PIL import Image, ImageFilter, ImageOps

try:
    from rapidocr_onnxruntime import RapidOCR
except ImportError:  # pragma: no cover
    RapidOCR = None  # type: ignore

log = logging.getLogger(__name__)


@dataclass
class OcrItem:
    # 4-point polygon [[x,y],...]
    box: List[List[float]]
    text: str
    confidence: float


class RapidOcrEngine:
    name = "rapidocr"

    def __init__(
        self,
        models_dir: Path | None = None,
        *,
        rotations: Sequence[int] = (0, 90, 180, 270),
        max_candidates: int = 6,
    ):
        self.rotations = tuple(int(r) for r in rotations)
        self.max_candidates = int(max_candidates)
        # A missing runtime makes the engine unavailable instead of failing.
        self._engine = None
        if RapidOCR is None:
            return

        kwargs: dict[str, Any] = {}
        if models_dir and models_dir.exists():
            # pinned offline models, when downloaded
            det = models_dir / "ch_ppocr_server_v2.0_det_infer.onnx"
            rec = models_dir / "ch_ppocr_server_v2.0_rec_infer.onnx"
            keys = models_dir / "ppocr_keys_v1.txt"
            kwargs["det_model_path"] = str(det) if det.exists() else None
            kwargs["rec_model_path"] = str(rec) if rec.exists() else None
            kwargs["rec_char_dict_path"] = str(keys) if keys.exists() else None
            kwargs = {k: v for k, v in kwargs.items() if v}
        self._engine = RapidOCR(**kwargs)

    def is_available(self) -> bool:
        return self._engine is not None

    @staticmethod
    def _preprocess_variants(image: Image.Image) -> List[Image.Image]:
        """Plain RGB, plus a contrast-stretched sharpened upscale for small or faint prints."""
        base = image.convert("RGB")
        variants = [base]
        gray = ImageOps.autocontrast(ImageOps.grayscale(base))
        scale = 3 if max(gray.size) < 1000 else 2
        up = gray.resize((gray.size[0] * scale, gray.size[1] * scale), Image.Resampling.LANCZOS)
        up = up.filter(ImageFilter.UnsharpMask(radius=2, percent=150, threshold=3))
        variants.append(up.convert("RGB"))
        return variants

    @staticmethod
    def _score_text(text: str, conf: float) -> float:
        # prefer confident and longer text, with diminishing returns on length
        ln = len((text or "").strip())
        return float(conf or 0.0) * (1.0 + min(2.0, float(np.log1p(max(0, ln))) / 3.0))

    def image_to_items(self, image: Image.Image) -> List[OcrItem]:
        """OCR results with their boxes."""
        if self._engine is None:
            return []
        arr = np.array(image.convert("RGB"))
        result, _ = self._engine(arr)
        items: List[OcrItem] = []
        for it in result or []:
            try:
                box = [[float(p[0]), float(p[1])] for p in it[0]]
                text = str(it[1]).strip()
                score = float(it[2])
            except (IndexError, TypeError, ValueError):
                continue
            if text:
                items.append(OcrItem(box=box, text=text, confidence=score))
        return items

    @staticmethod
    def _items_to_reconstructed_text(items: List[OcrItem]) -> str:
        """
        Reading order: cluster boxes into lines by Y center, sort each line by X.
        Keeps IBAN groups recognized as separate boxes on one line together.
        """
        rows: List[Tuple[float, float, float, str]] = []
        for it in items:
            if len(it.box) < 4:
                continue
            xs = [p[0] for p in it.box]
            ys = [p[1] for p in it.box]
            y0, y1 = min(ys), max(ys)
            rows.append(((y0 + y1) / 2.0, min(xs), max(1.0, y1 - y0), it.text))
        if not rows:
            return "\n".join(it.text for it in items)

        median_h = float(np.median([r[2] for r in rows]) or 12.0)
        tol = max(6.0, 0.55 * median_h)
        rows.sort(key=lambda r: r[0])
        buckets: List[List[Tuple[float, float, float, str]]] = []
        for r in rows:
            if buckets and abs(r[0] - buckets[-1][0][0]) <= tol:
                buckets[-1].append(r)
            else:
                buckets.append([r])

        lines = []
        for b in buckets:
            b.sort(key=lambda r: r[1])
            lines.append(" ".join(r[3] for r in b).strip())
        return "\n".join(ln for ln in lines if ln)

    def image_to_text_candidates(
        self,
        image: Image.Image,
        *,
        rotations: Sequence[int] | None = None,
        max_candidates: int | None = None,
    ) -> List[Tuple[str, float, dict]]:
        """Ranked text variants over preprocessing, rotations and reading-order reconstruction."""
        if self._engine is None:
            return []
        rotations = self.rotations if rotations is None else rotations
        max_candidates = self.max_candidates if max_candidates is None else max_candidates
        candidates: List[Tuple[str, float, dict]] = []
        for rot in rotations:
            img = image.rotate(rot, expand=True) if rot else image
            for v_idx, variant in enumerate(self._preprocess_variants(img)):
                items = self.image_to_items(variant)
                if not items:
                    continue
                avg = float(sum(i.confidence for i in items) / len(items))
                text_rec = self._items_to_reconstructed_text(items).strip()
                if text_rec:
                    candidates.append((text_rec, avg, {"rotation": rot, "variant": v_idx, "mode": "reconstructed"}))
                text_plain = "\n".join(i.text for i in items).strip()
                if text_plain and text_plain != text_rec:
                    candidates.append((text_plain, avg, {"rotation": rot, "variant": v_idx, "mode": "plain"}))

        candidates.sort(key=lambda c: self._score_text(c[0], c[1]), reverse=True)
        out: List[Tuple[str, float, dict]] = []
        seen = set()
        for t, c, m in candidates:
            key = t.strip()[:200]
            if key in seen:
                continue
            seen.add(key)
            out.append((t, c, m))
            if len(out) >= int(max_candidates):
                break
        log.debug("rapidocr produced %d text candidates", len(out))
        return out

    def image_to_text(self, image: Image.Image) -> Tuple[str, float]:
        best: Optional[Tuple[str, float, dict]] = next(iter(self.image_to_text_candidates(image, max_candidates=1)), None)
        if best is None:
            return "", 0.0
        return best[0], float(best[1])
