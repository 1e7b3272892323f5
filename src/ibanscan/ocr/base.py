from __future__ import annotations

from typing import Any, List, Protocol, Tuple


class TextOcrEngine(Protocol):
    """Common interface of the OCR backends."""

    name: str

    def is_available(self) -> bool:
        ...

    def image_to_text(self, image: Any) -> Tuple[str, float]:
        ...

    def image_to_text_candidates(self, image: Any) -> List[Tuple[str, float, dict]]:
        """Ranked (text, confidence, meta) variants, best first."""
        ...
