"""
OCR Result Data Classes.

This module defines the output of an OCR run over one image, and a
helper to merge the per-page results of a rendered PDF.

Classes:
    OCRLine: One recognized line of text
    OCRResult: Complete OCR output for an image (or merged pages)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class OCRLine:
    """
    One line of text as grouped by Tesseract.

    Attributes:
        text: Words of the line joined by single spaces
        confidence: Mean word confidence (0-100)
        line_index: Position of the line on its page
    """
    text: str
    confidence: float = 0.0
    line_index: int = 0


@dataclass
class OCRResult:
    """
    Text recognized in an image.

    Attributes:
        lines: Recognized lines in reading order
        language: Tesseract language code used
        engine: Name of the OCR backend
        processing_time: Seconds spent in the backend
        page_count: Number of images that contributed
        metadata: Backend specific details

    Example:
        >>> result = engine.extract(image)
        >>> print(result.text)
        >>> print(f"{result.average_confidence:.1f}%")
    """
    lines: List[OCRLine] = field(default_factory=list)
    language: str = ""
    engine: str = "tesseract"
    processing_time: float = 0.0
    page_count: int = 1
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def text(self) -> str:
        """Full text, one recognized line per text line."""
        return '\n'.join(line.text for line in self.lines)

    @property
    def average_confidence(self) -> float:
        if not self.lines:
            return 0.0
        return sum(line.confidence for line in self.lines) / len(self.lines)

    @classmethod
    def merge(cls, results: List['OCRResult']) -> 'OCRResult':
        """Concatenate page results into one document result."""
        if not results:
            return cls(page_count=0)

        lines: List[OCRLine] = []
        for result in results:
            lines.extend(result.lines)

        return cls(
            lines=lines,
            language=results[0].language,
            engine=results[0].engine,
            processing_time=sum(r.processing_time for r in results),
            page_count=sum(r.page_count for r in results),
        )

    def __repr__(self) -> str:
        return (
            f"OCRResult(lines={len(self.lines)}, pages={self.page_count}, "
            f"conf={self.average_confidence:.1f})"
        )
