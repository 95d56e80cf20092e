"""
Tesseract OCR Backend.

This module runs Tesseract (through pytesseract) over a PIL image and
groups the recognized words into lines, so the line-oriented field
rules (company name on the first lines, labels followed by values)
see the same layout as the printed invoice.

Requirements:
    - Tesseract OCR installed on the system, with the language data
      configured in ``ocr.tesseract.lang`` (``spa`` by default)
    - pytesseract Python package
"""

import time
from typing import Dict, List, Tuple

import pytesseract
from PIL import Image

from config import get_config
from invoice_intake.utils.logger import get_logger
from invoice_intake.utils.exceptions import OCREngineNotAvailableError, OCRExtractionError
from .ocr_result import OCRResult, OCRLine

logger = get_logger(__name__)


class TesseractBackend:
    """
    Tesseract OCR backend implementation.

    Attributes:
        language: Tesseract language code (e.g., "spa")
        psm: Page Segmentation Mode (1-13)
        oem: OCR Engine Mode (0-3)
        extra_config: Additional Tesseract command line options

    Example:
        >>> backend = TesseractBackend()
        >>> result = backend.extract(image)
        >>> print(result.text)
    """

    def __init__(self) -> None:
        """
        Initialize the backend and check that Tesseract is reachable.

        Raises:
            OCREngineNotAvailableError: If the tesseract binary cannot be run.
        """
        self.language = get_config("ocr.tesseract.lang", "spa")
        self.psm = get_config("ocr.tesseract.psm", 3)
        self.oem = get_config("ocr.tesseract.oem", 3)
        self.extra_config = get_config("ocr.tesseract.config", "")

        try:
            self.version = str(pytesseract.get_tesseract_version())
        except (pytesseract.TesseractNotFoundError, OSError) as e:
            raise OCREngineNotAvailableError(f"Tesseract OCR (not installed or not in PATH): {e}")

        logger.info(
            f"TesseractBackend initialized (version={self.version}, lang={self.language}, "
            f"psm={self.psm}, oem={self.oem})"
        )

    def _build_config(self) -> str:
        config_parts = [f"--psm {self.psm}", f"--oem {self.oem}"]
        if self.extra_config:
            config_parts.append(self.extra_config)
        return ' '.join(config_parts)

    def extract(self, image: Image.Image, name: str = "image") -> OCRResult:
        """
        Recognize the text of an image.

        Args:
            image: PIL Image to process.
            name: Document name used in error messages.

        Returns:
            OCRResult with the recognized lines.

        Raises:
            OCRExtractionError: If Tesseract fails on the image.
        """
        start_time = time.time()

        if image.mode != 'RGB':
            image = image.convert('RGB')

        config = self._build_config()
        logger.debug(f"Running Tesseract OCR (config: {config})")

        try:
            data = pytesseract.image_to_data(
                image,
                lang=self.language,
                config=config,
                output_type=pytesseract.Output.DICT
            )
        except (pytesseract.TesseractError, RuntimeError, OSError) as e:
            logger.error(f"OCR processing failed for {name}: {e}")
            raise OCRExtractionError(name, str(e))

        lines = self._group_into_lines(data)
        processing_time = time.time() - start_time

        result = OCRResult(
            lines=lines,
            language=self.language,
            engine="tesseract",
            processing_time=processing_time,
            metadata={'psm': self.psm, 'oem': self.oem, 'tesseract_version': self.version}
        )

        logger.info(
            f"OCR completed: {len(lines)} lines, "
            f"avg confidence: {result.average_confidence:.1f}% "
            f"({processing_time:.2f}s)"
        )
        return result

    def _group_into_lines(self, data: Dict[str, List]) -> List[OCRLine]:
        """
        Group Tesseract words into lines.

        Words are keyed by (block, paragraph, line) as numbered by
        Tesseract and kept in their original order within each line.
        """
        groups: Dict[Tuple[int, int, int], List[Tuple[str, float]]] = {}

        for i, text in enumerate(data['text']):
            if not text or not text.strip():
                continue

            key = (data['block_num'][i], data['par_num'][i], data['line_num'][i])
            # Tesseract reports -1 for non-word boxes
            conf = max(float(data['conf'][i]), 0.0)
            groups.setdefault(key, []).append((text.strip(), conf))

        lines = []
        for index, key in enumerate(sorted(groups)):
            words = groups[key]
            lines.append(OCRLine(
                text=' '.join(word for word, _ in words),
                confidence=sum(conf for _, conf in words) / len(words),
                line_index=index
            ))

        return lines
