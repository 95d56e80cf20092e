"""
Main OCR Engine Module.

This module provides the OCREngine class, the single OCR instance shared
by every document of a process. The backend is started lazily on the
first recognition request, all recognition calls are serialized with a
lock, and terminate() releases the backend so the next call starts a
fresh one.

Usage:
    from invoice_intake.ocr_engine import OCREngine

    engine = OCREngine()
    text = engine.extract_text(image)
    engine.terminate()
"""

import threading
from typing import Callable, List, Optional

from PIL import Image

from invoice_intake.utils.logger import get_logger
from .ocr_result import OCRResult
from .tesseract_backend import TesseractBackend

logger = get_logger(__name__)


class OCREngine:
    """
    Shared, lazily started OCR engine.

    Attributes:
        backend_factory: Callable creating the backend (TesseractBackend
            unless one is injected, e.g. in tests).

    Example:
        >>> engine = OCREngine()
        >>> engine.is_initialized
        False
        >>> result = engine.extract(image)
        >>> engine.is_initialized
        True
    """

    def __init__(self, backend_factory: Optional[Callable[[], TesseractBackend]] = None) -> None:
        self.backend_factory = backend_factory or TesseractBackend
        self._backend = None
        self._lock = threading.RLock()

    @property
    def is_initialized(self) -> bool:
        return self._backend is not None

    @property
    def backend(self):
        """The running backend, started on first access."""
        with self._lock:
            if self._backend is None:
                logger.info("Starting OCR backend")
                self._backend = self.backend_factory()
            return self._backend

    def extract(self, image: Image.Image, name: str = "image") -> OCRResult:
        """
        Recognize the text of one image.

        Raises:
            OCREngineNotAvailableError: If the backend cannot be started.
            OCRExtractionError: If recognition fails.
        """
        with self._lock:
            return self.backend.extract(image, name)

    def extract_pages(self, images: List[Image.Image], name: str = "document") -> OCRResult:
        """Recognize several page images and merge them in page order."""
        with self._lock:
            results = []
            for index, image in enumerate(images, 1):
                logger.debug(f"OCR page {index}/{len(images)} of {name}")
                results.append(self.backend.extract(image, f"{name} (page {index})"))
        return OCRResult.merge(results)

    def extract_text(self, image: Image.Image, name: str = "image") -> str:
        return self.extract(image, name).text

    def terminate(self) -> None:
        """Release the backend. Safe to call when it was never started."""
        with self._lock:
            if self._backend is not None:
                logger.info("OCR backend terminated")
            self._backend = None
