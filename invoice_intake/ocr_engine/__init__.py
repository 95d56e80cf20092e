"""
OCR Engine Module for the Invoice Intake System.

This module provides text extraction:
    - A shared, lazily started Tesseract OCR engine with teardown
    - Embedded PDF text with OCR over rendered pages for scanned PDFs
    - A single adapter turning any accepted document into raw text
"""

from .engine import OCREngine
from .tesseract_backend import TesseractBackend
from .ocr_result import OCRResult, OCRLine
from .text_extractor import TextExtractor, RenderedPageOCR

__all__ = [
    'OCREngine',
    'TesseractBackend',
    'OCRResult',
    'OCRLine',
    'TextExtractor',
    'RenderedPageOCR',
]
