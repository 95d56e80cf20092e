"""
Input Handler Module for the Invoice Intake System.

This module provides functionality for:
    - Validating input files and detecting their kind (PDF vs image)
    - Reading files into memory for processing and upload
    - Extracting embedded PDF text and rendering PDF pages
    - Normalizing images for OCR processing

Supported formats:
    - PDF (digital and scanned)
    - Images: JPG, JPEG, PNG, TIFF, BMP, WEBP
"""

from .handler import InputHandler, InputFile, PDF_KIND, IMAGE_KIND
from .pdf_processor import PDFProcessor
from .image_processor import ImageProcessor

__all__ = ['InputHandler', 'InputFile', 'PDF_KIND', 'IMAGE_KIND', 'PDFProcessor', 'ImageProcessor']
