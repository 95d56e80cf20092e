"""
PDF Processor Module.

This module handles PDF invoices:
    - Embedded text extraction (pdfplumber, PyMuPDF fallback)
    - Empty text for image-only (scanned) PDFs
    - Page rendering to images for OCR (PyMuPDF, pdf2image fallback)

All methods work on the raw bytes of the document so the same data
that gets uploaded to file storage is the data that gets read.
"""

import io
from typing import List, Optional

import fitz  # PyMuPDF
import pdfplumber
from pdf2image import convert_from_bytes
from PIL import Image

from config import get_config
from invoice_intake.utils.logger import get_logger
from invoice_intake.utils.exceptions import CorruptedFileError

logger = get_logger(__name__)


class PDFProcessor:
    """
    Processor for PDF files.

    Handles both digital PDFs (with embedded text) and scanned PDFs
    (image-only).

    Attributes:
        dpi: Resolution for page rendering
        max_pages: Maximum number of pages read or rendered

    Example:
        >>> processor = PDFProcessor()
        >>> text = processor.extract_text(data)
        >>> if not text.strip():
        ...     images = processor.render_pages(data)
    """

    def __init__(self) -> None:
        """Initialize the PDF processor with configuration."""
        self.dpi = get_config("input.pdf.dpi", 300)
        self.max_pages = get_config("input.pdf.max_pages", 10)

        logger.debug(f"PDFProcessor initialized (DPI={self.dpi}, max_pages={self.max_pages})")

    def extract_text(self, data: bytes, name: str = "<memory>") -> str:
        """
        Extract embedded text from a PDF.

        pdfplumber is tried first; PyMuPDF is used when pdfplumber fails
        or returns nothing. An image-only PDF yields an empty string.

        Args:
            data: Raw PDF bytes.
            name: File name used in log and error messages.

        Returns:
            Concatenated page text (pages separated by newlines).

        Raises:
            CorruptedFileError: If neither library can open the document.
        """
        plumber_error: Optional[Exception] = None
        try:
            text = self._text_with_pdfplumber(data)
            if text.strip():
                logger.debug(f"pdfplumber extracted {len(text)} characters from {name}")
                return text
        except Exception as e:
            plumber_error = e
            logger.debug(f"pdfplumber failed on {name}: {e}")

        try:
            text = self._text_with_pymupdf(data)
        except Exception as e:
            reason = f"{plumber_error or ''} {e}".strip()
            logger.error(f"Could not read PDF {name}: {reason}")
            raise CorruptedFileError(name, reason)

        logger.debug(f"PyMuPDF extracted {len(text)} characters from {name}")
        return text

    def render_pages(self, data: bytes, name: str = "<memory>") -> List[Image.Image]:
        """
        Render PDF pages to RGB images.

        Args:
            data: Raw PDF bytes.
            name: File name used in log and error messages.

        Returns:
            List of PIL Images, at most max_pages long.

        Raises:
            CorruptedFileError: If the PDF cannot be rendered.
        """
        try:
            images = self._render_with_pymupdf(data)
        except Exception as e:
            logger.debug(f"PyMuPDF rendering failed on {name}, trying pdf2image: {e}")
            try:
                images = self._render_with_pdf2image(data)
            except Exception as e2:
                logger.error(f"pdf2image conversion failed on {name}: {e2}")
                raise CorruptedFileError(name, str(e2))

        logger.info(f"Rendered {len(images)} page(s) of {name}")
        return images

    def _text_with_pdfplumber(self, data: bytes) -> str:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            pages = pdf.pages[:self.max_pages]
            return "\n".join(page.extract_text() or "" for page in pages)

    def _text_with_pymupdf(self, data: bytes) -> str:
        with fitz.open(stream=data, filetype="pdf") as doc:
            count = min(len(doc), self.max_pages)
            return "\n".join(doc.load_page(i).get_text() for i in range(count))

    def _render_with_pymupdf(self, data: bytes) -> List[Image.Image]:
        images = []
        # PDF user space is 72 DPI
        zoom = self.dpi / 72.0
        matrix = fitz.Matrix(zoom, zoom)

        with fitz.open(stream=data, filetype="pdf") as doc:
            for page_num in range(min(len(doc), self.max_pages)):
                pix = doc.load_page(page_num).get_pixmap(matrix=matrix)
                image = Image.open(io.BytesIO(pix.tobytes("png")))
                images.append(image.convert('RGB'))

        return images

    def _render_with_pdf2image(self, data: bytes) -> List[Image.Image]:
        images = convert_from_bytes(
            data,
            dpi=self.dpi,
            first_page=1,
            last_page=self.max_pages,
            fmt='png'
        )
        return [img.convert('RGB') if img.mode != 'RGB' else img for img in images]
