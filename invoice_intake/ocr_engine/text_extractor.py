"""
Text Extraction Adapter.

Obtains the raw text of a document, whatever its kind:

    image  -> ImageProcessor -> OCREngine
    pdf    -> embedded text (pdfplumber, PyMuPDF)
              -> whitespace only: document OCR over rendered pages,
                 when that capability is configured

Each path is tried once. Errors are not retried here; they propagate to
the pipeline, which turns them into the terminal error status.
"""

from typing import Optional

from invoice_intake.utils.logger import get_logger
from invoice_intake.utils.exceptions import (
    InvoiceIntakeError,
    OCRExtractionError,
    ScannedDocumentUnsupportedError,
    UnsupportedFileTypeError,
)
from invoice_intake.input_handler import (
    PDF_KIND,
    IMAGE_KIND,
    ImageProcessor,
    PDFProcessor,
)
from .engine import OCREngine

logger = get_logger(__name__)


class RenderedPageOCR:
    """
    Document OCR capability for image-only PDFs.

    Renders each page with the PDF processor and runs the shared OCR
    engine over the rendered images.
    """

    def __init__(
        self,
        ocr_engine: OCREngine,
        pdf_processor: Optional[PDFProcessor] = None,
        image_processor: Optional[ImageProcessor] = None
    ) -> None:
        self.ocr_engine = ocr_engine
        self.pdf_processor = pdf_processor or PDFProcessor()
        self.image_processor = image_processor or ImageProcessor()

    def extract_text(self, document) -> str:
        images = self.pdf_processor.render_pages(document.data, document.filename)
        images = [self.image_processor.prepare(image) for image in images]
        result = self.ocr_engine.extract_pages(images, document.filename)
        logger.info(f"Document OCR read {len(result.lines)} lines from {result.page_count} page(s)")
        return result.text


class TextExtractor:
    """
    Polymorphic text extraction over PDF and image documents.

    Documents are any object with ``kind``, ``data`` and ``filename``
    attributes (InputFile and UploadedDocument both qualify).

    Attributes:
        ocr_engine: Shared OCR engine used for images.
        pdf_processor: Embedded text reader for PDFs.
        image_processor: OCR preparation for images.
        document_ocr: Optional capability for scanned PDFs; None means
            scanned PDFs are rejected.

    Example:
        >>> extractor = TextExtractor(OCREngine())
        >>> text = extractor.extract_text(input_file)
    """

    def __init__(
        self,
        ocr_engine: OCREngine,
        pdf_processor: Optional[PDFProcessor] = None,
        image_processor: Optional[ImageProcessor] = None,
        document_ocr: Optional[RenderedPageOCR] = None
    ) -> None:
        self.ocr_engine = ocr_engine
        self.pdf_processor = pdf_processor or PDFProcessor()
        self.image_processor = image_processor or ImageProcessor()
        self.document_ocr = document_ocr

    def extract_text(self, document) -> str:
        """
        Return the raw text of a document.

        Raises:
            OCRExtractionError: Image OCR failed.
            ScannedDocumentUnsupportedError: PDF without embedded text and
                no working document OCR.
            UnsupportedFileTypeError: Unknown document kind.
        """
        if document.kind == IMAGE_KIND:
            return self._extract_from_image(document)
        if document.kind == PDF_KIND:
            return self._extract_from_pdf(document)

        raise UnsupportedFileTypeError(str(document.kind), [PDF_KIND, IMAGE_KIND])

    def _extract_from_image(self, document) -> str:
        try:
            image = self.image_processor.process(document.data, document.filename)
            return self.ocr_engine.extract_text(image, document.filename)
        except OCRExtractionError:
            raise
        except Exception as e:
            logger.error(f"OCR failed for {document.filename}: {e}")
            raise OCRExtractionError(document.filename, str(e)) from e

    def _extract_from_pdf(self, document) -> str:
        text = self.pdf_processor.extract_text(document.data, document.filename)
        if text.strip():
            return text

        logger.info(f"{document.filename} has no embedded text, treating it as scanned")

        if self.document_ocr is None:
            raise ScannedDocumentUnsupportedError(
                document.filename, "Document OCR is not configured"
            )

        try:
            return self.document_ocr.extract_text(document)
        except InvoiceIntakeError as e:
            raise ScannedDocumentUnsupportedError(document.filename, e.message) from e
        except Exception as e:
            logger.error(f"Document OCR failed for {document.filename}: {e}")
            raise ScannedDocumentUnsupportedError(document.filename, str(e)) from e
