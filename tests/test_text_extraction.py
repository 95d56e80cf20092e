"""Unit tests for the OCR engine, the text extraction adapter and the PDF/image processors."""

import io
from types import SimpleNamespace
from unittest.mock import MagicMock

import fitz
import pytest
from PIL import Image

from invoice_intake.input_handler import ImageProcessor, PDFProcessor
from invoice_intake.ocr_engine import OCREngine, OCRLine, OCRResult, RenderedPageOCR, TextExtractor
from invoice_intake.utils.exceptions import (
    CorruptedFileError,
    OCRExtractionError,
    ScannedDocumentUnsupportedError,
    UnsupportedFileTypeError,
)


def make_pdf(text: str = None) -> bytes:
    """One-page PDF, with embedded text when given."""
    doc = fitz.open()
    page = doc.new_page()
    if text:
        page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


def make_png(size=(600, 800), mode="RGB") -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size, "white").save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def ocr_engine() -> MagicMock:
    return MagicMock(spec=OCREngine)


@pytest.fixture
def pdf_processor() -> MagicMock:
    return MagicMock(spec=PDFProcessor)


@pytest.fixture
def image_processor() -> MagicMock:
    return MagicMock(spec=ImageProcessor)


def document(kind: str, data: bytes = b"data", filename: str = "doc") -> SimpleNamespace:
    return SimpleNamespace(kind=kind, data=data, filename=filename)


class TestTextExtractor:
    """Test the text extraction adapter."""

    def test_image_goes_through_ocr(self, ocr_engine, pdf_processor, image_processor) -> None:
        """Should prepare the image and OCR it."""
        prepared = object()
        image_processor.process.return_value = prepared
        ocr_engine.extract_text.return_value = "Factura 1"
        extractor = TextExtractor(ocr_engine, pdf_processor, image_processor)

        assert extractor.extract_text(document("image", filename="ticket.jpg")) == "Factura 1"
        image_processor.process.assert_called_once_with(b"data", "ticket.jpg")
        ocr_engine.extract_text.assert_called_once_with(prepared, "ticket.jpg")
        pdf_processor.extract_text.assert_not_called()

    def test_image_failure_is_extraction_error(self, ocr_engine, pdf_processor, image_processor) -> None:
        """Should wrap unexpected OCR failures."""
        ocr_engine.extract_text.side_effect = RuntimeError("tesseract crashed")
        extractor = TextExtractor(ocr_engine, pdf_processor, image_processor)

        with pytest.raises(OCRExtractionError) as exc_info:
            extractor.extract_text(document("image"))
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_unreadable_image_is_extraction_error(self, ocr_engine, pdf_processor, image_processor) -> None:
        """Should report an undecodable image as an OCR failure."""
        image_processor.process.side_effect = CorruptedFileError("x.png", "bad bytes")
        extractor = TextExtractor(ocr_engine, pdf_processor, image_processor)

        with pytest.raises(OCRExtractionError):
            extractor.extract_text(document("image"))

    def test_pdf_text_skips_ocr(self, ocr_engine, pdf_processor, image_processor) -> None:
        """Should return embedded text without touching the OCR engine."""
        pdf_processor.extract_text.return_value = "Total: 10,00"
        document_ocr = MagicMock()
        extractor = TextExtractor(ocr_engine, pdf_processor, image_processor, document_ocr)

        assert extractor.extract_text(document("pdf")) == "Total: 10,00"
        document_ocr.extract_text.assert_not_called()
        ocr_engine.extract_text.assert_not_called()

    def test_scanned_pdf_without_document_ocr(self, ocr_engine, pdf_processor, image_processor) -> None:
        """Should reject a scanned PDF when document OCR is off."""
        pdf_processor.extract_text.return_value = "  \n "
        extractor = TextExtractor(ocr_engine, pdf_processor, image_processor)

        with pytest.raises(ScannedDocumentUnsupportedError):
            extractor.extract_text(document("pdf", filename="scan.pdf"))

    def test_scanned_pdf_with_document_ocr(self, ocr_engine, pdf_processor, image_processor) -> None:
        """Should use document OCR for a PDF without text."""
        pdf_processor.extract_text.return_value = ""
        document_ocr = MagicMock()
        document_ocr.extract_text.return_value = "Texto escaneado"
        extractor = TextExtractor(ocr_engine, pdf_processor, image_processor, document_ocr)

        assert extractor.extract_text(document("pdf")) == "Texto escaneado"

    def test_failing_document_ocr(self, ocr_engine, pdf_processor, image_processor) -> None:
        """Should report a failed document OCR as an unsupported scanned document."""
        pdf_processor.extract_text.return_value = ""
        document_ocr = MagicMock()
        document_ocr.extract_text.side_effect = OCRExtractionError("scan.pdf", "no text")
        extractor = TextExtractor(ocr_engine, pdf_processor, image_processor, document_ocr)

        with pytest.raises(ScannedDocumentUnsupportedError):
            extractor.extract_text(document("pdf", filename="scan.pdf"))

    def test_unknown_kind(self, ocr_engine, pdf_processor, image_processor) -> None:
        """Should reject kinds other than pdf and image."""
        extractor = TextExtractor(ocr_engine, pdf_processor, image_processor)

        with pytest.raises(UnsupportedFileTypeError):
            extractor.extract_text(document("docx"))


class TestRenderedPageOCR:
    """Test OCR over rendered PDF pages."""

    def test_pages_are_rendered_and_merged(self, ocr_engine, pdf_processor, image_processor) -> None:
        """Should OCR every rendered page and join their lines."""
        pages = [object(), object()]
        pdf_processor.render_pages.return_value = pages
        image_processor.prepare.side_effect = lambda image: image
        ocr_engine.extract_pages.return_value = OCRResult(
            lines=[OCRLine("Factura 7"), OCRLine("Total: 5,00")],
            page_count=2,
        )

        text = RenderedPageOCR(ocr_engine, pdf_processor, image_processor).extract_text(
            document("pdf", filename="scan.pdf")
        )

        assert text == "Factura 7\nTotal: 5,00"
        ocr_engine.extract_pages.assert_called_once_with(pages, "scan.pdf")


class TestOCREngine:
    """Test the shared OCR engine lifecycle."""

    def test_backend_starts_lazily(self) -> None:
        """Should not create the backend before the first call."""
        backend = MagicMock()
        backend.extract.return_value = OCRResult(lines=[OCRLine("hola")])
        factory = MagicMock(return_value=backend)
        engine = OCREngine(backend_factory=factory)

        assert not engine.is_initialized
        factory.assert_not_called()

        assert engine.extract_text(object()) == "hola"
        engine.extract_text(object())

        assert engine.is_initialized
        factory.assert_called_once()

    def test_terminate_releases_backend(self) -> None:
        """Should start a new backend after terminate."""
        factory = MagicMock(return_value=MagicMock())
        engine = OCREngine(backend_factory=factory)

        engine.extract(object())
        engine.terminate()
        assert not engine.is_initialized

        engine.extract(object())
        assert factory.call_count == 2

    def test_terminate_before_start(self) -> None:
        """Should allow terminate on an engine that never started."""
        engine = OCREngine(backend_factory=MagicMock())
        engine.terminate()
        assert not engine.is_initialized

    def test_pages_are_merged_in_order(self) -> None:
        """Should merge per-page results in page order."""
        backend = MagicMock()
        backend.extract.side_effect = [
            OCRResult(lines=[OCRLine("uno")]),
            OCRResult(lines=[OCRLine("dos")]),
        ]
        engine = OCREngine(backend_factory=MagicMock(return_value=backend))

        result = engine.extract_pages([object(), object()], "scan.pdf")

        assert result.text == "uno\ndos"
        assert result.page_count == 2


class TestPDFProcessor:
    """Test embedded text extraction on real PDFs."""

    def test_reads_embedded_text(self) -> None:
        """Should return the text of a digital PDF."""
        text = PDFProcessor().extract_text(make_pdf("Factura 2024 Total 121,00"))
        assert "Factura" in text

    def test_blank_pdf_has_no_text(self) -> None:
        """Should return empty text for a PDF without a text layer."""
        processor = PDFProcessor()
        data = make_pdf()

        assert processor.extract_text(data).strip() == ""

    def test_corrupted_pdf(self) -> None:
        """Should raise CorruptedFileError for bytes that are not a PDF."""
        with pytest.raises(CorruptedFileError):
            PDFProcessor().extract_text(b"definitely not a pdf")

    def test_render_pages(self) -> None:
        """Should render each page to an RGB image."""
        images = PDFProcessor().render_pages(make_pdf("Hola"))

        assert len(images) == 1
        assert images[0].mode == "RGB"


class TestImageProcessor:
    """Test image preparation for OCR."""

    def test_converts_to_rgb(self) -> None:
        """Should flatten transparency onto white."""
        image = ImageProcessor().process(make_png(mode="RGBA"), "logo.png")
        assert image.mode == "RGB"

    def test_downscales_large_images(self) -> None:
        """Should keep the image within the configured maximum size."""
        processor = ImageProcessor()
        image = processor.process(make_png(size=(3000, 4000)), "big.png")

        assert image.width <= processor.max_width
        assert image.height <= processor.max_height

    def test_small_images_are_accepted(self) -> None:
        """Should keep processing images below the minimum size."""
        image = ImageProcessor().process(make_png(size=(100, 100)), "receipt.png")
        assert image.size == (100, 100)

    def test_corrupted_image(self) -> None:
        """Should raise CorruptedFileError for undecodable bytes."""
        with pytest.raises(CorruptedFileError):
            ImageProcessor().process(b"not an image", "broken.png")
