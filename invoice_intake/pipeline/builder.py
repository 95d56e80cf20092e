"""
Composition root.

Builds the processing components explicitly and wires them together.
Long-lived shared services (the OCR engine and the currency normalizer)
are created once here and handed to every component that needs them.
"""

from dataclasses import dataclass
from typing import Optional

from config import get_config, LocalSettings
from invoice_intake.utils.logger import get_logger
from invoice_intake.input_handler import InputHandler, PDFProcessor, ImageProcessor
from invoice_intake.ocr_engine import OCREngine, TextExtractor, RenderedPageOCR
from invoice_intake.postprocessor import CurrencyNormalizer
from invoice_intake.extraction import ExtractionLocale, FieldExtractor
from invoice_intake.output_handler import OutputHandler
from .processor import InvoiceProcessor
from .session import ProcessingSession

logger = get_logger(__name__)


@dataclass
class IntakeServices:
    """Everything build_services() wires, kept for teardown and the CLI."""
    settings: LocalSettings
    ocr_engine: OCREngine
    currency: CurrencyNormalizer
    output: OutputHandler
    processor: InvoiceProcessor
    session: ProcessingSession

    def close(self) -> None:
        self.session.shutdown()
        self.ocr_engine.terminate()
        self.output.close()


def build_services(
    backend: Optional[str] = None,
    settings: Optional[LocalSettings] = None,
    ocr_engine: Optional[OCREngine] = None,
    currency: Optional[CurrencyNormalizer] = None
) -> IntakeServices:
    """
    Build a ready-to-use processing session.

    Args:
        backend: Persistence backend override ('excel' or 'google').
        settings: Local overrides store; read from ``paths.local_settings``
            when omitted.
        ocr_engine: Shared OCR engine; a new lazy engine when omitted.
        currency: Shared currency normalizer; built from configuration
            when omitted.

    Returns:
        IntakeServices holding the session and its collaborators.
    """
    settings = settings or LocalSettings(
        get_config("paths.local_settings", "outputs/local_settings.yaml")
    )
    ocr_engine = ocr_engine or OCREngine()
    currency = currency or CurrencyNormalizer(settings=settings)

    pdf_processor = PDFProcessor()
    image_processor = ImageProcessor()

    document_ocr = None
    if get_config("ocr.scanned_pdf.enabled", False):
        document_ocr = RenderedPageOCR(ocr_engine, pdf_processor, image_processor)

    text_extractor = TextExtractor(ocr_engine, pdf_processor, image_processor, document_ocr)
    field_extractor = FieldExtractor(currency, ExtractionLocale.from_config())

    output = OutputHandler(backend=backend, settings=settings)
    processor = InvoiceProcessor(
        text_extractor,
        field_extractor,
        output.auth,
        output.spreadsheet,
        output.file_store
    )
    session = ProcessingSession(processor, InputHandler())

    logger.info(
        f"Processing services ready (backend={output.backend}, "
        f"scanned_pdf_ocr={'on' if document_ocr else 'off'})"
    )
    return IntakeServices(settings, ocr_engine, currency, output, processor, session)
