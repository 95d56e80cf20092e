"""Unit tests for InvoiceProcessor, the per-document state machine."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from config import ConfigurationManager
from invoice_intake.extraction import FieldExtractor, InvoiceRecord
from invoice_intake.ocr_engine import OCREngine, RenderedPageOCR, TextExtractor
from invoice_intake.output_handler import ExcelWorkbookStore, LocalAuthSession, LocalFolderStore
from invoice_intake.pipeline import InvoiceProcessor, ProcessingStage, UploadedDocument, build_services
from invoice_intake.utils.exceptions import (
    AuthenticationError,
    DuplicateRecordError,
    EmptyExtractionResultError,
    ScannedDocumentUnsupportedError,
    StorageError,
    UnknownProcessingError,
)

INVOICE_TEXT = """Empresa Acme S.L.
Factura Nº: F-2024-001
Base imponible: 100,00
IVA: 21,00
Total: 121,00
"""

SUCCESS_CHECKPOINTS = [
    (ProcessingStage.UPLOADING, 5),
    (ProcessingStage.PROCESSING, 20),
    (ProcessingStage.EXTRACTING, 40),
    (ProcessingStage.CONVERTING, 60),
    (ProcessingStage.SAVING, 75),
    (ProcessingStage.SAVING, 90),
    (ProcessingStage.COMPLETED, 100),
]


def checkpoints(statuses):
    return [(status.stage, status.progress) for status in statuses]


def pdf_document(filename: str = "factura.pdf") -> UploadedDocument:
    return UploadedDocument(
        filename=filename,
        kind="pdf",
        data=b"%PDF-1.4 fake",
        mime_type="application/pdf",
    )


@pytest.fixture
def text_extractor() -> MagicMock:
    extractor = MagicMock(spec=TextExtractor)
    extractor.extract_text.return_value = INVOICE_TEXT
    return extractor


@pytest.fixture
def workbook(tmp_path: Path, fixed_clock) -> ExcelWorkbookStore:
    return ExcelWorkbookStore(tmp_path / "facturas.xlsx", clock=fixed_clock)


@pytest.fixture
def folder(tmp_path: Path) -> LocalFolderStore:
    return LocalFolderStore(tmp_path / "documents")


@pytest.fixture
def processor(text_extractor, extractor: FieldExtractor, workbook, folder) -> InvoiceProcessor:
    return InvoiceProcessor(text_extractor, extractor, LocalAuthSession(), workbook, folder)


class TestSuccessfulProcessing:
    """Test a document that goes through every stage."""

    def test_end_to_end(self, processor: InvoiceProcessor, workbook, folder) -> None:
        """Should extract, store the file and append one row."""
        document = pdf_document()
        statuses = []

        record = processor.process_file(document, statuses.append)

        assert record.numero_factura == "F-2024-001"
        assert record.empresa == "Empresa Acme S.L."
        assert record.base_imponible == "100,00"
        assert record.iva == "21,00"
        assert record.importe_total == "121,00"
        assert document.record is record

        rows = workbook.read_records()
        assert len(rows) == 1
        assert rows[0][:10] == [
            "20-05-2024", "F-2024-001", "Empresa Acme S.L.", "Servicios profesionales",
            "100,00", "21,00", "0,00", "121,00", "EUR", "121,00",
        ]
        assert rows[0][10] == "20/05/2024, 10:30:00"

        stored = list(folder.folder.iterdir())
        assert [path.name for path in stored] == ["Empresa Acme SL 20-05-2024 121,00.pdf"]
        assert stored[0].read_bytes() == document.data
        assert document.file_url.startswith("file://")

    def test_exact_checkpoint_sequence(self, processor: InvoiceProcessor) -> None:
        """Should emit each checkpoint once, in order."""
        document = pdf_document()
        statuses = []

        processor.process_file(document, statuses.append)

        assert checkpoints(statuses) == SUCCESS_CHECKPOINTS
        assert document.history == statuses
        assert document.status.stage == ProcessingStage.COMPLETED
        assert statuses[-1].message == "Procesamiento completado exitosamente"

    def test_progress_never_decreases(self, processor: InvoiceProcessor) -> None:
        """Should report non-decreasing progress on success."""
        document = pdf_document()
        processor.process_file(document)

        progress = [status.progress for status in document.history]
        assert progress == sorted(progress)

    def test_image_keeps_its_extension(self, processor: InvoiceProcessor, folder) -> None:
        """Should store an image under its own extension."""
        document = UploadedDocument(filename="ticket.JPG", kind="image", data=b"jpeg", mime_type="image/jpeg")

        processor.process_file(document)

        assert [path.suffix for path in folder.folder.iterdir()] == [".jpg"]


class TestFailedProcessing:
    """Test the error paths of the state machine."""

    def test_duplicate_is_rejected_after_upload(self, processor: InvoiceProcessor, workbook, folder) -> None:
        """Should refuse a second row for the same invoice and keep the uploaded copy."""
        processor.process_file(pdf_document())
        document = pdf_document("copia.pdf")
        statuses = []

        with pytest.raises(DuplicateRecordError):
            processor.process_file(document, statuses.append)

        assert checkpoints(statuses) == SUCCESS_CHECKPOINTS[:6] + [(ProcessingStage.ERROR, 0)]
        assert "already exists" in document.status.error
        assert document.status.message == "Error en el procesamiento"
        assert len(workbook.read_records()) == 1
        assert len(list(folder.folder.iterdir())) == 2

    def test_scanned_pdf_without_ocr(self, extractor: FieldExtractor, workbook) -> None:
        """Should stop at the text stage for a scanned PDF when document OCR is off."""
        pdf_processor = MagicMock()
        pdf_processor.extract_text.return_value = "   "
        text_extractor = TextExtractor(MagicMock(), pdf_processor, MagicMock())
        file_store = MagicMock()
        processor = InvoiceProcessor(text_extractor, extractor, LocalAuthSession(), workbook, file_store)
        document = pdf_document("scan.pdf")
        statuses = []

        with pytest.raises(ScannedDocumentUnsupportedError):
            processor.process_file(document, statuses.append)

        assert checkpoints(statuses) == [
            (ProcessingStage.UPLOADING, 5),
            (ProcessingStage.PROCESSING, 20),
            (ProcessingStage.ERROR, 0),
        ]
        file_store.upload.assert_not_called()
        assert workbook.read_records() == []

    def test_empty_text(self, processor: InvoiceProcessor, text_extractor) -> None:
        """Should fail when the extracted text is blank."""
        text_extractor.extract_text.return_value = "\n  \n"
        document = pdf_document()

        with pytest.raises(EmptyExtractionResultError):
            processor.process_file(document)

        assert document.status.stage == ProcessingStage.ERROR
        assert document.record is None

    def test_unexpected_error_is_wrapped(self, processor: InvoiceProcessor, text_extractor) -> None:
        """Should wrap non-domain exceptions in UnknownProcessingError."""
        text_extractor.extract_text.side_effect = RuntimeError("boom")
        document = pdf_document()

        with pytest.raises(UnknownProcessingError) as exc_info:
            processor.process_file(document)

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert document.status.stage == ProcessingStage.ERROR
        assert document.status.progress == 0
        assert document.status.error == "boom"

    def test_auth_failure_stops_first_stage(self, text_extractor, extractor: FieldExtractor) -> None:
        """Should not extract anything when authentication fails."""
        auth = MagicMock()
        auth.initialize.side_effect = AuthenticationError("Google", "no token")
        spreadsheet = MagicMock()
        processor = InvoiceProcessor(text_extractor, extractor, auth, spreadsheet, MagicMock())
        statuses = []

        with pytest.raises(AuthenticationError):
            processor.process_file(pdf_document(), statuses.append)

        assert checkpoints(statuses) == [(ProcessingStage.UPLOADING, 5), (ProcessingStage.ERROR, 0)]
        text_extractor.extract_text.assert_not_called()
        spreadsheet.initialize_destination.assert_not_called()

    def test_persistence_failure_keeps_upload(self, text_extractor, extractor: FieldExtractor) -> None:
        """Should leave the uploaded file in place when the row cannot be saved."""
        spreadsheet = MagicMock()
        spreadsheet.save_record.side_effect = StorageError("append invoice row", "HTTP 500")
        file_store = MagicMock()
        file_store.upload.return_value = "https://drive.google.com/file/d/abc/view"
        processor = InvoiceProcessor(text_extractor, extractor, MagicMock(), spreadsheet, file_store)
        document = pdf_document()

        with pytest.raises(StorageError):
            processor.process_file(document)

        assert [call[0] for call in file_store.method_calls] == ["upload"]
        assert document.file_url == "https://drive.google.com/file/d/abc/view"
        assert document.status.stage == ProcessingStage.ERROR

    def test_record_passed_to_spreadsheet(self, text_extractor, extractor: FieldExtractor) -> None:
        """Should hand the extracted record to the spreadsheet store."""
        spreadsheet = MagicMock()
        processor = InvoiceProcessor(text_extractor, extractor, MagicMock(), spreadsheet, MagicMock())

        record = processor.process_file(pdf_document())

        spreadsheet.save_record.assert_called_once_with(record)
        assert isinstance(record, InvoiceRecord)


class TestBuildServices:
    """Test the composition root."""

    def test_excel_services(self, settings, currency) -> None:
        """Should wire one shared engine and converter into the session."""
        ocr_engine = MagicMock(spec=OCREngine)

        services = build_services(backend="excel", settings=settings, ocr_engine=ocr_engine, currency=currency)

        assert services.processor.text_extractor.ocr_engine is ocr_engine
        assert services.processor.field_extractor.currency_normalizer is currency
        assert services.processor.text_extractor.document_ocr is None
        assert services.session.processor is services.processor
        assert isinstance(services.processor.spreadsheet, ExcelWorkbookStore)

        services.close()
        ocr_engine.terminate.assert_called_once()

    def test_scanned_pdf_ocr_can_be_enabled(self, settings, currency, tmp_path: Path, monkeypatch) -> None:
        """Should attach document OCR when ocr.scanned_pdf.enabled is set."""
        config_path = tmp_path / "settings.yaml"
        config_path.write_text("ocr:\n  scanned_pdf:\n    enabled: true\n")
        monkeypatch.setenv("INVOICE_INTAKE_CONFIG", str(config_path))
        ConfigurationManager.reset()

        services = build_services(backend="excel", settings=settings, ocr_engine=MagicMock(spec=OCREngine), currency=currency)

        assert isinstance(services.processor.text_extractor.document_ocr, RenderedPageOCR)
        services.close()
