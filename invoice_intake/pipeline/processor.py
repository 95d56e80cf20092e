"""
Invoice Processor Module.

This module provides the InvoiceProcessor class, which drives a single
document through the fixed processing stages:

    uploading (5)   initialize the auth session and the spreadsheet
    processing (20) extract the raw text
    extracting (40) extract the invoice fields
    converting (60) checkpoint only, conversion happens during extraction
    saving (75)     upload the original document
    saving (90)     duplicate check and append to the spreadsheet
    completed (100)

Each checkpoint emits exactly one ProcessingStatus before its work
starts. Any failure stops the remaining stages, emits an error status
with progress 0 and re-raises: domain errors unchanged, anything else
wrapped in UnknownProcessingError. A file uploaded before a later stage
fails is left in place.
"""

from typing import Callable, Optional

from invoice_intake.utils.logger import get_logger
from invoice_intake.utils.exceptions import (
    EmptyExtractionResultError,
    InvoiceIntakeError,
    UnknownProcessingError,
)
from invoice_intake.extraction import FieldExtractor, InvoiceRecord
from invoice_intake.ocr_engine import TextExtractor
from invoice_intake.output_handler.file_storage import generate_file_name
from .status import ProcessingStage, ProcessingStatus, UploadedDocument

logger = get_logger(__name__)

StatusCallback = Callable[[ProcessingStatus], None]

MESSAGES = {
    'init': 'Inicializando servicios...',
    'text': 'Extrayendo texto del documento...',
    'fields': 'Analizando datos de la factura...',
    'currency': 'Procesando conversión de moneda...',
    'upload': 'Subiendo archivo...',
    'persist': 'Guardando datos en la hoja de cálculo...',
    'done': 'Procesamiento completado exitosamente',
    'error': 'Error en el procesamiento',
}


class InvoiceProcessor:
    """
    Per-document processing state machine.

    The processor keeps no per-document state, so one instance can
    serve any number of documents, one after another.

    Attributes:
        text_extractor: Raw text from PDF or image
        field_extractor: InvoiceRecord from raw text
        auth: Session of the persistence backend
        spreadsheet: Spreadsheet store (duplicate check and append)
        file_store: Store for the original document

    Example:
        >>> processor = build_processor()
        >>> record = processor.process_file(document, print)
    """

    def __init__(
        self,
        text_extractor: TextExtractor,
        field_extractor: FieldExtractor,
        auth,
        spreadsheet,
        file_store
    ) -> None:
        self.text_extractor = text_extractor
        self.field_extractor = field_extractor
        self.auth = auth
        self.spreadsheet = spreadsheet
        self.file_store = file_store

    def process_file(
        self,
        document: UploadedDocument,
        on_status_update: Optional[StatusCallback] = None
    ) -> InvoiceRecord:
        """
        Run every stage for one document.

        Args:
            document: The document to process; its status, history,
                record and file_url are updated along the way.
            on_status_update: Called synchronously with every status.

        Returns:
            The persisted InvoiceRecord.

        Raises:
            InvoiceIntakeError: The failure of the first stage that failed.
        """
        def emit(stage: ProcessingStage, progress: int, message: str, error: Optional[str] = None) -> None:
            status = ProcessingStatus(stage=stage, progress=progress, message=message, error=error)
            document.update_status(status)
            logger.debug(f"{document.filename}: {status}")
            if on_status_update is not None:
                on_status_update(status)

        logger.info(f"Processing {document.filename}")

        try:
            emit(ProcessingStage.UPLOADING, 5, MESSAGES['init'])
            self.auth.initialize()
            self.spreadsheet.initialize_destination()

            emit(ProcessingStage.PROCESSING, 20, MESSAGES['text'])
            text = self.text_extractor.extract_text(document)
            if not text or not text.strip():
                raise EmptyExtractionResultError(document.filename)

            emit(ProcessingStage.EXTRACTING, 40, MESSAGES['fields'])
            record = self.field_extractor.extract(text)
            document.record = record

            emit(ProcessingStage.CONVERTING, 60, MESSAGES['currency'])

            emit(ProcessingStage.SAVING, 75, MESSAGES['upload'])
            file_name = generate_file_name(
                record.empresa,
                record.fecha,
                record.importe_total,
                document.suffix or '.pdf'
            )
            document.file_url = self.file_store.upload(document.data, file_name, document.mime_type)

            emit(ProcessingStage.SAVING, 90, MESSAGES['persist'])
            self.spreadsheet.save_record(record)

            emit(ProcessingStage.COMPLETED, 100, MESSAGES['done'])
            logger.info(f"Completed {document.filename}: {record!r}")
            return record

        except InvoiceIntakeError as e:
            logger.error(f"Processing failed for {document.filename}: {e}")
            emit(ProcessingStage.ERROR, 0, MESSAGES['error'], e.message)
            raise

        except Exception as e:
            logger.exception(f"Unexpected error processing {document.filename}: {e}")
            error = UnknownProcessingError(str(e) or type(e).__name__)
            emit(ProcessingStage.ERROR, 0, MESSAGES['error'], error.message)
            raise error from e
