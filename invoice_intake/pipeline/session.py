"""
Processing Session Module.

A ProcessingSession is the batch driver behind the upload surface: it
accepts files, processes them one at a time in submission order and
publishes every (document, status) event to its subscribers. A failed
document ends in the error state and does not stop the documents after
it.

add_files_async() runs the same loop on a single background worker and
returns a Future, so callers never block on OCR or network calls.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Union

from invoice_intake.utils.logger import get_logger
from invoice_intake.utils.exceptions import InvoiceIntakeError
from invoice_intake.input_handler import InputHandler
from .processor import InvoiceProcessor
from .status import ProcessingStage, ProcessingStatus, UploadedDocument

logger = get_logger(__name__)

Subscriber = Callable[[UploadedDocument, ProcessingStatus], None]


class ProcessingSession:
    """
    Ordered collection of documents plus the loop that processes them.

    Example:
        >>> session = ProcessingSession(processor)
        >>> session.subscribe(lambda doc, status: print(doc.filename, status))
        >>> session.add_files(["factura1.pdf", "ticket.jpg"])
        >>> session.stats
        {'total': 2, 'completed': 2, 'processing': 0, 'errors': 0}
    """

    def __init__(
        self,
        processor: InvoiceProcessor,
        input_handler: Optional[InputHandler] = None
    ) -> None:
        self.processor = processor
        self.input_handler = input_handler or InputHandler()
        self._documents: Dict[str, UploadedDocument] = {}
        self._subscribers: List[Subscriber] = []
        self._lock = threading.RLock()
        self._active_batches = 0
        self._executor: Optional[ThreadPoolExecutor] = None

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a status listener.

        Returns:
            A function that removes the listener.
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, document: UploadedDocument, status: ProcessingStatus) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(document, status)
            except Exception:
                # A broken listener must not abort the document
                logger.exception(f"Status subscriber failed for {document.filename}")

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def accept(self, path: Union[str, Path]) -> UploadedDocument:
        """
        Register one file as an idle document.

        Files the input handler rejects are registered directly in the
        error state, so they show up in the stats like any failure.
        """
        try:
            document = UploadedDocument.from_input_file(self.input_handler.load(path))
        except InvoiceIntakeError as e:
            logger.error(f"Rejected {path}: {e}")
            document = UploadedDocument(
                filename=Path(path).name,
                kind='unknown',
                data=b'',
                mime_type='application/octet-stream',
                path=str(path),
            )
            document.update_status(ProcessingStatus(
                stage=ProcessingStage.ERROR,
                progress=0,
                message='Error en el procesamiento',
                error=e.message,
            ))

        with self._lock:
            self._documents[document.id] = document

        self._publish(document, document.status)
        return document

    def add_files(self, paths: Iterable[Union[str, Path]]) -> List[UploadedDocument]:
        """
        Accept and process files sequentially, in the given order.

        Returns:
            The documents, each in a terminal state.
        """
        documents = [self.accept(path) for path in paths]
        self.process_documents(documents)
        return documents

    def add_files_async(self, paths: Iterable[Union[str, Path]]) -> Future:
        """
        Accept files now and process them on the background worker.

        Returns:
            Future resolving to the list of documents.
        """
        documents = [self.accept(path) for path in paths]
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="invoice-intake")
            # Counted before submit so is_processing is true immediately
            self._active_batches += 1
            executor = self._executor

        def run() -> List[UploadedDocument]:
            try:
                self._process_all(documents)
            finally:
                with self._lock:
                    self._active_batches -= 1
            return documents

        return executor.submit(run)

    def process_documents(self, documents: List[UploadedDocument]) -> None:
        with self._lock:
            self._active_batches += 1
        try:
            self._process_all(documents)
        finally:
            with self._lock:
                self._active_batches -= 1

    def _process_all(self, documents: List[UploadedDocument]) -> None:
        for index, document in enumerate(documents, 1):
            if document.status.is_terminal:
                continue
            logger.info(f"Processing file {index}/{len(documents)}: {document.filename}")
            try:
                self.processor.process_file(
                    document,
                    lambda status, doc=document: self._publish(doc, status)
                )
            except InvoiceIntakeError as e:
                logger.error(f"{document.filename} failed: {e.message}")

        stats = self.stats
        logger.info(
            f"Batch processing complete: {stats['completed']} completed, {stats['errors']} failed"
        )

    # ------------------------------------------------------------------
    # Collection
    # ------------------------------------------------------------------

    @property
    def documents(self) -> List[UploadedDocument]:
        with self._lock:
            return list(self._documents.values())

    def get(self, document_id: str) -> Optional[UploadedDocument]:
        with self._lock:
            return self._documents.get(document_id)

    def remove(self, document_id: str) -> bool:
        with self._lock:
            return self._documents.pop(document_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._documents.clear()

    @property
    def is_processing(self) -> bool:
        with self._lock:
            return self._active_batches > 0

    @property
    def stats(self) -> Dict[str, int]:
        documents = self.documents
        completed = sum(1 for d in documents if d.status.stage == ProcessingStage.COMPLETED)
        errors = sum(1 for d in documents if d.status.stage == ProcessingStage.ERROR)
        return {
            'total': len(documents),
            'completed': completed,
            'processing': len(documents) - completed - errors,
            'errors': errors,
        }

    def shutdown(self, wait: bool = True) -> None:
        """Stop the background worker, waiting for queued batches by default."""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)
