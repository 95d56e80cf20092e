"""
Processing Pipeline Module for the Invoice Intake System.

    - ProcessingStage / ProcessingStatus / UploadedDocument: status model
    - InvoiceProcessor: per-document state machine with fixed checkpoints
    - ProcessingSession: sequential batch driver with status subscribers
    - build_services: composition root
"""

from .status import ProcessingStage, ProcessingStatus, UploadedDocument
from .processor import InvoiceProcessor
from .session import ProcessingSession
from .builder import IntakeServices, build_services

__all__ = [
    'ProcessingStage',
    'ProcessingStatus',
    'UploadedDocument',
    'InvoiceProcessor',
    'ProcessingSession',
    'IntakeServices',
    'build_services',
]
