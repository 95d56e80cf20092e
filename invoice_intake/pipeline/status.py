"""
Processing status model.

ProcessingStage and its fixed progress checkpoints, the ProcessingStatus
event emitted at each checkpoint, and UploadedDocument, which pairs an
accepted file with its current status, status history and result.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from invoice_intake.extraction.invoice_record import InvoiceRecord
from invoice_intake.input_handler.handler import InputFile


class ProcessingStage(str, Enum):
    IDLE = 'idle'
    UPLOADING = 'uploading'
    PROCESSING = 'processing'
    EXTRACTING = 'extracting'
    CONVERTING = 'converting'
    SAVING = 'saving'
    COMPLETED = 'completed'
    ERROR = 'error'

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStage.COMPLETED, ProcessingStage.ERROR)


@dataclass(frozen=True)
class ProcessingStatus:
    """
    One progress event of a document.

    Attributes:
        stage: Current stage
        progress: Fixed checkpoint percentage (0-100)
        message: User-facing message
        error: Error detail, only on the error stage
        timestamp: When the status was emitted
    """
    stage: ProcessingStage = ProcessingStage.IDLE
    progress: int = 0
    message: str = ''
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now, compare=False)

    def __post_init__(self):
        if not 0 <= self.progress <= 100:
            raise ValueError(f"progress must be within 0-100, got {self.progress}")

    @property
    def is_terminal(self) -> bool:
        return self.stage.is_terminal

    def __str__(self) -> str:
        text = f"[{self.stage.value:>10} {self.progress:3d}%] {self.message}"
        if self.error and self.error != self.message:
            text += f" ({self.error})"
        return text


@dataclass
class UploadedDocument:
    """
    An accepted file travelling through the pipeline.

    Attributes:
        id: Identifier within the session
        path: Source path, None for in-memory uploads
        filename: Name shown to the user
        kind: 'pdf' or 'image'
        data: Raw file bytes
        mime_type: MIME type used for the upload
        status: Current status
        history: Every status emitted so far, oldest first
        record: Extracted record, once available
        file_url: URL of the stored copy, once uploaded
    """
    filename: str
    kind: str
    data: bytes
    mime_type: str
    path: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: ProcessingStatus = field(
        default_factory=lambda: ProcessingStatus(message='Preparando...')
    )
    history: List[ProcessingStatus] = field(default_factory=list)
    record: Optional[InvoiceRecord] = None
    file_url: Optional[str] = None

    @classmethod
    def from_input_file(cls, input_file: InputFile) -> 'UploadedDocument':
        return cls(
            filename=input_file.filename,
            kind=input_file.kind,
            data=input_file.data,
            mime_type=input_file.mime_type,
            path=input_file.path,
        )

    def update_status(self, status: ProcessingStatus) -> None:
        self.status = status
        self.history.append(status)

    @property
    def suffix(self) -> str:
        return '.' + self.filename.rsplit('.', 1)[-1].lower() if '.' in self.filename else ''

    def __repr__(self) -> str:
        return (
            f"UploadedDocument(filename='{self.filename}', kind='{self.kind}', "
            f"stage={self.status.stage.value}, progress={self.status.progress})"
        )
