"""
Custom Exceptions Module.

This module defines all custom exceptions used throughout the invoice
intake system. Every exception carries a human-readable message that
the pipeline copies into the terminal error status.

Exception Hierarchy:
    InvoiceIntakeError (base)
    ├── InputError
    │   ├── UnsupportedFileTypeError
    │   ├── FileNotFoundError
    │   └── CorruptedFileError
    ├── OCRError
    │   ├── OCREngineNotAvailableError
    │   ├── OCRExtractionError
    │   ├── ScannedDocumentUnsupportedError
    │   └── EmptyExtractionResultError
    ├── OutputError
    │   ├── AuthenticationError
    │   ├── DuplicateRecordError
    │   ├── PersistenceDestinationNotConfiguredError
    │   └── StorageError
    └── UnknownProcessingError
"""


class InvoiceIntakeError(Exception):
    """
    Base exception for all invoice intake errors.

    Attributes:
        message: Human-readable error message.
        details: Optional dictionary with additional error details.
    """

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# INPUT ERRORS
# =============================================================================

class InputError(InvoiceIntakeError):
    """Base exception for input handling errors."""
    pass


class UnsupportedFileTypeError(InputError):
    """
    Raised when an unsupported file type is provided.

    Example:
        >>> raise UnsupportedFileTypeError(".doc", [".pdf", ".jpg"])
    """

    def __init__(self, file_type: str, supported_types: list):
        message = f"Unsupported file type: '{file_type}'"
        details = {"file_type": file_type, "supported_types": sorted(supported_types)}
        super().__init__(message, details)


class FileNotFoundError(InputError):
    """Raised when input file cannot be found."""

    def __init__(self, filepath: str):
        message = f"File not found: {filepath}"
        details = {"filepath": filepath}
        super().__init__(message, details)


class CorruptedFileError(InputError):
    """Raised when a file appears to be corrupted or unreadable."""

    def __init__(self, filepath: str, reason: str = None):
        message = f"Corrupted or unreadable file: {filepath}"
        details = {"filepath": filepath, "reason": reason}
        super().__init__(message, details)


# =============================================================================
# OCR / TEXT EXTRACTION ERRORS
# =============================================================================

class OCRError(InvoiceIntakeError):
    """Base exception for text extraction errors."""
    pass


class OCREngineNotAvailableError(OCRError):
    """Raised when the OCR engine cannot be started."""

    def __init__(self, engine_name: str):
        message = f"OCR engine not available: {engine_name}"
        details = {"engine": engine_name}
        super().__init__(message, details)


class OCRExtractionError(OCRError):
    """Raised when OCR over an image fails."""

    def __init__(self, filepath: str, reason: str = None):
        message = f"Could not extract text from image: {filepath}"
        details = {"filepath": filepath, "reason": reason}
        super().__init__(message, details)


class ScannedDocumentUnsupportedError(OCRError):
    """Raised when a PDF has no embedded text and cannot be OCR'd."""

    def __init__(self, filepath: str, reason: str = None):
        message = (
            f"Scanned PDF detected with no embedded text: {filepath}. "
            "Document OCR is required to process it."
        )
        details = {"filepath": filepath, "reason": reason}
        super().__init__(message, details)


class EmptyExtractionResultError(OCRError):
    """Raised when text extraction returns nothing usable."""

    def __init__(self, filepath: str):
        message = f"No text could be extracted from the document: {filepath}"
        details = {"filepath": filepath}
        super().__init__(message, details)


# =============================================================================
# OUTPUT ERRORS
# =============================================================================

class OutputError(InvoiceIntakeError):
    """Base exception for persistence errors."""
    pass


class AuthenticationError(OutputError):
    """Raised when the external session cannot be established."""

    def __init__(self, provider: str, reason: str = None):
        message = f"Authentication failed for {provider}"
        details = {"provider": provider, "reason": reason}
        super().__init__(message, details)


class DuplicateRecordError(OutputError):
    """Raised when an invoice with the same number and company exists."""

    def __init__(self, invoice_number: str, company: str):
        message = (
            f"An invoice with number {invoice_number} "
            f"from company {company} already exists"
        )
        details = {"invoice_number": invoice_number, "company": company}
        super().__init__(message, details)


class PersistenceDestinationNotConfiguredError(OutputError):
    """Raised when no spreadsheet or folder id can be resolved."""

    def __init__(self, destination: str, setting: str = None):
        message = f"Persistence destination not configured: {destination}"
        details = {"destination": destination, "setting": setting}
        super().__init__(message, details)


class StorageError(OutputError):
    """Raised when a spreadsheet or file-store operation fails."""

    def __init__(self, operation: str, reason: str = None):
        message = f"Storage operation failed: {operation}"
        details = {"operation": operation, "reason": reason}
        super().__init__(message, details)


# =============================================================================
# PIPELINE ERRORS
# =============================================================================

class UnknownProcessingError(InvoiceIntakeError):
    """Wraps an unexpected exception raised inside a pipeline stage."""

    def __init__(self, reason: str = None):
        message = reason or "Unknown processing error"
        details = {"reason": reason}
        super().__init__(message, details)


__all__ = [
    'InvoiceIntakeError',
    'InputError',
    'UnsupportedFileTypeError',
    'FileNotFoundError',
    'CorruptedFileError',
    'OCRError',
    'OCREngineNotAvailableError',
    'OCRExtractionError',
    'ScannedDocumentUnsupportedError',
    'EmptyExtractionResultError',
    'OutputError',
    'AuthenticationError',
    'DuplicateRecordError',
    'PersistenceDestinationNotConfiguredError',
    'StorageError',
    'UnknownProcessingError',
]
