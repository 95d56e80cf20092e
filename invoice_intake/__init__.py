"""
Invoice Intake System - Source Package.

This package contains the modules of the invoice intake pipeline. Each
module has a single responsibility.

Modules:
    - input_handler: File validation, kind detection, PDF and image handling
    - ocr_engine: Shared Tesseract engine and the text extraction adapter
    - postprocessor: Amount, date and currency normalization
    - extraction: Rule-based field extraction into InvoiceRecord
    - output_handler: Auth sessions, spreadsheet and file stores
    - pipeline: Per-document state machine, batch session, composition root
    - utils: Logging, exceptions and helpers

Architecture:
    Input → Text extraction (PDF text / OCR) → Field extraction → Currency
          → File storage → Spreadsheet (duplicate check)
"""

__version__ = "1.0.0"

__all__ = [
    'input_handler',
    'ocr_engine',
    'postprocessor',
    'extraction',
    'output_handler',
    'pipeline',
    'utils'
]
