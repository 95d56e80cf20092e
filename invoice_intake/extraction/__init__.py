"""
Field Extraction Module for the Invoice Intake System.

Turns raw document text into a structured InvoiceRecord:
    - Ordered pattern rules per field with fixed defaults
    - Derived total (base + tax - withholding)
    - Currency detection and conversion of the total
"""

from .invoice_record import InvoiceRecord, SPREADSHEET_HEADERS
from .locale import ExtractionLocale
from .rules import FieldRule, DEFAULT_RULES
from .extractor import FieldExtractor

__all__ = [
    'InvoiceRecord',
    'SPREADSHEET_HEADERS',
    'ExtractionLocale',
    'FieldRule',
    'DEFAULT_RULES',
    'FieldExtractor',
]
