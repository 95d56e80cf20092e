"""
Post-Processing Module for the Invoice Intake System.

This module provides:
    - Amount parsing/formatting (comma decimal at the boundary, Decimal inside)
    - Date normalization to DD-MM-YYYY
    - Currency detection and conversion to the reference currency
"""

from .normalizers import AmountNormalizer, DateNormalizer
from .currency import CurrencyNormalizer, CURRENCY_SIGNATURES, DEFAULT_FALLBACK_RATES

__all__ = [
    'AmountNormalizer',
    'DateNormalizer',
    'CurrencyNormalizer',
    'CURRENCY_SIGNATURES',
    'DEFAULT_FALLBACK_RATES',
]
