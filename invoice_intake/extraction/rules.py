"""
Field Extraction Rules.

Each invoice field is extracted with an ordered list of FieldRule
objects. The first rule whose pattern matches (and whose transform
returns a non-empty value) wins; later rules are not consulted. The
lists are plain module-level data so callers can reorder, drop or
replace individual rules, and tests can exercise one rule at a time.

Label matching is case-insensitive. Amount rules capture digits and
separators only; the extractor turns them into Decimal values.
"""

import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Pattern


@dataclass(frozen=True)
class FieldRule:
    """
    One (matcher, transform) pair.

    Attributes:
        name: Stable identifier, used in logs and tests.
        pattern: Compiled regex; group 1 holds the value.
        transform: Cleans the captured text; returning None or an empty
            string makes the extractor move on to the next rule.
    """
    name: str
    pattern: Pattern
    transform: Callable[[str], Optional[str]] = str.strip

    def apply(self, text: str) -> Optional[str]:
        match = self.pattern.search(text)
        if not match:
            return None
        value = self.transform(match.group(1))
        return value or None


def _strip_code(value: str) -> str:
    return value.strip().rstrip('-/')


def _strip_amount(value: str) -> str:
    return value.strip().rstrip('.,')


def _strip_concept(value: str) -> str:
    return value.strip(' \t:-')


NUMERIC_DATE = r'\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}'
LABEL_SEP = r'[:\s]*'
CURRENCY_MARK = r'(?:[€$£¥]|EUR\b|USD\b|GBP\b)?\s*'
AMOUNT = r'(\d[\d.,]*)'
PERCENT = r'(?:\s*\(?\s*\d{1,2}(?:[.,]\d{1,2})?\s*%\s*\)?)?'
INVOICE_CODE = r'([A-Z0-9][A-Z0-9\-/]*\d[A-Z0-9\-/]*)'
# Concept text ends at a line break, a total/importe keyword or the end.
CONCEPT_END = r'(.*?)(?:\n|total|importe|$)'


def _amount_rule(name: str, label: str, percent: bool = False) -> FieldRule:
    pattern = label + (PERCENT if percent else '') + LABEL_SEP + CURRENCY_MARK + AMOUNT
    return FieldRule(name, re.compile(pattern, re.IGNORECASE), _strip_amount)


DATE_RULES: List[FieldRule] = [
    FieldRule(
        'labeled_date',
        re.compile(
            r'\b(?:fecha\s+de\s+emisi[oó]n|fecha\s+(?:de\s+)?factura|fecha|date)'
            + LABEL_SEP + r'(' + NUMERIC_DATE + r')',
            re.IGNORECASE
        ),
    ),
    FieldRule(
        'numeric_date',
        re.compile(r'\b(' + NUMERIC_DATE + r')\b'),
    ),
    FieldRule(
        'long_spanish_date',
        re.compile(r'\b(\d{1,2}\s+de\s+[a-záéíóú]+\s+(?:de|del)\s+\d{4})\b', re.IGNORECASE),
    ),
    FieldRule(
        'long_english_date',
        re.compile(
            r'\b((?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?'
            r'\s+\d{1,2}(?:st|nd|rd|th)?,?\s+\d{4})\b',
            re.IGNORECASE
        ),
    ),
]

INVOICE_NUMBER_RULES: List[FieldRule] = [
    FieldRule(
        'labeled_invoice_number',
        re.compile(
            r'\b(?:factura|invoice)\s*'
            r'(?:n[º°o]\.?|n[uú]m(?:ero)?\.?|number|#)?\s*[:#]?\s*'
            + INVOICE_CODE,
            re.IGNORECASE
        ),
        _strip_code,
    ),
    FieldRule(
        'labeled_number',
        re.compile(
            r'(?:^|[\s(])(?:n[º°]\.?|n[uú]mero|number)\s*[:#]?\s*' + INVOICE_CODE,
            re.IGNORECASE
        ),
        _strip_code,
    ),
    FieldRule(
        'prefix_code',
        re.compile(r'\b(?:FAC|INV|F)[:\s\-]*(\d+)', re.IGNORECASE),
    ),
    FieldRule(
        'generic_code',
        re.compile(r'\b([A-Z]{2,}-?\d{3,})\b'),
    ),
]

CONCEPT_RULES: List[FieldRule] = [
    FieldRule(
        'labeled_concept',
        re.compile(
            r'\b(?:concepto|descripci[oó]n|description)\b' + LABEL_SEP + CONCEPT_END,
            re.IGNORECASE
        ),
        _strip_concept,
    ),
    FieldRule(
        'item_concept',
        re.compile(r'\b(?:servicios?|productos?)\b' + LABEL_SEP + CONCEPT_END, re.IGNORECASE),
        _strip_concept,
    ),
    FieldRule(
        'for_concept',
        re.compile(r'\b(?:por|for)\b' + LABEL_SEP + CONCEPT_END, re.IGNORECASE),
        _strip_concept,
    ),
]

BASE_RULES: List[FieldRule] = [
    _amount_rule('labeled_base', r'\b(?:base\s+imponible|subtotal|base)\b'),
    _amount_rule('net_base', r'\b(?:neto|net)\b'),
]

TAX_RULES: List[FieldRule] = [
    _amount_rule('labeled_tax', r'\b(?:iva|vat|tax)\b', percent=True),
    _amount_rule('standard_rate_tax', r'\b21\s*%'),
]

WITHHOLDING_RULES: List[FieldRule] = [
    _amount_rule('labeled_withholding', r'\b(?:irpf|retenci[oó]n)\b', percent=True),
    _amount_rule('standard_rate_withholding', r'\b15\s*%'),
]

TOTAL_RULES: List[FieldRule] = [
    _amount_rule(
        'labeled_total',
        r'\b(?:importe\s+total|total\s+factura|total\s+a\s+pagar|invoice\s+total|grand\s+total)\b'
    ),
    _amount_rule('total', r'\btotal\b'),
    _amount_rule('amount', r'\b(?:amount|importe)\b'),
    FieldRule(
        'euro_marker',
        re.compile(r'(?:€|\bEUR\b)' + LABEL_SEP + AMOUNT, re.IGNORECASE),
        _strip_amount,
    ),
]

# Lines starting with these are headers, never the company name.
COMPANY_HEADER_PATTERN: Pattern = re.compile(
    r'^(?:factura|invoice|fecha|date|n[º°])',
    re.IGNORECASE
)

# Characters removed from a company line (keeps letters, digits, spaces, . , -).
COMPANY_CLEANUP_PATTERN: Pattern = re.compile(r'[^\w\s.,\-]')


DEFAULT_RULES: Dict[str, List[FieldRule]] = {
    'fecha': DATE_RULES,
    'numero_factura': INVOICE_NUMBER_RULES,
    'concepto': CONCEPT_RULES,
    'base_imponible': BASE_RULES,
    'iva': TAX_RULES,
    'retencion_irpf': WITHHOLDING_RULES,
    'importe_total': TOTAL_RULES,
}

AMOUNT_FIELDS = ('base_imponible', 'iva', 'retencion_irpf', 'importe_total')


__all__ = [
    'FieldRule',
    'DATE_RULES',
    'INVOICE_NUMBER_RULES',
    'CONCEPT_RULES',
    'BASE_RULES',
    'TAX_RULES',
    'WITHHOLDING_RULES',
    'TOTAL_RULES',
    'COMPANY_HEADER_PATTERN',
    'COMPANY_CLEANUP_PATTERN',
    'DEFAULT_RULES',
    'AMOUNT_FIELDS',
]
