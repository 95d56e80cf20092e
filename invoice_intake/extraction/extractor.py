"""
Invoice Field Extractor Module.

This module provides the FieldExtractor class, which turns the raw text
of an invoice into an InvoiceRecord using ordered pattern rules.

Approach:
    Every field has an ordered rule list (see rules.py). The first rule
    that matches wins. Fields with no match get a fixed default so the
    extractor always returns a complete record, whatever the input.

After the core fields, the currency of the document is detected. A
non-reference currency is recorded on the record together with the
original total, and the total is converted to the reference currency.
Only the total is converted; base, tax and withholding stay in the
document currency.
"""

from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple

from invoice_intake.utils.logger import get_logger
from invoice_intake.postprocessor.normalizers import AmountNormalizer, DateNormalizer
from invoice_intake.postprocessor.currency import CurrencyNormalizer
from .invoice_record import InvoiceRecord
from .locale import ExtractionLocale
from .rules import (
    AMOUNT_FIELDS,
    COMPANY_CLEANUP_PATTERN,
    COMPANY_HEADER_PATTERN,
    DEFAULT_RULES,
    FieldRule,
)

logger = get_logger(__name__)


class FieldExtractor:
    """
    Rule-based extractor for invoice header and amount fields.

    The extractor holds no per-document state; one instance can serve
    any number of documents.

    Attributes:
        currency_normalizer: Detects and converts the document currency.
        locale: Number/date conventions and placeholders.
        rules: Field name -> ordered list of FieldRule.

    Example:
        >>> extractor = FieldExtractor(currency_normalizer=CurrencyNormalizer())
        >>> record = extractor.extract("Empresa Acme S.L.\\nBase imponible: 100,00\\nIVA: 21,00")
        >>> record.importe_total
        '121,00'
    """

    def __init__(
        self,
        currency_normalizer: Optional[CurrencyNormalizer] = None,
        locale: Optional[ExtractionLocale] = None,
        rules: Optional[Dict[str, List[FieldRule]]] = None,
        clock: Optional[Callable[[], datetime]] = None
    ) -> None:
        """
        Initialize the extractor.

        Args:
            currency_normalizer: Shared currency normalizer. Created from
                configuration when omitted.
            locale: Extraction locale. Read from configuration when omitted.
            rules: Per-field rule overrides; fields not given keep the
                default rule list.
            clock: Source of "now" for the date and invoice number defaults.
        """
        self.locale = locale or ExtractionLocale.from_config()
        self.currency_normalizer = currency_normalizer or CurrencyNormalizer(
            reference_currency=self.locale.reference_currency
        )
        self.rules: Dict[str, List[FieldRule]] = dict(DEFAULT_RULES)
        if rules:
            self.rules.update(rules)

        self.clock = clock or datetime.now
        self.amounts = AmountNormalizer(self.locale.decimal_separator)
        self.dates = DateNormalizer(
            output_format=self.locale.date_format,
            dayfirst=self.locale.dayfirst,
            clock=self.clock
        )

        logger.debug(
            f"FieldExtractor initialized (reference={self.locale.reference_currency}, "
            f"fields={sorted(self.rules)})"
        )

    def extract(self, raw_text: str) -> InvoiceRecord:
        """
        Extract a complete InvoiceRecord from raw text.

        Never raises for unparseable input; missing fields get defaults.

        Args:
            raw_text: Text obtained from the document.

        Returns:
            InvoiceRecord with every field populated.
        """
        text = raw_text or ''

        amounts = self.extract_amounts(text)

        record = InvoiceRecord(
            fecha=self.extract_date(text),
            numero_factura=self.extract_invoice_number(text),
            empresa=self.extract_company_name(text),
            concepto=self.extract_concept(text),
            base_imponible=amounts['base_imponible'],
            iva=amounts['iva'],
            retencion_irpf=amounts['retencion_irpf'],
            importe_total=amounts['importe_total'],
        )

        self.apply_currency(record, text)

        logger.info(f"Extracted {record!r}")
        return record

    # ------------------------------------------------------------------
    # Rule evaluation
    # ------------------------------------------------------------------

    def match_field(self, field_name: str, text: str) -> Optional[Tuple[str, str]]:
        """
        Run the rule list of a field against text.

        Args:
            field_name: Key into self.rules.
            text: Raw text.

        Returns:
            (rule name, captured value) of the first matching rule, or None.
        """
        for rule in self.rules.get(field_name, []):
            value = rule.apply(text)
            if value:
                logger.debug(f"{field_name}: rule '{rule.name}' matched {value!r}")
                return rule.name, value
        logger.debug(f"{field_name}: no rule matched, using default")
        return None

    # ------------------------------------------------------------------
    # Individual fields
    # ------------------------------------------------------------------

    def extract_date(self, text: str) -> str:
        for rule in self.rules.get('fecha', []):
            value = rule.apply(text)
            if not value:
                continue
            normalized = self.dates.normalize(value)
            if normalized:
                logger.debug(f"fecha: rule '{rule.name}' matched {value!r}")
                return normalized
        return self.dates.today()

    def extract_invoice_number(self, text: str) -> str:
        match = self.match_field('numero_factura', text)
        if match:
            return match[1]
        return self.synthesize_invoice_number()

    def synthesize_invoice_number(self) -> str:
        """Invoice number built from the last six digits of the ms timestamp."""
        millis = str(int(self.clock().timestamp() * 1000))
        return f"{self.locale.invoice_number_prefix}{millis[-6:]}"

    def extract_company_name(self, text: str) -> str:
        """
        Take the company from the first lines of the document.

        The first non-empty line (within company_scan_lines) that is not
        a header and has a reasonable length is cleaned of punctuation
        and returned.
        """
        lines = [line.strip() for line in text.splitlines() if line.strip()]

        for line in lines[:self.locale.company_scan_lines]:
            if COMPANY_HEADER_PATTERN.match(line):
                continue
            if not 3 < len(line) < 100:
                continue
            cleaned = COMPANY_CLEANUP_PATTERN.sub('', line).strip()
            if len(cleaned) > 3:
                return cleaned

        return self.locale.unknown_company

    def extract_concept(self, text: str) -> str:
        match = self.match_field('concepto', text)
        if match:
            return match[1][:self.locale.concept_max_length]
        return self.locale.default_concept

    def extract_amounts(self, text: str) -> Dict[str, str]:
        """
        Extract base, tax, withholding and total as formatted text.

        When no total is found but a base is, the total is derived as
        base + tax - withholding.
        """
        values: Dict[str, Decimal] = {}
        for field_name in AMOUNT_FIELDS:
            match = self.match_field(field_name, text)
            values[field_name] = self.amounts.parse(match[1]) if match else Decimal('0')

        amounts = {name: self.amounts.format(value) for name, value in values.items()}

        if (
            self.amounts.is_zero_text(amounts['importe_total'])
            and not self.amounts.is_zero_text(amounts['base_imponible'])
        ):
            total = (
                values['base_imponible']
                + values['iva']
                - values['retencion_irpf']
            )
            amounts['importe_total'] = self.amounts.format(total)
            logger.debug(f"importe_total derived from base, tax and withholding: {amounts['importe_total']}")

        return amounts

    # ------------------------------------------------------------------
    # Currency
    # ------------------------------------------------------------------

    def apply_currency(self, record: InvoiceRecord, text: str) -> InvoiceRecord:
        """
        Convert the total to the reference currency when needed.

        Records the original currency and the pre-conversion total on
        the record, then overwrites importe_total with the converted value.
        """
        currency = self.currency_normalizer.detect_currency(text)
        if self.currency_normalizer.is_reference(currency):
            return record

        original_total = record.importe_total
        converted = self.currency_normalizer.convert_to_reference(
            self.amounts.parse(original_total),
            currency
        )

        record.moneda_original = currency
        record.importe_original = original_total
        record.importe_total = self.amounts.format(converted)

        logger.info(
            f"Converted total {original_total} {currency} -> "
            f"{record.importe_total} {self.locale.reference_currency}"
        )
        return record
