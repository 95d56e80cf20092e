"""
Extraction locale.

Number and date conventions are passed to the extractor explicitly so
its output does not depend on the machine's locale.
"""

from dataclasses import dataclass

from config import get_config


@dataclass(frozen=True)
class ExtractionLocale:
    """
    Conventions used when formatting extracted values.

    Attributes:
        decimal_separator: Separator of formatted amounts.
        date_format: strftime format of the fecha field.
        dayfirst: Whether 01/02/2024 is 1 February.
        reference_currency: Code totals are normalized to.
        unknown_company: Placeholder when no company line is found.
        default_concept: Placeholder when no concept is found.
        concept_max_length: Concept truncation length.
        company_scan_lines: Leading non-empty lines searched for the company.
        invoice_number_prefix: Prefix of synthesized invoice numbers.
    """
    decimal_separator: str = ","
    date_format: str = "%d-%m-%Y"
    dayfirst: bool = True
    reference_currency: str = "EUR"
    unknown_company: str = "Empresa no identificada"
    default_concept: str = "Servicios profesionales"
    concept_max_length: int = 100
    company_scan_lines: int = 5
    invoice_number_prefix: str = "FAC-"

    @classmethod
    def from_config(cls) -> 'ExtractionLocale':
        """Build the locale from the ``extraction`` section of settings.yaml."""
        defaults = cls()
        return cls(
            decimal_separator=get_config("extraction.decimal_separator", defaults.decimal_separator),
            date_format=get_config("extraction.date_format", defaults.date_format),
            dayfirst=get_config("extraction.dayfirst", defaults.dayfirst),
            reference_currency=get_config("currency.reference", defaults.reference_currency),
            unknown_company=get_config("extraction.unknown_company", defaults.unknown_company),
            default_concept=get_config("extraction.default_concept", defaults.default_concept),
            concept_max_length=get_config("extraction.concept_max_length", defaults.concept_max_length),
            company_scan_lines=get_config("extraction.company_scan_lines", defaults.company_scan_lines),
        )
