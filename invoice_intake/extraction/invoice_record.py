"""
Invoice Record Data Class.

This module defines the structured output of field extraction. Amounts
are kept as text in the invoice locale ("121,00") because that is what
is written to the spreadsheet; arithmetic is done on Decimal values by
the extractor before formatting.
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple


SPREADSHEET_HEADERS = [
    'Fecha',
    'Nº Factura',
    'Empresa',
    'Concepto',
    'Base Imponible',
    'IVA',
    'Retención IRPF',
    'Importe Total',
    'Moneda Original',
    'Importe Original',
    'Fecha Procesamiento',
]


@dataclass
class InvoiceRecord:
    """
    Structured invoice fields extracted from one document.

    Attributes:
        fecha: Issue date, DD-MM-YYYY
        numero_factura: Invoice number
        empresa: Issuer company name
        concepto: Line-item concept, at most 100 characters
        base_imponible: Taxable base
        iva: VAT amount
        retencion_irpf: Withholding amount
        importe_total: Total, in the reference currency
        moneda_original: Original currency code, when not the reference
        importe_original: Total before conversion, when converted

    Example:
        >>> record = InvoiceRecord(
        ...     fecha="15-03-2024",
        ...     numero_factura="F-2024-001",
        ...     empresa="Acme S.L.",
        ...     concepto="Consultoría",
        ...     base_imponible="100,00",
        ...     iva="21,00",
        ...     retencion_irpf="0,00",
        ...     importe_total="121,00",
        ... )
        >>> record.duplicate_key
        ('F-2024-001', 'Acme S.L.')
    """
    fecha: str
    numero_factura: str
    empresa: str
    concepto: str
    base_imponible: str
    iva: str
    retencion_irpf: str
    importe_total: str
    moneda_original: Optional[str] = None
    importe_original: Optional[str] = None

    @property
    def duplicate_key(self) -> Tuple[str, str]:
        """(invoice number, company) pair identifying the invoice."""
        return self.numero_factura, self.empresa

    @property
    def was_converted(self) -> bool:
        return self.moneda_original is not None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_row(
        self,
        reference_currency: str = 'EUR',
        processed_at: Optional[datetime] = None
    ) -> List[str]:
        """
        Build the spreadsheet row (columns A to K).

        Unconverted invoices report the reference currency and repeat the
        total as the original amount.

        Args:
            reference_currency: Code written when there was no conversion.
            processed_at: Processing timestamp, defaults to now.

        Returns:
            List of 11 cell values matching SPREADSHEET_HEADERS.
        """
        processed_at = processed_at or datetime.now()
        return [
            self.fecha,
            self.numero_factura,
            self.empresa,
            self.concepto,
            self.base_imponible,
            self.iva,
            self.retencion_irpf,
            self.importe_total,
            self.moneda_original or reference_currency,
            self.importe_original or self.importe_total,
            processed_at.strftime('%d/%m/%Y, %H:%M:%S'),
        ]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InvoiceRecord':
        return cls(
            fecha=data.get('fecha', ''),
            numero_factura=data.get('numero_factura', ''),
            empresa=data.get('empresa', ''),
            concepto=data.get('concepto', ''),
            base_imponible=data.get('base_imponible', ''),
            iva=data.get('iva', ''),
            retencion_irpf=data.get('retencion_irpf', ''),
            importe_total=data.get('importe_total', ''),
            moneda_original=data.get('moneda_original'),
            importe_original=data.get('importe_original'),
        )

    def __repr__(self) -> str:
        return (
            f"InvoiceRecord("
            f"numero={self.numero_factura}, "
            f"empresa={self.empresa}, "
            f"total={self.importe_total}"
            f"{', moneda=' + self.moneda_original if self.moneda_original else ''})"
        )
