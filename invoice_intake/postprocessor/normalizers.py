"""
Data Normalizers Module.

This module provides normalization for the two value types that come
out of invoice text as free-form strings:
    - Amounts: parsed to Decimal, formatted with the locale decimal separator
    - Dates: parsed day-first, formatted as DD-MM-YYYY

Amounts are only turned back into text at the boundary; all arithmetic
happens on Decimal values.
"""

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Callable, Optional, Union

from dateutil import parser as date_parser

from invoice_intake.utils.logger import get_logger

logger = get_logger(__name__)

TWO_PLACES = Decimal('0.01')
ZERO = Decimal('0')

AmountLike = Union[str, int, float, Decimal, None]


def _quantize(value: Decimal) -> Optional[Decimal]:
    """Round to two places, or None when the value cannot be represented."""
    if not value.is_finite():
        return None
    try:
        return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None


class AmountNormalizer:
    """
    Parses and formats monetary amounts.

    Parsing tolerates currency symbols, spaces and thousands separators
    and never raises: anything that does not contain a number is zero.

    Attributes:
        decimal_separator: Separator used when formatting (',' by default).

    Example:
        >>> normalizer = AmountNormalizer()
        >>> normalizer.parse("1.234,56 €")
        Decimal('1234.56')
        >>> normalizer.format(Decimal("121"))
        '121,00'
        >>> normalizer.normalize("$ 1,250.5")
        '1250,50'
    """

    def __init__(self, decimal_separator: str = ",") -> None:
        self.decimal_separator = decimal_separator
        self.zero_text = self.format(ZERO)

    def parse(self, amount: AmountLike) -> Decimal:
        """
        Parse an amount string into a Decimal.

        Rules:
            - With both ',' and '.', the right-most one is the decimal separator.
            - A single ',' is the decimal separator.
            - A single '.' followed by exactly three digits groups thousands.
            - Repeated separators of the same kind group thousands.
            - Malformed input yields zero.

        Args:
            amount: Raw amount text (or a number).

        Returns:
            Parsed Decimal value.
        """
        if amount is None:
            return ZERO
        if isinstance(amount, (int, float, Decimal)):
            return self._checked(Decimal(str(amount)), amount)

        cleaned = re.sub(r'[^\d.,\-]', '', str(amount))
        negative = cleaned.startswith('-')
        cleaned = cleaned.replace('-', '')

        if not re.search(r'\d', cleaned):
            return ZERO

        comma_count = cleaned.count(',')
        dot_count = cleaned.count('.')

        if comma_count and dot_count:
            if cleaned.rfind(',') > cleaned.rfind('.'):
                cleaned = cleaned.replace('.', '').replace(',', '.')
            else:
                cleaned = cleaned.replace(',', '')
        elif comma_count:
            if comma_count > 1:
                cleaned = cleaned.replace(',', '')
            else:
                cleaned = cleaned.replace(',', '.')
        elif dot_count:
            after_dot = cleaned[cleaned.rfind('.') + 1:]
            if dot_count > 1 or len(after_dot) == 3:
                cleaned = cleaned.replace('.', '')

        try:
            value = Decimal(cleaned)
        except InvalidOperation:
            logger.debug(f"Could not parse amount: {amount!r}")
            return ZERO

        return self._checked(-value if negative else value, amount)

    @staticmethod
    def _checked(value: Decimal, raw: AmountLike) -> Decimal:
        # Runs of digits too long for two-place precision are OCR noise.
        if _quantize(value) is None:
            logger.debug(f"Amount out of range, using zero: {raw!r}")
            return ZERO
        return value

    def format(self, value: AmountLike) -> str:
        """
        Format a value with two decimals and the locale separator.

        Example:
            >>> AmountNormalizer().format(Decimal("100.005"))
            '100,01'
        """
        number = self.parse(value) if not isinstance(value, Decimal) else value
        quantized = _quantize(number)
        if quantized is None:
            logger.warning(f"Amount out of range, formatting as zero: {number!r}")
            quantized = ZERO.quantize(TWO_PLACES)
        if quantized == 0:
            quantized = abs(quantized)
        return format(quantized, 'f').replace('.', self.decimal_separator)

    def normalize(self, amount: AmountLike) -> str:
        """Parse then format; the canonical text form of an amount."""
        return self.format(self.parse(amount))

    def is_zero_text(self, text: Optional[str]) -> bool:
        return not text or text == self.zero_text


class DateNormalizer:
    """
    Normalizes date strings to a fixed output format.

    Handles numeric dates (15/03/2024, 15-03-24, 15.03.2024), ISO dates,
    Spanish long form (15 de marzo de 2024) and English long form
    (March 15, 2024).

    Attributes:
        output_format: strftime format of the result ("%d-%m-%Y").
        dayfirst: Whether ambiguous numeric dates are day-first.

    Example:
        >>> normalizer = DateNormalizer()
        >>> normalizer.normalize("15/03/2024")
        '15-03-2024'
        >>> normalizer.normalize("3 de febrero de 2024")
        '03-02-2024'
    """

    SPANISH_MONTHS = {
        'enero': 1,
        'febrero': 2,
        'marzo': 3,
        'abril': 4,
        'mayo': 5,
        'junio': 6,
        'julio': 7,
        'agosto': 8,
        'septiembre': 9,
        'setiembre': 9,
        'octubre': 10,
        'noviembre': 11,
        'diciembre': 12,
    }

    NUMERIC_DATE = re.compile(r'^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})$')
    SPANISH_LONG_DATE = re.compile(
        r'^(\d{1,2})\s+de\s+([a-záéíóú]+)\s+(?:de|del)\s+(\d{4})$',
        re.IGNORECASE
    )

    def __init__(
        self,
        output_format: str = "%d-%m-%Y",
        dayfirst: bool = True,
        clock: Optional[Callable[[], datetime]] = None
    ) -> None:
        self.output_format = output_format
        self.dayfirst = dayfirst
        self.clock = clock or datetime.now

    def normalize(self, date_str: Optional[str]) -> Optional[str]:
        """
        Normalize a date string to the configured output format.

        Args:
            date_str: Input date string.

        Returns:
            Normalized date string, or None if it is not a valid date.
        """
        if not date_str:
            return None

        parsed = self.parse(date_str)
        if parsed is None:
            logger.debug(f"Could not parse date: {date_str!r}")
            return None
        return parsed.strftime(self.output_format)

    def parse(self, date_str: str) -> Optional[datetime]:
        cleaned = ' '.join(date_str.split()).strip(' .,')

        match = self.NUMERIC_DATE.match(cleaned)
        if match:
            return self._from_numeric(*match.groups())

        match = self.SPANISH_LONG_DATE.match(cleaned)
        if match:
            day, month_name, year = match.groups()
            month = self.SPANISH_MONTHS.get(month_name.lower())
            if month is None:
                return None
            return self._build(int(year), month, int(day))

        try:
            return date_parser.parse(cleaned, dayfirst=self.dayfirst)
        except (ValueError, OverflowError):
            return None

    def _from_numeric(self, first: str, second: str, year: str) -> Optional[datetime]:
        year_value = int(year)
        if len(year) == 2:
            year_value += 2000
        elif len(year) == 3:
            return None

        if self.dayfirst:
            day, month = int(first), int(second)
        else:
            month, day = int(first), int(second)
        return self._build(year_value, month, day)

    @staticmethod
    def _build(year: int, month: int, day: int) -> Optional[datetime]:
        try:
            return datetime(year, month, day)
        except ValueError:
            return None

    def today(self) -> str:
        """Current date in the output format."""
        return self.clock().strftime(self.output_format)
