"""
Currency Normalizer Module.

Detects the currency an invoice is written in and converts amounts to
the reference currency (EUR by default).

Rates come from an external JSON endpoint and are cached in memory for a
bounded interval. When the endpoint cannot be reached, a static fallback
table is used instead, so a conversion never fails because of the
network. Manual rates entered by the user take precedence over both and
never expire.

All rates are expressed as units of foreign currency per one unit of the
reference currency, so converting to the reference divides by the rate.
"""

import re
import threading
import time
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, List, Optional, Pattern, Tuple

import requests

from config import get_config
from invoice_intake.utils.logger import get_logger

logger = get_logger(__name__)


DEFAULT_FALLBACK_RATES = {
    'USD': '1.08',
    'GBP': '0.86',
    'CHF': '0.93',
    'JPY': '161.50',
    'CAD': '1.47',
    'AUD': '1.65',
}

# Checked in order; the first signature found in the text wins.
# Prefixed dollars come before the bare '$'.
CURRENCY_SIGNATURES: List[Tuple[str, Pattern]] = [
    ('CAD', re.compile(r'C\$|\bCAD\b', re.IGNORECASE)),
    ('AUD', re.compile(r'A\$|\bAUD\b', re.IGNORECASE)),
    ('USD', re.compile(r'\$|\bUSD\b|\bdollars?\b|\bd[oó]lar(?:es)?\b', re.IGNORECASE)),
    ('GBP', re.compile(r'£|\bGBP\b|\bpounds?\b|\blibras?\b', re.IGNORECASE)),
    ('CHF', re.compile(r'\bCHF\b|\bfrancs?\b|\bfrancos?\b', re.IGNORECASE)),
    ('JPY', re.compile(r'¥|\bJPY\b|\byen(?:es)?\b', re.IGNORECASE)),
    ('EUR', re.compile(r'€|\bEUR\b|\beuros?\b', re.IGNORECASE)),
]


class CurrencyNormalizer:
    """
    Currency detection and conversion to the reference currency.

    One instance is meant to be shared by every pipeline in the process;
    the rate table refresh is serialized with a lock so concurrent
    conversions trigger at most one network call.

    Attributes:
        reference_currency: ISO code amounts are converted to.
        reference_symbol: Symbol accepted as an alias of the reference code.
        api_url: Endpoint returning ``{"rates": {"USD": 1.08, ...}}``.
        cache_ttl: Seconds a fetched table stays valid.

    Example:
        >>> normalizer = CurrencyNormalizer()
        >>> normalizer.detect_currency("Total: $ 150.00")
        'USD'
        >>> normalizer.set_manual_rate("USD", "1.10")
        >>> normalizer.convert_to_reference(Decimal("121.00"), "USD")
        Decimal('110')
    """

    def __init__(
        self,
        reference_currency: Optional[str] = None,
        reference_symbol: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        cache_ttl: Optional[float] = None,
        fallback_rates: Optional[Dict[str, object]] = None,
        signatures: Optional[List[Tuple[str, Pattern]]] = None,
        settings=None,
        http_get: Optional[Callable] = None,
        clock: Optional[Callable[[], float]] = None
    ) -> None:
        """
        Initialize the normalizer.

        Args:
            reference_currency: Reference ISO code (config: currency.reference).
            reference_symbol: Reference symbol (config: currency.reference_symbol).
            api_url: Rates endpoint (config: currency.api_url).
            timeout: HTTP timeout in seconds.
            cache_ttl: Seconds before the table is considered stale.
            fallback_rates: Static table used when the endpoint fails.
            signatures: Ordered (code, pattern) list for detection.
            settings: Optional LocalSettings holding persisted manual rates.
            http_get: Callable with the signature of requests.get.
            clock: Monotonic clock used for staleness checks.
        """
        self.reference_currency = (
            reference_currency or get_config("currency.reference", "EUR")
        ).upper()
        self.reference_symbol = reference_symbol or get_config("currency.reference_symbol", "€")
        self.api_url = api_url or get_config(
            "currency.api_url",
            "https://api.exchangerate-api.com/v4/latest/EUR"
        )
        self.timeout = timeout if timeout is not None else get_config("currency.timeout_seconds", 10)
        self.cache_ttl = cache_ttl if cache_ttl is not None else get_config("currency.cache_ttl_seconds", 3600)

        configured_fallback = fallback_rates or get_config("currency.fallback_rates", DEFAULT_FALLBACK_RATES)
        self.fallback_rates = self._to_rate_table(configured_fallback)

        self.signatures = signatures or CURRENCY_SIGNATURES
        self.settings = settings
        self._http_get = http_get or requests.get
        self._clock = clock or time.monotonic

        self._rates: Dict[str, Decimal] = {}
        self._last_update: Optional[float] = None
        self._refresh_lock = threading.Lock()

        self._manual_rates: Dict[str, Decimal] = {}
        if settings is not None:
            for code, rate in settings.load_manual_rates().items():
                parsed = self._parse_rate(rate)
                if parsed is not None:
                    self._manual_rates[code] = parsed

        logger.debug(
            f"CurrencyNormalizer initialized (reference={self.reference_currency}, "
            f"manual_rates={sorted(self._manual_rates)})"
        )

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def detect_currency(self, text: str) -> str:
        """
        Detect the currency a text is written in.

        Args:
            text: Raw invoice text.

        Returns:
            ISO code of the first matching signature, or the reference code.
        """
        for code, pattern in self.signatures:
            if pattern.search(text or ''):
                return code
        return self.reference_currency

    def is_reference(self, currency: str) -> bool:
        if not currency:
            return True
        return currency.upper() == self.reference_currency or currency == self.reference_symbol

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def convert_to_reference(self, amount: Decimal, from_currency: str) -> Decimal:
        """
        Convert an amount to the reference currency.

        Unknown currencies are returned unchanged with a warning; network
        problems fall back to the static table. This method never raises
        for a currency it cannot convert.

        Args:
            amount: Amount in from_currency.
            from_currency: ISO code (any case) or the reference symbol.

        Returns:
            Amount in the reference currency.
        """
        if self.is_reference(from_currency):
            return amount

        code = from_currency.upper()

        manual_rate = self._manual_rates.get(code)
        if manual_rate is not None:
            logger.debug(f"Using manual rate for {code}: {manual_rate}")
            return amount / manual_rate

        if self._is_stale():
            self._refresh_if_stale()

        rate = self._rates.get(code)
        if not rate:
            logger.warning(
                f"Exchange rate not found for {from_currency}, using original amount"
            )
            return amount

        return amount / rate

    def _is_stale(self) -> bool:
        if not self._rates or self._last_update is None:
            return True
        return self._clock() - self._last_update > self.cache_ttl

    def _refresh_if_stale(self) -> None:
        with self._refresh_lock:
            # Another thread may have refreshed while we waited.
            if self._is_stale():
                self._refresh_locked()

    def refresh_rates(self) -> None:
        """Fetch the rate table now, regardless of its age."""
        with self._refresh_lock:
            self._refresh_locked()

    def _refresh_locked(self) -> None:
        try:
            rates = self._fetch_rates()
            if not rates:
                raise ValueError("empty rate table")
            self._rates = rates
            logger.info(f"Exchange rates updated ({len(rates)} currencies)")
        except (requests.RequestException, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error(f"Error updating exchange rates, using fallback table: {e}")
            self._rates = dict(self.fallback_rates)
        self._last_update = self._clock()

    def _fetch_rates(self) -> Dict[str, Decimal]:
        response = self._http_get(self.api_url, timeout=self.timeout)
        response.raise_for_status()
        payload = response.json()
        return self._to_rate_table(payload['rates'])

    # ------------------------------------------------------------------
    # Manual overrides
    # ------------------------------------------------------------------

    def set_manual_rate(self, currency: str, rate) -> None:
        """
        Set a user rate for a currency (foreign units per reference unit).

        Raises:
            ValueError: If the rate is not a positive number.
        """
        parsed = self._parse_rate(rate)
        if parsed is None:
            raise ValueError(f"Invalid exchange rate for {currency}: {rate!r}")

        code = currency.upper()
        self._manual_rates[code] = parsed
        if self.settings is not None:
            self.settings.save_manual_rate(code, str(parsed))
        logger.info(f"Manual exchange rate set: 1 {self.reference_currency} = {parsed} {code}")

    def get_manual_rate(self, currency: str) -> Optional[Decimal]:
        return self._manual_rates.get(currency.upper())

    def clear_manual_rate(self, currency: str) -> None:
        code = currency.upper()
        self._manual_rates.pop(code, None)
        if self.settings is not None:
            self.settings.save_manual_rate(code, None)
        logger.info(f"Manual exchange rate cleared for {code}")

    @property
    def manual_rates(self) -> Dict[str, Decimal]:
        return dict(self._manual_rates)

    @property
    def rates(self) -> Dict[str, Decimal]:
        return dict(self._rates)

    @property
    def last_update(self) -> Optional[float]:
        return self._last_update

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_rate(rate) -> Optional[Decimal]:
        try:
            value = Decimal(str(rate).replace(',', '.'))
        except (InvalidOperation, ValueError):
            return None
        if not value.is_finite() or value <= 0:
            return None
        return value

    @classmethod
    def _to_rate_table(cls, rates: Dict[str, object]) -> Dict[str, Decimal]:
        table = {}
        for code, rate in rates.items():
            parsed = cls._parse_rate(rate)
            if parsed is not None:
                table[str(code).upper()] = parsed
        return table
