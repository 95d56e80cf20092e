"""Unit tests for CurrencyNormalizer.

Network access is always replaced by an injected http_get.
"""

import threading
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import requests

from config import LocalSettings
from invoice_intake.postprocessor import CurrencyNormalizer


def rates_response(rates: dict) -> MagicMock:
    """Fake requests response for the rates endpoint."""
    response = MagicMock()
    response.json.return_value = {"base": "EUR", "rates": rates}
    return response


class FakeClock:
    """Monotonic clock moved by hand."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestCurrencyDetection:
    """Test currency detection from invoice text."""

    @pytest.mark.parametrize("text,expected", [
        ("Total: $150.00", "USD"),
        ("Total: 150 USD", "USD"),
        ("Importe en dólares", "USD"),
        ("C$ 100", "CAD"),
        ("A$ 50", "AUD"),
        ("Total £20", "GBP"),
        ("1.000 CHF", "CHF"),
        ("¥ 5000", "JPY"),
        ("Importe 100 €", "EUR"),
        ("Total 100 euros", "EUR"),
    ])
    def test_detects_currency_marks(self, currency: CurrencyNormalizer, text: str, expected: str) -> None:
        """Should map symbols, codes and names to ISO codes."""
        assert currency.detect_currency(text) == expected

    def test_defaults_to_reference(self, currency: CurrencyNormalizer) -> None:
        """Should return the reference code when nothing matches."""
        assert currency.detect_currency("Total 100") == "EUR"
        assert currency.detect_currency("") == "EUR"

    def test_names_need_word_boundaries(self, currency: CurrencyNormalizer) -> None:
        """Should not read 'Francisco' as francs."""
        assert currency.detect_currency("Francisco García") == "EUR"

    def test_is_reference(self, currency: CurrencyNormalizer) -> None:
        """Should accept the reference code in any case and its symbol."""
        assert currency.is_reference("EUR")
        assert currency.is_reference("eur")
        assert currency.is_reference("€")
        assert not currency.is_reference("USD")


class TestCurrencyConversion:
    """Test conversion to the reference currency."""

    def test_reference_amount_is_unchanged(self, offline_http_get: MagicMock) -> None:
        """Should not touch amounts already in EUR, nor fetch rates."""
        normalizer = CurrencyNormalizer(http_get=offline_http_get)

        assert normalizer.convert_to_reference(Decimal("123.45"), "EUR") == Decimal("123.45")
        assert normalizer.convert_to_reference(Decimal("123.45"), "€") == Decimal("123.45")
        offline_http_get.assert_not_called()

    def test_fetched_rate_divides_amount(self) -> None:
        """Should divide by the fetched rate (units per EUR)."""
        http_get = MagicMock(return_value=rates_response({"USD": 1.25, "GBP": 0.8}))
        normalizer = CurrencyNormalizer(http_get=http_get)

        assert normalizer.convert_to_reference(Decimal("125"), "USD") == Decimal("100")
        assert normalizer.convert_to_reference(Decimal("8"), "gbp") == Decimal("10")

    def test_fallback_table_when_offline(self, currency: CurrencyNormalizer) -> None:
        """Should use the fallback table when the endpoint is unreachable."""
        assert currency.convert_to_reference(Decimal("108"), "USD") == Decimal("100")

    @pytest.mark.parametrize("code", ["USD", "GBP", "CHF", "JPY", "CAD", "AUD"])
    def test_fallback_covers_supported_codes(self, currency: CurrencyNormalizer, code: str) -> None:
        """Should convert every fallback currency without network."""
        converted = currency.convert_to_reference(Decimal("100"), code)
        assert converted > 0
        assert code in currency.rates

    @pytest.mark.parametrize("payload", [
        {"rates": {}},
        {"no_rates": True},
        {"rates": None},
    ])
    def test_malformed_payload_uses_fallback(self, payload: dict) -> None:
        """Should fall back when the endpoint answers nonsense."""
        response = MagicMock()
        response.json.return_value = payload
        normalizer = CurrencyNormalizer(http_get=MagicMock(return_value=response))

        assert normalizer.convert_to_reference(Decimal("108"), "USD") == Decimal("100")

    def test_http_error_uses_fallback(self) -> None:
        """Should fall back on HTTP errors."""
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("503")
        normalizer = CurrencyNormalizer(http_get=MagicMock(return_value=response))

        assert normalizer.convert_to_reference(Decimal("108"), "USD") == Decimal("100")

    def test_unknown_currency_returns_amount(self, currency: CurrencyNormalizer) -> None:
        """Should return the amount unchanged for a code with no rate."""
        assert currency.convert_to_reference(Decimal("50"), "XYZ") == Decimal("50")


class TestRateCache:
    """Test rate table caching and refresh."""

    def test_fresh_table_is_reused(self) -> None:
        """Should fetch once while the table is fresh."""
        http_get = MagicMock(return_value=rates_response({"USD": 1.25}))
        normalizer = CurrencyNormalizer(http_get=http_get, clock=FakeClock())

        normalizer.convert_to_reference(Decimal("1"), "USD")
        normalizer.convert_to_reference(Decimal("2"), "USD")

        assert http_get.call_count == 1

    def test_stale_table_is_refetched(self) -> None:
        """Should refetch once the table is older than the TTL."""
        clock = FakeClock()
        http_get = MagicMock(return_value=rates_response({"USD": 1.25}))
        normalizer = CurrencyNormalizer(http_get=http_get, clock=clock, cache_ttl=3600)

        normalizer.convert_to_reference(Decimal("1"), "USD")
        clock.now += 3599
        normalizer.convert_to_reference(Decimal("1"), "USD")
        assert http_get.call_count == 1

        clock.now += 2
        normalizer.convert_to_reference(Decimal("1"), "USD")
        assert http_get.call_count == 2

    def test_fallback_is_cached_for_ttl(self, offline_http_get: MagicMock) -> None:
        """Should not retry the endpoint on every conversion while offline."""
        normalizer = CurrencyNormalizer(http_get=offline_http_get, clock=FakeClock())

        normalizer.convert_to_reference(Decimal("1"), "USD")
        normalizer.convert_to_reference(Decimal("1"), "GBP")

        assert offline_http_get.call_count == 1
        assert normalizer.last_update == 1000.0

    def test_concurrent_conversions_fetch_once(self) -> None:
        """Should serialize refreshes so parallel callers trigger one fetch."""
        http_get = MagicMock(return_value=rates_response({"USD": 1.25}))
        normalizer = CurrencyNormalizer(http_get=http_get, clock=FakeClock())
        results = []

        def convert() -> None:
            results.append(normalizer.convert_to_reference(Decimal("125"), "USD"))

        threads = [threading.Thread(target=convert) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert http_get.call_count == 1
        assert results == [Decimal("100")] * 8

    def test_refresh_rates_forces_fetch(self) -> None:
        """Should fetch even when the table is fresh."""
        http_get = MagicMock(return_value=rates_response({"USD": 1.25}))
        normalizer = CurrencyNormalizer(http_get=http_get, clock=FakeClock())

        normalizer.refresh_rates()
        normalizer.refresh_rates()

        assert http_get.call_count == 2
        assert normalizer.rates["USD"] == Decimal("1.25")


class TestManualRates:
    """Test user-entered exchange rates."""

    def test_manual_rate_wins_without_network(self) -> None:
        """Should convert with the manual rate and never call the endpoint."""
        http_get = MagicMock(side_effect=AssertionError("no network expected"))
        normalizer = CurrencyNormalizer(http_get=http_get)

        normalizer.set_manual_rate("USD", "1.10")

        assert normalizer.convert_to_reference(Decimal("121.00"), "usd") == Decimal("110")
        http_get.assert_not_called()

    def test_manual_rate_accepts_comma_decimal(self, currency: CurrencyNormalizer) -> None:
        """Should read '1,10' like '1.10'."""
        currency.set_manual_rate("gbp", "0,80")
        assert currency.get_manual_rate("GBP") == Decimal("0.80")

    @pytest.mark.parametrize("rate", ["0", "-1", "abc", "", "nan"])
    def test_invalid_manual_rate_raises(self, currency: CurrencyNormalizer, rate: str) -> None:
        """Should reject rates that are not positive numbers."""
        with pytest.raises(ValueError):
            currency.set_manual_rate("USD", rate)
        assert currency.get_manual_rate("USD") is None

    def test_manual_rates_persist(self, settings: LocalSettings, offline_http_get: MagicMock) -> None:
        """Should store the rate and load it in a new normalizer."""
        CurrencyNormalizer(settings=settings, http_get=offline_http_get).set_manual_rate("USD", "1.10")

        reloaded = CurrencyNormalizer(settings=settings, http_get=offline_http_get)

        assert reloaded.get_manual_rate("USD") == Decimal("1.10")
        assert settings.load_manual_rates() == {"USD": "1.10"}

    def test_clear_manual_rate(self, settings: LocalSettings, offline_http_get: MagicMock) -> None:
        """Should drop the override and go back to the rate table."""
        normalizer = CurrencyNormalizer(settings=settings, http_get=offline_http_get)
        normalizer.set_manual_rate("USD", "2")
        normalizer.clear_manual_rate("usd")

        assert normalizer.manual_rates == {}
        assert settings.load_manual_rates() == {}
        assert normalizer.convert_to_reference(Decimal("108"), "USD") == Decimal("100")
