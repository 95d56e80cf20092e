"""Shared fixtures for the invoice intake test suite."""

from datetime import datetime
from pathlib import Path
from typing import Callable
from unittest.mock import MagicMock

import pytest
import requests

from config import ConfigurationManager, LocalSettings
from invoice_intake.extraction import ExtractionLocale, FieldExtractor
from invoice_intake.postprocessor import CurrencyNormalizer

FIXED_NOW = datetime(2024, 5, 20, 10, 30, 0)


@pytest.fixture(autouse=True)
def reset_configuration(monkeypatch: pytest.MonkeyPatch):
    """Load the packaged settings.yaml fresh for every test."""
    monkeypatch.delenv("INVOICE_INTAKE_CONFIG", raising=False)
    ConfigurationManager.reset()
    yield
    ConfigurationManager.reset()


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    """Clock that always returns FIXED_NOW."""
    return lambda: FIXED_NOW


@pytest.fixture
def settings(tmp_path: Path) -> LocalSettings:
    """Local settings stored in a temporary directory."""
    return LocalSettings(tmp_path / "local_settings.yaml")


@pytest.fixture
def offline_http_get() -> MagicMock:
    """requests.get replacement that always fails to connect."""
    return MagicMock(side_effect=requests.ConnectionError("network unreachable"))


@pytest.fixture
def currency(offline_http_get: MagicMock) -> CurrencyNormalizer:
    """Currency normalizer that only has the fallback table."""
    return CurrencyNormalizer(http_get=offline_http_get)


@pytest.fixture
def extractor(currency: CurrencyNormalizer, fixed_clock) -> FieldExtractor:
    """Field extractor with the default locale and a fixed clock."""
    return FieldExtractor(currency_normalizer=currency, locale=ExtractionLocale(), clock=fixed_clock)
