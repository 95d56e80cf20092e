"""
Local Settings Store.

User-entered overrides that survive restarts: spreadsheet id, storage
folder id and manual exchange rates. Stored as a small YAML file so it
can be inspected and edited by hand.
"""

import threading
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml


SHEET_ID_KEY = 'sheet_id'
DRIVE_FOLDER_ID_KEY = 'drive_folder_id'
MANUAL_RATES_KEY = 'manual_rates'


class LocalSettings:
    """
    File-backed store for user overrides.

    Empty or None values remove the key instead of storing a blank,
    so a cleared override falls back to the configured default.

    Example:
        >>> settings = LocalSettings("outputs/local_settings.yaml")
        >>> settings.save_sheet_id("1AbC...")
        >>> settings.load_sheet_id()
        '1AbC...'
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        with open(self.path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(data, f, allow_unicode=True, sort_keys=True)

    def get_string(self, key: str) -> Optional[str]:
        with self._lock:
            value = self._read().get(key)
        return str(value) if value not in (None, '') else None

    def save_string(self, key: str, value: Optional[str]) -> None:
        """Store a value, or remove the key when value is None or empty."""
        with self._lock:
            data = self._read()
            if value is None or value == '':
                data.pop(key, None)
            else:
                data[key] = value
            self._write(data)

    def save_sheet_id(self, sheet_id: Optional[str]) -> None:
        self.save_string(SHEET_ID_KEY, sheet_id)

    def load_sheet_id(self) -> Optional[str]:
        return self.get_string(SHEET_ID_KEY)

    def save_drive_folder_id(self, folder_id: Optional[str]) -> None:
        self.save_string(DRIVE_FOLDER_ID_KEY, folder_id)

    def load_drive_folder_id(self) -> Optional[str]:
        return self.get_string(DRIVE_FOLDER_ID_KEY)

    def load_manual_rates(self) -> Dict[str, str]:
        """
        Get the stored manual exchange rates.

        Returns:
            Mapping of upper-case currency code to the rate as text.
        """
        with self._lock:
            rates = self._read().get(MANUAL_RATES_KEY) or {}
        return {str(code).upper(): str(rate) for code, rate in rates.items()}

    def save_manual_rate(self, currency: str, rate: Optional[str]) -> None:
        """Store a manual rate, or remove it when rate is None."""
        with self._lock:
            data = self._read()
            rates = dict(data.get(MANUAL_RATES_KEY) or {})
            if rate is None:
                rates.pop(currency.upper(), None)
            else:
                rates[currency.upper()] = str(rate)
            if rates:
                data[MANUAL_RATES_KEY] = rates
            else:
                data.pop(MANUAL_RATES_KEY, None)
            self._write(data)

    def get_overrides(self) -> Dict[str, Optional[str]]:
        return {
            SHEET_ID_KEY: self.load_sheet_id(),
            DRIVE_FOLDER_ID_KEY: self.load_drive_folder_id(),
        }

    def clear(self) -> None:
        """Remove the destination overrides; manual rates are kept."""
        with self._lock:
            data = self._read()
            data.pop(SHEET_ID_KEY, None)
            data.pop(DRIVE_FOLDER_ID_KEY, None)
            self._write(data)
