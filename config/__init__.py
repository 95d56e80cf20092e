"""
Configuration Module for the Invoice Intake System.

Settings are layered: the packaged settings.yaml holds every default, and
an optional site file (``--config`` or INVOICE_INTAKE_CONFIG) overrides
only the keys it names. User-entered overrides that must survive restarts
(sheet id, folder id, manual exchange rates) live in LocalSettings.
"""

import os
import yaml
from pathlib import Path
from typing import Any, Dict, Optional

from invoice_intake.utils.helpers import merge_dicts

from .local_settings import LocalSettings

CONFIG_ENV_VAR = "INVOICE_INTAKE_CONFIG"
DEFAULT_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


class ConfigurationManager:
    """
    Process-wide view of the intake settings.

    Attributes:
        config_path (Path): Site file layered over the defaults, or the
            packaged settings.yaml when there is none.

    Example:
        >>> config = ConfigurationManager()
        >>> config.get("ocr.tesseract.lang")
        'spa'
        >>> config.get("currency.reference")
        'EUR'
    """

    _instance: Optional['ConfigurationManager'] = None
    _config: Dict[str, Any] = {}

    def __new__(cls, config_path: Optional[str] = None) -> 'ConfigurationManager':
        # One instance per process; reset() drops it.
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, config_path: Optional[str] = None) -> None:
        """
        Args:
            config_path: Site configuration file. Defaults to the
                INVOICE_INTAKE_CONFIG variable, then to no site file.
        """
        if self._initialized:
            return

        config_path = config_path or os.getenv(CONFIG_ENV_VAR)
        self.config_path = Path(config_path) if config_path else DEFAULT_SETTINGS_PATH

        self._load_config()
        self._initialized = True

    def _load_config(self) -> None:
        """
        Load the packaged defaults and layer the site file over them.

        Raises:
            FileNotFoundError: If the site file doesn't exist.
            ValueError: If a file does not hold a YAML mapping.
            yaml.YAMLError: If a file is not valid YAML.
        """
        config = _read_yaml(DEFAULT_SETTINGS_PATH)
        if self.config_path != DEFAULT_SETTINGS_PATH:
            config = merge_dicts(config, _read_yaml(self.config_path))

        self._config = config
        self._resolve_paths()

    def _resolve_paths(self) -> None:
        """Make every ``paths.*`` entry absolute, relative to the project root."""
        project_root = Path(__file__).parent.parent

        for key, value in self._config.get('paths', {}).items():
            if value and not Path(value).is_absolute():
                self._config['paths'][key] = str(project_root / value)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Example:
            >>> config.get("currency.cache_ttl_seconds")
            3600
            >>> config.get("nonexistent.key", "default_value")
            'default_value'
        """
        value = self._config

        try:
            for k in key.split('.'):
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    @classmethod
    def reset(cls) -> None:
        """Drop the instance so the next access reloads the files."""
        cls._instance = None


def get_config(key: str, default: Any = None) -> Any:
    """Shortcut for ``ConfigurationManager().get(key, default)``."""
    return ConfigurationManager().get(key, default)


__all__ = ['ConfigurationManager', 'get_config', 'LocalSettings', 'CONFIG_ENV_VAR']
