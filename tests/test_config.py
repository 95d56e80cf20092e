"""Unit tests for the configuration manager and the local settings store."""

from pathlib import Path

import pytest
import yaml

from config import ConfigurationManager, LocalSettings, get_config


class TestConfigurationManager:
    """Test settings.yaml loading."""

    def test_reads_packaged_defaults(self) -> None:
        """Should expose the packaged settings with dot notation."""
        assert get_config("currency.reference") == "EUR"
        assert get_config("currency.cache_ttl_seconds") == 3600
        assert get_config("output.backend") == "excel"
        assert get_config("ocr.scanned_pdf.enabled") is False

    def test_missing_key_returns_default(self) -> None:
        """Should return the default for unknown keys."""
        assert get_config("nonexistent.key", "fallback") == "fallback"
        assert get_config("currency.reference.deeper", 1) == 1

    def test_paths_are_absolute(self) -> None:
        """Should resolve relative paths against the project root."""
        assert Path(get_config("paths.output_dir")).is_absolute()
        assert Path(get_config("paths.documents_dir")).is_absolute()

    def test_singleton(self) -> None:
        """Should return the same instance until reset."""
        assert ConfigurationManager() is ConfigurationManager()

    def test_custom_file(self, tmp_path: Path) -> None:
        """Should load a custom configuration file."""
        path = tmp_path / "custom.yaml"
        path.write_text(yaml.safe_dump({"currency": {"reference": "GBP"}, "paths": {"output_dir": "out"}}))

        config = ConfigurationManager(str(path))

        assert config.get("currency.reference") == "GBP"
        assert Path(config.get("paths.output_dir")).is_absolute()

    def test_site_file_keeps_other_defaults(self, tmp_path: Path) -> None:
        """Should override only the keys the site file names."""
        path = tmp_path / "site.yaml"
        path.write_text(yaml.safe_dump({"currency": {"cache_ttl_seconds": 60}}))

        config = ConfigurationManager(str(path))

        assert config.get("currency.cache_ttl_seconds") == 60
        assert config.get("currency.reference") == "EUR"
        assert config.get("currency.fallback_rates")["USD"] == 1.08
        assert config.get("output.backend") == "excel"

    def test_site_file_must_be_mapping(self, tmp_path: Path) -> None:
        """Should reject a file that is not a YAML mapping."""
        path = tmp_path / "list.yaml"
        path.write_text("- one\n- two\n")

        with pytest.raises(ValueError):
            ConfigurationManager(str(path))

    def test_env_variable_selects_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Should honour INVOICE_INTAKE_CONFIG."""
        path = tmp_path / "env.yaml"
        path.write_text("output:\n  backend: google\n")
        monkeypatch.setenv("INVOICE_INTAKE_CONFIG", str(path))

        assert get_config("output.backend") == "google"

    def test_missing_file(self, tmp_path: Path) -> None:
        """Should raise FileNotFoundError for a missing file."""
        with pytest.raises(FileNotFoundError):
            ConfigurationManager(str(tmp_path / "missing.yaml"))


class TestLocalSettings:
    """Test the file-backed override store."""

    def test_round_trips_ids(self, settings: LocalSettings) -> None:
        """Should save and load the sheet and folder ids."""
        settings.save_sheet_id("sheet-1")
        settings.save_drive_folder_id("folder-1")

        reloaded = LocalSettings(settings.path)
        assert reloaded.load_sheet_id() == "sheet-1"
        assert reloaded.load_drive_folder_id() == "folder-1"
        assert reloaded.get_overrides() == {"sheet_id": "sheet-1", "drive_folder_id": "folder-1"}

    def test_empty_value_removes_key(self, settings: LocalSettings) -> None:
        """Should treat an empty id as cleared."""
        settings.save_sheet_id("sheet-1")
        settings.save_sheet_id("")

        assert settings.load_sheet_id() is None

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        """Should behave as empty before anything is saved."""
        settings = LocalSettings(tmp_path / "nested" / "settings.yaml")

        assert settings.load_sheet_id() is None
        assert settings.load_manual_rates() == {}

    def test_manual_rates(self, settings: LocalSettings) -> None:
        """Should store rates under upper-case codes and remove them on None."""
        settings.save_manual_rate("usd", "1.10")
        settings.save_manual_rate("GBP", "0.85")
        settings.save_manual_rate("gbp", None)

        assert settings.load_manual_rates() == {"USD": "1.10"}

    def test_clear_keeps_rates(self, settings: LocalSettings) -> None:
        """Should remove the ids but keep manual rates."""
        settings.save_sheet_id("sheet-1")
        settings.save_drive_folder_id("folder-1")
        settings.save_manual_rate("USD", "1.10")

        settings.clear()

        assert settings.get_overrides() == {"sheet_id": None, "drive_folder_id": None}
        assert settings.load_manual_rates() == {"USD": "1.10"}

    def test_file_is_plain_yaml(self, settings: LocalSettings) -> None:
        """Should write a YAML file that can be edited by hand."""
        settings.save_sheet_id("sheet-1")

        assert yaml.safe_load(settings.path.read_text(encoding="utf-8")) == {"sheet_id": "sheet-1"}
