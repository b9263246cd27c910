"""
Tests for configuration loading.
"""

import pytest
from pydantic import ValidationError

from transaction_import.config import (
    ApiSettings,
    GeminiSettings,
    ImportSettings,
    get_settings,
    validate_all_settings,
)


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:
    """Tests for the pydantic-settings classes."""

    def test_import_defaults(self):
        """Test the import settings defaults."""
        settings = ImportSettings()

        assert settings.default_category == "imported"
        assert settings.preview_length == 50
        assert settings.storage_backend == "memory"

    def test_env_override(self, monkeypatch):
        """Test environment variables override defaults."""
        monkeypatch.setenv("STORAGE_BACKEND", "http")
        monkeypatch.setenv("FINANCE_API_BASE_URL", "https://finance.example/")

        assert ImportSettings().storage_backend == "http"
        assert ApiSettings().base_url == "https://finance.example"

    def test_invalid_backend_rejected(self):
        """Test unknown backends fail validation."""
        with pytest.raises(ValidationError):
            ImportSettings(storage_backend="ftp")

    def test_gemini_requires_key(self, monkeypatch):
        """Test the Gemini settings need an API key."""
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)

        with pytest.raises(ValidationError):
            GeminiSettings()

    def test_validate_all_settings(self, monkeypatch):
        """Test the startup check reports each group."""
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)

        results = validate_all_settings()

        assert results["importer"] is True
        assert results["api"] is True
        assert results["gemini"] is False
        assert "gemini_error" in results
