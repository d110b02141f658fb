"""
Unit tests for configuration constants.
"""

import os
from importlib import reload

from core.config import (
    DATABASE_URL, API_BASE_URL, APP_BASE_URL, SMTP_PORT, SMTP_SECURE, SYSTEM_ADMIN_EMAILS,
)


class TestConfigConstants:
    """Test cases for configuration constants."""

    def test_default_values(self):
        """Test default configuration values (may be overridden in test env)."""
        assert API_BASE_URL == "http://localhost:8000"
        assert APP_BASE_URL == "http://localhost:3000"
        assert SMTP_PORT == 587
        assert SMTP_SECURE is False
        # DATABASE_URL may be overridden in test environment
        assert DATABASE_URL is not None and DATABASE_URL.startswith(("postgresql://", "sqlite://"))

    def test_types_and_values(self):
        assert isinstance(DATABASE_URL, str)
        assert isinstance(API_BASE_URL, str)
        assert isinstance(SYSTEM_ADMIN_EMAILS, list)

    def test_environment_override(self):
        """Test that environment variables override defaults."""
        import core.config

        overrides = {
            "APP_BASE_URL": "https://app.smilesys.example",
            "SMTP_SECURE": "TRUE",
            "SYSTEM_ADMIN_EMAILS": " Root@SmileSys.app, ,ops@smilesys.app ",
        }
        saved = {key: os.environ.get(key) for key in overrides}
        os.environ.update(overrides)
        try:
            reload(core.config)
            assert core.config.APP_BASE_URL == "https://app.smilesys.example"
            assert core.config.SMTP_SECURE is True
            assert core.config.SYSTEM_ADMIN_EMAILS == ["root@smilesys.app", "ops@smilesys.app"]
        finally:
            for key, value in saved.items():
                if value is None:
                    os.environ.pop(key, None)
                else:
                    os.environ[key] = value
            reload(core.config)
