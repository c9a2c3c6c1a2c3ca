"""
Tests for environment configuration.
"""

import pytest

from clubadmin.env import get_settings, load_env


class TestSettings:
    """Test settings resolution from the environment."""

    def test_defaults(self, monkeypatch):
        for name in ("CLUBADMIN_DATABASE", "CLUBADMIN_LOG_LEVEL", "CLUBADMIN_LOG_DIR", "CLUBADMIN_STORE_RETRIES"):
            monkeypatch.delenv(name, raising=False)

        settings = get_settings()

        assert settings.database == "data/club.db"
        assert settings.log_level == "INFO"
        assert settings.store_retries == 2

    def test_invalid_retries(self, monkeypatch):
        monkeypatch.setenv("CLUBADMIN_STORE_RETRIES", "many")

        with pytest.raises(SystemExit):
            get_settings()

    def test_dotenv_does_not_override(self, monkeypatch, tmp_path):
        """Values already in the environment win over .env."""
        (tmp_path / ".env").write_text(
            "CLUBADMIN_DATABASE=from-file.db\nCLUBADMIN_LOG_LEVEL=DEBUG\n",
            encoding="utf-8",
        )
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("CLUBADMIN_DATABASE", "from-env.db")
        monkeypatch.delenv("CLUBADMIN_LOG_LEVEL", raising=False)

        load_env()
        settings = get_settings()

        assert settings.database == "from-env.db"
        assert settings.log_level == "DEBUG"
        monkeypatch.delenv("CLUBADMIN_LOG_LEVEL")
