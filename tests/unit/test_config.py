"""
Unit tests for balance.config module.

Created by Balance Terminal contributors
"""

import pytest

from balance.config import DEFAULT_CONFIG, Config
from balance.errors import ConfigError


class TestConfig:
    """Test configuration loading and overrides."""

    def test_defaults_without_file(self, temp_dir):
        config = Config(temp_dir / "missing.toml")
        assert config.get("chat", "history_limit") == 20
        assert config.get("security", "time_cost") == 3
        assert config.to_dict() == DEFAULT_CONFIG

    def test_file_merges_with_defaults(self, temp_dir):
        path = temp_dir / "config.toml"
        path.write_text('[chat]\nhistory_limit = 5\n\n[logging]\nlevel = "DEBUG"\n')

        config = Config(path)
        assert config.get("chat", "history_limit") == 5
        assert config.get("chat", "snippet_length") == 50
        assert config.get("logging", "level") == "DEBUG"

    def test_invalid_toml(self, temp_dir):
        path = temp_dir / "config.toml"
        path.write_text("[chat\nbroken")
        with pytest.raises(ConfigError):
            Config(path)

    def test_env_overrides(self, temp_dir, monkeypatch):
        monkeypatch.setenv("BALANCE_CHAT_HISTORY_LIMIT", "7")
        monkeypatch.setenv("BALANCE_LOGGING_FILE_LOGGING", "false")
        monkeypatch.setenv("BALANCE_LOGGING_LEVEL", "WARNING")

        config = Config(temp_dir / "missing.toml")
        assert config.get("chat", "history_limit") == 7
        assert config.get("logging", "file_logging") is False
        assert config.get("logging", "level") == "WARNING"

    def test_invalid_env_value(self, temp_dir, monkeypatch):
        monkeypatch.setenv("BALANCE_CHAT_HISTORY_LIMIT", "many")
        with pytest.raises(ConfigError):
            Config(temp_dir / "missing.toml")

    def test_defaults_are_not_shared(self, temp_dir):
        first = Config(temp_dir / "missing.toml")
        first.set("chat", "history_limit", 1)
        second = Config(temp_dir / "missing.toml")
        assert second.get("chat", "history_limit") == 20

    def test_resolve_path(self, temp_dir):
        config = Config(temp_dir / "missing.toml")
        config.set("storage", "data_dir", str(temp_dir))
        assert config.resolve_path("database") == temp_dir / "balance.db"

        absolute = temp_dir / "elsewhere" / "db.sqlite"
        config.set("storage", "database", str(absolute))
        assert config.resolve_path("database") == absolute

    def test_save_and_reload(self, temp_dir):
        path = temp_dir / "nested" / "config.toml"
        config = Config(path)
        config.set("chat", "snippet_length", 30)
        config.set("storage", "data_dir", 'C:\\Users\\"me"')
        config.save()

        reloaded = Config(path)
        assert reloaded.get("chat", "snippet_length") == 30
        assert reloaded.get("storage", "data_dir") == 'C:\\Users\\"me"'
        assert reloaded.get("logging", "console_logging") is True
