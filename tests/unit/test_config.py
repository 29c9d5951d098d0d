"""
Unit tests for server configuration.
"""

import pytest

from geminiserver.config import DEFAULT_PORT, ServerConfig


class TestServerConfig:
    """Tests for ServerConfig class."""

    def test_defaults(self):
        """Test default values."""
        config = ServerConfig()

        assert config.port == DEFAULT_PORT == 1965
        assert config.host == "127.0.0.1"
        assert config.timeout == 30.0
        assert config.log_format == "text"
        config.validate()

    def test_port_zero_allowed(self):
        """Test that port 0 (OS-assigned) validates."""
        ServerConfig(port=0).validate()

    @pytest.mark.parametrize("kwargs", [
        {"port": -1},
        {"port": 70000},
        {"min_workers": 0},
        {"min_workers": 8, "max_workers": 4},
        {"queue_size": 0},
        {"buffer_size": 0},
        {"timeout": 0},
        {"certfile": "cert.pem"},
        {"keyfile": "key.pem"},
        {"log_format": "xml"},
    ])
    def test_invalid(self, kwargs):
        """Test that invalid settings raise ValueError."""
        with pytest.raises(ValueError):
            ServerConfig(**kwargs).validate()

    def test_timeout_none_allowed(self):
        """Test that the timeout can be disabled."""
        ServerConfig(timeout=None).validate()

    def test_from_env(self, monkeypatch):
        """Test loading settings from GEMINI_* variables."""
        monkeypatch.setenv("GEMINI_HOST", "0.0.0.0")
        monkeypatch.setenv("GEMINI_PORT", "1966")
        monkeypatch.setenv("GEMINI_TIMEOUT", "12.5")
        monkeypatch.setenv("GEMINI_HOSTNAME", "example.org")
        monkeypatch.setenv("GEMINI_ROOT", "/srv/gemini")
        monkeypatch.setenv("GEMINI_LOG_LEVEL", "DEBUG")

        config = ServerConfig.from_env()

        assert config.host == "0.0.0.0"
        assert config.port == 1966
        assert config.timeout == 12.5
        assert config.hostname == "example.org"
        assert config.static_dir == "/srv/gemini"
        assert config.log_level == "DEBUG"

    def test_from_env_defaults(self, monkeypatch):
        """Test from_env with nothing set."""
        for name in ("GEMINI_HOST", "GEMINI_PORT", "GEMINI_CERTFILE", "GEMINI_KEYFILE"):
            monkeypatch.delenv(name, raising=False)

        config = ServerConfig.from_env()

        assert config.port == 1965
        assert config.certfile is None

    def test_from_env_few_workers(self, monkeypatch):
        """Test GEMINI_WORKERS below the default min_workers still validates."""
        monkeypatch.setenv("GEMINI_WORKERS", "2")

        config = ServerConfig.from_env()
        config.validate()

        assert config.max_workers == 2
        assert config.min_workers == 2

    def test_from_env_many_workers(self, monkeypatch):
        """Test a large GEMINI_WORKERS keeps the default min_workers."""
        monkeypatch.setenv("GEMINI_WORKERS", "32")

        config = ServerConfig.from_env()

        assert config.min_workers == 4
        assert config.max_workers == 32
