"""Tests for codenav.config."""

from pathlib import Path

import pytest

from codenav.config import DEFAULT_SEARCH_URL, ClientConfig


class TestClientConfig:
    def test_defaults(self) -> None:
        config = ClientConfig()
        assert config.search_url == DEFAULT_SEARCH_URL
        assert config.source_root == Path(".")
        assert config.reuse_buffer is True
        assert config.request_timeout == 30.0
        assert config.style_file is None
        assert config.log_level == "WARNING"

    def test_from_environment(self, monkeypatch, tmp_path) -> None:
        monkeypatch.setenv("CODENAV_SEARCH_URL", "http://localhost:8000/search")
        monkeypatch.setenv("CODENAV_SOURCE_ROOT", str(tmp_path))
        monkeypatch.setenv("CODENAV_REUSE_BUFFER", "False")
        monkeypatch.setenv("CODENAV_REQUEST_TIMEOUT", "2.5")
        monkeypatch.setenv("CODENAV_STYLE_FILE", str(tmp_path / "styles.yaml"))
        monkeypatch.setenv("CODENAV_LOG_LEVEL", "debug")

        config = ClientConfig()
        assert config.search_url == "http://localhost:8000/search"
        assert config.source_root == tmp_path
        assert config.reuse_buffer is False
        assert config.request_timeout == 2.5
        assert config.style_file == tmp_path / "styles.yaml"
        assert config.log_level == "DEBUG"

    @pytest.mark.parametrize("value", ["soon", "0", "-1"])
    def test_invalid_timeout(self, monkeypatch, value) -> None:
        monkeypatch.setenv("CODENAV_REQUEST_TIMEOUT", value)
        with pytest.raises(ValueError, match="CODENAV_REQUEST_TIMEOUT"):
            ClientConfig()
