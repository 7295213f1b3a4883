"""Tests for the CLI server wrapper and banner"""
import io
from unittest.mock import patch, MagicMock

import pytest
from rich.console import Console

from cli.menu import display_header, display_settings
from cli.server import ProxyServer


@pytest.mark.unit
class TestProxyServer:
    """Test suite for ProxyServer"""

    def test_defaults_from_settings(self, monkeypatch):
        """Test that bind address and port fall back to settings"""
        monkeypatch.setattr('cli.server.BIND_ADDRESS', '127.0.0.1')
        monkeypatch.setattr('cli.server.PORT', 8081)

        server = ProxyServer()

        assert server.bind_address == '127.0.0.1'
        assert server.port == 8081
        assert server.log_file is None

    def test_overrides(self):
        """Test explicit bind address and port"""
        server = ProxyServer(bind_address='0.0.0.0', port=9000)

        assert server.bind_address == '0.0.0.0'
        assert server.port == 9000

    @patch('cli.server.uvicorn')
    def test_run_starts_uvicorn(self, mock_uvicorn):
        """Test that run configures and starts uvicorn"""
        server = ProxyServer(bind_address='127.0.0.1', port=9000)

        server.run()

        config_kwargs = mock_uvicorn.Config.call_args[1]
        assert config_kwargs['host'] == '127.0.0.1'
        assert config_kwargs['port'] == 9000
        assert config_kwargs['access_log'] is False
        mock_uvicorn.Server.return_value.run.assert_called_once()

    def test_stop_sets_should_exit(self):
        """Test that stop asks uvicorn to exit"""
        server = ProxyServer()
        server.server = MagicMock()

        server.stop()

        assert server.server.should_exit is True

    def test_stop_without_server(self):
        """Test stop before run is a no-op"""
        ProxyServer().stop()


@pytest.mark.unit
class TestBanner:
    """Test suite for the startup banner"""

    def test_settings_table(self, monkeypatch):
        """Test that the effective settings are printed"""
        monkeypatch.setattr('settings.UPSTREAM_ACCESS_TOKEN', '')
        console = Console(file=io.StringIO(), width=120)

        display_header(console)
        display_settings(console, '127.0.0.1', 8081, debug=True)

        output = console.file.getvalue()
        assert 'Cloud Code Relay' in output
        assert 'http://127.0.0.1:8081' in output
        assert 'missing' in output
        assert 'enabled' in output
