"""
Command line entry point tests
"""
import logging
from unittest.mock import AsyncMock, patch

import pytest

import ws_proxy


@pytest.mark.unit
class TestParseArgs:

    def test_nothing_given(self):
        args = ws_proxy.parse_args([])
        assert args.port is None
        assert args.burp is None
        assert args.burp_proxy is None

    def test_options(self):
        args = ws_proxy.parse_args([
            "--port", "9100", "--burp", "--burp-proxy", "http://10.0.0.2:8080", "--log-level", "debug",
        ])
        assert args.port == 9100
        assert args.burp is True
        assert args.burp_proxy == "http://10.0.0.2:8080"
        assert args.log_level == "debug"

    def test_no_burp(self):
        assert ws_proxy.parse_args(["--no-burp"]).burp is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_invalid_configuration_exits(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(SystemExit) as excinfo:
        await ws_proxy.main(["--burp-proxy", "ftp://nope"])
    assert "Invalid configuration" in str(excinfo.value.code)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_graceful_stop_is_logged(monkeypatch, tmp_path, caplog):
    monkeypatch.chdir(tmp_path)
    with patch("ws_proxy.configure_logging"), \
            patch("ws_proxy.serve_until_stopped", new_callable=AsyncMock) as serve:
        with caplog.at_level(logging.INFO, logger="wsrelay"):
            await ws_proxy.main(["--port", "0"])
    serve.assert_awaited_once()
    assert "Proxy stopped" in caplog.messages
