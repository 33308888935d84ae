"""
Tests for the command-line entry point.
"""

from unittest.mock import MagicMock, patch

from aspose_mcp import server


class TestMain:

    def test_config_error_exits_1(self, monkeypatch):
        monkeypatch.setenv("ASPOSE_TRANSPORT", "carrier-pigeon")
        with patch.object(server, "load_dotenv"):
            assert server.main([]) == 1

    def test_bad_bind_address_exits_1(self, monkeypatch):
        monkeypatch.setenv("ASPOSE_HOST", "not an address")
        with patch.object(server, "load_dotenv"):
            assert server.main(["--http", "--word"]) == 1

    def test_runs_selected_host(self, monkeypatch):
        monkeypatch.delenv("ASPOSE_TRANSPORT", raising=False)
        host = MagicMock()
        with patch.object(server, "load_dotenv"), \
                patch.object(server, "build_host", return_value=host) as build_host:
            assert server.main(["--ws", "--pdf", "--port", "8123"]) == 0

        config = build_host.call_args.args[0]
        assert config.transport.mode == "ws"
        assert config.transport.port == 8123
        assert config.server.pdf and not config.server.word
        host.run.assert_called_once_with()

    def test_interrupt_is_clean(self):
        host = MagicMock()
        host.run.side_effect = KeyboardInterrupt
        with patch.object(server, "load_dotenv"), patch.object(server, "build_host", return_value=host):
            assert server.main(["--stdio"]) == 0
