"""
Unit tests for configuration loading.
"""

import pytest

from aspose_mcp.config import CATEGORY_NAMES, ConfigError, load_config, parse_api_keys, parse_categories


class TestCategories:

    def test_default_is_all(self):
        config = load_config([], environ={})
        assert all(config.server.is_category_enabled(name) for name in CATEGORY_NAMES)

    def test_env_list(self):
        config = load_config([], environ={"ASPOSE_TOOLS": "word, PDF"})
        assert config.server.word and config.server.pdf
        assert not config.server.excel

    def test_flags_replace_env(self):
        config = load_config(["--excel"], environ={"ASPOSE_TOOLS": "word"})
        assert config.server.excel
        assert not config.server.word

    def test_powerpoint_alias(self):
        assert parse_categories("powerpoint")["ppt"] is True

    def test_unknown_category_ignored(self):
        flags = parse_categories("word,spreadsheets")
        assert flags["word"] is True
        assert sum(flags.values()) == 1


class TestTransport:

    def test_defaults(self):
        config = load_config([], environ={})
        assert config.transport.mode == "stdio"
        assert config.transport.host == "localhost"
        assert config.transport.port == 3000

    def test_env_and_flags(self):
        config = load_config(["--port", "8080"], environ={"ASPOSE_TRANSPORT": "websocket", "ASPOSE_PORT": "9000"})
        assert config.transport.mode == "ws"
        assert config.transport.port == 8080

    def test_flag_mode(self):
        assert load_config(["--http"], environ={}).transport.mode == "http"

    def test_bad_port(self):
        with pytest.raises(ConfigError):
            load_config([], environ={"ASPOSE_PORT": "not-a-port"})
        with pytest.raises(ConfigError):
            load_config(["--port", "70000"], environ={})

    def test_bad_mode(self):
        with pytest.raises(ConfigError):
            load_config([], environ={"ASPOSE_TRANSPORT": "carrier-pigeon"})


class TestAuthAndTracking:

    def test_api_keys(self):
        assert parse_api_keys("k1:g1, k2:g2,k3") == {"k1": "g1", "k2": "g2", "k3": "k3"}

    def test_api_key_env(self):
        config = load_config([], environ={
            "ASPOSE_AUTH_APIKEY_ENABLED": "true",
            "ASPOSE_AUTH_APIKEY_KEYS": "secret:team-a",
        })
        assert config.auth.api_key.enabled
        assert config.auth.api_key.keys == {"secret": "team-a"}

    def test_jwt_local_requires_key(self):
        with pytest.raises(ConfigError):
            load_config([], environ={"ASPOSE_AUTH_JWT_ENABLED": "1"})

    def test_jwt_claim_defaults(self):
        config = load_config([], environ={"ASPOSE_AUTH_JWT_ENABLED": "1", "ASPOSE_AUTH_JWT_SECRET": "s"})
        assert config.auth.jwt.group_claim == "tenant_id"
        assert config.auth.jwt.user_claim == "sub"

    def test_webhook_url_enables_webhook(self):
        config = load_config([], environ={"ASPOSE_WEBHOOK_URL": "http://hooks.local/events"})
        assert config.tracking.webhook_enabled
        assert config.tracking.enabled

    def test_metrics_path_normalized(self):
        config = load_config([], environ={"ASPOSE_METRICS_ENABLED": "yes", "ASPOSE_METRICS_PATH": "stats"})
        assert config.tracking.metrics_path == "/stats"

    def test_invalid_boolean(self):
        with pytest.raises(ConfigError):
            load_config([], environ={"ASPOSE_DEBUG": "maybe"})

    def test_allowed_origins(self):
        config = load_config([], environ={"ASPOSE_ORIGIN_ALLOWED": "https://a.example/, https://b.example"})
        assert config.origin.allowed_origins == ("https://a.example", "https://b.example")
