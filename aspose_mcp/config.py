"""
Server configuration.

Loaded once at startup from ``ASPOSE_*`` environment variables (the entry
point calls ``load_dotenv()`` first) and then command-line flags, flags
winning. The resulting objects are frozen and shared read-only.
"""

import argparse
import logging
import os
import tempfile
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when configuration values are invalid."""
    pass


TRANSPORT_MODES = ("stdio", "http", "ws")
_TRANSPORT_ALIASES = {
    "stdio": "stdio",
    "http": "http",
    "sse": "http",
    "streamable-http": "http",
    "ws": "ws",
    "websocket": "ws",
}

CATEGORY_NAMES = ("word", "excel", "ppt", "pdf", "ocr", "email", "barcode")
_CATEGORY_ALIASES = {
    "word": "word",
    "excel": "excel",
    "ppt": "ppt",
    "powerpoint": "ppt",
    "pdf": "pdf",
    "ocr": "ocr",
    "email": "email",
    "barcode": "barcode",
}

AUTH_MODES = ("local", "gateway", "introspection", "custom")


@dataclass(frozen=True)
class ServerConfig:
    """Enabled tool categories and server-wide switches."""
    word: bool = False
    excel: bool = False
    ppt: bool = False
    pdf: bool = False
    ocr: bool = False
    email: bool = False
    barcode: bool = False
    debug: bool = False

    @classmethod
    def all_enabled(cls, debug: bool = False) -> "ServerConfig":
        return cls(**{name: True for name in CATEGORY_NAMES}, debug=debug)

    def is_category_enabled(self, category: str) -> bool:
        return bool(getattr(self, category, False))


@dataclass(frozen=True)
class TransportConfig:
    mode: str = "stdio"
    host: str = "localhost"
    port: int = 3000


@dataclass(frozen=True)
class SessionConfig:
    enabled: bool = False
    max_sessions: int = 10
    max_file_size_mb: int = 100
    temp_directory: str = field(default_factory=tempfile.gettempdir)


@dataclass(frozen=True)
class ApiKeyConfig:
    enabled: bool = False
    mode: str = "local"
    header_name: str = "X-API-Key"
    keys: Mapping[str, str] = field(default_factory=dict)
    group_header: str = "X-Group-Id"
    introspection_endpoint: Optional[str] = None
    introspection_auth_header: Optional[str] = None
    introspection_key_field: str = "key"
    custom_endpoint: Optional[str] = None
    timeout_seconds: int = 5
    cache_enabled: bool = True
    cache_ttl_seconds: int = 300
    cache_max_size: int = 10000


@dataclass(frozen=True)
class JwtConfig:
    enabled: bool = False
    mode: str = "local"
    secret: Optional[str] = None
    public_key_path: Optional[str] = None
    issuer: Optional[str] = None
    audience: Optional[str] = None
    algorithms: Tuple[str, ...] = ("HS256", "RS256", "ES256")
    group_claim: str = "tenant_id"
    user_claim: str = "sub"
    group_header: str = "X-Group-Id"
    user_header: str = "X-User-Id"
    introspection_endpoint: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    custom_endpoint: Optional[str] = None
    timeout_seconds: int = 5
    cache_enabled: bool = True
    cache_ttl_seconds: int = 300
    cache_max_size: int = 10000


@dataclass(frozen=True)
class AuthConfig:
    api_key: ApiKeyConfig = field(default_factory=ApiKeyConfig)
    jwt: JwtConfig = field(default_factory=JwtConfig)


@dataclass(frozen=True)
class TrackingConfig:
    log_enabled: bool = False
    webhook_enabled: bool = False
    webhook_url: Optional[str] = None
    webhook_auth_header: Optional[str] = None
    webhook_timeout_seconds: int = 5
    metrics_enabled: bool = False
    metrics_path: str = "/metrics"

    @property
    def enabled(self) -> bool:
        return self.log_enabled or self.webhook_enabled or self.metrics_enabled


@dataclass(frozen=True)
class OriginConfig:
    enabled: bool = False
    allow_localhost: bool = True
    allowed_origins: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AppConfig:
    """Everything the server needs, loaded once."""
    server: ServerConfig = field(default_factory=ServerConfig)
    transport: TransportConfig = field(default_factory=TransportConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    tracking: TrackingConfig = field(default_factory=TrackingConfig)
    origin: OriginConfig = field(default_factory=OriginConfig)


# ============== Parsing helpers ==============


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ConfigError(f"Invalid boolean value: {value}")


def _parse_int(value: Optional[str], default: int, name: str) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}")


def parse_categories(value: str) -> Dict[str, bool]:
    """Parse ``all`` or a comma list such as ``word,pdf`` into category flags."""
    flags = {name: False for name in CATEGORY_NAMES}
    for token in value.split(","):
        token = token.strip().lower()
        if not token:
            continue
        if token == "all":
            return {name: True for name in CATEGORY_NAMES}
        category = _CATEGORY_ALIASES.get(token)
        if category is None:
            logger.warning(f"Ignoring unknown tool category: {token}")
            continue
        flags[category] = True
    return flags


def parse_api_keys(value: str) -> Dict[str, str]:
    """Parse ``key1:group1,key2:group2``; a bare key maps to itself."""
    keys: Dict[str, str] = {}
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        key, _, group = entry.partition(":")
        keys[key.strip()] = group.strip() or key.strip()
    return keys


def normalize_transport(value: str) -> str:
    mode = _TRANSPORT_ALIASES.get(value.strip().lower())
    if mode is None:
        raise ConfigError(f"Unknown transport mode: {value}")
    return mode


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aspose-mcp-server",
        description="Aspose MCP Server - document tools over the Model Context Protocol",
    )

    tools = parser.add_argument_group("tool categories")
    tools.add_argument("--all", action="store_true", help="Enable every tool category")
    for name in CATEGORY_NAMES:
        tools.add_argument(f"--{name}", action="store_true", help=f"Enable {name} tools")
    tools.add_argument("--powerpoint", dest="ppt", action="store_true", help=argparse.SUPPRESS)

    transport = parser.add_argument_group("transport")
    mode = transport.add_mutually_exclusive_group()
    mode.add_argument("--stdio", dest="transport", action="store_const", const="stdio")
    mode.add_argument("--http", dest="transport", action="store_const", const="http")
    mode.add_argument("--ws", dest="transport", action="store_const", const="ws")
    transport.add_argument("--host", help="Bind host (localhost, 0.0.0.0, * or an IP address)")
    transport.add_argument("--port", type=int, help="Bind port")

    parser.add_argument("--debug", action="store_true", default=None,
                        help="Include sanitized detail in internal error messages")

    session = parser.add_argument_group("sessions")
    session.add_argument("--session-enabled", dest="session_enabled", action="store_true", default=None)
    session.add_argument("--session-max", dest="session_max", type=int)
    session.add_argument("--session-temp-dir", dest="session_temp_dir")

    auth = parser.add_argument_group("authentication")
    auth.add_argument("--auth-apikey-enabled", dest="apikey_enabled", action="store_true", default=None)
    auth.add_argument("--auth-apikey-mode", dest="apikey_mode", choices=AUTH_MODES)
    auth.add_argument("--auth-apikey-keys", dest="apikey_keys")
    auth.add_argument("--auth-jwt-enabled", dest="jwt_enabled", action="store_true", default=None)
    auth.add_argument("--auth-jwt-mode", dest="jwt_mode", choices=AUTH_MODES)
    auth.add_argument("--auth-jwt-secret", dest="jwt_secret")

    tracking = parser.add_argument_group("tracking")
    tracking.add_argument("--log-enabled", dest="log_enabled", action="store_true", default=None)
    tracking.add_argument("--webhook-url", dest="webhook_url")
    tracking.add_argument("--metrics-enabled", dest="metrics_enabled", action="store_true", default=None)

    origin = parser.add_argument_group("origin validation")
    origin.add_argument("--origin-validation", dest="origin_enabled", action="store_true", default=None)
    origin.add_argument("--allowed-origins", dest="allowed_origins")

    return parser


def _first(*values):
    for value in values:
        if value is not None:
            return value
    return None


def load_config(
    argv: Optional[Sequence[str]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> AppConfig:
    """Build an AppConfig from environment variables and command-line flags."""
    env = os.environ if environ is None else environ
    args = build_parser().parse_args(list(argv) if argv is not None else [])

    # Tool categories: flags replace the environment list entirely.
    flag_categories = {name: getattr(args, name) for name in CATEGORY_NAMES}
    if args.all:
        categories = {name: True for name in CATEGORY_NAMES}
    elif any(flag_categories.values()):
        categories = flag_categories
    else:
        categories = parse_categories(env.get("ASPOSE_TOOLS", "all"))

    debug = _first(args.debug, _parse_bool(env.get("ASPOSE_DEBUG"), False))
    server = ServerConfig(**categories, debug=debug)

    mode = normalize_transport(_first(args.transport, env.get("ASPOSE_TRANSPORT"), "stdio"))
    port = _first(args.port, _parse_int(env.get("ASPOSE_PORT"), 3000, "ASPOSE_PORT"))
    if not 1 <= port <= 65535:
        raise ConfigError(f"Port must be between 1 and 65535, got {port}")
    transport = TransportConfig(
        mode=mode,
        host=_first(args.host, env.get("ASPOSE_HOST"), "localhost"),
        port=port,
    )

    session = SessionConfig(
        enabled=_first(args.session_enabled, _parse_bool(env.get("ASPOSE_SESSION_ENABLED"), False)),
        max_sessions=_first(args.session_max, _parse_int(env.get("ASPOSE_SESSION_MAX"), 10, "ASPOSE_SESSION_MAX")),
        max_file_size_mb=_parse_int(env.get("ASPOSE_SESSION_MAX_FILE_SIZE_MB"), 100, "ASPOSE_SESSION_MAX_FILE_SIZE_MB"),
        temp_directory=_first(args.session_temp_dir, env.get("ASPOSE_SESSION_TEMP_DIR"), tempfile.gettempdir()),
    )
    if session.max_sessions < 1:
        raise ConfigError("ASPOSE_SESSION_MAX must be at least 1")

    api_key_mode = _first(args.apikey_mode, env.get("ASPOSE_AUTH_APIKEY_MODE"), "local").lower()
    jwt_mode = _first(args.jwt_mode, env.get("ASPOSE_AUTH_JWT_MODE"), "local").lower()
    for label, value in (("API key", api_key_mode), ("JWT", jwt_mode)):
        if value not in AUTH_MODES:
            raise ConfigError(f"Unknown {label} authentication mode: {value}")

    api_key = ApiKeyConfig(
        enabled=_first(args.apikey_enabled, _parse_bool(env.get("ASPOSE_AUTH_APIKEY_ENABLED"), False)),
        mode=api_key_mode,
        header_name=env.get("ASPOSE_AUTH_APIKEY_HEADER") or "X-API-Key",
        keys=parse_api_keys(_first(args.apikey_keys, env.get("ASPOSE_AUTH_APIKEY_KEYS"), "")),
        group_header=env.get("ASPOSE_AUTH_APIKEY_GROUP_HEADER") or "X-Group-Id",
        introspection_endpoint=env.get("ASPOSE_AUTH_APIKEY_INTROSPECTION_URL"),
        introspection_auth_header=env.get("ASPOSE_AUTH_APIKEY_INTROSPECTION_AUTH"),
        introspection_key_field=env.get("ASPOSE_AUTH_APIKEY_INTROSPECTION_FIELD") or "key",
        custom_endpoint=env.get("ASPOSE_AUTH_APIKEY_CUSTOM_URL"),
        timeout_seconds=_parse_int(env.get("ASPOSE_AUTH_APIKEY_TIMEOUT"), 5, "ASPOSE_AUTH_APIKEY_TIMEOUT"),
        cache_enabled=_parse_bool(env.get("ASPOSE_AUTH_APIKEY_CACHE_ENABLED"), True),
        cache_ttl_seconds=_parse_int(env.get("ASPOSE_AUTH_APIKEY_CACHE_TTL"), 300, "ASPOSE_AUTH_APIKEY_CACHE_TTL"),
        cache_max_size=_parse_int(env.get("ASPOSE_AUTH_APIKEY_CACHE_MAX_SIZE"), 10000, "ASPOSE_AUTH_APIKEY_CACHE_MAX_SIZE"),
    )
    jwt = JwtConfig(
        enabled=_first(args.jwt_enabled, _parse_bool(env.get("ASPOSE_AUTH_JWT_ENABLED"), False)),
        mode=jwt_mode,
        secret=_first(args.jwt_secret, env.get("ASPOSE_AUTH_JWT_SECRET")),
        public_key_path=env.get("ASPOSE_AUTH_JWT_PUBLIC_KEY_PATH"),
        issuer=env.get("ASPOSE_AUTH_JWT_ISSUER"),
        audience=env.get("ASPOSE_AUTH_JWT_AUDIENCE"),
        group_claim=env.get("ASPOSE_AUTH_JWT_GROUP_CLAIM") or "tenant_id",
        user_claim=env.get("ASPOSE_AUTH_JWT_USER_CLAIM") or "sub",
        group_header=env.get("ASPOSE_AUTH_JWT_GROUP_HEADER") or "X-Group-Id",
        user_header=env.get("ASPOSE_AUTH_JWT_USER_HEADER") or "X-User-Id",
        introspection_endpoint=env.get("ASPOSE_AUTH_JWT_INTROSPECTION_URL"),
        client_id=env.get("ASPOSE_AUTH_JWT_CLIENT_ID"),
        client_secret=env.get("ASPOSE_AUTH_JWT_CLIENT_SECRET"),
        custom_endpoint=env.get("ASPOSE_AUTH_JWT_CUSTOM_URL"),
        timeout_seconds=_parse_int(env.get("ASPOSE_AUTH_JWT_TIMEOUT"), 5, "ASPOSE_AUTH_JWT_TIMEOUT"),
        cache_enabled=_parse_bool(env.get("ASPOSE_AUTH_JWT_CACHE_ENABLED"), True),
        cache_ttl_seconds=_parse_int(env.get("ASPOSE_AUTH_JWT_CACHE_TTL"), 300, "ASPOSE_AUTH_JWT_CACHE_TTL"),
        cache_max_size=_parse_int(env.get("ASPOSE_AUTH_JWT_CACHE_MAX_SIZE"), 10000, "ASPOSE_AUTH_JWT_CACHE_MAX_SIZE"),
    )
    if jwt.enabled and jwt.mode == "local" and not (jwt.secret or jwt.public_key_path):
        raise ConfigError("JWT local mode requires ASPOSE_AUTH_JWT_SECRET or ASPOSE_AUTH_JWT_PUBLIC_KEY_PATH")

    webhook_url = _first(args.webhook_url, env.get("ASPOSE_WEBHOOK_URL"))
    webhook_timeout = _parse_int(env.get("ASPOSE_WEBHOOK_TIMEOUT"), 5, "ASPOSE_WEBHOOK_TIMEOUT")
    if not 1 <= webhook_timeout <= 300:
        logger.warning(f"Invalid webhook timeout {webhook_timeout}, using default 5")
        webhook_timeout = 5
    metrics_path = env.get("ASPOSE_METRICS_PATH") or "/metrics"
    if not metrics_path.startswith("/"):
        metrics_path = "/" + metrics_path
    tracking = TrackingConfig(
        log_enabled=_first(args.log_enabled, _parse_bool(env.get("ASPOSE_LOG_ENABLED"), False)),
        # A configured URL turns the webhook on.
        webhook_enabled=_parse_bool(env.get("ASPOSE_WEBHOOK_ENABLED"), False) or bool(webhook_url),
        webhook_url=webhook_url,
        webhook_auth_header=env.get("ASPOSE_WEBHOOK_AUTH_HEADER"),
        webhook_timeout_seconds=webhook_timeout,
        metrics_enabled=_first(args.metrics_enabled, _parse_bool(env.get("ASPOSE_METRICS_ENABLED"), False)),
        metrics_path=metrics_path,
    )

    allowed = _first(args.allowed_origins, env.get("ASPOSE_ORIGIN_ALLOWED"), "")
    origin = OriginConfig(
        enabled=_first(args.origin_enabled, _parse_bool(env.get("ASPOSE_ORIGIN_VALIDATION"), False)),
        allow_localhost=_parse_bool(env.get("ASPOSE_ORIGIN_ALLOW_LOCALHOST"), True),
        allowed_origins=tuple(o.strip().rstrip("/") for o in allowed.split(",") if o.strip()),
    )

    return AppConfig(
        server=server,
        transport=transport,
        session=session,
        auth=AuthConfig(api_key=api_key, jwt=jwt),
        tracking=tracking,
        origin=origin,
    )
