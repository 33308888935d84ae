"""
Authentication stages.

Both stages support four modes:

- local: validate on this server (API key map / JWT signature via PyJWT)
- gateway: trust identity headers injected by an upstream API gateway
- introspection: ask an external endpoint whether the credential is active
- custom: POST the credential as JSON to a custom validator

Remote verdicts are cached per credential for a short TTL.
"""

import hashlib
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
import jwt

from ..config import ApiKeyConfig, JwtConfig
from ..context import RequestContext
from .base import CallNext, MiddlewareStage, StageResponse, unauthorized

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "
JWT_LEEWAY_SECONDS = 300
HMAC_ALGORITHMS = ("HS256", "HS384", "HS512")


@dataclass(frozen=True)
class AuthResult:
    valid: bool
    group_id: Optional[str] = None
    user_id: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def reject(cls, error: str) -> "AuthResult":
        return cls(valid=False, error=error)


class AuthCache:
    """TTL + LRU cache of authentication verdicts keyed by credential hash."""

    def __init__(self, ttl_seconds: int = 300, max_size: int = 10000, clock=time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock
        self._entries: "OrderedDict[str, tuple]" = OrderedDict()

    @staticmethod
    def key_for(credential: str) -> str:
        return hashlib.sha256(credential.encode("utf-8")).hexdigest()

    def get(self, credential: str) -> Optional[AuthResult]:
        key = self.key_for(credential)
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, result = entry
        if expires_at <= self._clock():
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return result

    def set(self, credential: str, result: AuthResult) -> None:
        key = self.key_for(credential)
        self._entries[key] = (self._clock() + self.ttl_seconds, result)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def __len__(self) -> int:
        return len(self._entries)


def skip_authentication(path: str, metrics_path: str = "/metrics") -> bool:
    for prefix in ("/health", "/ready", metrics_path):
        if path == prefix or path.startswith(prefix.rstrip("/") + "/"):
            return True
    return False


def _first_str(payload: Dict[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = payload.get(key)
        if value is not None and value != "":
            return str(value)
    return None


class RemoteAuthStage(MiddlewareStage):
    """Shared plumbing for stages that may call an external validator."""

    #: Rejections that reflect a real verdict and may be cached.
    cacheable_errors = ()

    def __init__(self, timeout_seconds: int, cache_enabled: bool, cache_ttl: int, cache_max: int,
                 metrics_path: str = "/metrics", client: Optional[httpx.AsyncClient] = None):
        self.metrics_path = metrics_path
        self.timeout_seconds = timeout_seconds
        self.cache = AuthCache(cache_ttl, cache_max) if cache_enabled else None
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_seconds)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def cached(self, credential: str, validate) -> AuthResult:
        if self.cache is not None:
            hit = self.cache.get(credential)
            if hit is not None:
                return hit
        result = await validate(credential)
        # Only cache verdicts the remote side actually gave.
        if self.cache is not None and (result.valid or result.error in self.cacheable_errors):
            self.cache.set(credential, result)
        return result

    async def post(self, url: str, **kwargs) -> Optional[Dict[str, Any]]:
        """POST to a validator; None when the call fails or is not a 2xx JSON object."""
        try:
            response = await self.client.post(url, timeout=self.timeout_seconds, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Error calling validation endpoint: {e}")
            return None
        if not response.is_success:
            logger.warning(f"Validation endpoint returned {response.status_code}")
            return None
        try:
            payload = response.json()
        except ValueError:
            logger.warning("Validation endpoint returned a non-JSON body")
            return None
        return payload if isinstance(payload, dict) else None

    def apply(self, context: RequestContext, result: AuthResult) -> None:
        if result.group_id:
            context.group_id = result.group_id
        if result.user_id:
            context.user_id = result.user_id


# ============== API key ==============


class ApiKeyAuthStage(RemoteAuthStage):
    """Authenticate requests by API key header."""

    name = "api_key"
    cacheable_errors = ("API key is not active",)

    def __init__(self, config: ApiKeyConfig, metrics_path: str = "/metrics",
                 client: Optional[httpx.AsyncClient] = None):
        super().__init__(
            config.timeout_seconds, config.cache_enabled, config.cache_ttl_seconds,
            config.cache_max_size, metrics_path, client,
        )
        self.config = config

    async def __call__(self, context: RequestContext, call_next: CallNext) -> Optional[StageResponse]:
        if skip_authentication(context.path, self.metrics_path):
            return await call_next()

        result = await self.authenticate(context)
        if not result.valid:
            logger.warning(f"API Key authentication failed: {result.error}")
            return unauthorized(result.error or "Invalid or missing API key")

        self.apply(context, result)
        return await call_next()

    async def authenticate(self, context: RequestContext) -> AuthResult:
        api_key = context.header(self.config.header_name)
        if not api_key:
            return AuthResult.reject(f"Missing {self.config.header_name} header")

        mode = self.config.mode
        if mode == "local":
            return self.validate_local(api_key)
        if mode == "gateway":
            return self.validate_gateway(context)
        if mode == "introspection":
            return await self.cached(api_key, self.validate_introspection)
        if mode == "custom":
            return await self.cached(api_key, self.validate_custom)
        return AuthResult.reject("Unknown authentication mode")

    def validate_local(self, api_key: str) -> AuthResult:
        if not self.config.keys:
            logger.error("API Key authentication in local mode but no keys configured")
            return AuthResult.reject("Server configuration error: No API keys configured")
        group_id = self.config.keys.get(api_key)
        if group_id is None:
            return AuthResult.reject("Invalid API key")
        return AuthResult(valid=True, group_id=group_id)

    def validate_gateway(self, context: RequestContext) -> AuthResult:
        group_id = context.header(self.config.group_header)
        if not group_id:
            logger.warning(f"Gateway mode: missing {self.config.group_header} header")
            return AuthResult.reject(f"Missing {self.config.group_header} header from gateway")
        return AuthResult(valid=True, group_id=group_id)

    async def validate_introspection(self, api_key: str) -> AuthResult:
        if not self.config.introspection_endpoint:
            return AuthResult.reject("Server configuration error: No introspection endpoint configured")
        headers = {}
        if self.config.introspection_auth_header:
            headers["Authorization"] = self.config.introspection_auth_header
        payload = await self.post(
            self.config.introspection_endpoint,
            data={self.config.introspection_key_field: api_key},
            headers=headers,
        )
        if payload is None:
            return AuthResult.reject("API key validation failed")
        if payload.get("active") is True:
            return AuthResult(valid=True, group_id=_first_str(payload, "tenant_id", "tenantId", "group_id", "groupId"))
        return AuthResult.reject("API key is not active")

    async def validate_custom(self, api_key: str) -> AuthResult:
        if not self.config.custom_endpoint:
            return AuthResult.reject("Server configuration error: No custom endpoint configured")
        payload = await self.post(self.config.custom_endpoint, json={"apiKey": api_key})
        if payload is None:
            return AuthResult.reject("API key validation failed")
        if payload.get("valid") is True:
            return AuthResult(valid=True, group_id=_first_str(payload, "tenant_id", "tenantId", "group_id", "groupId"))
        return AuthResult.reject(_first_str(payload, "error") or "API key validation failed")


# ============== JWT ==============


class JwtAuthStage(RemoteAuthStage):
    """Authenticate requests by ``Authorization: Bearer`` token."""

    name = "jwt"
    cacheable_errors = ("Token is not active",)

    def __init__(self, config: JwtConfig, metrics_path: str = "/metrics",
                 client: Optional[httpx.AsyncClient] = None):
        super().__init__(
            config.timeout_seconds, config.cache_enabled, config.cache_ttl_seconds,
            config.cache_max_size, metrics_path, client,
        )
        self.config = config
        self._key, self._algorithms = self._signing_key()

    def _signing_key(self):
        if self.config.mode != "local":
            return None, ()
        if self.config.secret:
            algorithms = [a for a in self.config.algorithms if a in HMAC_ALGORITHMS] or ["HS256"]
            return self.config.secret, tuple(algorithms)
        if self.config.public_key_path and Path(self.config.public_key_path).is_file():
            key = Path(self.config.public_key_path).read_text(encoding="utf-8")
            algorithms = [a for a in self.config.algorithms if a not in HMAC_ALGORITHMS] or ["RS256"]
            return key, tuple(algorithms)
        logger.warning("JWT local mode: no valid signing key configured")
        return None, ()

    async def __call__(self, context: RequestContext, call_next: CallNext) -> Optional[StageResponse]:
        if skip_authentication(context.path, self.metrics_path):
            return await call_next()

        result = await self.authenticate(context)
        if not result.valid:
            logger.warning(f"JWT authentication failed: {result.error}")
            return unauthorized(result.error or "Invalid or missing JWT token")

        self.apply(context, result)
        return await call_next()

    async def authenticate(self, context: RequestContext) -> AuthResult:
        if self.config.mode == "gateway":
            return self.validate_gateway(context)

        header = context.header("authorization")
        if not header or not header.lower().startswith(BEARER_PREFIX):
            return AuthResult.reject("Missing or invalid Authorization header")
        token = header[len(BEARER_PREFIX):].strip()
        if not token:
            return AuthResult.reject("Missing or invalid Authorization header")

        mode = self.config.mode
        if mode == "local":
            return self.validate_local(token)
        if mode == "introspection":
            return await self.cached(token, self.validate_introspection)
        if mode == "custom":
            return await self.cached(token, self.validate_custom)
        return AuthResult.reject("Unknown authentication mode")

    def validate_local(self, token: str) -> AuthResult:
        if self._key is None:
            return AuthResult.reject("Server configuration error: No JWT signing key configured")
        options = {"verify_aud": bool(self.config.audience), "verify_iss": bool(self.config.issuer)}
        try:
            claims = jwt.decode(
                token,
                self._key,
                algorithms=list(self._algorithms),
                audience=self.config.audience,
                issuer=self.config.issuer,
                leeway=JWT_LEEWAY_SECONDS,
                options=options,
            )
        except jwt.ExpiredSignatureError:
            return AuthResult.reject("Token expired")
        except jwt.InvalidTokenError as e:
            logger.debug(f"JWT validation failed: {e}")
            return AuthResult.reject("Invalid token")

        return AuthResult(
            valid=True,
            group_id=_first_str(claims, self.config.group_claim),
            user_id=_first_str(claims, self.config.user_claim),
        )

    def validate_gateway(self, context: RequestContext) -> AuthResult:
        return AuthResult(
            valid=True,
            group_id=context.header(self.config.group_header),
            user_id=context.header(self.config.user_header),
        )

    async def validate_introspection(self, token: str) -> AuthResult:
        if not self.config.introspection_endpoint:
            return AuthResult.reject("Server configuration error: No introspection endpoint configured")
        auth = None
        if self.config.client_id and self.config.client_secret:
            auth = (self.config.client_id, self.config.client_secret)
        payload = await self.post(
            self.config.introspection_endpoint,
            data={"token": token, "token_type_hint": "access_token"},
            auth=auth,
        )
        if payload is None:
            return AuthResult.reject("Token validation failed")
        if payload.get("active") is True:
            return AuthResult(
                valid=True,
                group_id=_first_str(payload, self.config.group_claim, "group_id", "client_id"),
                user_id=_first_str(payload, self.config.user_claim, "sub"),
            )
        return AuthResult.reject("Token is not active")

    async def validate_custom(self, token: str) -> AuthResult:
        if not self.config.custom_endpoint:
            return AuthResult.reject("Server configuration error: No custom endpoint configured")
        payload = await self.post(self.config.custom_endpoint, json={"token": token})
        if payload is None:
            return AuthResult.reject("Token validation failed")
        if payload.get("valid") is True:
            return AuthResult(
                valid=True,
                group_id=_first_str(payload, "group_id", "groupId"),
                user_id=_first_str(payload, "user_id", "userId"),
            )
        return AuthResult.reject(_first_str(payload, "error") or "Token validation failed")
