"""Origin header validation (DNS rebinding protection)."""

import logging
from typing import Optional
from urllib.parse import urlsplit

from ..config import OriginConfig
from ..context import RequestContext
from .base import CallNext, MiddlewareStage, StageResponse, forbidden

logger = logging.getLogger(__name__)

LOOPBACK_HOSTS = ("localhost", "127.0.0.1", "::1", "[::1]")


class OriginValidationStage(MiddlewareStage):
    """Reject browser requests from origins outside the allow-list."""

    name = "origin"

    def __init__(self, config: OriginConfig):
        self.config = config
        self.allowed = {o.lower().rstrip("/") for o in config.allowed_origins}

    def is_allowed(self, origin: str) -> bool:
        normalized = origin.lower().rstrip("/")
        if normalized in self.allowed:
            return True
        if self.config.allow_localhost:
            host = urlsplit(normalized).hostname
            return host in LOOPBACK_HOSTS
        return False

    async def __call__(self, context: RequestContext, call_next: CallNext) -> Optional[StageResponse]:
        origin = context.header("origin")
        if origin is None:
            return await call_next()

        if not self.is_allowed(origin):
            logger.warning(f"Rejected request from origin {origin}")
            return forbidden(f"Origin not allowed: {origin}")
        return await call_next()
