"""
Middleware chain for the network transports.

Stages run in a fixed order: origin validation, API key auth, JWT auth,
tracking. Disabled stages are simply left out of the list.
"""

import logging
from typing import List

from ..config import AppConfig
from .auth import ApiKeyAuthStage, AuthCache, JwtAuthStage
from .base import (
    HEALTH_PATHS,
    MiddlewareStage,
    StageChainMiddleware,
    StageResponse,
)
from .origin import OriginValidationStage
from .tracking import TrackingEvent, TrackingMetrics, TrackingStage

logger = logging.getLogger(__name__)


def build_middleware_chain(config: AppConfig) -> List[MiddlewareStage]:
    """Build the enabled stages in their fixed order."""
    stages: List[MiddlewareStage] = []
    metrics_path = config.tracking.metrics_path

    if config.origin.enabled:
        stages.append(OriginValidationStage(config.origin))
    if config.auth.api_key.enabled:
        stages.append(ApiKeyAuthStage(config.auth.api_key, metrics_path))
    if config.auth.jwt.enabled:
        stages.append(JwtAuthStage(config.auth.jwt, metrics_path))
    if config.tracking.enabled:
        stages.append(TrackingStage(config.tracking))

    if stages:
        logger.info(f"Middleware chain: {' -> '.join(stage.name for stage in stages)}")
    return stages


__all__ = [
    "ApiKeyAuthStage",
    "AuthCache",
    "HEALTH_PATHS",
    "JwtAuthStage",
    "MiddlewareStage",
    "OriginValidationStage",
    "StageChainMiddleware",
    "StageResponse",
    "TrackingEvent",
    "TrackingMetrics",
    "TrackingStage",
    "build_middleware_chain",
]
