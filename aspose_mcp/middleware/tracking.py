"""
Request tracking: structured log events, webhook delivery and Prometheus
text metrics.
"""

import asyncio
import logging
import time
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, Optional, Set

import httpx
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..config import TrackingConfig
from ..context import RequestContext
from .base import CallNext, MiddlewareStage, StageResponse

logger = logging.getLogger(__name__)

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"
MCP_PATHS = ("/mcp", "/ws")


class TrackingEvent(BaseModel):
    """One tracked request, serialized camelCase for log and webhook sinks."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    timestamp: datetime
    group_id: Optional[str] = None
    user_id: Optional[str] = None
    tool: Optional[str] = None
    session_id: Optional[str] = None
    duration_ms: int
    success: bool
    error: Optional[str] = None
    request_id: str

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class TrackingMetrics:
    """In-process counters rendered in the Prometheus text format."""

    def __init__(self):
        self.total = 0
        self.successful = 0
        self.failed = 0
        self.duration_ms_sum = 0
        self.by_tool: Dict[str, int] = defaultdict(int)

    def record(self, event: TrackingEvent) -> None:
        self.total += 1
        if event.success:
            self.successful += 1
        else:
            self.failed += 1
        self.duration_ms_sum += event.duration_ms
        if event.tool:
            self.by_tool[event.tool] += 1

    def render(self) -> str:
        lines = [
            "# HELP aspose_mcp_requests_total Total number of MCP requests",
            "# TYPE aspose_mcp_requests_total counter",
            f"aspose_mcp_requests_total {self.total}",
            "# HELP aspose_mcp_requests_successful_total Total number of successful MCP requests",
            "# TYPE aspose_mcp_requests_successful_total counter",
            f"aspose_mcp_requests_successful_total {self.successful}",
            "# HELP aspose_mcp_requests_failed_total Total number of failed MCP requests",
            "# TYPE aspose_mcp_requests_failed_total counter",
            f"aspose_mcp_requests_failed_total {self.failed}",
            "# HELP aspose_mcp_request_duration_ms_sum Total request duration in milliseconds",
            "# TYPE aspose_mcp_request_duration_ms_sum counter",
            f"aspose_mcp_request_duration_ms_sum {self.duration_ms_sum}",
        ]
        if self.by_tool:
            lines.append("# HELP aspose_mcp_tool_requests_total MCP requests per tool")
            lines.append("# TYPE aspose_mcp_tool_requests_total counter")
            for tool, count in sorted(self.by_tool.items()):
                lines.append(f'aspose_mcp_tool_requests_total{{tool="{tool}"}} {count}')
        return "\n".join(lines) + "\n"


class TrackingStage(MiddlewareStage):
    """Time each request and fan the resulting event out to the enabled sinks."""

    name = "tracking"

    def __init__(self, config: TrackingConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.metrics = TrackingMetrics()
        self._client = client
        self._owns_client = client is None
        self._pending: Set[asyncio.Task] = set()

    async def __call__(self, context: RequestContext, call_next: CallNext) -> Optional[StageResponse]:
        if self.config.metrics_enabled and context.path == self.config.metrics_path:
            return StageResponse(200, self.metrics.render(), media_type=PROMETHEUS_CONTENT_TYPE)

        start = time.perf_counter()
        error: Optional[str] = None
        try:
            response = await call_next()
        except Exception as e:
            error = str(e)
            raise
        finally:
            duration_ms = int((time.perf_counter() - start) * 1000)
            event = self.build_event(context, duration_ms, error)
            if event is not None:
                self.track(event)
        return response

    def build_event(self, context: RequestContext, duration_ms: int, error: Optional[str]) -> Optional[TrackingEvent]:
        tool = context.tool_name
        if not tool and context.path in MCP_PATHS:
            tool = "mcp_request"
        if not tool:
            return None

        status = context.status_code or 200
        if error is None and status >= 400:
            error = f"HTTP {status}"
        if error is None:
            error = context.error

        return TrackingEvent(
            timestamp=datetime.now(timezone.utc),
            group_id=context.group_id,
            user_id=context.user_id,
            tool=tool,
            session_id=context.session_id,
            duration_ms=duration_ms,
            success=error is None,
            error=error,
            request_id=context.request_id,
        )

    def track(self, event: TrackingEvent) -> None:
        self.metrics.record(event)

        if self.config.log_enabled:
            if event.success:
                logger.info(f"Tracking: {event.to_json()}")
            else:
                logger.warning(f"Tracking: {event.to_json()}")

        if self.config.webhook_enabled and self.config.webhook_url:
            task = asyncio.create_task(self.send_webhook(event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.webhook_timeout_seconds)
        return self._client

    async def send_webhook(self, event: TrackingEvent) -> None:
        headers = {"Content-Type": "application/json"}
        if self.config.webhook_auth_header:
            headers["Authorization"] = self.config.webhook_auth_header
        try:
            await self.client.post(
                self.config.webhook_url,
                content=event.to_json(),
                headers=headers,
                timeout=self.config.webhook_timeout_seconds,
            )
        except httpx.TimeoutException:
            logger.warning(
                f"Webhook request to {self.config.webhook_url} timed out after "
                f"{self.config.webhook_timeout_seconds} seconds"
            )
        except httpx.HTTPError as e:
            logger.warning(f"Failed to send webhook to {self.config.webhook_url}: {e}")

    async def aclose(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
