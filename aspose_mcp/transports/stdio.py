"""Stdio host: newline-delimited JSON-RPC frames over stdin/stdout."""

import asyncio
import logging
import sys
from typing import BinaryIO, Optional, TextIO, Union

from ..context import RequestContext
from .host import RunnableHost

logger = logging.getLogger(__name__)


class StdioHost(RunnableHost):
    """Single sequential reader loop; each call completes before the next frame is read."""

    transport = "stdio"

    def __init__(self, config, dispatcher, sessions=None,
                 stdin: Optional[Union[TextIO, BinaryIO]] = None, stdout: Optional[TextIO] = None):
        super().__init__(config, dispatcher, sessions)
        # Raw bytes; decode_frame owns UTF-8 decoding
        source = stdin or sys.stdin
        self.stdin = getattr(source, "buffer", source)
        self.stdout = stdout or sys.stdout

    async def start(self) -> None:
        logger.info("Stdio host started")
        while True:
            line = await asyncio.to_thread(self.stdin.readline)
            if not line:
                break
            line = line.strip()
            if not line:
                continue

            response = await self.route(line, RequestContext(transport=self.transport))
            if response is not None:
                self.stdout.write(response.to_json() + "\n")
                self.stdout.flush()
        logger.info("Stdin closed")
