#!/usr/bin/env python3
"""
MCP Server Entrypoint

Loads configuration, builds the tool registry and runs the configured
transport host.
"""

import logging
import sys
from typing import Optional, Sequence

from dotenv import load_dotenv

from .config import ConfigError, load_config
from .filters import ToolFilter
from .transports import build_host

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(debug: bool = False) -> None:
    # stdout is reserved for protocol frames in stdio mode.
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv()
    configure_logging()

    try:
        config = load_config(sys.argv[1:] if argv is None else argv)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    if config.server.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    tool_filter = ToolFilter(config.server, config.session)
    logger.info(f"Aspose MCP Server starting (transport={config.transport.mode})")
    logger.info(f"Enabled categories: {tool_filter.enabled_categories()}")

    try:
        host = build_host(config)
    except ValueError as e:
        logger.error(f"Failed to start server: {e}")
        return 1

    try:
        host.run()
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
