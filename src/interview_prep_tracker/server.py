from __future__ import annotations

import logging
import sys

from .server_parts.base import *  # noqa: F401,F403
from .server_parts.tools_core import *  # noqa: F401,F403
from .server_parts.tools_applications import *  # noqa: F401,F403
from .server_parts.tools_rounds import *  # noqa: F401,F403
from .server_parts.tools_data import *  # noqa: F401,F403


def _configure_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    # stdout carries the MCP stdio transport, so logs go to stderr.
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main() -> None:
    _configure_logging()
    ready = _ensure_store_ready()
    logger.info("Serving interview-prep-tracker with db_path=%s", ready["db_path"])
    mcp.run()


if __name__ == "__main__":
    main()
