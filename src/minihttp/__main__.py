"""
Run the demo server.

    python -m minihttp

Then try:
  curl -i http://127.0.0.1:8081/hello
  curl -i http://127.0.0.1:8081/missing
"""

from __future__ import annotations

import logging
import sys

import anyio

from .config import ServerConfig
from .handlers import default_router
from .server import HttpServer, ServerStartupError


logger = logging.getLogger("minihttp")

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


def main() -> int:
    configure_logging()
    server = HttpServer(default_router(), ServerConfig())
    try:
        anyio.run(server.serve)
    except ServerStartupError as e:
        logger.error("startup failed: %s", e)
        return 1
    except KeyboardInterrupt:
        logger.info("interrupted, exiting")
    return 0


if __name__ == "__main__":
    sys.exit(main())
