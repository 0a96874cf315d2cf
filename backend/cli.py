from __future__ import annotations

import argparse
import logging
import sys

import uvicorn

from config import load_settings
from errors import ConfigurationError
from main import create_app

logger = logging.getLogger("event_gateway")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the event gateway API server.")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="Port to bind to (default: $PORT or 8000)")
    args = parser.parse_args(argv)

    try:
        settings = load_settings()
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return 1

    port = args.port or settings.port
    logger.info("Starting event gateway on http://%s:%s", args.host, port)
    uvicorn.run(create_app(settings), host=args.host, port=port, log_level=settings.log_level.lower())
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
