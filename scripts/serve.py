"""CLI entry point for the upload web application.

Usage:
    python -m scripts.serve [--host 0.0.0.0] [--port 3003]
"""

import argparse
import logging
import os

import uvicorn

from tableload.web import create_app

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def main() -> None:
    parser = argparse.ArgumentParser(description="Serve the upload application")
    parser.add_argument("--host", default="127.0.0.1", help="Interface to bind")
    parser.add_argument(
        "--port", type=int, default=int(os.environ.get("PORT", 3003)), help="Port to listen on"
    )
    args = parser.parse_args()

    app = create_app()
    logger.info("Server is running on http://%s:%d", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
