#!/usr/bin/env python3
"""Start the BookEchoes AIBot API with uvicorn."""

import argparse
import os

import uvicorn
from dotenv import load_dotenv

load_dotenv()

DEFAULT_HOST = os.getenv("AIBOT_HOST", "127.0.0.1")
DEFAULT_PORT = int(os.getenv("AIBOT_PORT", "8010"))


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="BookEchoes AIBot API server")
    parser.add_argument("--host", default=DEFAULT_HOST, help="Interface to bind (AIBOT_HOST)")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Port to bind (AIBOT_PORT)")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes")
    parser.add_argument(
        "--enable-aibot",
        action="store_true",
        help="Set AIBOT_LOCAL_ENABLED=1 for this process",
    )
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    if args.enable_aibot:
        os.environ["AIBOT_LOCAL_ENABLED"] = "1"

    # The book retrieval backend defaults to :8000, so this service avoids it
    uvicorn.run(
        "server.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


if __name__ == "__main__":
    main()
