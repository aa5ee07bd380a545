#!/usr/bin/env python3
"""Autopost API server.

Usage:
    python -m autopost.server [--host HOST] [--port PORT] [--reload]

    or:

    uvicorn autopost.api:create_app --factory --host 0.0.0.0 --port 8000
"""

import argparse
import logging

import uvicorn


def main():
    """Main entry point for the API server."""
    parser = argparse.ArgumentParser(
        description="Autopost API Server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run with default settings
    python -m autopost.server

    # Run on custom host/port
    python -m autopost.server --host 0.0.0.0 --port 8080
""",
    )
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to (default: 8000)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="info",
        choices=["debug", "info", "warning", "error", "critical"],
        help="Log level (default: info)",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # The rate limiter is in-process, so the server runs a single worker
    uvicorn.run(
        "autopost.api.app:create_app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=1,
        log_level=args.log_level,
        factory=True,
    )


if __name__ == "__main__":
    main()
