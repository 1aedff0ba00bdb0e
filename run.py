"""
Run script for starting the Voice Bridge server.

Usage:
    python run.py [--port PORT] [--host HOST] [--log-level LEVEL]
"""

import argparse
import os
import sys
from pathlib import Path

import dotenv
import uvicorn

sys.path.append(str(Path(__file__).parent))

from app.config.logging_config import configure_logging
from app.config.settings import Settings

dotenv.load_dotenv()

# Configure logging
logger = configure_logging()


def parse_args(settings: Settings):
    """Parse command line arguments, defaulting to the configured settings."""
    parser = argparse.ArgumentParser(description="Start the Voice Bridge server")
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help="Port to run the server on (default: 8000 or PORT env var)",
    )
    parser.add_argument(
        "--host",
        default=settings.host,
        help="Host to bind the server to (default: 0.0.0.0 or HOST env var)",
    )
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO or LOG_LEVEL env var)",
    )
    return parser.parse_args()


def main():
    """Main entry point for starting the server."""
    settings = Settings.from_env()
    args = parse_args(settings)

    missing = settings.missing_credentials()

    logger.info(f"Starting server on http://{args.host}:{args.port}")
    logger.info(f"Log level: {args.log_level}")
    logger.info(f"Telephony provider: {settings.telephony_provider}")
    if missing:
        # Endpoints that do not need these credentials keep working.
        logger.warning(f"Missing credentials: {', '.join(missing)}")

    uvicorn.run(
        "app.main:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
        http="h11",
        # Disable access logs, we have our own logging
        access_log=False,
        reload=os.getenv("ENV", "production").lower() == "development",
    )


if __name__ == "__main__":
    main()
