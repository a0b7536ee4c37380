"""
Entrypoint for running the push webhook server.

Usage:
    python -m testbot_server [OPTIONS]
    testbot-server [OPTIONS]  (after pip install)

Environment Variables:
    LISTEN: Listen address (default: :4567)
    DB1_URL, DB2_URL, DB3_URL: Databases migrated by the pipeline
    SLACK_WEBHOOK_URL: Slack incoming webhook for results
    CHAIN: Source checkout the pipeline runs in
    MAINLINE_REF: Ref that triggers runs (default: refs/heads/main)
"""

import argparse
import dataclasses
import logging
import sys

import uvicorn

from testbot_common.config import Settings, parse_listen_address

from .app import create_app
from .context import ServiceContext

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Testbot - run integration tests on pushes to the mainline branch",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
  LISTEN              Listen address (default: :4567)
  DB1_URL             First database migrated by the pipeline
  DB2_URL             Second database migrated by the pipeline
  DB3_URL             Third database migrated by the pipeline
  SLACK_WEBHOOK_URL   Slack incoming webhook for results
  CHAIN               Source checkout the pipeline runs in
  MAINLINE_REF        Ref that triggers runs (default: refs/heads/main)

Note: Command-line arguments override environment variables.
        """,
    )

    parser.add_argument(
        "--listen",
        type=str,
        default=None,
        help="Listen address as host:port (default: LISTEN env or :4567)",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO)",
    )

    return parser.parse_args(argv)


def load_settings(args: argparse.Namespace) -> Settings:
    """
    Build settings from the environment, applying command-line overrides.

    Raises:
        ValueError: If an address or timeout is malformed
    """
    settings = Settings.from_env()
    if args.listen is not None:
        parse_listen_address(args.listen)
        settings = dataclasses.replace(settings, listen=args.listen)
    return settings


def main(argv: list[str] | None = None) -> int:
    """
    Main entrypoint for the server.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        settings = load_settings(args)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    logger.info("Starting testbot")
    logger.info(f"  Checkout: {settings.source_dir}")
    logger.info(f"  Mainline ref: {settings.mainline_ref}")
    logger.info(f"  Notifications: {'enabled' if settings.slack_webhook_url else 'disabled'}")
    logger.info(f"listening on {settings.listen}")

    app = create_app(ServiceContext(settings))
    try:
        uvicorn.run(
            app,
            host=settings.host,
            port=settings.port,
            log_level=args.log_level.lower(),
        )
        return 0
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
