"""
Process configuration loaded from the environment.

Environment variables:
    LISTEN: Listen address as host:port (default: :4567)
    DB1_URL, DB2_URL, DB3_URL: Databases migrated by the pipeline
    SLACK_WEBHOOK_URL: Incoming webhook notifications are posted to
    CHAIN: Path of the source checkout the pipeline runs in (default: cwd)
    MAINLINE_REF: Ref whose pushes trigger a run (default: refs/heads/main)
    TESTBOT_NOTIFY_TIMEOUT: Seconds to wait for the webhook (default: 30)
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_LISTEN = ":4567"
DEFAULT_DATABASE_URLS = (
    "postgres:///core?sslmode=disable",
    "postgres:///core-2?sslmode=disable",
    "postgres:///core-3?sslmode=disable",
)
DEFAULT_MAINLINE_REF = "refs/heads/main"
DEFAULT_NOTIFY_TIMEOUT = 30.0


def parse_listen_address(listen: str) -> tuple[str, int]:
    """
    Split a listen address into host and port.

    Args:
        listen: Address in "host:port" form; an empty host means all interfaces

    Returns:
        Tuple of (host, port)

    Raises:
        ValueError: If the port is missing or not a valid TCP port

    Example:
        >>> parse_listen_address(":4567")
        ('0.0.0.0', 4567)
    """
    host, sep, port_text = listen.rpartition(":")
    if not sep or not port_text.isdigit():
        raise ValueError(f"Invalid listen address: {listen!r}")
    port = int(port_text)
    if not 0 < port < 65536:
        raise ValueError(f"Invalid listen port: {port}")
    return (host.strip("[]") or "0.0.0.0"), port


@dataclass(frozen=True)
class Settings:
    """
    Immutable runner settings, built once at start-up.

    Attributes:
        listen: Listen address ("host:port")
        database_urls: Connection strings of the three migrated databases
        slack_webhook_url: Notification endpoint; empty disables delivery
        source_dir: Working-copy checkout every run operates on
        mainline_ref: Only pushes to this ref start a run
        notify_timeout: Seconds to wait for the notification endpoint
    """

    listen: str = DEFAULT_LISTEN
    database_urls: tuple[str, str, str] = DEFAULT_DATABASE_URLS
    slack_webhook_url: str = ""
    source_dir: Path = field(default_factory=Path.cwd)
    mainline_ref: str = DEFAULT_MAINLINE_REF
    notify_timeout: float = DEFAULT_NOTIFY_TIMEOUT

    @property
    def host(self) -> str:
        return parse_listen_address(self.listen)[0]

    @property
    def port(self) -> int:
        return parse_listen_address(self.listen)[1]

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read instead of os.environ (useful for testing)

        Returns:
            Settings with defaults applied for unset variables

        Raises:
            ValueError: If LISTEN or TESTBOT_NOTIFY_TIMEOUT is malformed
        """
        env = os.environ if environ is None else environ

        listen = env.get("LISTEN") or DEFAULT_LISTEN
        parse_listen_address(listen)

        source_dir = env.get("CHAIN", "")
        if not source_dir:
            logger.warning("CHAIN is not set, running the pipeline in the current directory")

        timeout_text = env.get("TESTBOT_NOTIFY_TIMEOUT", "")
        try:
            notify_timeout = float(timeout_text) if timeout_text else DEFAULT_NOTIFY_TIMEOUT
        except ValueError:
            raise ValueError(
                f"Invalid TESTBOT_NOTIFY_TIMEOUT={timeout_text!r}"
            ) from None
        if notify_timeout <= 0:
            raise ValueError(f"Invalid TESTBOT_NOTIFY_TIMEOUT={timeout_text!r}")

        return cls(
            listen=listen,
            database_urls=(
                env.get("DB1_URL") or DEFAULT_DATABASE_URLS[0],
                env.get("DB2_URL") or DEFAULT_DATABASE_URLS[1],
                env.get("DB3_URL") or DEFAULT_DATABASE_URLS[2],
            ),
            slack_webhook_url=env.get("SLACK_WEBHOOK_URL", ""),
            source_dir=Path(source_dir) if source_dir else Path.cwd(),
            mainline_ref=env.get("MAINLINE_REF") or DEFAULT_MAINLINE_REF,
            notify_timeout=notify_timeout,
        )
