"""
Slack notifications for pipeline outcomes and rejected pushes.

Bodies follow the Slack incoming-webhook attachment format. The failure
log attachment is written as a pre-escaped JSON string literal so the
markup escaping and the JSON quoting are applied exactly once.
"""

import asyncio
import json
import logging

import requests

from testbot_common.models import PushEvent, RunOutcome

logger = logging.getLogger(__name__)

PASSED = ("good", "passed :thumbsup:")
FAILED = ("danger", "failed :thumbsdown:")

_LOG_ATTACHMENT = '{{"text": "{log}", "mrkdwn_in": ["text"]}}'


def sanitize(text: str) -> str:
    """
    Escape text for embedding in the payload markup.

    Replaces, in order: ``"`` with ``\\"``, ``&`` with ``&amp;``,
    ``<`` with ``&lt;`` and ``>`` with ``&gt;``. Not idempotent; apply once.

    Example:
        >>> sanitize('a < b && "c" > d')
        'a &lt; b &amp;&amp; \\\\"c\\\\" &gt; d'
    """
    text = text.replace('"', '\\"')
    text = text.replace("&", "&amp;")
    text = text.replace("<", "&lt;")
    text = text.replace(">", "&gt;")
    return text


def _escape_controls(text: str) -> str:
    """JSON-escape backslashes and control characters, leaving quotes as-is."""
    return json.dumps(text)[1:-1].replace('\\"', '"')


def build_summary(outcome: RunOutcome, event: PushEvent) -> dict:
    """
    Build the status attachment shared by passing and failing runs.

    Args:
        outcome: Result of the run
        event: Push that triggered the run (must hold exactly one commit)

    Returns:
        Attachment dictionary with color, text and Commit/Author fields
    """
    color, result = PASSED if outcome.success else FAILED
    commit = event.head_commit
    username = commit.author.username
    return {
        "color": color,
        "text": f"Integration tests {result}",
        "fields": [
            {
                "title": "Commit",
                "value": f"<{commit.url}|{commit.message}>",
                "short": False,
            },
            {
                "title": "Author",
                "value": f"<{commit.author.profile_url}|{username}>",
                "short": False,
            },
        ],
    }


def build_body(outcome: RunOutcome, event: PushEvent) -> bytes:
    """
    Render the notification body for a finished run.

    Failed runs get a second attachment with the offending invocation and
    its standard error, escaped with sanitize().

    Returns:
        UTF-8 encoded JSON body
    """
    attachments = [json.dumps(build_summary(outcome, event))]
    if outcome.failure is not None:
        log = sanitize(_escape_controls(outcome.failure.log))
        attachments.append(_LOG_ATTACHMENT.format(log=log))
    return ('{"attachments": [' + ", ".join(attachments) + "]}").encode()


def build_rejection_body(reason: str) -> bytes:
    """Render the body announcing a push that was not run."""
    return json.dumps({"text": reason}).encode()


class SlackReporter:
    """
    Delivers notification bodies to a Slack incoming webhook.

    Delivery happens at most once per notification; failures are logged
    and never raised to the caller.
    """

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ):
        """
        Initialize the reporter.

        Args:
            webhook_url: Endpoint to POST to; empty disables delivery
            timeout: Seconds to wait for the endpoint
            session: Optional requests session (useful for testing)
        """
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.session = session or requests.Session()

    async def report(self, outcome: RunOutcome, event: PushEvent) -> bool:
        """Send the result of a finished run."""
        return await self.post(build_body(outcome, event))

    async def reject(self, reason: str) -> bool:
        """Send a notice that a push was rejected before running."""
        return await self.post(build_rejection_body(reason))

    async def post(self, body: bytes) -> bool:
        """
        POST a body to the webhook without blocking the event loop.

        Returns:
            True if the endpoint accepted the notification
        """
        return await asyncio.to_thread(self._post, body)

    def _post(self, body: bytes) -> bool:
        if not self.webhook_url:
            logger.warning("SLACK_WEBHOOK_URL is not set, dropping notification")
            return False

        logger.info("Sending results to slack")
        try:
            response = self.session.post(
                self.webhook_url,
                data=body,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error(f"Sending notification failed: {e}")
            return False
        return True
