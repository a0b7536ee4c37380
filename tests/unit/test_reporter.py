"""
Unit tests for testbot_notify.reporter.

Tests payload rendering, markup escaping and webhook delivery.
"""

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests

from testbot_common.models import (
    Author,
    Commit,
    PipelineStep,
    PushEvent,
    RunOutcome,
    StepFailure,
)
from testbot_notify.reporter import (
    SlackReporter,
    build_body,
    build_rejection_body,
    sanitize,
)


@pytest.fixture
def event():
    return PushEvent(
        ref="refs/heads/main",
        after="abc123",
        commits=(
            Commit(
                message="Add ledger index",
                url="https://github.com/acme/chain/commit/abc123",
                author=Author(username="octocat"),
            ),
        ),
    )


def failed_outcome(stderr: str) -> RunOutcome:
    step = PipelineStep(workdir=Path("/srv/chain"), argv=("migratedb", "-d", "postgres:///core-3"))
    return RunOutcome.failed(StepFailure(step=step, stderr=stderr))


class TestSanitize:
    """Test suite for the markup escaping."""

    def test_escapes_four_characters_once(self):
        assert sanitize('a < b && "c" > d') == 'a &lt; b &amp;&amp; \\"c\\" &gt; d'

    def test_plain_text_unchanged(self):
        assert sanitize("relation already exists\n") == "relation already exists\n"

    def test_is_not_idempotent(self):
        """Applying the escape twice double-escapes, so it must run exactly once."""
        once = sanitize("<&>")
        assert once == "&lt;&amp;&gt;"
        assert sanitize(once) == "&amp;lt;&amp;amp;&amp;gt;"


class TestBuildBody:
    """Test suite for notification body rendering."""

    def test_success_body(self, event):
        payload = json.loads(build_body(RunOutcome.passed(), event))

        assert len(payload["attachments"]) == 1
        summary = payload["attachments"][0]
        assert summary["color"] == "good"
        assert summary["text"] == "Integration tests passed :thumbsup:"
        assert summary["fields"] == [
            {
                "title": "Commit",
                "value": "<https://github.com/acme/chain/commit/abc123|Add ledger index>",
                "short": False,
            },
            {
                "title": "Author",
                "value": "<https://github.com/octocat|octocat>",
                "short": False,
            },
        ]

    def test_failure_body_has_log_attachment(self, event):
        payload = json.loads(build_body(failed_outcome("relation already exists\n"), event))

        summary, log = payload["attachments"]
        assert summary["color"] == "danger"
        assert "failed" in summary["text"]
        assert len(summary["fields"]) == 2
        assert log == {
            "text": "*Command run: *`migratedb -d postgres:///core-3`\nrelation already exists\n",
            "mrkdwn_in": ["text"],
        }

    def test_failure_log_is_escaped_once(self, event):
        """Test the exact wire form of the escaped log."""
        body = build_body(failed_outcome('expected "id" <int> & got\tnull'), event)

        assert (
            b'"text": "*Command run: *`migratedb -d postgres:///core-3`\\n'
            b'expected \\"id\\" &lt;int&gt; &amp; got\\tnull"'
        ) in body
        log = json.loads(body)["attachments"][1]["text"]
        assert log.endswith('expected "id" &lt;int&gt; &amp; got\tnull')

    def test_failure_log_with_backslashes_stays_valid_json(self, event):
        body = build_body(failed_outcome('C:\\tmp\\"x"\n'), event)

        log = json.loads(body)["attachments"][1]["text"]
        assert log.endswith('C:\\tmp\\"x"\n')

    def test_lone_surrogate_in_log_still_renders(self, event):
        """Test that text which is not valid UTF-8 is escaped, not dropped."""
        step = PipelineStep(workdir=Path("/srv/chain"), argv=("git", "checkout", "\ud800"))
        outcome = RunOutcome.failed(StepFailure(step=step, stderr="bad ref é\n"))

        body = build_body(outcome, event)

        assert b"git checkout \\ud800" in body
        log = json.loads(body)["attachments"][1]["text"]
        assert log == "*Command run: *`git checkout \ud800`\nbad ref é\n"

    def test_rejection_body(self):
        assert json.loads(build_rejection_body("expecting 1 commit")) == {
            "text": "expecting 1 commit"
        }


class TestSlackReporter:
    """Test suite for webhook delivery."""

    @pytest.fixture
    def session(self):
        session = MagicMock(spec=requests.Session)
        session.post.return_value = MagicMock(status_code=200)
        return session

    @pytest.mark.asyncio
    async def test_report_posts_json_once(self, session, event):
        reporter = SlackReporter("https://hooks.example/T", timeout=5, session=session)

        assert await reporter.report(RunOutcome.passed(), event) is True

        session.post.assert_called_once()
        args, kwargs = session.post.call_args
        assert args == ("https://hooks.example/T",)
        assert kwargs["headers"] == {"Content-Type": "application/json"}
        assert kwargs["timeout"] == 5
        assert json.loads(kwargs["data"])["attachments"][0]["color"] == "good"

    @pytest.mark.asyncio
    async def test_reject_posts_reason(self, session):
        reporter = SlackReporter("https://hooks.example/T", session=session)

        await reporter.reject("expecting 1 commit")

        assert json.loads(session.post.call_args.kwargs["data"]) == {
            "text": "expecting 1 commit"
        }

    @pytest.mark.asyncio
    async def test_delivery_error_is_logged_not_raised(self, session, caplog):
        session.post.side_effect = requests.exceptions.ConnectionError("refused")
        reporter = SlackReporter("https://hooks.example/T", session=session)

        assert await reporter.reject("expecting 1 commit") is False
        session.post.assert_called_once()
        assert "refused" in caplog.text

    @pytest.mark.asyncio
    async def test_http_error_status_is_logged(self, session):
        response = MagicMock()
        response.raise_for_status.side_effect = requests.exceptions.HTTPError("500")
        session.post.return_value = response
        reporter = SlackReporter("https://hooks.example/T", session=session)

        assert await reporter.reject("expecting 1 commit") is False

    @pytest.mark.asyncio
    async def test_missing_webhook_skips_delivery(self, session):
        reporter = SlackReporter("", session=session)

        assert await reporter.reject("expecting 1 commit") is False
        session.post.assert_not_called()
