"""
Service context tying the runner, gate and reporter together.

One ServiceContext is built at start-up and lives for the whole process.
It decides what to do with each inbound push and owns the background
tasks running accepted pushes.
"""

import asyncio
import enum
import logging

from testbot_common.config import Settings
from testbot_common.models import PayloadError, PushEvent, RunOutcome
from testbot_notify.reporter import SlackReporter
from testbot_runner.pipeline import PipelineExecutor
from testbot_runner.run_gate import RunGate

logger = logging.getLogger(__name__)


class PushDecision(str, enum.Enum):
    """What happened to an inbound push."""

    ACCEPTED = "accepted"
    IGNORED = "ignored"
    REJECTED = "rejected"


class ServiceContext:
    """
    Process-wide state of the runner.

    Holds the settings, the pipeline executor, the run gate and the
    reporter, and passes them explicitly to every run.
    """

    def __init__(
        self,
        settings: Settings,
        executor: PipelineExecutor | None = None,
        gate: RunGate | None = None,
        reporter: SlackReporter | None = None,
    ):
        self.settings = settings
        self.executor = executor or PipelineExecutor(settings)
        self.gate = gate or RunGate()
        self.reporter = reporter or SlackReporter(
            settings.slack_webhook_url, timeout=settings.notify_timeout
        )
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    def from_env(cls) -> "ServiceContext":
        return cls(Settings.from_env())

    @property
    def active_tasks(self) -> int:
        return len(self._tasks)

    async def decide(self, body: bytes) -> tuple[PushDecision, PushEvent | None]:
        """
        Validate and filter an inbound push.

        Rejected pushes are announced on Slack before returning; pushes to
        other refs are ignored silently.

        Args:
            body: Raw request body

        Returns:
            Tuple of (decision, event); event is None when the body was rejected
        """
        try:
            event = PushEvent.from_json(body)
        except PayloadError as e:
            logger.warning(f"Rejecting push: parsing request: {e}")
            await self.reporter.reject(f"parsing request: {e}\n")
            return PushDecision.REJECTED, None

        if len(event.commits) != 1:
            logger.warning(f"Rejecting push with {len(event.commits)} commits")
            await self.reporter.reject("expecting 1 commit")
            return PushDecision.REJECTED, None

        logger.info(f"ref pushed: {event.ref}")
        if event.ref != self.settings.mainline_ref:
            return PushDecision.IGNORED, event

        return PushDecision.ACCEPTED, event

    async def handle_push(self, body: bytes) -> PushDecision:
        """
        Decide on a push and start a background run if it is accepted.

        Returns immediately; the caller never observes the run's outcome.
        """
        decision, event = await self.decide(body)
        if decision is PushDecision.ACCEPTED:
            assert event is not None
            self.spawn(event)
        return decision

    def spawn(self, event: PushEvent) -> asyncio.Task:
        """Start the run for an accepted push as a background task."""
        task = asyncio.create_task(self.run_push(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def run_push(self, event: PushEvent) -> RunOutcome | None:
        """
        Run the pipeline for a push through the gate and report the outcome.

        Nothing escapes this coroutine: unexpected errors are logged with
        the push they belong to.

        Returns:
            The outcome, or None if the run was superseded or crashed
        """
        try:
            return await self.gate.try_run(lambda: self.run_and_report(event))
        except Exception as e:
            logger.error(
                f"Run for {event.after} on {event.ref} crashed: {e}", exc_info=True
            )
            return None

    async def run_and_report(self, event: PushEvent) -> RunOutcome:
        """Execute the pipeline for a push and deliver its notification."""
        outcome = await self.executor.execute(event.after)
        await self.reporter.report(outcome, event)
        return outcome

    async def wait_idle(self) -> None:
        """Wait for every spawned run to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
