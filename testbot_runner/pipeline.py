"""
The fixed integration-test pipeline and its fail-fast executor.

Every run operates on the same working copy: it is synced to the pushed
commit, the server binaries are built, the three databases are migrated
and finally the integration suites run. The first failing step ends the
run; nothing is rolled back.
"""

import logging
from collections.abc import Callable, Sequence

from testbot_common.config import Settings
from testbot_common.models import PipelineStep, RunOutcome, StepFailure

from .command_runner import CommandRunner

logger = logging.getLogger(__name__)

StepBuilder = Callable[[Settings, str], Sequence[PipelineStep]]


def build_steps(settings: Settings, commit: str) -> list[PipelineStep]:
    """
    Build the ordered pipeline for one pushed commit.

    Args:
        settings: Runner settings (checkout path, database URLs)
        commit: Commit hash to check out and test

    Returns:
        The twelve steps, in execution order
    """
    src = settings.source_dir
    db1, db2, db3 = settings.database_urls

    def step(*argv: str, workdir=src) -> PipelineStep:
        return PipelineStep(workdir=workdir, argv=argv)

    return [
        step("git", "fetch", "origin"),
        step("git", "clean", "-xdf"),
        step("git", "checkout", commit),
        step("git", "reset", "--hard", commit),
        step("go", "install", "./cmd/cored"),
        step("go", "install", "./cmd/migratedb"),
        step("migratedb", "-d", db1),
        step("migratedb", "-d", db2),
        step("migratedb", "-d", db3),
        step("mvn", "package", workdir=src / "qa" / "tests"),
        step("./qa/bin/test-singlecore"),
        step("./qa/bin/test-multicore"),
    ]


class PipelineExecutor:
    """
    Runs the pipeline steps strictly in sequence, stopping at the first failure.
    """

    def __init__(
        self,
        settings: Settings,
        runner: CommandRunner | None = None,
        step_builder: StepBuilder = build_steps,
    ):
        """
        Initialize the executor.

        Args:
            settings: Runner settings passed to the step builder
            runner: Command runner used for every step
            step_builder: Produces the step list for a commit
        """
        self.settings = settings
        self.runner = runner or CommandRunner()
        self.step_builder = step_builder

    def steps(self, commit: str) -> list[PipelineStep]:
        """Return the concrete steps a run of ``commit`` executes."""
        return list(self.step_builder(self.settings, commit))

    async def execute(self, commit: str) -> RunOutcome:
        """
        Run the whole pipeline for a commit.

        Args:
            commit: Commit hash the pipeline checks out

        Returns:
            RunOutcome.passed() if every step succeeded, otherwise the failure
            of the first failing step. Later steps are never started.
        """
        steps = self.steps(commit)
        logger.info(f"Starting pipeline for {commit} ({len(steps)} steps)")

        for index, step in enumerate(steps, start=1):
            logger.debug(f"Step {index}/{len(steps)}: {step.render()}")
            try:
                failure = await self.runner.run(step)
            except Exception as e:
                logger.error(
                    f"Unexpected error in step {index} `{step.render()}`: {e}",
                    exc_info=True,
                )
                failure = StepFailure(step=step, stderr=f"internal error: {e}\n")

            if failure is not None:
                logger.warning(
                    f"Pipeline for {commit} failed at step {index}: {failure.invocation}"
                )
                return RunOutcome.failed(failure)

        logger.info(f"Pipeline for {commit} passed")
        return RunOutcome.passed()
