"""
Execution of a single pipeline step as an external process.
"""

import asyncio
import logging
import os
from collections.abc import Mapping

from testbot_common.models import PipelineStep, StepFailure

logger = logging.getLogger(__name__)


class CommandRunner:
    """
    Runs one pipeline step and reports whether it failed.

    Standard output and standard error are captured separately. Output of
    a successful step is discarded; a failing step returns its standard
    error inside a StepFailure.
    """

    def __init__(self, env: Mapping[str, str] | None = None):
        """
        Initialize the command runner.

        Args:
            env: Environment for spawned processes. Defaults to a copy of
                 os.environ taken at each run, so steps see the same
                 environment as the server.
        """
        self.env = env

    async def run(self, step: PipelineStep) -> StepFailure | None:
        """
        Execute a step once.

        Args:
            step: Working directory and argv to execute

        Returns:
            None if the process exited with status 0, otherwise the StepFailure
            carrying the rendered invocation and captured standard error
        """
        env = dict(os.environ) if self.env is None else dict(self.env)
        logger.debug(f"Running `{step.render()}` in {step.workdir}")

        try:
            process = await asyncio.create_subprocess_exec(
                *step.argv,
                cwd=step.workdir,
                env=env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            _stdout, stderr = await process.communicate()
        except OSError as e:
            logger.warning(f"Could not start `{step.render()}`: {e}")
            return StepFailure(step=step, stderr=f"{e}\n")

        if process.returncode != 0:
            logger.warning(
                f"`{step.render()}` exited with status {process.returncode}"
            )
            return StepFailure(
                step=step, stderr=stderr.decode(errors="replace") if stderr else ""
            )

        return None
