"""
Operator CLI for the testbot.

Provides commands to inspect the pipeline and to replay a saved push
payload through the same path the webhook server uses.
"""

import asyncio
import json
import sys
from pathlib import Path

import click

from testbot_common.config import Settings
from testbot_notify.reporter import SlackReporter
from testbot_server.context import PushDecision, ServiceContext


class EchoReporter(SlackReporter):
    """Reporter that prints notification bodies instead of posting them."""

    def __init__(self) -> None:
        super().__init__(webhook_url="")

    async def post(self, body: bytes) -> bool:
        click.echo(body.decode())
        return True


def get_settings() -> Settings:
    """Load settings from the environment, exiting on bad configuration."""
    try:
        return Settings.from_env()
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def run_async(coro):
    """Helper to run async functions in CLI commands."""
    return asyncio.run(coro)


@click.group()
def cli():
    """Testbot Admin - Inspect the pipeline and replay pushes."""
    pass


@cli.command("steps")
@click.option("--commit", default="HEAD", show_default=True, help="Commit to check out")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def steps(commit: str, json_output: bool):
    """List the pipeline steps a run would execute."""
    context = ServiceContext(get_settings())
    pipeline = context.executor.steps(commit)

    if json_output:
        click.echo(json.dumps([step.to_dict() for step in pipeline], indent=2))
        return

    for index, step in enumerate(pipeline, start=1):
        click.echo(f"{index:>2}. [{step.workdir}] {step.render()}")


@cli.command("replay")
@click.argument("payload", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--notify/--no-notify",
    default=True,
    help="Post the result to Slack, or print the notification body instead",
)
def replay(payload: Path, notify: bool):
    """Run a saved push PAYLOAD through the pipeline and report it."""
    settings = get_settings()
    reporter = None if notify else EchoReporter()
    context = ServiceContext(settings, reporter=reporter)

    async def run():
        decision, event = await context.decide(payload.read_bytes())
        if decision is PushDecision.REJECTED:
            click.echo("✗ Push rejected", err=True)
            return 1
        if decision is PushDecision.IGNORED:
            assert event is not None
            click.echo(f"Push to {event.ref} ignored (mainline is {settings.mainline_ref})")
            return 0

        assert event is not None
        click.echo(f"Running pipeline for {event.after}...")
        outcome = await context.run_push(event)
        if outcome is None or not outcome.success:
            click.echo("✗ Integration tests failed", err=True)
            return 1
        click.echo("✓ Integration tests passed")
        return 0

    sys.exit(run_async(run()))
