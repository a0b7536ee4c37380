"""
Testbot Common module.

This module contains the domain models and settings shared across the
testbot components (runner, notifier, server, admin CLI).

The common module has no dependencies on other testbot_* modules, making it
a pure domain layer that can be imported by any component.
"""

from .config import Settings
from .models import (
    Author,
    Commit,
    PayloadError,
    PipelineStep,
    PushEvent,
    RunOutcome,
    StepFailure,
)

__all__ = [
    "Author",
    "Commit",
    "PayloadError",
    "PipelineStep",
    "PushEvent",
    "RunOutcome",
    "Settings",
    "StepFailure",
]
