"""
Testbot Runner module.

This module contains the pipeline execution engine: the command runner
that executes one step, the fail-fast pipeline executor, and the run
gate that keeps runs on the shared working copy from overlapping.
"""

from .command_runner import CommandRunner
from .pipeline import PipelineExecutor, build_steps
from .run_gate import RunGate

__all__ = ["CommandRunner", "PipelineExecutor", "RunGate", "build_steps"]
