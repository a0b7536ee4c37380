"""
Testbot Notify module.

Renders run outcomes and push rejections as Slack webhook payloads and
delivers them.
"""

from .reporter import SlackReporter, build_body, build_rejection_body, sanitize

__all__ = ["SlackReporter", "build_body", "build_rejection_body", "sanitize"]
