"""
Testbot Server module.

This module contains the service context that decides what to do with
each push and the FastAPI application receiving the push webhook.
"""

from .context import PushDecision, ServiceContext

__all__ = ["PushDecision", "ServiceContext"]
