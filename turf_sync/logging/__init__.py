"""
Structured Logging for Turf Sync
================================

Bounded Context: Observability

JSON-structured logs with typed events for the remote store, the outbox
and the local blob store.

Public API
----------
    LogEvent: Typed event names (enum)
    StructuredLogger: JSON logger implementation
    create_logger: Factory function
"""

from .events import LogEvent
from .structured import StructuredLogger, create_logger

__all__ = [
    'LogEvent',
    'StructuredLogger',
    'create_logger',
]
