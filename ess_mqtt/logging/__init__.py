"""
Structured Logging for ESS MQTT
===============================

Bounded Context: Observability

This module provides JSON-structured logging for the bus client and the
status listener.

Public API
----------
    LogEvent: Typed event names (enum)
    StructuredLogger: JSON logger implementation
    create_logger: Factory function

Example:
    >>> from ess_mqtt.logging import StructuredLogger, LogEvent
    >>> logger = StructuredLogger(component="listener")
    >>> logger.info(
    ...     event=LogEvent.STATUS_RECEIVED,
    ...     message="Status updated",
    ...     metadata={'subject': 'opendso.r1.EssAppStatus.app-status'}
    ... )
"""

from .events import LogEvent
from .structured import StructuredLogger, create_logger

__all__ = [
    'LogEvent',
    'StructuredLogger',
    'create_logger',
]
