"""
Structured JSON Logger
=====================

Bounded Context: Observability Infrastructure

This module provides a structured logger that outputs JSON logs, one object
per line, next to the operator-facing console output of the control client.

Design:
- JSON output (compatible with log aggregators)
- Thread-safe (uses standard logging module)
- Contextual metadata (subject, correlation_id, etc.)
- Type-safe events (LogEvent enum)

Architecture:
- Wraps Python's logging module
- Adds structured metadata
- Formats as JSON for stderr/file

Example:
    >>> logger = StructuredLogger(component="bus")
    >>> logger.info(
    ...     event=LogEvent.MQTT_PUBLISH_SUCCESS,
    ...     message="Published message",
    ...     metadata={'subject': 'opendso.r1.AppControls.ess-manager'}
    ... )

Output:
    {
        "timestamp": "2025-10-24T15:30:45.123456+00:00",
        "level": "INFO",
        "component": "bus",
        "event": "mqtt.publish.success",
        "message": "Published message",
        "metadata": {"subject": "opendso.r1.AppControls.ess-manager"}
    }
"""

import json
import logging
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional
from .events import LogEvent


class StructuredLogger:
    """
    JSON structured logger for the bus client and status listener.

    Wraps Python's logging module with structured metadata support.

    Attributes:
        component: Component name (e.g., "bus", "listener")
        logger: Underlying Python logger instance

    Thread Safety:
        Thread-safe via Python's logging module. The listener thread and the
        paho network thread both log through the same instance.
    """

    def __init__(
        self,
        component: str,
        level: int = logging.INFO,
        logger_name: Optional[str] = None,
        handlers: Optional[List[logging.Handler]] = None
    ):
        """
        Initialize structured logger.

        Args:
            component: Component identifier (e.g., "bus")
            level: Logging level (default: INFO)
            logger_name: Custom logger name (default: ess_mqtt.<component>)
            handlers: Handlers receiving the JSON lines (default: stderr stream)
        """
        self.component = component
        self.logger_name = logger_name or f"ess_mqtt.{component}"
        self.logger = logging.getLogger(self.logger_name)
        self.logger.setLevel(level)

        # JSON lines must not be re-formatted by the root handlers
        self.logger.propagate = False

        if handlers:
            # Shared handlers keep their formatter; the JSON document is the message
            for handler in handlers:
                if handler.formatter is None:
                    handler.setFormatter(JSONFormatter())
            self.logger.handlers = list(handlers)
        elif not self.logger.handlers:
            default_handler = logging.StreamHandler()
            default_handler.setFormatter(JSONFormatter())
            self.logger.addHandler(default_handler)

    def _log(
        self,
        level: str,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        """
        Internal log method with structured format.

        Args:
            level: Log level (DEBUG, INFO, WARNING, ERROR)
            event: Typed log event
            message: Human-readable message
            metadata: Additional context (subject, correlation_id, etc.)
            exc_info: Exception for ERROR logs
        """
        log_level = getattr(logging, level)
        if not self.logger.isEnabledFor(log_level):
            return

        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': level,
            'component': self.component,
            'event': event.value,
            'message': message,
        }

        if metadata:
            log_entry['metadata'] = metadata

        if exc_info:
            log_entry['exception'] = {
                'type': type(exc_info).__name__,
                'message': str(exc_info)
            }

        self.logger.log(log_level, json.dumps(log_entry, default=str))

    def debug(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log DEBUG level message."""
        self._log('DEBUG', event, message, metadata)

    def info(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Log INFO level message.

        Args:
            event: Typed log event
            message: Human-readable message
            metadata: Additional context

        Example:
            >>> logger.info(
            ...     event=LogEvent.STATUS_RECEIVED,
            ...     message="Status updated",
            ...     metadata={'mrid': '3bda2cb0-...'}
            ... )
        """
        self._log('INFO', event, message, metadata)

    def warning(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Log WARNING level message.

        Args:
            event: Typed log event
            message: Human-readable message
            metadata: Additional context
        """
        self._log('WARNING', event, message, metadata)

    def error(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        """
        Log ERROR level message.

        Args:
            event: Typed log event
            message: Human-readable message
            metadata: Additional context
            exc_info: Exception instance (type and message are embedded)

        Example:
            >>> try:
            ...     decode_status(payload)
            ... except DecodeError as e:
            ...     logger.error(
            ...         event=LogEvent.DESERIALIZATION_ERROR,
            ...         message="Malformed status payload",
            ...         exc_info=e,
            ...     )
        """
        self._log('ERROR', event, message, metadata, exc_info)

    def set_level(self, level: int) -> None:
        """Change logging level dynamically."""
        self.logger.setLevel(level)


class JSONFormatter(logging.Formatter):
    """
    Pass-through formatter for records produced by StructuredLogger.

    The message is already a JSON document, so it is emitted unchanged.
    """

    def format(self, record: logging.LogRecord) -> str:
        return record.getMessage()


def create_logger(
    component: str,
    level: int = logging.INFO,
    handlers: Optional[List[logging.Handler]] = None
) -> StructuredLogger:
    """
    Factory function to create configured StructuredLogger.

    Args:
        component: Component identifier
        level: Logging level (default: INFO)
        handlers: Optional handlers (e.g. a FileHandler for the session log)

    Returns:
        Configured StructuredLogger instance

    Example:
        >>> logger = create_logger("bus", level=logging.DEBUG)
    """
    return StructuredLogger(component=component, level=level, handlers=handlers)
