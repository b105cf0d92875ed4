"""
ESS MQTT Communication Package
==============================

Bounded Context: Communication with the ESS Manager

This package provides everything needed to talk to the remote ESS manager
over the MQTT bus: typed messages, their wire codec, subject naming and a bus
client offering publish, request/reply and subscriptions.

Architecture:
- schemas/: Immutable message data structures
- codec: JSON encode/decode of schema messages
- subjects: Deterministic subject names from (region, service)
- bus: MQTT v5 bus client (publish, request, subscribe)
- logging/: Structured JSON logging for observability

Public API
----------
Schemas:
    ConfigAction, ConfigItem, ConfigRequest, ConfigResponse
    CommandType, ControlCommand, ControlRequest
    EssAppStatus, Timestamp

Bus:
    MQTTBusClient, Subscription

Errors:
    EssClientError, TransportError, PublishError, RequestTimeoutError,
    DecodeError

Logging:
    LogEvent, StructuredLogger, create_logger

Example:
    >>> from ess_mqtt import MQTTBusClient, ControlRequest, CommandType, create_logger
    >>> from ess_mqtt import codec, subjects
    >>>
    >>> bus = MQTTBusClient(
    ...     broker_host="127.0.0.1",
    ...     client_id="ess-control-client",
    ...     logger=create_logger("bus"),
    ... )
    >>> bus.connect()
    >>> request = ControlRequest.create([(CommandType.SET_MAX_SOC, 90.0, mrid)])
    >>> bus.publish(subjects.app_controls_subject(region, "ess-manager"), codec.encode(request))
"""

# Version
__version__ = "1.0.0"

# Schemas
from .schemas import (
    ConfigAction,
    ConfigItem,
    ConfigRequest,
    ConfigResponse,
    CommandType,
    ControlCommand,
    ControlRequest,
    EssAppStatus,
    Timestamp,
)

# Bus
from .bus import MQTTBusClient, Subscription

# Errors
from .exceptions import (
    EssClientError,
    TransportError,
    PublishError,
    RequestTimeoutError,
    DecodeError,
)

# Logging
from .logging import (
    LogEvent,
    StructuredLogger,
    create_logger,
)

__all__ = [
    # Version
    '__version__',
    # Schemas
    'ConfigAction',
    'ConfigItem',
    'ConfigRequest',
    'ConfigResponse',
    'CommandType',
    'ControlCommand',
    'ControlRequest',
    'EssAppStatus',
    'Timestamp',
    # Bus
    'MQTTBusClient',
    'Subscription',
    # Errors
    'EssClientError',
    'TransportError',
    'PublishError',
    'RequestTimeoutError',
    'DecodeError',
    # Logging
    'LogEvent',
    'StructuredLogger',
    'create_logger',
]
