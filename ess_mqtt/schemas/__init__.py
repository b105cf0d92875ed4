"""
ESS MQTT Schemas
================

Bounded Context: Data Structures

This module defines immutable, typed data structures for the messages
exchanged with the ESS manager.

Design:
- Frozen dataclasses (immutability)
- Type hints for all fields
- to_dict() for JSON serialization
- from_dict() for deserialization
- Schema versioning for evolution

Public API
----------
Common Types:
    Timestamp: ISO 8601 timestamp wrapper

Config Types:
    ConfigAction: Enum (GET, SET)
    ConfigItem: Namespaced key/value pair
    ConfigRequest, ConfigResponse

Control Types:
    CommandType: Enum (SET_MAX_SOC, SET_MIN_SOC)
    ControlCommand, ControlRequest

Status Types:
    EssAppStatus: Status snapshot of the managed resource
"""

from .common import SCHEMA_VERSION, Timestamp
from .config import (
    ConfigAction,
    ConfigItem,
    ConfigRequest,
    ConfigResponse,
    namespaced_key,
)
from .control import CommandType, ControlCommand, ControlRequest
from .status import EssAppStatus

__all__ = [
    # Common types
    'SCHEMA_VERSION',
    'Timestamp',
    # Config types
    'ConfigAction',
    'ConfigItem',
    'ConfigRequest',
    'ConfigResponse',
    'namespaced_key',
    # Control types
    'CommandType',
    'ControlCommand',
    'ControlRequest',
    # Status types
    'EssAppStatus',
]
