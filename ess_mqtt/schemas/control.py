"""
App Control Message Schema
==========================

Bounded Context: Device Control Commands

This module defines the fire-and-forget control messages sent to the ESS
manager (e.g. state-of-charge limits for one managed resource).

Message Flow:
    soc_max → ControlCommand(SET_MAX_SOC) → ControlRequest → publish
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Tuple

from .common import SCHEMA_VERSION, Timestamp


class CommandType(str, Enum):
    """Control command type enumeration."""
    SET_MAX_SOC = "set_max_soc"
    SET_MIN_SOC = "set_min_soc"


@dataclass(frozen=True)
class ControlCommand:
    """
    Single control command for one managed resource.

    Attributes:
        command_type: What to change on the device
        value: Numeric argument (e.g. SOC percentage)
        mrid: Identifier of the managed energy-storage resource

    Invariants:
        - value is finite
        - mrid is non-empty
    """
    command_type: CommandType
    value: float
    mrid: str

    def __post_init__(self):
        """Validate invariants."""
        if not math.isfinite(self.value):
            raise ValueError(f"Command value must be finite, got {self.value}")
        if not self.mrid:
            raise ValueError("Command mrid cannot be empty")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            'command_type': self.command_type.value,
            'value': self.value,
            'mrid': self.mrid,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ControlCommand':
        """Deserialize from dict.

        Raises:
            ValueError: If required fields missing or invalid
        """
        try:
            return cls(
                command_type=CommandType(data['command_type']),
                value=float(data['value']),
                mrid=str(data['mrid']),
            )
        except KeyError as e:
            raise ValueError(f"Missing required ControlCommand field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid ControlCommand data: {e}")


@dataclass(frozen=True)
class ControlRequest:
    """
    Ordered batch of control commands, published without reply.

    Example:
        >>> req = ControlRequest.create(
        ...     [(CommandType.SET_MAX_SOC, 90.0, "3bda2cb0-...")]
        ... )
        >>> req.command_count
        1
    """
    commands: List[ControlCommand] = field(default_factory=list)
    schema_version: str = SCHEMA_VERSION
    timestamp: Timestamp = field(default_factory=Timestamp.now)

    @classmethod
    def create(
        cls,
        commands: Iterable[Tuple[CommandType, float, str]]
    ) -> 'ControlRequest':
        """Build a request from (command_type, value, mrid) triples."""
        return cls(commands=[
            ControlCommand(command_type=command_type, value=float(value), mrid=mrid)
            for command_type, value, mrid in commands
        ])

    @property
    def command_count(self) -> int:
        """Number of commands in this request."""
        return len(self.commands)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            'schema_version': self.schema_version,
            'timestamp': self.timestamp.to_dict(),
            'commands': [command.to_dict() for command in self.commands],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ControlRequest':
        """Deserialize from dict.

        Raises:
            ValueError: If required fields missing or invalid
        """
        try:
            return cls(
                commands=[
                    ControlCommand.from_dict(command)
                    for command in data.get('commands', [])
                ],
                schema_version=str(data.get('schema_version', SCHEMA_VERSION)),
                timestamp=Timestamp(value=str(data['timestamp'])),
            )
        except KeyError as e:
            raise ValueError(f"Missing required ControlRequest field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid ControlRequest data: {e}")
