"""
App Config Message Schema
=========================

Bounded Context: Remote Configuration

This module defines the request/response messages used to read and write
configuration values of the remote ESS manager.

Design:
- ConfigItem: One (key, value) pair, key namespaced by service
- ConfigRequest: Ordered items plus a GET/SET action
- ConfigResponse: Items resolved by the remote side, or an error

Message Flow:
    get <key> → ConfigRequest(GET) → request/reply → ConfigResponse → console
    set <key> <value> → ConfigRequest(SET) → publish (no reply)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .common import SCHEMA_VERSION, Timestamp, optional_str


class ConfigAction(str, Enum):
    """Config request action."""
    GET = "get"
    SET = "set"


def namespaced_key(service: str, key: str) -> str:
    """Prefix a config key with its owning service (``ess-manager.foo``)."""
    return f"{service}.{key}"


@dataclass(frozen=True)
class ConfigItem:
    """
    Single configuration entry.

    Attributes:
        key: Fully namespaced key (e.g. "ess-manager.soc_limit")
        value: String value, empty when used as a read placeholder

    Invariants:
        - key is non-empty
    """
    key: str
    value: str = ""

    def __post_init__(self):
        """Validate invariants."""
        if not self.key:
            raise ValueError("ConfigItem key cannot be empty")

    def to_dict(self) -> Dict[str, str]:
        """Serialize to JSON-compatible dict."""
        return {'key': self.key, 'value': self.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ConfigItem':
        """Deserialize from dict.

        Raises:
            ValueError: If key missing or fields are not strings
        """
        try:
            key = data['key']
        except KeyError as e:
            raise ValueError(f"Missing required ConfigItem field: {e}")
        except TypeError as e:
            raise ValueError(f"Invalid ConfigItem data: {e}")

        value = data.get('value', "")
        if value is None:
            value = ""
        if not isinstance(key, str) or not isinstance(value, str):
            raise ValueError(f"ConfigItem key and value must be strings: {data!r}")
        return cls(key=key, value=value)


@dataclass(frozen=True)
class ConfigRequest:
    """
    Config read/write request.

    For GET the values are ignored by the remote side; for SET they are
    authoritative.

    Example:
        >>> req = ConfigRequest.from_items(
        ...     [ConfigItem(key="ess-manager.soc_limit")], ConfigAction.GET
        ... )
    """
    action: ConfigAction
    items: List[ConfigItem] = field(default_factory=list)
    schema_version: str = SCHEMA_VERSION
    timestamp: Timestamp = field(default_factory=Timestamp.now)

    @classmethod
    def from_items(
        cls,
        items: Sequence[ConfigItem],
        action: ConfigAction
    ) -> 'ConfigRequest':
        """Build a request from items and an action."""
        return cls(action=action, items=list(items))

    @classmethod
    def for_get(cls, service: str, keys: Sequence[str]) -> 'ConfigRequest':
        """Build a GET request with empty placeholder values."""
        return cls.from_items(
            [ConfigItem(key=namespaced_key(service, key)) for key in keys],
            ConfigAction.GET
        )

    @classmethod
    def for_set(cls, service: str, pairs: Sequence[Tuple[str, str]]) -> 'ConfigRequest':
        """Build a SET request from (key, value) pairs."""
        return cls.from_items(
            [
                ConfigItem(key=namespaced_key(service, key), value=value)
                for key, value in pairs
            ],
            ConfigAction.SET
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            'schema_version': self.schema_version,
            'timestamp': self.timestamp.to_dict(),
            'action': self.action.value,
            'items': [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ConfigRequest':
        """Deserialize from dict.

        Raises:
            ValueError: If required fields missing or invalid
        """
        try:
            return cls(
                action=ConfigAction(data['action']),
                items=[ConfigItem.from_dict(item) for item in data.get('items', [])],
                schema_version=str(data.get('schema_version', SCHEMA_VERSION)),
                timestamp=Timestamp(value=str(data['timestamp'])),
            )
        except KeyError as e:
            raise ValueError(f"Missing required ConfigRequest field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid ConfigRequest data: {e}")


@dataclass(frozen=True)
class ConfigResponse:
    """
    Reply of the ESS manager to a ConfigRequest.

    Attributes:
        items: Items with the values resolved by the remote side
        error: Error reported by the remote side, if any
    """
    items: List[ConfigItem] = field(default_factory=list)
    error: Optional[str] = None
    schema_version: str = SCHEMA_VERSION
    timestamp: Optional[Timestamp] = None

    @property
    def ok(self) -> bool:
        """True when the remote side did not report an error."""
        return self.error is None

    def value_of(self, key: str) -> Optional[str]:
        """Look up the value of a (namespaced) key, None if absent."""
        for item in self.items:
            if item.key == key:
                return item.value
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        data: Dict[str, Any] = {
            'schema_version': self.schema_version,
            'items': [item.to_dict() for item in self.items],
        }
        if self.timestamp is not None:
            data['timestamp'] = self.timestamp.to_dict()
        if self.error is not None:
            data['error'] = self.error
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ConfigResponse':
        """Deserialize from dict.

        Raises:
            ValueError: If fields are invalid
        """
        try:
            items = data.get('items', [])
            if not isinstance(items, list):
                raise ValueError(f"'items' must be a list, got {type(items).__name__}")
            timestamp = optional_str(data, 'timestamp')
            return cls(
                items=[ConfigItem.from_dict(item) for item in items],
                error=optional_str(data, 'error'),
                schema_version=str(data.get('schema_version', SCHEMA_VERSION)),
                timestamp=Timestamp(value=timestamp) if timestamp else None,
            )
        except (AttributeError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid ConfigResponse data: {e}")
