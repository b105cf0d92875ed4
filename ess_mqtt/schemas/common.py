"""
Shared schema helpers: schema version, the Timestamp wrapper and the
field readers used by every from_dict().

Field readers raise ValueError on a wrong type; the codec turns that into
DecodeError.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

SCHEMA_VERSION = "1.0"


@dataclass(frozen=True)
class Timestamp:
    """
    ISO 8601 timestamp, stamped by the sender of a request.

    Example:
        >>> Timestamp.now().value
        '2025-10-24T15:30:45.123456+00:00'
    """
    value: str

    @classmethod
    def now(cls) -> 'Timestamp':
        """Current UTC time."""
        return cls(value=datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> str:
        return self.value


def optional_float(data: Dict[str, Any], key: str) -> Optional[float]:
    """Read an optional numeric field, rejecting booleans and strings.

    Raises:
        ValueError: If the value is present but not a finite number
    """
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Field '{key}' must be a number, got {value!r}")
    try:
        value = float(value)
    except OverflowError:
        raise ValueError(f"Field '{key}' is out of range")
    if not math.isfinite(value):
        raise ValueError(f"Field '{key}' must be finite, got {value!r}")
    return value


def optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    """Read an optional string field."""
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"Field '{key}' must be a string, got {value!r}")
    return value
