"""
ESS App Status Schema
=====================

Bounded Context: Device Status

Status reports are published asynchronously by the ESS manager. The client
keeps only the most recent one; each report replaces the previous one
wholesale (no field-level merge).
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from .common import optional_float, optional_str


@dataclass(frozen=True)
class EssAppStatus:
    """
    Immutable status snapshot of the managed energy-storage resource.

    All fields are optional: a default-constructed instance is the "no status
    received yet" value held by the mirror at startup.

    Attributes:
        schema_version: Message schema version
        timestamp: ISO 8601 time the report was produced
        mrid: Managed resource identifier
        state: Operating state reported by the manager (e.g. "charging")
        soc: Current state of charge (%)
        soc_max: Configured upper SOC bound (%)
        soc_min: Configured lower SOC bound (%)
        active_power: Active power (kW, positive = charging)
        reactive_power: Reactive power (kvar)
    """
    schema_version: Optional[str] = None
    timestamp: Optional[str] = None
    mrid: Optional[str] = None
    state: Optional[str] = None
    soc: Optional[float] = None
    soc_max: Optional[float] = None
    soc_min: Optional[float] = None
    active_power: Optional[float] = None
    reactive_power: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        """True until the first report has been received."""
        return self == EssAppStatus()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EssAppStatus':
        """Deserialize from dict.

        Unknown fields are ignored; known fields must have the right type.

        Raises:
            ValueError: If data is not an object or a field has the wrong type
        """
        if not isinstance(data, dict):
            raise ValueError(f"EssAppStatus must be an object, got {type(data).__name__}")

        return cls(
            schema_version=optional_str(data, 'schema_version'),
            timestamp=optional_str(data, 'timestamp'),
            mrid=optional_str(data, 'mrid'),
            state=optional_str(data, 'state'),
            soc=optional_float(data, 'soc'),
            soc_max=optional_float(data, 'soc_max'),
            soc_min=optional_float(data, 'soc_min'),
            active_power=optional_float(data, 'active_power'),
            reactive_power=optional_float(data, 'reactive_power'),
        )
