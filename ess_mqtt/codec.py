"""
Message Codec
=============

Bounded Context: Wire Format

Stateless encode/decode functions for the messages exchanged with the ESS
manager. Payloads are UTF-8 JSON documents produced from the schema
dataclasses (to_dict / from_dict).

Every decode failure, whether invalid UTF-8, invalid JSON or a schema
violation, is raised as DecodeError.
"""

import json
from typing import Any, Callable, Dict, TypeVar, Union

from .exceptions import DecodeError
from .schemas import ConfigRequest, ConfigResponse, ControlRequest, EssAppStatus

T = TypeVar('T')

Encodable = Union[ConfigRequest, ConfigResponse, ControlRequest, EssAppStatus]


def encode(message: Encodable) -> bytes:
    """Serialize a schema message to UTF-8 JSON bytes."""
    return json.dumps(message.to_dict(), separators=(',', ':')).encode('utf-8')


def _load(payload: bytes) -> Dict[str, Any]:
    try:
        data = json.loads(payload.decode('utf-8'))
    except UnicodeDecodeError as e:
        raise DecodeError(f"Payload is not valid UTF-8: {e}") from e
    except json.JSONDecodeError as e:
        raise DecodeError(f"Payload is not valid JSON: {e}") from e
    except (ValueError, RecursionError) as e:
        # digit limit on huge integers, nesting depth
        raise DecodeError(f"Payload cannot be parsed: {e}") from e

    if not isinstance(data, dict):
        raise DecodeError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def _decode(payload: bytes, from_dict: Callable[[Dict[str, Any]], T]) -> T:
    data = _load(payload)
    try:
        return from_dict(data)
    except (ValueError, TypeError, OverflowError) as e:
        raise DecodeError(str(e)) from e


def decode_config_response(payload: bytes) -> ConfigResponse:
    """Decode the reply to a config GET request."""
    return _decode(payload, ConfigResponse.from_dict)


def decode_status(payload: bytes) -> EssAppStatus:
    """Decode a status report published by the ESS manager."""
    return _decode(payload, EssAppStatus.from_dict)


def decode_config_request(payload: bytes) -> ConfigRequest:
    """Decode a config request (used by simulators and tests)."""
    return _decode(payload, ConfigRequest.from_dict)


def decode_control_request(payload: bytes) -> ControlRequest:
    """Decode a control request (used by simulators and tests)."""
    return _decode(payload, ControlRequest.from_dict)
