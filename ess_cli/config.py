"""
Configuration schema for the ESS control client.

This module defines the configuration structure of the interactive client:
the fixed identifiers of the managed deployment (region, managed resource,
target service), the MQTT connection settings and the subject templates.
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional
import yaml

from ess_mqtt.subjects import (
    CONFIG_SUBJECT_TEMPLATE,
    CONTROL_SUBJECT_TEMPLATE,
    DEFAULT_SERVICE,
    NAMESPACE,
    STATUS_SUBJECT_TEMPLATE,
    format_subject,
)

DEFAULT_REGION = "290347ae-a0a6-4036-8d0c-0b45bd052376"
DEFAULT_MRID = "3bda2cb0-6e39-40ca-84de-d58b99e7e40e"


@dataclass(frozen=True)
class MQTTConfig:
    """MQTT broker configuration."""

    broker: str = "127.0.0.1"
    port: int = 1883
    username: Optional[str] = None
    password: Optional[str] = None
    qos: int = 1
    client_id: str = "ess-control-client"
    request_timeout: float = 5.0
    connect_timeout: float = 10.0

    namespace: str = NAMESPACE
    status_subject: str = STATUS_SUBJECT_TEMPLATE
    config_subject: str = CONFIG_SUBJECT_TEMPLATE
    control_subject: str = CONTROL_SUBJECT_TEMPLATE

    def __post_init__(self):
        """Validate MQTT configuration."""
        if not self.broker:
            raise ValueError("broker cannot be empty")

        if not 1 <= self.port <= 65535:
            raise ValueError(
                f"MQTT port must be in [1, 65535], got {self.port}"
            )

        if self.qos not in {0, 1, 2}:
            raise ValueError(
                f"MQTT QoS must be 0, 1, or 2, got {self.qos}"
            )

        if not self.client_id:
            raise ValueError("client_id cannot be empty")

        if self.request_timeout <= 0:
            raise ValueError(
                f"request_timeout must be > 0, got {self.request_timeout}"
            )

        if self.connect_timeout <= 0:
            raise ValueError(
                f"connect_timeout must be > 0, got {self.connect_timeout}"
            )


@dataclass(frozen=True)
class ClientConfig:
    """
    Main configuration of the control client.

    Loaded from YAML (optional) and validated at startup.
    Immutable after construction (frozen dataclass).
    """

    # Fixed identifiers of the managed deployment
    region: str = DEFAULT_REGION
    mrid: str = DEFAULT_MRID
    service: str = DEFAULT_SERVICE

    # Stop the status listener on the first malformed status payload
    fatal_decode_errors: bool = False

    # MQTT configuration
    mqtt_config: MQTTConfig = field(default_factory=MQTTConfig)

    def __post_init__(self):
        """Validate client configuration."""
        if not self.region:
            raise ValueError("region cannot be empty")

        if not self.mrid:
            raise ValueError("mrid cannot be empty")

        if not self.service:
            raise ValueError("service cannot be empty")

        # Render every subject once so bad templates fail at startup
        for template in (
            self.mqtt_config.status_subject,
            self.mqtt_config.config_subject,
            self.mqtt_config.control_subject,
        ):
            self._subject(template)

    @property
    def status_subject(self) -> str:
        return self._subject(self.mqtt_config.status_subject)

    @property
    def config_subject(self) -> str:
        return self._subject(self.mqtt_config.config_subject)

    @property
    def control_subject(self) -> str:
        return self._subject(self.mqtt_config.control_subject)

    def _subject(self, template: str) -> str:
        return format_subject(
            template,
            self.region,
            self.service,
            namespace=self.mqtt_config.namespace
        )

    def with_overrides(self, **overrides: Any) -> "ClientConfig":
        """
        Return a copy with command-line overrides applied.

        Keys matching ClientConfig fields replace top-level values, keys
        matching MQTTConfig fields replace MQTT values. None values are
        ignored (flag not given).
        """
        top: Dict[str, Any] = {}
        mqtt: Dict[str, Any] = {}
        mqtt_fields = MQTTConfig.__dataclass_fields__

        for key, value in overrides.items():
            if value is None:
                continue
            if key in mqtt_fields:
                mqtt[key] = value
            elif key in self.__dataclass_fields__ and key != "mqtt_config":
                top[key] = value
            else:
                raise ValueError(f"Unknown configuration override: {key}")

        if mqtt:
            top["mqtt_config"] = replace(self.mqtt_config, **mqtt)
        return replace(self, **top)

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> "ClientConfig":
        """
        Load configuration from YAML file.

        Example YAML:
            region: "290347ae-a0a6-4036-8d0c-0b45bd052376"
            mrid: "3bda2cb0-6e39-40ca-84de-d58b99e7e40e"
            service: "ess-manager"
            fatal_decode_errors: false

            mqtt_config:
              broker: "127.0.0.1"
              port: 1883
              qos: 1
              request_timeout: 5.0
        """
        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Invalid config in {yaml_path}: expected a mapping")

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClientConfig":
        mqtt_config_data = data.get("mqtt_config") or {}
        try:
            mqtt_config = MQTTConfig(**mqtt_config_data)
        except TypeError as e:
            raise ValueError(f"Invalid mqtt_config: {e}")

        return cls(
            region=_typed(data, "region", str, DEFAULT_REGION),
            mrid=_typed(data, "mrid", str, DEFAULT_MRID),
            service=_typed(data, "service", str, DEFAULT_SERVICE),
            fatal_decode_errors=_typed(data, "fatal_decode_errors", bool, False),
            mqtt_config=mqtt_config,
        )


def _typed(data: Dict[str, Any], key: str, expected: type, default: Any) -> Any:
    """Read a top-level setting without coercion (YAML "false" is not False)."""
    if key not in data:
        return default
    value = data[key]
    if not isinstance(value, expected):
        raise ValueError(
            f"{key} must be a {expected.__name__}, got {value!r}"
        )
    return value
