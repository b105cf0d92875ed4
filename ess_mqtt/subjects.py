"""
Subject naming for ESS manager traffic.

Subjects are pure functions of (region, service): the ESS manager subscribes
to and publishes on exactly these strings, so they must match byte-for-byte.

    status:  opendso.<region>.EssAppStatus.app-status
    config:  opendso.<region>.AppConfigs.<service>
    control: opendso.<region>.AppControls.<service>
"""

NAMESPACE = "opendso"
DEFAULT_SERVICE = "ess-manager"

STATUS_SUBJECT_TEMPLATE = "{namespace}.{region}.EssAppStatus.app-status"
CONFIG_SUBJECT_TEMPLATE = "{namespace}.{region}.AppConfigs.{service}"
CONTROL_SUBJECT_TEMPLATE = "{namespace}.{region}.AppControls.{service}"

# MQTT wildcards and separators that would change routing if embedded
_RESERVED = ('+', '#', '/')


def format_subject(
    template: str,
    region: str,
    service: str = DEFAULT_SERVICE,
    namespace: str = NAMESPACE
) -> str:
    """
    Render a subject template.

    Templates may use {namespace}, {region} and {service} placeholders.

    Raises:
        ValueError: If region/service are empty or contain reserved characters,
            or if the template uses an unknown placeholder
    """
    for name, value in (('region', region), ('service', service), ('namespace', namespace)):
        if not value:
            raise ValueError(f"Subject {name} cannot be empty")
        if any(char in value for char in _RESERVED):
            raise ValueError(f"Subject {name} contains a reserved character: {value!r}")

    try:
        return template.format(namespace=namespace, region=region, service=service)
    except (KeyError, IndexError) as e:
        raise ValueError(f"Unknown placeholder in subject template {template!r}: {e}")


def app_status_subject(region: str, namespace: str = NAMESPACE) -> str:
    """Subject on which the ESS manager publishes EssAppStatus reports."""
    return format_subject(STATUS_SUBJECT_TEMPLATE, region, namespace=namespace)


def app_configs_subject(region: str, service: str, namespace: str = NAMESPACE) -> str:
    """Subject for config GET/SET requests addressed to a service."""
    return format_subject(CONFIG_SUBJECT_TEMPLATE, region, service, namespace)


def app_controls_subject(region: str, service: str, namespace: str = NAMESPACE) -> str:
    """Subject for fire-and-forget control requests addressed to a service."""
    return format_subject(CONTROL_SUBJECT_TEMPLATE, region, service, namespace)
