"""
Structured Log Event Types
==========================

Bounded Context: Observability Event Taxonomy

This module defines typed event names for structured logging.

Design:
- Enum-based (prevents typos, enables autocomplete)
- Hierarchical naming (namespace.category.action)
- Searchable in log aggregators (Elasticsearch, CloudWatch Insights)

Event Naming Convention:
    <component>.<category>.<action>

    component: mqtt, status, listener, command, error
    category: connected, publish, request
    action: success, failed, timeout

Example Log Query (CloudWatch Insights):
    fields @timestamp, event, message, metadata.subject
    | filter event = "mqtt.request.timeout"
    | stats count() by bin(5m)
"""

from enum import Enum


class LogEvent(str, Enum):
    """
    Typed log event names for structured logging.

    Categories:
    - mqtt.*: Bus interactions (connect, publish, request/reply)
    - status.*: Status updates received from the ESS manager
    - listener.*: Status listener lifecycle
    - command.*: Operator commands dispatched to the ESS manager
    - error.*: Error conditions
    """

    # ========== MQTT Events ==========
    MQTT_CONNECTED = "mqtt.connected"
    """MQTT broker connection established."""

    MQTT_DISCONNECTED = "mqtt.disconnected"
    """MQTT broker connection lost."""

    MQTT_SUBSCRIBED = "mqtt.subscribed"
    """Subscription registered on a subject."""

    MQTT_PUBLISH_SUCCESS = "mqtt.publish.success"
    """Message successfully published to broker."""

    MQTT_PUBLISH_FAILED = "mqtt.publish.failed"
    """Message publication failed."""

    MQTT_REQUEST_SENT = "mqtt.request.sent"
    """Request published, waiting for the correlated reply."""

    MQTT_REQUEST_REPLIED = "mqtt.request.replied"
    """Correlated reply received for a pending request."""

    MQTT_REQUEST_TIMEOUT = "mqtt.request.timeout"
    """No reply arrived before the request timeout."""

    MQTT_REPLY_UNMATCHED = "mqtt.reply.unmatched"
    """Reply received with no pending request (late or foreign)."""

    # ========== Status Events ==========
    STATUS_RECEIVED = "status.received"
    """Status report decoded and written to the mirror."""

    # ========== Listener Events ==========
    LISTENER_STARTED = "listener.started"
    """Status listener thread started."""

    LISTENER_STOPPED = "listener.stopped"
    """Status listener thread terminated."""

    # ========== Error Events ==========
    DESERIALIZATION_ERROR = "error.deserialization"
    """Failed to deserialize message from JSON."""

    MQTT_CONNECTION_ERROR = "error.mqtt_connection"
    """Failed to connect to MQTT broker."""

    MQTT_PUBLISH_ERROR = "error.mqtt_publish"
    """Error during message publication."""


# Event categories for filtering
MQTT_EVENTS = {
    LogEvent.MQTT_CONNECTED,
    LogEvent.MQTT_DISCONNECTED,
    LogEvent.MQTT_SUBSCRIBED,
    LogEvent.MQTT_PUBLISH_SUCCESS,
    LogEvent.MQTT_PUBLISH_FAILED,
    LogEvent.MQTT_REQUEST_SENT,
    LogEvent.MQTT_REQUEST_REPLIED,
    LogEvent.MQTT_REQUEST_TIMEOUT,
    LogEvent.MQTT_REPLY_UNMATCHED,
}

LISTENER_EVENTS = {
    LogEvent.STATUS_RECEIVED,
    LogEvent.LISTENER_STARTED,
    LogEvent.LISTENER_STOPPED,
}

ERROR_EVENTS = {
    LogEvent.DESERIALIZATION_ERROR,
    LogEvent.MQTT_CONNECTION_ERROR,
    LogEvent.MQTT_PUBLISH_ERROR,
}
