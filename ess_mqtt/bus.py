"""
MQTT Bus Client
===============

Bounded Context: Transport

This module provides the bus client used to talk to the ESS manager. It
exposes three distinct operations:

- publish(subject, payload): fire-and-forget, never waits for a reply
- request(subject, payload): one round trip, blocks until the correlated
  reply arrives or the request timeout elapses
- subscribe(subject): iterable stream of payloads, ends on connection loss

Request/Reply Correlation (MQTT v5):
    request → PUBLISH subject {ResponseTopic=<inbox>, CorrelationData=<id>}
    reply   → PUBLISH <inbox> {CorrelationData=<id>}

    Every client subscribes to its own inbox topic at connect time. Pending
    requests are keyed by correlation id; replies with an unknown id (late
    replies after a timeout) are logged and dropped.

Threading:
    - paho-mqtt network loop runs in its own thread (loop_start)
    - Callbacks (_on_connect, _on_message, _on_disconnect) run in that thread
    - publish/request/subscribe may be called from any other thread
    - Subscription payloads are handed over through a queue.Queue

Example:
    >>> bus = MQTTBusClient(
    ...     broker_host="127.0.0.1",
    ...     client_id="ess-control-client",
    ...     logger=create_logger("bus"),
    ... )
    >>> if bus.connect():
    ...     for payload in bus.subscribe("opendso.r1.EssAppStatus.app-status"):
    ...         print(payload)
"""

import queue
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

import paho.mqtt.client as mqtt
from paho.mqtt.packettypes import PacketTypes
from paho.mqtt.properties import Properties

from .exceptions import PublishError, RequestTimeoutError, TransportError
from .logging import StructuredLogger, LogEvent

INBOX_PREFIX = "_INBOX"


class Subscription:
    """
    Stream of payloads received on one subject.

    Iterating blocks until the next payload arrives. Iteration ends once the
    subscription is closed, either explicitly (close()) or because the bus
    lost its connection; ``end_reason`` then tells which.

    Example:
        >>> subscription = bus.subscribe(subject)
        >>> for payload in subscription:
        ...     handle(payload)
        >>> subscription.end_reason
        'connection lost (rc=Unspecified error)'
    """

    _END = object()

    def __init__(self, subject: str, bus: Optional['MQTTBusClient'] = None):
        self.subject = subject
        self._bus = bus
        self._queue: queue.Queue = queue.Queue()
        self._ended = threading.Event()
        self._end_lock = threading.Lock()
        self.end_reason: Optional[str] = None
        self.ended_cleanly = False

    def deliver(self, payload: bytes) -> None:
        """Hand a payload to the consumer (called from the network thread)."""
        if not self._ended.is_set():
            self._queue.put(bytes(payload))

    def end(self, reason: str, clean: bool = False) -> None:
        """Terminate the stream; pending payloads are still drained first."""
        with self._end_lock:
            if self._ended.is_set():
                return
            self.end_reason = reason
            self.ended_cleanly = clean
            self._ended.set()
        self._queue.put(self._END)

    def close(self) -> None:
        """Unsubscribe and terminate the stream."""
        if self._bus is not None:
            self._bus.unsubscribe(self)
        self.end("closed", clean=True)

    @property
    def is_active(self) -> bool:
        return not self._ended.is_set()

    def __iter__(self) -> Iterator[bytes]:
        while True:
            item = self._queue.get()
            if item is self._END:
                return
            yield item


@dataclass
class _PendingRequest:
    """Slot filled by the network thread when the correlated reply arrives."""
    subject: str
    done: threading.Event = field(default_factory=threading.Event)
    payload: Optional[bytes] = None
    error: Optional[TransportError] = None


class MQTTBusClient:
    """
    MQTT v5 bus client with publish, request/reply and subscriptions.

    Attributes:
        broker_host: MQTT broker hostname
        broker_port: MQTT broker port
        client_id: MQTT client identifier
        inbox: Topic on which replies to this client's requests arrive
        qos: Quality of Service for publishes and subscriptions
        request_timeout: Default timeout (seconds) of request()
        logger: Structured logger instance

    Thread Safety:
        Pending requests and subscriptions are guarded by locks; callbacks
        run in the paho network thread.
    """

    def __init__(
        self,
        broker_host: str,
        client_id: str,
        logger: StructuredLogger,
        broker_port: int = 1883,
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 1,
        request_timeout: float = 5.0,
        client: Optional[Any] = None
    ):
        """
        Initialize bus client.

        Args:
            broker_host: MQTT broker hostname
            client_id: Unique client identifier (also names the reply inbox)
            logger: Structured logger for observability
            broker_port: MQTT broker port (default: 1883)
            username: MQTT authentication username (optional)
            password: MQTT authentication password (optional)
            qos: Quality of Service (default: 1, at-least-once)
            request_timeout: Default request() timeout in seconds
            client: Pre-built paho client (tests inject a stub here)
        """
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.client_id = client_id
        self.inbox = f"{INBOX_PREFIX}.{client_id}"
        self.logger = logger
        self.qos = qos
        self.request_timeout = request_timeout

        if client is None:
            client = mqtt.Client(
                callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
                client_id=client_id,
                protocol=mqtt.MQTTv5,
            )
            if username and password:
                client.username_pw_set(username, password)
        self.client = client

        # Callbacks
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

        # State
        self._connected = threading.Event()
        self._closing = False
        self._pending: Dict[str, _PendingRequest] = {}
        self._pending_lock = threading.Lock()
        self._subscriptions: List[Subscription] = []
        self._subs_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._stats = {'published': 0, 'requests': 0, 'replies': 0, 'timeouts': 0}

    @property
    def broker(self) -> str:
        return f"{self.broker_host}:{self.broker_port}"

    # ===== Connection lifecycle =====

    def connect(self, timeout: float = 10.0) -> bool:
        """
        Connect to MQTT broker and start the network loop.

        Args:
            timeout: Connection timeout in seconds

        Returns:
            True if connected successfully, False otherwise
        """
        try:
            self._closing = False
            self.client.connect(self.broker_host, self.broker_port, keepalive=60)
            self.client.loop_start()

            if self._connected.wait(timeout=timeout):
                return True

            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Connection timeout",
                metadata={'broker': self.broker, 'timeout': timeout}
            )
            return False

        except Exception as e:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Failed to connect to broker",
                exc_info=e,
                metadata={'broker': self.broker}
            )
            return False

    def disconnect(self) -> None:
        """
        Disconnect from MQTT broker gracefully.

        Ends every open subscription and fails pending requests.
        """
        self._closing = True
        try:
            self.client.disconnect()
            self.client.loop_stop()
        except Exception as e:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Error during disconnect",
                exc_info=e
            )
        finally:
            self._connected.clear()
            self._fail_all("client disconnected", clean=True)

    def is_connected(self) -> bool:
        """Check if currently connected to broker."""
        return self._connected.is_set()

    # ===== Operations =====

    def publish(self, subject: str, payload: bytes) -> None:
        """
        Publish payload without waiting for any reply.

        Raises:
            PublishError: If not connected or the client rejects the message
        """
        self._publish(subject, payload)
        self.logger.info(
            event=LogEvent.MQTT_PUBLISH_SUCCESS,
            message="Published message",
            metadata={'subject': subject, 'size': len(payload), 'qos': self.qos}
        )

    def request(
        self,
        subject: str,
        payload: bytes,
        timeout: Optional[float] = None
    ) -> bytes:
        """
        Publish payload and block until the correlated reply arrives.

        Args:
            subject: Subject the remote service listens on
            payload: Encoded request
            timeout: Seconds to wait (default: request_timeout)

        Returns:
            Reply payload

        Raises:
            RequestTimeoutError: If no reply arrives in time
            TransportError: If the publish fails or the connection drops
        """
        timeout = self.request_timeout if timeout is None else timeout
        correlation_id = uuid.uuid4().hex
        pending = _PendingRequest(subject=subject)

        with self._pending_lock:
            self._pending[correlation_id] = pending

        try:
            properties = Properties(PacketTypes.PUBLISH)
            properties.ResponseTopic = self.inbox
            properties.CorrelationData = correlation_id.encode('ascii')

            self._publish(subject, payload, properties=properties)
            with self._stats_lock:
                self._stats['requests'] += 1

            self.logger.info(
                event=LogEvent.MQTT_REQUEST_SENT,
                message="Request sent",
                metadata={
                    'subject': subject,
                    'correlation_id': correlation_id,
                    'timeout': timeout
                }
            )

            if not pending.done.wait(timeout=timeout):
                with self._stats_lock:
                    self._stats['timeouts'] += 1
                self.logger.warning(
                    event=LogEvent.MQTT_REQUEST_TIMEOUT,
                    message="No reply before timeout",
                    metadata={'subject': subject, 'correlation_id': correlation_id}
                )
                raise RequestTimeoutError(subject, timeout)

            if pending.error is not None:
                raise pending.error
            return pending.payload

        finally:
            with self._pending_lock:
                self._pending.pop(correlation_id, None)

    def subscribe(self, subject: str) -> Subscription:
        """
        Subscribe to a subject.

        The subscription is (re)registered with the broker on every connect.

        Returns:
            Subscription yielding raw payloads
        """
        subscription = Subscription(subject, bus=self)
        with self._subs_lock:
            self._subscriptions.append(subscription)

        if self._connected.is_set():
            self.client.subscribe(subject, qos=self.qos)

        self.logger.info(
            event=LogEvent.MQTT_SUBSCRIBED,
            message="Subscribed to subject",
            metadata={'subject': subject, 'qos': self.qos}
        )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscription; the broker subscription goes with the last one."""
        with self._subs_lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
            still_used = any(s.subject == subscription.subject for s in self._subscriptions)

        if not still_used and self._connected.is_set():
            self.client.unsubscribe(subscription.subject)

    def get_stats(self) -> Dict[str, Any]:
        """
        Get bus statistics.

        Returns:
            Dictionary with message counts and connection status
        """
        with self._stats_lock:
            stats = dict(self._stats)
        with self._subs_lock:
            stats['subscriptions'] = [s.subject for s in self._subscriptions]
        stats['connected'] = self._connected.is_set()
        stats['broker'] = self.broker
        return stats

    # ===== Internals =====

    def _publish(
        self,
        subject: str,
        payload: bytes,
        properties: Optional[Properties] = None
    ) -> None:
        if not self._connected.is_set():
            self.logger.warning(
                event=LogEvent.MQTT_PUBLISH_FAILED,
                message="Cannot publish: not connected to broker",
                metadata={'subject': subject}
            )
            raise PublishError(f"Not connected to MQTT broker at {self.broker}")

        try:
            result = self.client.publish(
                subject,
                payload,
                qos=self.qos,
                properties=properties
            )
        except (ValueError, OSError) as e:
            self.logger.error(
                event=LogEvent.MQTT_PUBLISH_ERROR,
                message="Error publishing message",
                exc_info=e,
                metadata={'subject': subject}
            )
            raise PublishError(f"Failed to publish on '{subject}': {e}") from e

        if result.rc != mqtt.MQTT_ERR_SUCCESS:
            self.logger.warning(
                event=LogEvent.MQTT_PUBLISH_FAILED,
                message=f"Publish failed (rc={result.rc})",
                metadata={'subject': subject}
            )
            raise PublishError(
                f"Failed to publish on '{subject}': {mqtt.error_string(result.rc)}"
            )

        with self._stats_lock:
            self._stats['published'] += 1

    def _fail_all(self, reason: str, clean: bool = False) -> None:
        with self._pending_lock:
            pending = list(self._pending.values())
        for request in pending:
            request.error = TransportError(f"Request on '{request.subject}' aborted: {reason}")
            request.done.set()

        with self._subs_lock:
            subscriptions = list(self._subscriptions)
            self._subscriptions.clear()
        for subscription in subscriptions:
            subscription.end(reason, clean=clean)

    # ===== MQTT Callbacks (run in MQTT thread) =====

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        """
        MQTT callback: connection established.

        Subscribes to the reply inbox and to every registered subject.
        """
        if reason_code.is_failure:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message=f"Failed to connect to broker (rc={reason_code})",
                metadata={'broker': self.broker}
            )
            self._connected.clear()
            return

        client.subscribe(self.inbox, qos=self.qos)
        with self._subs_lock:
            subjects = sorted({s.subject for s in self._subscriptions})
        for subject in subjects:
            client.subscribe(subject, qos=self.qos)

        self._connected.set()
        self.logger.info(
            event=LogEvent.MQTT_CONNECTED,
            message="Connected to MQTT broker",
            metadata={
                'broker': self.broker,
                'client_id': self.client_id,
                'inbox': self.inbox,
                'subjects': subjects
            }
        )

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties=None):
        """
        MQTT callback: disconnection detected.

        Subscriptions end here: a stream cannot be resumed after connection loss.
        """
        self._connected.clear()
        if self._closing:
            self.logger.info(
                event=LogEvent.MQTT_DISCONNECTED,
                message="Disconnected from broker",
                metadata={'broker': self.broker, 'stats': self.get_stats()}
            )
            self._fail_all("client disconnected", clean=True)
        else:
            self.logger.warning(
                event=LogEvent.MQTT_DISCONNECTED,
                message="Unexpected disconnection",
                metadata={'broker': self.broker, 'reason_code': str(reason_code)}
            )
            self._fail_all(f"connection lost (rc={reason_code})")

    def _on_message(self, client, userdata, msg):
        """
        MQTT callback: message received.

        Replies on the inbox resolve pending requests; everything else is
        fanned out to matching subscriptions.
        """
        if msg.topic == self.inbox:
            self._handle_reply(msg)
            return

        with self._subs_lock:
            matching = [
                s for s in self._subscriptions
                if mqtt.topic_matches_sub(s.subject, msg.topic)
            ]
        for subscription in matching:
            subscription.deliver(msg.payload)

    def _handle_reply(self, msg) -> None:
        correlation_data = getattr(msg.properties, 'CorrelationData', None)
        correlation_id = (
            correlation_data.decode('ascii', errors='replace')
            if correlation_data else None
        )

        with self._pending_lock:
            pending = self._pending.get(correlation_id) if correlation_id else None

        if pending is None:
            self.logger.warning(
                event=LogEvent.MQTT_REPLY_UNMATCHED,
                message="Reply without pending request dropped",
                metadata={'correlation_id': correlation_id}
            )
            return

        with self._stats_lock:
            self._stats['replies'] += 1
        self.logger.info(
            event=LogEvent.MQTT_REQUEST_REPLIED,
            message="Reply received",
            metadata={
                'subject': pending.subject,
                'correlation_id': correlation_id,
                'size': len(msg.payload)
            }
        )
        pending.payload = bytes(msg.payload)
        pending.done.set()
