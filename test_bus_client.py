"""
Tests for MQTTBusClient against a stub paho client.

The stub runs callbacks synchronously on the calling thread, which is enough
to exercise connection handling, request/reply correlation and subscription
fan-out without a broker.
"""

from types import SimpleNamespace

import paho.mqtt.client as mqtt
import pytest

from ess_mqtt import MQTTBusClient, PublishError, RequestTimeoutError, TransportError

STATUS_SUBJECT = "opendso.r1.EssAppStatus.app-status"
CONFIG_SUBJECT = "opendso.r1.AppConfigs.ess-manager"


class StubReasonCode:
    def __init__(self, failure=False, name="Success"):
        self.is_failure = failure
        self.name = name

    def __str__(self):
        return self.name


class StubPahoClient:
    """Records calls; connect succeeds unless told otherwise."""

    def __init__(self, refuse=False, responder=None):
        self.refuse = refuse
        self.responder = responder
        self.publish_rc = mqtt.MQTT_ERR_SUCCESS
        self.published = []
        self.subscribed = []
        self.unsubscribed = []
        self.loop_running = False
        self.on_connect = None
        self.on_disconnect = None
        self.on_message = None

    def connect(self, host, port, keepalive=60):
        self.address = (host, port)

    def loop_start(self):
        self.loop_running = True
        reason = StubReasonCode(failure=True, name="Not authorized") if self.refuse else StubReasonCode()
        self.on_connect(self, None, {}, reason, None)

    def loop_stop(self):
        self.loop_running = False

    def disconnect(self):
        pass

    def subscribe(self, topic, qos=0):
        self.subscribed.append((topic, qos))

    def unsubscribe(self, topic):
        self.unsubscribed.append(topic)

    def publish(self, topic, payload, qos=0, properties=None):
        self.published.append((topic, payload, properties))
        if self.responder is not None:
            self.responder(topic, payload, properties)
        return SimpleNamespace(rc=self.publish_rc)

    def deliver(self, topic, payload, properties=None):
        self.on_message(self, None, SimpleNamespace(topic=topic, payload=payload, properties=properties))


def _bus(quiet_logger, client):
    return MQTTBusClient(
        broker_host="127.0.0.1",
        client_id="ess-test",
        logger=quiet_logger,
        client=client,
        request_timeout=0.2,
    )


def test_connect_subscribes_inbox(quiet_logger):
    client = StubPahoClient()
    bus = _bus(quiet_logger, client)

    assert bus.connect(timeout=1.0)

    assert bus.is_connected()
    assert bus.inbox == "_INBOX.ess-test"
    assert client.subscribed == [("_INBOX.ess-test", 1)]
    assert client.address == ("127.0.0.1", 1883)


def test_connect_refused(quiet_logger):
    bus = _bus(quiet_logger, StubPahoClient(refuse=True))

    assert not bus.connect(timeout=0.05)
    assert not bus.is_connected()


def test_connect_error_returns_false(quiet_logger):
    client = StubPahoClient()

    def refuse(host, port, keepalive=60):
        raise ConnectionRefusedError("no broker")

    client.connect = refuse
    bus = _bus(quiet_logger, client)

    assert not bus.connect(timeout=0.05)


def test_publish_requires_connection(quiet_logger):
    client = StubPahoClient()
    bus = _bus(quiet_logger, client)

    with pytest.raises(PublishError):
        bus.publish(CONFIG_SUBJECT, b'{}')
    assert client.published == []


def test_publish_rejected_by_client(quiet_logger):
    client = StubPahoClient()
    bus = _bus(quiet_logger, client)
    bus.connect()
    client.publish_rc = mqtt.MQTT_ERR_NO_CONN

    with pytest.raises(PublishError):
        bus.publish(CONFIG_SUBJECT, b'{}')
    assert bus.get_stats()['published'] == 0


def test_publish_sends_without_reply_properties(quiet_logger):
    client = StubPahoClient()
    bus = _bus(quiet_logger, client)
    bus.connect()

    bus.publish(CONFIG_SUBJECT, b'{"a":1}')

    assert client.published == [(CONFIG_SUBJECT, b'{"a":1}', None)]
    assert bus.get_stats()['published'] == 1


def test_request_returns_correlated_reply(quiet_logger):
    client = StubPahoClient()
    bus = _bus(quiet_logger, client)

    def responder(topic, payload, properties):
        assert properties.ResponseTopic == bus.inbox
        # An unrelated reply first: must be ignored
        client.deliver(bus.inbox, b'stale', SimpleNamespace(CorrelationData=b'other'))
        client.deliver(
            properties.ResponseTopic,
            b'reply:' + payload,
            SimpleNamespace(CorrelationData=properties.CorrelationData),
        )

    client.responder = responder
    bus.connect()

    assert bus.request(CONFIG_SUBJECT, b'ping') == b'reply:ping'

    stats = bus.get_stats()
    assert stats['requests'] == 1
    assert stats['replies'] == 1
    assert bus._pending == {}


def test_request_timeout(quiet_logger):
    client = StubPahoClient()
    bus = _bus(quiet_logger, client)
    bus.connect()

    with pytest.raises(RequestTimeoutError) as excinfo:
        bus.request(CONFIG_SUBJECT, b'ping', timeout=0.05)

    assert excinfo.value.subject == CONFIG_SUBJECT
    assert bus.get_stats()['timeouts'] == 1
    assert bus._pending == {}


def test_request_aborted_by_connection_loss(quiet_logger):
    client = StubPahoClient()
    bus = _bus(quiet_logger, client)

    def drop_connection(topic, payload, properties):
        client.on_disconnect(client, None, {}, StubReasonCode(failure=True, name="Keep alive timeout"), None)

    client.responder = drop_connection
    bus.connect()

    with pytest.raises(TransportError) as excinfo:
        bus.request(CONFIG_SUBJECT, b'ping', timeout=1.0)

    assert not isinstance(excinfo.value, RequestTimeoutError)
    assert "connection lost" in str(excinfo.value)


def test_reply_without_pending_request_is_dropped(quiet_logger):
    client = StubPahoClient()
    bus = _bus(quiet_logger, client)
    bus.connect()

    client.deliver(bus.inbox, b'late', SimpleNamespace(CorrelationData=b'unknown'))
    client.deliver(bus.inbox, b'late', None)

    assert bus.get_stats()['replies'] == 0


def test_subscription_receives_matching_messages(quiet_logger):
    client = StubPahoClient()
    bus = _bus(quiet_logger, client)
    bus.connect()

    subscription = bus.subscribe(STATUS_SUBJECT)
    client.deliver(STATUS_SUBJECT, b'{"soc": 1}')
    client.deliver("opendso.r2.EssAppStatus.app-status", b'{"soc": 2}')
    subscription.end("test done", clean=True)

    assert (STATUS_SUBJECT, 1) in client.subscribed
    assert list(subscription) == [b'{"soc": 1}']


def test_subscriptions_are_registered_on_connect(quiet_logger):
    client = StubPahoClient()
    bus = _bus(quiet_logger, client)

    bus.subscribe(STATUS_SUBJECT)
    assert client.subscribed == []

    bus.connect()
    assert client.subscribed == [("_INBOX.ess-test", 1), (STATUS_SUBJECT, 1)]


def test_close_unsubscribes(quiet_logger):
    client = StubPahoClient()
    bus = _bus(quiet_logger, client)
    bus.connect()

    subscription = bus.subscribe(STATUS_SUBJECT)
    subscription.close()

    assert client.unsubscribed == [STATUS_SUBJECT]
    assert bus.get_stats()['subscriptions'] == []
    assert subscription.ended_cleanly


def test_connection_loss_ends_subscriptions(quiet_logger):
    client = StubPahoClient()
    bus = _bus(quiet_logger, client)
    bus.connect()
    subscription = bus.subscribe(STATUS_SUBJECT)

    client.on_disconnect(client, None, {}, StubReasonCode(failure=True, name="Keep alive timeout"), None)

    assert list(subscription) == []
    assert subscription.end_reason == "connection lost (rc=Keep alive timeout)"
    assert not subscription.ended_cleanly
    assert not bus.is_connected()


def test_disconnect_ends_subscriptions_cleanly(quiet_logger):
    client = StubPahoClient()
    bus = _bus(quiet_logger, client)
    bus.connect()
    subscription = bus.subscribe(STATUS_SUBJECT)

    bus.disconnect()

    assert list(subscription) == []
    assert subscription.ended_cleanly
    assert not client.loop_running
    assert not bus.is_connected()
