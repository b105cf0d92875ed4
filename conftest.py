"""
Shared test doubles for the ESS control client.

The bus is replaced by FakeBus (records traffic, scripted replies); console
input by ScriptedInput. No broker is needed to run the suite.
"""

import io
import logging
from typing import Callable, List, Optional, Tuple, Union

import pytest

from ess_control import CommandDispatcher, StatusMirror
from ess_mqtt import Subscription, create_logger

REGION = "r1"
MRID = "3bda2cb0-6e39-40ca-84de-d58b99e7e40e"


class FakeBus:
    """In-memory stand-in for MQTTBusClient."""

    def __init__(self):
        self.published: List[Tuple[str, bytes]] = []
        self.requests: List[Tuple[str, bytes]] = []
        self.subscriptions: List[Subscription] = []
        self.unsubscribed: List[Subscription] = []

        # reply to request(): bytes, or a callable receiving the request payload
        self.reply: Union[bytes, Callable[[bytes], bytes], None] = None
        self.request_error: Optional[Exception] = None
        self.publish_error: Optional[Exception] = None

    def publish(self, subject: str, payload: bytes) -> None:
        if self.publish_error is not None:
            raise self.publish_error
        self.published.append((subject, payload))

    def request(self, subject: str, payload: bytes, timeout: Optional[float] = None) -> bytes:
        self.requests.append((subject, payload))
        if self.request_error is not None:
            raise self.request_error
        if callable(self.reply):
            return self.reply(payload)
        return self.reply

    def subscribe(self, subject: str) -> Subscription:
        subscription = Subscription(subject, bus=self)
        self.subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        self.unsubscribed.append(subscription)


class ScriptedInput:
    """input() replacement: returns queued lines, then raises EOFError."""

    def __init__(self, lines=None):
        self.lines = list(lines or [])
        self.prompts: List[str] = []

    def __call__(self, prompt: str = "") -> str:
        self.prompts.append(prompt)
        if not self.lines:
            raise EOFError
        return self.lines.pop(0)

    def feed(self, *lines: str) -> None:
        self.lines.extend(lines)


@pytest.fixture
def fake_bus():
    return FakeBus()


@pytest.fixture
def mirror():
    return StatusMirror()


@pytest.fixture
def scripted_input():
    return ScriptedInput()


@pytest.fixture
def console():
    return io.StringIO()


@pytest.fixture
def quiet_logger():
    return create_logger("test", level=logging.DEBUG, handlers=[logging.NullHandler()])


@pytest.fixture
def dispatcher(fake_bus, mirror, scripted_input, console):
    return CommandDispatcher(
        bus=fake_bus,
        mirror=mirror,
        region=REGION,
        mrid=MRID,
        read_line=scripted_input,
        out=console,
    )
