"""
Error taxonomy for the ESS control client.

Transport errors come from the bus (broker unreachable, publish rejected,
request not answered in time). Decode errors mean a payload does not match the
expected message schema.
"""


class EssClientError(Exception):
    """Base class for all control client errors"""
    pass


class TransportError(EssClientError):
    """Raised when the bus cannot carry a message"""
    pass


class PublishError(TransportError):
    """Raised when a publish is rejected by the MQTT client"""
    pass


class RequestTimeoutError(TransportError):
    """Raised when no correlated reply arrives before the request timeout"""

    def __init__(self, subject: str, timeout: float):
        super().__init__(f"No reply on '{subject}' within {timeout:.1f}s")
        self.subject = subject
        self.timeout = timeout


class DecodeError(EssClientError, ValueError):
    """Raised when a payload does not match the expected message schema"""
    pass
