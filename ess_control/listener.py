"""
StatusListener - Background consumer of ESS status reports

Bounded Context: Status observation
Responsibilities:
  - Subscribe once to the status subject
  - Decode each payload as EssAppStatus
  - Write decoded reports to the StatusMirror

Decode failure policy:
  - fatal_decode_errors=False (default): the malformed payload is logged at
    ERROR and skipped; the mirror keeps the last good report
  - fatal_decode_errors=True: the listener stops on the first malformed
    payload and records the failure

Subscription end always stops the listener. Connection loss is logged at
ERROR and kept in ``failure`` so the dispatcher can warn that the mirror is
stale; a clean close (client shutdown) is logged at INFO.

Threading:
  - One daemon thread, spawned by start(), never joined
  - Only StatusMirror is shared with the dispatcher
"""

import threading
from typing import Any, Dict, Optional

from ess_mqtt.codec import decode_status
from ess_mqtt.exceptions import DecodeError
from ess_mqtt.logging import LogEvent, StructuredLogger

from .mirror import StatusMirror


class StatusListener:
    """
    Drains the status subscription and keeps the mirror current.

    Example:
        listener = StatusListener(bus, status_subject, mirror, logger)
        listener.start()   # non-blocking
        ...
        if not listener.is_alive():
            print(listener.failure)
    """

    def __init__(
        self,
        bus,  # MQTTBusClient or any object exposing subscribe(subject)
        subject: str,
        mirror: StatusMirror,
        logger: StructuredLogger,
        fatal_decode_errors: bool = False,
    ):
        self.bus = bus
        self.subject = subject
        self.mirror = mirror
        self.logger = logger
        self.fatal_decode_errors = fatal_decode_errors

        self.failure: Optional[str] = None
        self._subscription = None
        self._thread: Optional[threading.Thread] = None
        self._stats_lock = threading.Lock()
        self._counts = {'received': 0, 'decoded': 0, 'decode_failures': 0}

    def start(self) -> None:
        """
        Subscribe and spawn the listener thread.

        The subscription is registered before the thread starts, so no report
        published after start() returns is missed.

        Raises:
            RuntimeError: If already started
        """
        if self._thread is not None:
            raise RuntimeError("StatusListener already started")

        self._subscription = self.bus.subscribe(self.subject)
        self._thread = threading.Thread(
            target=self._run,
            name="status-listener",
            daemon=True,
        )
        self._thread.start()

        self.logger.info(
            event=LogEvent.LISTENER_STARTED,
            message="Status listener started",
            metadata={
                'subject': self.subject,
                'fatal_decode_errors': self.fatal_decode_errors
            }
        )

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the listener thread to stop (used by tests)."""
        if self._thread is not None:
            self._thread.join(timeout)

    def get_stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            stats = dict(self._counts)
        stats['alive'] = self.is_alive()
        stats['failure'] = self.failure
        stats['subject'] = self.subject
        return stats

    def _count(self, key: str) -> None:
        with self._stats_lock:
            self._counts[key] += 1

    def _run(self) -> None:
        try:
            for payload in self._subscription:
                self._count('received')
                if not self._handle_payload(payload):
                    return

            if self._subscription.ended_cleanly:
                self.logger.info(
                    event=LogEvent.LISTENER_STOPPED,
                    message="Status listener stopped",
                    metadata={
                        'subject': self.subject,
                        'reason': self._subscription.end_reason
                    }
                )
                return

            self._stop(f"subscription ended: {self._subscription.end_reason}")

        except Exception as e:
            self._stop(f"unexpected error: {e}", exc_info=e)

    def _handle_payload(self, payload: bytes) -> bool:
        """Decode one payload into the mirror; False stops the listener."""
        try:
            status = decode_status(payload)
        except DecodeError as e:
            self._count('decode_failures')
            self.logger.error(
                event=LogEvent.DESERIALIZATION_ERROR,
                message="Malformed status payload",
                exc_info=e,
                metadata={'subject': self.subject, 'size': len(payload)}
            )
            if self.fatal_decode_errors:
                self._subscription.close()
                self._stop(f"malformed status payload: {e}")
                return False
            return True

        self.mirror.update(status)
        self._count('decoded')
        self.logger.debug(
            event=LogEvent.STATUS_RECEIVED,
            message="Status updated",
            metadata={'subject': self.subject, 'mrid': status.mrid}
        )
        return True

    def _stop(self, reason: str, exc_info: Optional[BaseException] = None) -> None:
        self.failure = reason
        self.logger.error(
            event=LogEvent.LISTENER_STOPPED,
            message="Status listener stopped, status will no longer update",
            exc_info=exc_info,
            metadata={'subject': self.subject, 'reason': reason}
        )
