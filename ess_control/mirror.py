"""
StatusMirror - Latest known ESS status, shared between threads

Writer: StatusListener thread (one update per decoded report)
Reader: CommandDispatcher (print status)

The lock is held only for the assignment / read of a reference. Status values
are frozen dataclasses replaced wholesale, so a reader can never observe a
partially applied update.
"""

import threading
from datetime import datetime, timezone
from typing import Optional

from ess_mqtt.schemas import EssAppStatus


class StatusMirror:
    """
    Single shared cell holding the most recently decoded EssAppStatus.

    Example:
        mirror = StatusMirror()
        mirror.update(status)        # listener thread
        current = mirror.snapshot()  # dispatcher thread
    """

    def __init__(self, initial: Optional[EssAppStatus] = None):
        self._status = initial if initial is not None else EssAppStatus()
        self._update_count = 0
        self._last_updated: Optional[datetime] = None
        self._lock = threading.Lock()

    def update(self, status: EssAppStatus) -> None:
        """Replace the current status."""
        now = datetime.now(timezone.utc)
        with self._lock:
            self._status = status
            self._update_count += 1
            self._last_updated = now

    def snapshot(self) -> EssAppStatus:
        """Return the current status."""
        with self._lock:
            return self._status

    @property
    def update_count(self) -> int:
        with self._lock:
            return self._update_count

    @property
    def last_updated(self) -> Optional[datetime]:
        """UTC time of the last update, None before the first report."""
        with self._lock:
            return self._last_updated
