"""Response writers and notifiers handed to GATT request handlers."""

from __future__ import annotations

import threading
from typing import Any, Protocol

from blegatt.model import STATUS_SUCCESS


class ResponseWriter:
    """Collects the value returned for a read request, up to a fixed capacity."""

    def __init__(self, capacity: int) -> None:
        self.capacity = capacity
        self.status = STATUS_SUCCESS
        self._buf = bytearray()

    def write(self, data: bytes) -> int:
        """Append ``data`` to the response and return the number of bytes written.

        Raises ValueError if the data does not fit in the remaining capacity.
        """
        avail = self.capacity - len(self._buf)
        if avail < len(data):
            raise ValueError(f"requested write {len(data)} bytes, {avail} available")
        self._buf.extend(data)
        return len(data)

    def getvalue(self) -> bytes:
        """Return everything written so far."""
        return bytes(self._buf)


class NotificationsStoppedError(Exception):
    """Raised when writing to a notifier the central has unsubscribed from."""


class _NotifyingCentral(Protocol):
    def send_notification(self, attr: Any, data: bytes) -> int: ...


class Notifier:
    """Sends value-change notifications for one attribute to a central."""

    def __init__(self, central: _NotifyingCentral, attr: Any, maxlen: int) -> None:
        self.central = central
        self.attr = attr
        self.maxlen = maxlen
        self._lock = threading.Lock()
        self._done = False

    def write(self, data: bytes) -> int:
        """Send ``data`` as a notification and return the number of bytes sent."""
        with self._lock:
            if self._done:
                raise NotificationsStoppedError("central stopped notifications")
            return self.central.send_notification(self.attr, data)

    def done(self) -> bool:
        """Report whether the central asked to stop receiving notifications."""
        with self._lock:
            return self._done

    def cap(self) -> int:
        """Return the maximum number of bytes in a single notification."""
        return self.maxlen

    def stop(self) -> None:
        """Mark the notifier as finished; later writes raise."""
        with self._lock:
            self._done = True