"""Device states and registration of device event callbacks and options."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Callable, Optional

_STATE_NAMES = (
    "Unknown",
    "Resetting",
    "Unsupported",
    "Unauthorized",
    "PoweredOff",
    "PoweredOn",
)


class State(IntEnum):
    """State of a BLE device."""

    UNKNOWN = 0
    RESETTING = 1
    UNSUPPORTED = 2
    UNAUTHORIZED = 3
    POWERED_OFF = 4
    POWERED_ON = 5

    def __str__(self) -> str:
        return _STATE_NAMES[int(self)]


Handler = Callable[["DeviceHandlers"], None]
Option = Callable[["DeviceHandlers"], Any]


@dataclass
class DeviceHandlers:
    """Callbacks a device invokes on its events."""

    on_state_changed: Optional[Callable[[Any, State], None]] = None
    on_central_connected: Optional[Callable[[Any], None]] = None
    on_central_disconnected: Optional[Callable[[Any], None]] = None
    on_peripheral_discovered: Optional[Callable[[Any, Any, int], None]] = None
    on_peripheral_connected: Optional[Callable[[Any, Optional[Exception]], None]] = None
    on_peripheral_disconnected: Optional[Callable[[Any, Optional[Exception]], None]] = None

    def handle(self, *handlers: Handler) -> None:
        """Register the given handlers."""
        for handler in handlers:
            handler(self)

    def option(self, *options: Option) -> None:
        """Apply the given options in order; an option that fails raises."""
        for opt in options:
            opt(self)


def central_connected(func: Callable[[Any], None]) -> Handler:
    """Return a handler that calls ``func`` when a central connects."""
    def register(d: DeviceHandlers) -> None:
        d.on_central_connected = func
    return register


def central_disconnected(func: Callable[[Any], None]) -> Handler:
    """Return a handler that calls ``func`` when a central disconnects."""
    def register(d: DeviceHandlers) -> None:
        d.on_central_disconnected = func
    return register


def peripheral_discovered(func: Callable[[Any, Any, int], None]) -> Handler:
    """Return a handler that calls ``func(peripheral, advertisement, rssi)`` on discovery."""
    def register(d: DeviceHandlers) -> None:
        d.on_peripheral_discovered = func
    return register


def peripheral_connected(func: Callable[[Any, Optional[Exception]], None]) -> Handler:
    """Return a handler that calls ``func(peripheral, error)`` when a peripheral connects."""
    def register(d: DeviceHandlers) -> None:
        d.on_peripheral_connected = func
    return register


def peripheral_disconnected(func: Callable[[Any, Optional[Exception]], None]) -> Handler:
    """Return a handler that calls ``func(peripheral, error)`` when a peripheral disconnects."""
    def register(d: DeviceHandlers) -> None:
        d.on_peripheral_disconnected = func
    return register