"""Services, characteristics and descriptors of a GATT server."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntFlag
from typing import Any, Callable, Optional

from blegatt.att import ATTR_CLIENT_CHARACTERISTIC_CONFIG_UUID, UUID
from blegatt.known import characteristic_name, descriptor_name, service_name

# Statuses for characteristic read/write operations (ATT error codes).
STATUS_SUCCESS = 0
STATUS_INVALID_OFFSET = 1
STATUS_UNEXPECTED_ERROR = 2

ReadHandler = Callable[[Any, "ReadRequest"], None]
WriteHandler = Callable[["Request", bytes], int]
NotifyHandler = Callable[["Request", Any], None]


class Property(IntFlag):
    """Characteristic property flags."""

    BROADCAST = 0x01
    READ = 0x02
    WRITE_NR = 0x04
    WRITE = 0x08
    NOTIFY = 0x10
    INDICATE = 0x20
    SIGNED_WRITE = 0x40
    EXTENDED = 0x80

    def __str__(self) -> str:
        return "".join(label + " " for flag, label in _PROPERTY_LABELS if self & flag)


_PROPERTY_LABELS = (
    (Property.BROADCAST, "broadcast"),
    (Property.READ, "read"),
    (Property.WRITE_NR, "writeWithoutResponse"),
    (Property.WRITE, "write"),
    (Property.NOTIFY, "notify"),
    (Property.INDICATE, "indicate"),
    (Property.SIGNED_WRITE, "authenticateSignedWrites"),
    (Property.EXTENDED, "extendedProperties"),
)


@dataclass
class Request:
    """Context of a request from a connected central."""

    central: Any = None


@dataclass
class ReadRequest(Request):
    """A read request: ``cap`` is the maximum reply length, ``offset`` the value offset."""

    cap: int = 0
    offset: int = 0


class Service:
    """A BLE service."""

    def __init__(self, uuid: UUID) -> None:
        self.uuid = uuid
        self.characteristics: list[Characteristic] = []
        self.handle = 0
        self.end_handle = 0

    def add_characteristic(self, uuid: UUID) -> Characteristic:
        """Add and return a new characteristic; UUIDs must be unique in the service."""
        if any(c.uuid == uuid for c in self.characteristics):
            raise ValueError(f"service already contains a characteristic with uuid {uuid}")
        char = Characteristic(uuid, self)
        self.characteristics.append(char)
        return char

    def name(self) -> str:
        """Return the assigned name of the service, or "" if unknown."""
        return service_name(self.uuid)


class Characteristic:
    """A BLE characteristic."""

    def __init__(
        self,
        uuid: UUID,
        service: Optional[Service] = None,
        props: int = 0,
        handle: int = 0,
        value_handle: int = 0,
    ) -> None:
        self.uuid = uuid
        self.service = service
        self.properties = Property(props)
        self.secure = Property(0)
        self.cccd: Optional[Descriptor] = None
        self.descriptors: list[Descriptor] = []
        self.value: Optional[bytes] = None
        self.read_handler: Optional[ReadHandler] = None
        self.write_handler: Optional[WriteHandler] = None
        self.notify_handler: Optional[NotifyHandler] = None
        self.handle = handle
        self.value_handle = value_handle
        self.end_handle = 0

    def name(self) -> str:
        """Return the assigned name of the characteristic, or "" if unknown."""
        return characteristic_name(self.uuid)

    def add_descriptor(self, uuid: UUID) -> Descriptor:
        """Add and return a new descriptor; UUIDs must be unique in the characteristic."""
        if any(d.uuid == uuid for d in self.descriptors):
            raise ValueError(f"characteristic already contains a descriptor with uuid {uuid}")
        desc = Descriptor(uuid, 0, self)
        self.descriptors.append(desc)
        return desc

    def set_value(self, value: bytes) -> None:
        """Make the characteristic readable with a static value."""
        if self.read_handler is not None:
            raise RuntimeError("characteristic has been configured with a read handler")
        self.properties |= Property.READ
        self.value = bytes(value)

    def handle_read(self, handler: ReadHandler) -> ReadHandler:
        """Route read requests to ``handler(response_writer, read_request)``."""
        if self.value is not None:
            raise RuntimeError("characteristic has been configured with a static value")
        self.properties |= Property.READ
        self.read_handler = handler
        return handler

    def handle_write(self, handler: WriteHandler) -> WriteHandler:
        """Route write and write-without-response requests to ``handler(request, data)``."""
        self.properties |= Property.WRITE | Property.WRITE_NR
        self.write_handler = handler
        return handler

    def handle_notify(self, handler: NotifyHandler) -> NotifyHandler:
        """Route subscriptions to ``handler(request, notifier)`` and add a CCC descriptor."""
        if self.cccd is not None:
            return handler
        flags = Property.NOTIFY | Property.INDICATE
        self.properties |= flags
        self.notify_handler = handler

        cccd = Descriptor(ATTR_CLIENT_CHARACTERISTIC_CONFIG_UUID, 0, self)
        cccd.properties = Property.READ | Property.WRITE | Property.WRITE_NR
        if self.secure & flags:
            cccd.secure = Property.READ | Property.WRITE
        cccd.value = b"\x00\x00"
        self.cccd = cccd
        self.descriptors.append(cccd)
        return handler


class Descriptor:
    """A BLE descriptor."""

    def __init__(
        self,
        uuid: UUID,
        handle: int = 0,
        characteristic: Optional[Characteristic] = None,
    ) -> None:
        self.uuid = uuid
        self.characteristic = characteristic
        self.properties = Property(0)
        self.secure = Property(0)
        self.handle = handle
        self.value: Optional[bytes] = None
        self.read_handler: Optional[ReadHandler] = None
        self.write_handler: Optional[WriteHandler] = None

    def name(self) -> str:
        """Return the assigned name of the descriptor, or "" if unknown."""
        return descriptor_name(self.uuid)

    def set_value(self, value: bytes) -> None:
        """Make the descriptor readable with a static value."""
        if self.read_handler is not None:
            raise RuntimeError("descriptor has been configured with a read handler")
        self.properties |= Property.READ
        self.value = bytes(value)

    def handle_read(self, handler: ReadHandler) -> ReadHandler:
        """Route read requests to ``handler(response_writer, read_request)``."""
        if self.value is not None:
            raise RuntimeError("descriptor has been configured with a static value")
        self.properties |= Property.READ
        self.read_handler = handler
        return handler

    def handle_write(self, handler: WriteHandler) -> WriteHandler:
        """Route write and write-without-response requests to ``handler(request, data)``."""
        self.properties |= Property.WRITE | Property.WRITE_NR
        self.write_handler = handler
        return handler