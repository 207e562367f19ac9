"""Sample services: battery level, counters, GAP and GATT."""

from __future__ import annotations

import logging
import time

from blegatt.att import (
    ATTR_APPEARANCE_UUID,
    ATTR_DEVICE_NAME_UUID,
    ATTR_GAP_UUID,
    ATTR_GATT_UUID,
    ATTR_PERIPHERAL_PRIVACY_UUID,
    ATTR_PREFERRED_PARAMS_UUID,
    ATTR_RECONNECTION_ADDR_UUID,
    ATTR_SERVICE_CHANGED_UUID,
    parse_uuid,
    uuid16,
)
from blegatt.handlers import NotificationsStoppedError
from blegatt.model import STATUS_SUCCESS, Service

_log = logging.getLogger(__name__)

BATTERY_SERVICE_UUID = uuid16(0x180F)
BATTERY_LEVEL_UUID = uuid16(0x2A19)
PRESENTATION_FORMAT_UUID = uuid16(0x2904)

COUNT_SERVICE_UUID = parse_uuid("09fc95c0-c111-11e3-9904-0002a5d5c51b")
COUNT_READ_UUID = parse_uuid("11fac9e0-c111-11e3-9246-0002a5d5c51b")
COUNT_WRITE_UUID = parse_uuid("16fe0d80-c111-11e3-b8c8-0002a5d5c51b")
COUNT_NOTIFY_UUID = parse_uuid("1c927b50-c116-11e3-8a33-0800200c9a66")

# Appearance value for a generic computer.
GAP_APPEARANCE_GENERIC_COMPUTER = bytes([0x00, 0x80])

_NOTIFY_INTERVAL = 1.0


def new_battery_service() -> Service:
    """Return a battery service whose level drops by one on every read."""
    level = 100
    service = Service(BATTERY_SERVICE_UUID)
    char = service.add_characteristic(BATTERY_LEVEL_UUID)

    def read_level(rsp, req) -> None:
        nonlocal level
        rsp.write(bytes([level]))
        level = (level - 1) & 0xFF

    char.handle_read(read_level)
    char.add_descriptor(PRESENTATION_FORMAT_UUID).set_value(bytes([4, 1, 39, 173, 1, 0, 0]))
    return service


def new_count_service() -> Service:
    """Return a service with a counting read, a logging write and a counting notify."""
    count = 0
    service = Service(COUNT_SERVICE_UUID)

    def read_count(rsp, req) -> None:
        nonlocal count
        rsp.write(f"count: {count}".encode())
        count += 1

    def write_value(req, data: bytes) -> int:
        _log.info("Wrote: %s", bytes(data).decode("utf-8", errors="replace"))
        return STATUS_SUCCESS

    def notify_count(req, notifier) -> None:
        sent = 0
        while not notifier.done():
            try:
                notifier.write(f"Count: {sent}".encode())
            except NotificationsStoppedError:
                break
            sent += 1
            time.sleep(_NOTIFY_INTERVAL)

    service.add_characteristic(COUNT_READ_UUID).handle_read(read_count)
    service.add_characteristic(COUNT_WRITE_UUID).handle_write(write_value)
    service.add_characteristic(COUNT_NOTIFY_UUID).handle_notify(notify_count)
    return service


def new_gap_service(name: str) -> Service:
    """Return the Generic Access service advertising ``name`` as the device name."""
    service = Service(ATTR_GAP_UUID)
    service.add_characteristic(ATTR_DEVICE_NAME_UUID).set_value(name.encode("utf-8"))
    service.add_characteristic(ATTR_APPEARANCE_UUID).set_value(GAP_APPEARANCE_GENERIC_COMPUTER)
    service.add_characteristic(ATTR_PERIPHERAL_PRIVACY_UUID).set_value(bytes([0x00]))
    service.add_characteristic(ATTR_RECONNECTION_ADDR_UUID).set_value(bytes(6))
    service.add_characteristic(ATTR_PREFERRED_PARAMS_UUID).set_value(
        bytes([0x06, 0x00, 0x06, 0x00, 0x00, 0x00, 0xD0, 0x07])
    )
    return service


def new_gatt_service() -> Service:
    """Return the Generic Attribute service with a Service Changed characteristic."""
    service = Service(ATTR_GATT_UUID)

    def service_changed(req, notifier) -> None:
        _log.info("indications of service changes are not sent")

    service.add_characteristic(ATTR_SERVICE_CHANGED_UUID).handle_notify(service_changed)
    return service