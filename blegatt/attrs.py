"""The attribute table a GATT server exposes, and its generation from services."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from blegatt.att import ATTR_CHARACTERISTIC_UUID, ATTR_PRIMARY_SERVICE_UUID, UUID
from blegatt.model import Characteristic, Descriptor, Property, Service

_log = logging.getLogger(__name__)


@dataclass
class Attribute:
    """A single BLE attribute and the service, characteristic or descriptor it belongs to."""

    handle: int = 0
    type: Optional[UUID] = None
    props: Property = Property(0)
    secure: Property = Property(0)
    value: Optional[bytes] = None
    owner: Any = None


@dataclass
class AttributeRange:
    """A contiguous run of attributes whose first handle is ``base``."""

    attrs: list[Attribute] = field(default_factory=list)
    base: int = 0

    def _index(self, handle: int) -> Optional[int]:
        """Return the list index of ``handle``, or None when out of range."""
        if handle < self.base or handle >= self.base + len(self.attrs):
            return None
        return handle - self.base

    def at(self, handle: int) -> Optional[Attribute]:
        """Return the attribute with ``handle``, or None if there is none."""
        i = self._index(handle)
        return None if i is None else self.attrs[i]

    def subrange(self, start: int, end: int) -> list[Attribute]:
        """Return the attributes with handles in the inclusive range [start, end]."""
        if start < self.base:
            start_idx = 0
        elif start >= self.base + len(self.attrs):
            return []
        else:
            start_idx = start - self.base

        stop = end + 1
        if stop < self.base:
            return []
        end_idx = min(stop - self.base, len(self.attrs))
        return self.attrs[start_idx:end_idx]


def _dump_attributes(attrs: Sequence[Attribute]) -> None:
    _log.debug("Generating attribute table:")
    _log.debug("handle\ttype\tprops\tsecure\tpvt\tvalue")
    for a in attrs:
        value = " ".join(f"{b:02X}" for b in (a.value or b""))
        _log.debug(
            "0x%04X\t0x%s\t0x%02X\t0x%02x\t%s\t[ %s ]",
            a.handle,
            a.type,
            int(a.props),
            int(a.secure),
            type(a.owner).__name__,
            value,
        )


def generate_attributes(services: Sequence[Service], base: int) -> AttributeRange:
    """Assign handles to ``services`` starting at ``base`` and build the attribute table."""
    attrs: list[Attribute] = []
    handle = base
    last = len(services) - 1
    for i, service in enumerate(services):
        handle, service_attrs = _generate_service_attributes(service, handle, i == last)
        attrs.extend(service_attrs)
    _dump_attributes(attrs)
    return AttributeRange(attrs, base)


def _generate_service_attributes(
    service: Service, handle: int, last: bool
) -> tuple[int, list[Attribute]]:
    service.handle = handle
    attrs = [
        Attribute(
            handle=handle,
            type=ATTR_PRIMARY_SERVICE_UUID,
            value=service.uuid.b,
            props=Property.READ,
            owner=service,
        )
    ]
    handle += 1

    for char in service.characteristics:
        handle, char_attrs = _generate_char_attributes(char, handle)
        attrs.extend(char_attrs)

    service.end_handle = handle - 1
    if last:
        handle = 0xFFFF
        service.end_handle = handle
    return handle, attrs


def _generate_char_attributes(
    char: Characteristic, handle: int
) -> tuple[int, list[Attribute]]:
    char.handle = handle
    char.value_handle = handle + 1
    vh = char.value_handle
    declaration = Attribute(
        handle=char.handle,
        type=ATTR_CHARACTERISTIC_UUID,
        value=bytes([int(char.properties) & 0xFF, vh & 0xFF, (vh >> 8) & 0xFF]) + char.uuid.b,
        props=char.properties,
        owner=char,
    )
    value = Attribute(
        handle=vh,
        type=char.uuid,
        value=char.value,
        props=char.properties,
        owner=char,
    )
    handle += 2

    attrs = [declaration, value]
    for desc in char.descriptors:
        attrs.append(_generate_desc_attribute(desc, handle))
        handle += 1
    return handle, attrs


def _generate_desc_attribute(desc: Descriptor, handle: int) -> Attribute:
    desc.handle = handle
    return Attribute(
        handle=handle,
        type=desc.uuid,
        value=desc.value,
        props=desc.properties,
        owner=desc,
    )