"""Serving ATT requests from a connected central over an L2CAP channel."""

from __future__ import annotations

import threading
from enum import IntEnum
from typing import Callable, Optional, Protocol

from blegatt.att import (
    ATT_OP_FIND_BY_TYPE_VALUE_REQ,
    ATT_OP_FIND_BY_TYPE_VALUE_RSP,
    ATT_OP_FIND_INFO_REQ,
    ATT_OP_FIND_INFO_RSP,
    ATT_OP_HANDLE_NOTIFY,
    ATT_OP_MTU_REQ,
    ATT_OP_MTU_RSP,
    ATT_OP_READ_BLOB_REQ,
    ATT_OP_READ_BLOB_RSP,
    ATT_OP_READ_BY_GROUP_REQ,
    ATT_OP_READ_BY_GROUP_RSP,
    ATT_OP_READ_BY_TYPE_REQ,
    ATT_OP_READ_BY_TYPE_RSP,
    ATT_OP_READ_REQ,
    ATT_OP_READ_RSP,
    ATT_OP_WRITE_CMD,
    ATT_OP_WRITE_REQ,
    ATT_OP_WRITE_RSP,
    ATTR_CLIENT_CHARACTERISTIC_CONFIG_UUID,
    ATTR_PRIMARY_SERVICE_UUID,
    GATT_CCC_INDICATE_FLAG,
    GATT_CCC_NOTIFY_FLAG,
    UUID,
    AttEcode,
    att_error_rsp,
)
from blegatt.attrs import Attribute, AttributeRange
from blegatt.handlers import Notifier, ResponseWriter
from blegatt.l2cap import L2capWriter
from blegatt.model import Characteristic, Descriptor, Property, ReadRequest, Request

DEFAULT_MTU = 23
MAX_MTU = 256
# L2CAP implementations support at least 48 bytes; 672 is the default MTU.
_READ_SIZE = 672


class Security(IntEnum):
    """Security level of a connection."""

    LOW = 0
    MEDIUM = 1
    HIGH = 2


class Connection(Protocol):
    """A byte stream to the central: an L2CAP channel or anything like it."""

    def read(self, size: int) -> bytes: ...

    def write(self, data: bytes) -> int: ...

    def close(self) -> None: ...


class _MalformedPDU(Exception):
    """A request was too short for its opcode."""


def _u16(data: bytes, offset: int) -> int:
    if len(data) < offset + 2:
        raise _MalformedPDU
    return int.from_bytes(data[offset:offset + 2], "little")


def _handle_range(data: bytes) -> tuple[int, int]:
    return _u16(data, 0), _u16(data, 2)


class Central:
    """A remote central connected to this GATT server."""

    def __init__(
        self, attrs: Optional[AttributeRange], addr: bytes, conn: Connection
    ) -> None:
        self.attrs = attrs if attrs is not None else AttributeRange()
        self.addr = bytes(addr)
        self.conn = conn
        self.security = Security.LOW
        self._mtu = DEFAULT_MTU
        self._notifiers: dict[int, Notifier] = {}
        self._lock = threading.Lock()
        self._handlers: dict[int, Callable[[bytes], Optional[bytes]]] = {
            ATT_OP_MTU_REQ: self._handle_mtu,
            ATT_OP_FIND_INFO_REQ: self._handle_find_info,
            ATT_OP_FIND_BY_TYPE_VALUE_REQ: self._handle_find_by_type_value,
            ATT_OP_READ_BY_TYPE_REQ: self._handle_read_by_type,
            ATT_OP_READ_REQ: self._handle_read,
            ATT_OP_READ_BLOB_REQ: self._handle_read_blob,
            ATT_OP_READ_BY_GROUP_REQ: self._handle_read_by_group,
        }

    def id(self) -> str:
        """Return the central's hardware address as colon-separated hex."""
        return ":".join(f"{b:02x}" for b in self.addr)

    def mtu(self) -> int:
        """Return the current ATT MTU of the connection."""
        return self._mtu

    def close(self) -> None:
        """Stop all notifications and close the connection."""
        with self._lock:
            for notifier in self._notifiers.values():
                notifier.stop()
        self.conn.close()

    def loop(self) -> None:
        """Serve requests until the connection is closed or fails."""
        while True:
            try:
                data = self.conn.read(_READ_SIZE)
            except OSError:
                data = b""
            if not data:
                self.close()
                break
            rsp = self.handle_req(data)
            if rsp is not None:
                self.conn.write(rsp)

    def handle_req(self, request: bytes) -> Optional[bytes]:
        """Dispatch one raw ATT request and return the response, if any."""
        if not request:
            raise ValueError("empty ATT request")
        op, body = request[0], bytes(request[1:])
        try:
            if op in (ATT_OP_WRITE_REQ, ATT_OP_WRITE_CMD):
                return self._handle_write(op, body)
            handler = self._handlers.get(op)
            if handler is None:
                return att_error_rsp(op, 0x0000, AttEcode.REQ_NOT_SUPP)
            return handler(body)
        except _MalformedPDU:
            return att_error_rsp(op, 0x0000, AttEcode.INVALID_PDU)

    def _read_denied(self, attr: Attribute) -> bool:
        return bool(attr.secure & Property.READ) and self.security > Security.LOW

    def _serve_read(self, attr: Attribute, offset: int) -> bytes:
        if attr.value is not None:
            return attr.value
        cap = self._mtu - 1
        rsp = ResponseWriter(cap)
        req = ReadRequest(central=self, cap=cap, offset=offset)
        owner = attr.owner
        if isinstance(owner, (Characteristic, Descriptor)) and owner.read_handler is not None:
            owner.read_handler(rsp, req)
        return rsp.getvalue()

    def _handle_mtu(self, body: bytes) -> bytes:
        self._mtu = min(max(_u16(body, 0), DEFAULT_MTU), MAX_MTU)
        return bytes([ATT_OP_MTU_RSP]) + self._mtu.to_bytes(2, "little")

    def _handle_find_info(self, body: bytes) -> bytes:
        start, end = _handle_range(body)
        w = L2capWriter(self._mtu)
        w.write_byte_fit(ATT_OP_FIND_INFO_RSP)
        uuid_len = -1
        for a in self.attrs.subrange(start, end):
            if uuid_len == -1:
                uuid_len = len(a.type)
                w.write_byte_fit(0x01 if uuid_len == 2 else 0x02)
            if len(a.type) != uuid_len:
                break
            w.chunk()
            w.write_uint16_fit(a.handle)
            w.write_uuid_fit(a.type)
            if not w.commit():
                break
        if uuid_len == -1:
            return att_error_rsp(ATT_OP_FIND_INFO_REQ, start, AttEcode.ATTR_NOT_FOUND)
        return w.getvalue()

    def _handle_find_by_type_value(self, body: bytes) -> bytes:
        start, end = _handle_range(body)
        if len(body) < 6:
            raise _MalformedPDU
        typ = UUID(body[4:6])
        value = UUID(body[6:])
        # Only "Discover Primary Services By Service UUID" is supported.
        if typ != ATTR_PRIMARY_SERVICE_UUID:
            return att_error_rsp(ATT_OP_FIND_BY_TYPE_VALUE_REQ, start, AttEcode.ATTR_NOT_FOUND)

        w = L2capWriter(self._mtu)
        w.write_byte_fit(ATT_OP_FIND_BY_TYPE_VALUE_RSP)
        wrote = False
        for a in self.attrs.subrange(start, end):
            if a.type != ATTR_PRIMARY_SERVICE_UUID or UUID(a.value or b"") != value:
                continue
            service = a.owner
            w.chunk()
            w.write_uint16_fit(service.handle)
            w.write_uint16_fit(service.end_handle)
            if not w.commit():
                break
            wrote = True
        if not wrote:
            return att_error_rsp(ATT_OP_FIND_BY_TYPE_VALUE_REQ, start, AttEcode.ATTR_NOT_FOUND)
        return w.getvalue()

    def _handle_read_by_type(self, body: bytes) -> bytes:
        start, end = _handle_range(body)
        typ = UUID(body[4:])
        w = L2capWriter(self._mtu)
        w.write_byte_fit(ATT_OP_READ_BY_TYPE_RSP)
        value_len = -1
        for a in self.attrs.subrange(start, end):
            if a.type != typ:
                continue
            if self._read_denied(a):
                return att_error_rsp(ATT_OP_READ_BY_TYPE_REQ, start, AttEcode.AUTHENTICATION)
            v = self._serve_read(a, 0)
            if value_len == -1:
                value_len = len(v)
                w.write_byte_fit((value_len + 2) & 0xFF)
            if len(v) != value_len:
                break
            w.chunk()
            w.write_uint16_fit(a.handle)
            w.write_fit(v)
            if not w.commit():
                break
        if value_len == -1:
            return att_error_rsp(ATT_OP_READ_BY_TYPE_REQ, start, AttEcode.ATTR_NOT_FOUND)
        return w.getvalue()

    def _check_readable(self, op: int, handle: int) -> tuple[Optional[Attribute], Optional[bytes]]:
        a = self.attrs.at(handle)
        if a is None:
            return None, att_error_rsp(op, handle, AttEcode.INVALID_HANDLE)
        if not a.props & Property.READ:
            return None, att_error_rsp(op, handle, AttEcode.READ_NOT_PERM)
        if self._read_denied(a):
            return None, att_error_rsp(op, handle, AttEcode.AUTHENTICATION)
        return a, None

    def _handle_read(self, body: bytes) -> bytes:
        handle = _u16(body, 0)
        a, err = self._check_readable(ATT_OP_READ_REQ, handle)
        if err is not None:
            return err
        v = self._serve_read(a, 0)
        w = L2capWriter(self._mtu)
        w.write_byte_fit(ATT_OP_READ_RSP)
        w.chunk()
        w.write_fit(v)
        w.commit_fit()
        return w.getvalue()

    def _handle_read_blob(self, body: bytes) -> bytes:
        handle = _u16(body, 0)
        offset = _u16(body, 2)
        a, err = self._check_readable(ATT_OP_READ_BLOB_REQ, handle)
        if err is not None:
            return err
        dynamic = a.value is None
        v = self._serve_read(a, offset)
        if dynamic:
            offset = 0  # the read handler has already applied the offset
        w = L2capWriter(self._mtu)
        w.write_byte_fit(ATT_OP_READ_BLOB_RSP)
        w.chunk()
        w.write_fit(v)
        if not w.chunk_seek(offset):
            return att_error_rsp(ATT_OP_READ_BLOB_REQ, handle, AttEcode.INVALID_OFFSET)
        w.commit_fit()
        return w.getvalue()

    def _handle_read_by_group(self, body: bytes) -> bytes:
        start, end = _handle_range(body)
        typ = UUID(body[4:])
        # Only "Discover All Primary Services" is supported.
        if typ != ATTR_PRIMARY_SERVICE_UUID:
            return att_error_rsp(ATT_OP_READ_BY_GROUP_REQ, start, AttEcode.UNSUPP_GRP_TYPE)

        w = L2capWriter(self._mtu)
        w.write_byte_fit(ATT_OP_READ_BY_GROUP_RSP)
        uuid_len = -1
        for a in self.attrs.subrange(start, end):
            if a.type != ATTR_PRIMARY_SERVICE_UUID:
                continue
            value = a.value or b""
            if uuid_len == -1:
                uuid_len = len(value)
                w.write_byte_fit((uuid_len + 4) & 0xFF)
            if len(value) != uuid_len:
                break
            service = a.owner
            w.chunk()
            w.write_uint16_fit(service.handle)
            w.write_uint16_fit(service.end_handle)
            w.write_fit(value)
            if not w.commit():
                break
        if uuid_len == -1:
            return att_error_rsp(ATT_OP_READ_BY_GROUP_REQ, start, AttEcode.ATTR_NOT_FOUND)
        return w.getvalue()

    def _handle_write(self, op: int, body: bytes) -> Optional[bytes]:
        handle = _u16(body, 0)
        value = body[2:]
        a = self.attrs.at(handle)
        if a is None:
            return att_error_rsp(op, handle, AttEcode.INVALID_HANDLE)

        no_rsp = op == ATT_OP_WRITE_CMD
        flag = Property.WRITE_NR if no_rsp else Property.WRITE
        if not a.props & flag:
            return att_error_rsp(op, handle, AttEcode.WRITE_NOT_PERM)
        if not a.secure & flag and self.security > Security.LOW:
            return att_error_rsp(op, handle, AttEcode.AUTHENTICATION)

        if a.type != ATTR_CLIENT_CHARACTERISTIC_CONFIG_UUID:
            owner = a.owner
            if isinstance(owner, (Characteristic, Descriptor)) and owner.write_handler is not None:
                owner.write_handler(Request(central=self), value)
            return None if no_rsp else bytes([ATT_OP_WRITE_RSP])

        if len(value) != 2:
            return att_error_rsp(op, handle, AttEcode.INVAL_ATTR_VALUE_LEN)
        ccc = int.from_bytes(value, "little")
        if ccc & (GATT_CCC_NOTIFY_FLAG | GATT_CCC_INDICATE_FLAG):
            self._start_notify(a, self._mtu - 3)
        else:
            self._stop_notify(a)
        return None if no_rsp else bytes([ATT_OP_WRITE_RSP])

    def send_notification(self, attr: Attribute, data: bytes) -> int:
        """Send ``data`` as a value notification for the characteristic owning ``attr``."""
        w = L2capWriter(self._mtu)
        w.write_byte_fit(ATT_OP_HANDLE_NOTIFY)
        w.write_uint16_fit(attr.owner.characteristic.value_handle)
        w.write_fit(data)
        return self.conn.write(w.getvalue())

    def _start_notify(self, attr: Attribute, maxlen: int) -> None:
        with self._lock:
            if attr.handle in self._notifiers:
                return
            char = attr.owner.characteristic
            notifier = Notifier(self, attr, maxlen)
            self._notifiers[attr.handle] = notifier
        if char.notify_handler is not None:
            threading.Thread(
                target=char.notify_handler,
                args=(Request(central=self), notifier),
                daemon=True,
            ).start()

    def _stop_notify(self, attr: Attribute) -> None:
        with self._lock:
            notifier = self._notifiers.pop(attr.handle, None)
        if notifier is not None:
            notifier.stop()