import threading
import types
from collections import deque

import pytest

from blegatt.att import ATTR_APPEARANCE_UUID, ATTR_DEVICE_NAME_UUID, ATTR_GAP_UUID, ATTR_GATT_UUID, parse_uuid
from blegatt.attrs import generate_attributes
from blegatt.central import Central
from blegatt.handlers import NotificationsStoppedError
from blegatt.model import STATUS_SUCCESS, Service

LONG = b"A really long characteristic"


class _FakeConn:
    def __init__(self, requests):
        self._incoming = deque(requests)
        self.written = []
        self.closed = False

    def read(self, size):
        return self._incoming.popleft() if self._incoming else b""

    def write(self, data):
        self.written.append(bytes(data))
        return len(data)

    def close(self):
        self.closed = True


@pytest.fixture
def server():
    state = types.SimpleNamespace(wrote=None, notifiers=[], subscribed=threading.Event())

    svc = Service(parse_uuid("09fc95c0-c111-11e3-9904-0002a5d5c51b"))
    svc.add_characteristic(parse_uuid("11fac9e0-c111-11e3-9246-0002a5d5c51b")).handle_read(
        lambda rsp, req: rsp.write(b"count: 1")
    )

    def on_write(req, data):
        state.wrote = bytes(data)
        return STATUS_SUCCESS

    svc.add_characteristic(parse_uuid("16fe0d80-c111-11e3-b8c8-0002a5d5c51b")).handle_write(on_write)

    def on_notify(req, notifier):
        state.notifiers.append(notifier)
        state.subscribed.set()

    svc.add_characteristic(parse_uuid("1c927b50-c116-11e3-8a33-0800200c9a66")).handle_notify(on_notify)

    def read_long(rsp, req):
        start = min(req.offset, len(LONG))
        end = min(req.offset + req.cap, len(LONG))
        rsp.write(LONG[start:end])

    svc.add_characteristic(parse_uuid("11fac9e0-c111-11e3-9246-0002a5d5c51c")).handle_read(read_long)
    svc.add_characteristic(parse_uuid("11fac9e0-c111-11e3-9246-0002a5d5c51d")).set_value(LONG)

    gap = Service(ATTR_GAP_UUID)
    gap.add_characteristic(ATTR_DEVICE_NAME_UUID).set_value(b"Gopher")
    gap.add_characteristic(ATTR_APPEARANCE_UUID).set_value(b"\x00\x80")
    gatt = Service(ATTR_GATT_UUID)

    attrs = generate_attributes([gap, gatt, svc], 1)
    return attrs, state


CASES = [
    ("028700", "038700"),
    ("021700", "031700"),
    ("FF1234567890", "01ff000006"),
    ("0401000A00", "050101000028020003280300002a040003280500012a"),
    ("0401000200", "05010100002802000328"),
    ("0601000B0000281bc5d5a502000499e31111c1c095fc09", "070700ffff"),
    ("10010003001bc5d5a502000499e31111c1c095fc09", "0110010010"),
    ("10010003000028", "1106010005000018"),
    ("1001000E000028", "1106010005000018060006000118"),
    ("0801000500002a", "09080300476f70686572"),
    ("0804000500002a", "010804000a"),
    ("08060006000328", "010806000a"),
    ("0a0900", "0b636f756e743a2031"),
    ("0a1000", "0b41207265616c6c79206c6f6e67206368617261637465"),
    ("0c10001700", "0d6973746963"),
    ("0a1200", "0b41207265616c6c79206c6f6e67206368617261637465"),
    ("0c12001700", "0d6973746963"),
    ("120b00616263646566", "13"),
    ("120e000100", "13"),
    ("120e000000", "13"),
]


def test_loop_serves_all_requests(server):
    attrs, state = server
    conn = _FakeConn([bytes.fromhex(send) for send, _ in CASES])
    Central(attrs, b"", conn).loop()
    assert [w.hex() for w in conn.written] == [want for _, want in CASES]
    assert state.wrote == b"abcdef"
    assert conn.closed


@pytest.mark.parametrize("send,want", CASES)
def test_single_request(server, send, want):
    attrs, _ = server
    central = Central(attrs, b"", _FakeConn([]))
    assert central.handle_req(bytes.fromhex(send)).hex() == want


@pytest.mark.parametrize("send,want,mtu", [("020a00", "031700", 23), ("02ff0f", "030001", 256)])
def test_mtu_is_clamped(server, send, want, mtu):
    attrs, _ = server
    central = Central(attrs, b"", _FakeConn([]))
    assert central.handle_req(bytes.fromhex(send)).hex() == want
    assert central.mtu() == mtu


def test_notifications(server):
    attrs, state = server
    conn = _FakeConn([])
    central = Central(attrs, b"", conn)
    assert central.handle_req(bytes.fromhex("120e000100")) == b"\x13"
    assert state.subscribed.wait(2)
    notifier = state.notifiers[0]
    assert notifier.cap() == 20
    for i in range(4):
        notifier.write(f"Count: {i}".encode())
    assert [w.hex() for w in conn.written] == [
        "1b0d00436f756e743a2030",
        "1b0d00436f756e743a2031",
        "1b0d00436f756e743a2032",
        "1b0d00436f756e743a2033",
    ]
    assert central.handle_req(bytes.fromhex("120e000000")) == b"\x13"
    assert notifier.done()
    with pytest.raises(NotificationsStoppedError):
        notifier.write(b"x")


def test_close_stops_notifiers(server):
    attrs, state = server
    conn = _FakeConn([])
    central = Central(attrs, b"", conn)
    central.handle_req(bytes.fromhex("120e000100"))
    assert state.subscribed.wait(2)
    central.close()
    assert state.notifiers[0].done()
    assert conn.closed


def test_write_command_has_no_response(server):
    attrs, state = server
    central = Central(attrs, b"", _FakeConn([]))
    assert central.handle_req(bytes.fromhex("520b007879")) is None
    assert state.wrote == b"xy"


@pytest.mark.parametrize(
    "send,want",
    [
        ("0a0001", "010a000101"),
        ("0a0b00", "010a0b0002"),
        ("1209004141", "0112090003"),
        ("120e0001", "01120e000d"),
        ("0c12002000", "010c120007"),
    ],
)
def test_error_responses(server, send, want):
    attrs, _ = server
    central = Central(attrs, b"", _FakeConn([]))
    assert central.handle_req(bytes.fromhex(send)).hex() == want


def test_short_request_is_invalid_pdu(server):
    attrs, _ = server
    central = Central(attrs, b"", _FakeConn([]))
    assert central.handle_req(bytes.fromhex("0a01")).hex() == "010a000004"


def test_empty_request_raises(server):
    attrs, _ = server
    central = Central(attrs, b"", _FakeConn([]))
    with pytest.raises(ValueError):
        central.handle_req(b"")


def test_id_formats_address(server):
    attrs, _ = server
    central = Central(attrs, bytes([0x02, 0, 0, 0, 0, 0x01]), _FakeConn([]))
    assert central.id() == "02:00:00:00:00:01"
    assert Central(attrs, b"", _FakeConn([])).id() == ""