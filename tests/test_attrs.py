import pytest

from blegatt.att import (
    ATTR_APPEARANCE_UUID,
    ATTR_CHARACTERISTIC_UUID,
    ATTR_CLIENT_CHARACTERISTIC_CONFIG_UUID,
    ATTR_DEVICE_NAME_UUID,
    ATTR_GAP_UUID,
    ATTR_GATT_UUID,
    ATTR_PRIMARY_SERVICE_UUID,
    parse_uuid,
)
from blegatt.attrs import Attribute, AttributeRange, generate_attributes
from blegatt.model import Property, Service


def test_at_out_of_range_returns_none():
    r = AttributeRange([Attribute(handle=4), Attribute(handle=5), Attribute(handle=6)], 4)
    for h in (0, 2, 3, 7, 8, 100):
        assert r.at(h) is None


def test_at_in_range_returns_attribute():
    r = AttributeRange([Attribute(handle=4), Attribute(handle=5), Attribute(handle=6)], 4)
    for h in (4, 5, 6):
        assert r.at(h).handle == h


@pytest.mark.parametrize(
    "start, end, base, want",
    [
        (0, 3, 4, []),
        (0, 4, 4, [0]),
        (0, 5, 4, [0, 1]),
        (4, 5, 4, [0, 1]),
        (4, 6, 4, [0, 1, 2]),
        (4, 100, 4, [0, 1, 2]),
        (5, 100, 4, [1, 2]),
        (5, 6, 4, [1, 2]),
        (5, 5, 4, [1]),
        (6, 6, 4, [2]),
        (6, 100, 4, [2]),
        (7, 100, 4, []),
        (100, 1000, 4, []),
        (1000, 100, 4, []),
        (5, 1, 4, []),
        (1, 65535, 4, [0, 1, 2]),
        (1, 65535, 0, [1, 2]),
    ],
)
def test_subrange(start, end, base, want):
    attrs = [Attribute(handle=10), Attribute(handle=11), Attribute(handle=12)]
    r = AttributeRange(attrs, base)
    got = r.subrange(start, end)
    assert got == [attrs[i] for i in want]
    assert all(a is attrs[i] for a, i in zip(got, want))


def _server_services():
    gap = Service(ATTR_GAP_UUID)
    gap.add_characteristic(ATTR_DEVICE_NAME_UUID).set_value(b"Gopher")
    gap.add_characteristic(ATTR_APPEARANCE_UUID).set_value(b"\x00\x80")
    gatt = Service(ATTR_GATT_UUID)
    svc = Service(parse_uuid("09fc95c0-c111-11e3-9904-0002a5d5c51b"))
    svc.add_characteristic(parse_uuid("11fac9e0-c111-11e3-9246-0002a5d5c51b")).handle_read(
        lambda rsp, req: rsp.write(b"count: 1")
    )
    svc.add_characteristic(parse_uuid("16fe0d80-c111-11e3-b8c8-0002a5d5c51b")).handle_write(
        lambda r, data: 0
    )
    svc.add_characteristic(parse_uuid("1c927b50-c116-11e3-8a33-0800200c9a66")).handle_notify(
        lambda r, n: None
    )
    return gap, gatt, svc


def test_generate_attributes_table_layout():
    gap, gatt, svc = _server_services()
    r = generate_attributes([gap, gatt, svc], 1)
    assert r.base == 1
    assert [a.handle for a in r.attrs] == list(range(1, 15))
    assert r.at(1).type == ATTR_PRIMARY_SERVICE_UUID
    assert r.at(1).value == bytes.fromhex("0018")
    assert r.at(2).type == ATTR_CHARACTERISTIC_UUID
    assert r.at(2).value == bytes.fromhex("020300002a")
    assert r.at(3).value == b"Gopher"
    assert r.at(4).value == bytes.fromhex("020500012a")
    assert r.at(5).value == b"\x00\x80"
    assert r.at(6).value == bytes.fromhex("0118")
    assert r.at(7).value == bytes.fromhex("1bc5d5a502000499e31111c1c095fc09")


def test_generate_attributes_assigns_service_handles():
    gap, gatt, svc = _server_services()
    generate_attributes([gap, gatt, svc], 1)
    assert (gap.handle, gap.end_handle) == (1, 5)
    assert (gatt.handle, gatt.end_handle) == (6, 6)
    assert (svc.handle, svc.end_handle) == (7, 0xFFFF)


def test_generate_attributes_characteristics_and_cccd():
    gap, gatt, svc = _server_services()
    r = generate_attributes([gap, gatt, svc], 1)
    read_char, write_char, notify_char = svc.characteristics
    assert (read_char.handle, read_char.value_handle) == (8, 9)
    assert r.at(8).value == bytes.fromhex("0209001bc5d5a502004692e31111c1e0c9fa11")
    assert r.at(9).value is None
    assert r.at(9).owner is read_char
    assert r.at(10).value == bytes.fromhex("0c0b001bc5d5a50200c8b8e31111c1800dfe16")
    assert int(r.at(11).props) == 0x0C
    assert r.at(12).value == bytes.fromhex("300d00669a0c200008338ae31116c1507b921c")
    cccd = r.at(14)
    assert cccd.type == ATTR_CLIENT_CHARACTERISTIC_CONFIG_UUID
    assert int(cccd.props) == 0x0E
    assert cccd.value == b"\x00\x00"
    assert cccd.owner is notify_char.cccd
    assert notify_char.cccd.handle == 14


def test_generate_attributes_empty():
    r = generate_attributes([], 1)
    assert r.attrs == []
    assert r.at(1) is None
    assert r.subrange(1, 0xFFFF) == []


def test_service_attribute_is_readable():
    gap, _, _ = _server_services()
    r = generate_attributes([gap], 1)
    assert r.at(1).props == Property.READ
    assert gap.end_handle == 0xFFFF