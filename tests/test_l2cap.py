import pytest

from blegatt.att import uuid16
from blegatt.l2cap import L2capWriter


@pytest.mark.parametrize(
    "mtu, head, chunk, ok",
    [
        (5, 0, 4, True),
        (5, 0, 5, True),
        (5, 0, 6, False),
        (5, 1, 3, True),
        (5, 1, 4, True),
        (5, 1, 5, False),
    ],
)
def test_chunk(mtu, head, chunk, ok):
    w = L2capWriter(mtu)
    want = bytearray()
    for i in range(head):
        w.write_byte_fit(i)
        want.append(i)
    w.chunk()
    for i in range(chunk):
        w.write_byte_fit(i)
        if ok:
            want.append(i)
    assert w.commit() is ok
    assert w.getvalue() == bytes(want)


def test_double_chunk_raises():
    w = L2capWriter(5)
    w.chunk()
    with pytest.raises(RuntimeError):
        w.chunk()


def test_commit_before_chunk_raises():
    w = L2capWriter(5)
    with pytest.raises(RuntimeError):
        w.commit()


def test_double_commit_raises():
    w = L2capWriter(5)
    w.chunk()
    w.commit()
    with pytest.raises(RuntimeError):
        w.commit()


def test_getvalue_during_chunk_raises():
    w = L2capWriter(5)
    w.chunk()
    with pytest.raises(RuntimeError):
        w.getvalue()


def test_write_uint16_little_endian():
    w = L2capWriter(17)
    assert w.write_uint16_fit(0x1234) is True
    assert w.getvalue() == b"\x34\x12"


def test_write_uuid():
    w = L2capWriter(23)
    w.write_uuid_fit(uuid16(0x2800))
    assert w.getvalue() == b"\x00\x28"


def test_write_fit_truncates():
    w = L2capWriter(3)
    assert w.write_fit(b"ab") is True
    assert w.write_fit(b"cde") is False
    assert w.getvalue() == b"abc"


def test_commit_fit_truncates():
    w = L2capWriter(4)
    w.write_byte_fit(0x0B)
    w.chunk()
    w.write_fit(b"hello")
    w.commit_fit()
    assert w.getvalue() == b"\x0bhel"


def test_commit_fit_without_chunk_raises():
    with pytest.raises(RuntimeError):
        L2capWriter(4).commit_fit()


def test_chunk_seek():
    w = L2capWriter(23)
    w.write_byte_fit(0x0D)
    w.chunk()
    w.write_fit(b"abcdef")
    assert w.chunk_seek(4) is True
    w.commit_fit()
    assert w.getvalue() == b"\x0def"


def test_chunk_seek_past_end():
    w = L2capWriter(23)
    w.chunk()
    w.write_fit(b"ab")
    assert w.chunk_seek(3) is False
    w.commit_fit()
    assert w.getvalue() == b""


def test_chunk_seek_without_chunk_raises():
    with pytest.raises(RuntimeError):
        L2capWriter(23).chunk_seek(0)


def test_writeable():
    w = L2capWriter(5)
    w.write_fit(b"ab")
    assert w.writeable(0, b"xyz") == 3
    assert w.writeable(1, b"xyz") == 2
    assert w.writeable(10, b"xyz") == 0
    w.chunk()
    assert w.writeable(10, b"xyz") == 3