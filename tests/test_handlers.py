import pytest

from blegatt.handlers import NotificationsStoppedError, Notifier, ResponseWriter
from blegatt.model import STATUS_SUCCESS


class FakeCentral:
    def __init__(self):
        self.sent = []

    def send_notification(self, attr, data):
        self.sent.append((attr, bytes(data)))
        return len(data)


def test_response_writer_collects_writes():
    w = ResponseWriter(10)
    assert w.write(b"abc") == 3
    assert w.write(b"def") == 3
    assert w.getvalue() == b"abcdef"


def test_response_writer_fills_exactly_to_capacity():
    w = ResponseWriter(4)
    assert w.write(b"abcd") == 4
    assert w.getvalue() == b"abcd"


def test_response_writer_rejects_overflow():
    w = ResponseWriter(5)
    w.write(b"ab")
    with pytest.raises(ValueError, match="available"):
        w.write(b"abcd")
    assert w.getvalue() == b"ab"


def test_response_writer_status_defaults_to_success():
    w = ResponseWriter(1)
    assert w.status == STATUS_SUCCESS
    w.status = 2
    assert w.status == 2


def test_notifier_forwards_to_central():
    central = FakeCentral()
    n = Notifier(central, "attr", 20)
    assert n.write(b"Count: 0") == 8
    assert central.sent == [("attr", b"Count: 0")]
    assert n.cap() == 20
    assert n.done() is False


def test_notifier_stop_blocks_writes():
    central = FakeCentral()
    n = Notifier(central, "attr", 20)
    n.stop()
    assert n.done() is True
    with pytest.raises(NotificationsStoppedError):
        n.write(b"x")
    assert central.sent == []