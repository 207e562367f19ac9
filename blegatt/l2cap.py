"""A size-limited writer for building L2CAP/ATT response PDUs."""

from __future__ import annotations

from blegatt.att import UUID


class L2capWriter:
    """Builds a response of at most ``mtu`` bytes, optionally in all-or-nothing chunks."""

    def __init__(self, mtu: int) -> None:
        self.mtu = int(mtu)
        self._buf = bytearray()
        self._chunk = bytearray()
        self._chunked = False

    def chunk(self) -> None:
        """Start a new chunk, which is not written until committed."""
        if self._chunked:
            raise RuntimeError("l2cap writer: chunk called twice without committing")
        self._chunked = True

    def commit(self) -> bool:
        """Write the current chunk if it fits entirely; report whether it did."""
        if not self._chunked:
            raise RuntimeError("l2cap writer: commit without starting a chunk")
        success = len(self._buf) + len(self._chunk) <= self.mtu
        if success:
            self._buf.extend(self._chunk)
        self._chunk.clear()
        self._chunked = False
        return success

    def commit_fit(self) -> None:
        """Write as much of the current chunk as fits, truncating the rest."""
        if not self._chunked:
            raise RuntimeError("l2cap writer: commit_fit without starting a chunk")
        writeable = min(self.mtu - len(self._buf), len(self._chunk))
        self._buf.extend(self._chunk[:max(writeable, 0)])
        self._chunk.clear()
        self._chunked = False

    def write_byte_fit(self, value: int) -> bool:
        """Write one byte; see write_fit for the result."""
        return self.write_fit(bytes([value & 0xFF]))

    def write_uint16_fit(self, value: int) -> bool:
        """Write ``value`` as a little-endian 16-bit integer; see write_fit."""
        return self.write_fit((value & 0xFFFF).to_bytes(2, "little"))

    def write_uuid_fit(self, uuid: UUID) -> bool:
        """Write ``uuid`` in its on-air byte order; see write_fit."""
        return self.write_fit(uuid.b)

    def writeable(self, pad: int, data: bytes) -> int:
        """Return how many bytes of ``data`` would be written after ``pad`` bytes."""
        if self._chunked:
            return len(data)
        avail = self.mtu - len(self._buf) - pad
        if avail > len(data):
            return len(data)
        return max(avail, 0)

    def write_fit(self, data: bytes) -> bool:
        """Write as much of ``data`` as fits; report whether nothing was truncated."""
        if self._chunked:
            self._chunk.extend(data)
            return True
        avail = self.mtu - len(self._buf)
        if avail >= len(data):
            self._buf.extend(data)
            return True
        self._buf.extend(data[:max(avail, 0)])
        return False

    def chunk_seek(self, offset: int) -> bool:
        """Drop the first ``offset`` bytes of the chunk; report whether there were enough."""
        if not self._chunked:
            raise RuntimeError("l2cap writer: chunk_seek without chunked write in progress")
        if len(self._chunk) < offset:
            self._chunk.clear()
            return False
        del self._chunk[:offset]
        return True

    def getvalue(self) -> bytes:
        """Return the bytes written; a chunk must not be in progress."""
        if self._chunked:
            raise RuntimeError("l2cap writer: bytes requested while chunked write in progress")
        return bytes(self._buf)