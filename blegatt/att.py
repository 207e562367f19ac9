"""UUIDs, ATT protocol opcodes, error codes and error responses."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


@dataclass(frozen=True)
class UUID:
    """A Bluetooth UUID held in little-endian (on-air) byte order."""

    b: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "b", bytes(self.b))

    def __str__(self) -> str:
        return self.b[::-1].hex()

    def __len__(self) -> int:
        return len(self.b)


def uuid16(value: int) -> UUID:
    """Return the 16-bit UUID for ``value``."""
    try:
        return UUID(int(value).to_bytes(2, "little"))
    except OverflowError as exc:
        raise ValueError(f"not a 16-bit UUID: {value!r}") from exc


def parse_uuid(text: str) -> UUID:
    """Parse a UUID from hex text in big-endian order; dashes are ignored."""
    raw = bytes.fromhex(text.replace("-", ""))
    if len(raw) not in (2, 4, 16):
        raise ValueError(f"invalid UUID length {len(raw)} in {text!r}")
    return UUID(raw[::-1])


ATTR_GAP_UUID = uuid16(0x1800)
ATTR_GATT_UUID = uuid16(0x1801)

ATTR_PRIMARY_SERVICE_UUID = uuid16(0x2800)
ATTR_SECONDARY_SERVICE_UUID = uuid16(0x2801)
ATTR_INCLUDE_UUID = uuid16(0x2802)
ATTR_CHARACTERISTIC_UUID = uuid16(0x2803)

ATTR_CLIENT_CHARACTERISTIC_CONFIG_UUID = uuid16(0x2902)
ATTR_SERVER_CHARACTERISTIC_CONFIG_UUID = uuid16(0x2903)

ATTR_DEVICE_NAME_UUID = uuid16(0x2A00)
ATTR_APPEARANCE_UUID = uuid16(0x2A01)
ATTR_PERIPHERAL_PRIVACY_UUID = uuid16(0x2A02)
ATTR_RECONNECTION_ADDR_UUID = uuid16(0x2A03)
ATTR_PREFERRED_PARAMS_UUID = uuid16(0x2A04)
ATTR_SERVICE_CHANGED_UUID = uuid16(0x2A05)

GATT_CCC_NOTIFY_FLAG = 0x0001
GATT_CCC_INDICATE_FLAG = 0x0002

ATT_OP_ERROR = 0x01
ATT_OP_MTU_REQ = 0x02
ATT_OP_MTU_RSP = 0x03
ATT_OP_FIND_INFO_REQ = 0x04
ATT_OP_FIND_INFO_RSP = 0x05
ATT_OP_FIND_BY_TYPE_VALUE_REQ = 0x06
ATT_OP_FIND_BY_TYPE_VALUE_RSP = 0x07
ATT_OP_READ_BY_TYPE_REQ = 0x08
ATT_OP_READ_BY_TYPE_RSP = 0x09
ATT_OP_READ_REQ = 0x0A
ATT_OP_READ_RSP = 0x0B
ATT_OP_READ_BLOB_REQ = 0x0C
ATT_OP_READ_BLOB_RSP = 0x0D
ATT_OP_READ_MULTI_REQ = 0x0E
ATT_OP_READ_MULTI_RSP = 0x0F
ATT_OP_READ_BY_GROUP_REQ = 0x10
ATT_OP_READ_BY_GROUP_RSP = 0x11
ATT_OP_WRITE_REQ = 0x12
ATT_OP_WRITE_RSP = 0x13
ATT_OP_WRITE_CMD = 0x52
ATT_OP_PREP_WRITE_REQ = 0x16
ATT_OP_PREP_WRITE_RSP = 0x17
ATT_OP_EXEC_WRITE_REQ = 0x18
ATT_OP_EXEC_WRITE_RSP = 0x19
ATT_OP_HANDLE_NOTIFY = 0x1B
ATT_OP_HANDLE_IND = 0x1D
ATT_OP_HANDLE_CNF = 0x1E
ATT_OP_SIGNED_WRITE_CMD = 0xD2

# Maps ATT request opcodes to their response opcodes.
ATT_RSP_FOR = {
    ATT_OP_MTU_REQ: ATT_OP_MTU_RSP,
    ATT_OP_FIND_INFO_REQ: ATT_OP_FIND_INFO_RSP,
    ATT_OP_FIND_BY_TYPE_VALUE_REQ: ATT_OP_FIND_BY_TYPE_VALUE_RSP,
    ATT_OP_READ_BY_TYPE_REQ: ATT_OP_READ_BY_TYPE_RSP,
    ATT_OP_READ_REQ: ATT_OP_READ_RSP,
    ATT_OP_READ_BLOB_REQ: ATT_OP_READ_BLOB_RSP,
    ATT_OP_READ_MULTI_REQ: ATT_OP_READ_MULTI_RSP,
    ATT_OP_READ_BY_GROUP_REQ: ATT_OP_READ_BY_GROUP_RSP,
    ATT_OP_WRITE_REQ: ATT_OP_WRITE_RSP,
    ATT_OP_PREP_WRITE_REQ: ATT_OP_PREP_WRITE_RSP,
    ATT_OP_EXEC_WRITE_REQ: ATT_OP_EXEC_WRITE_RSP,
}


class AttEcode(IntEnum):
    """ATT error codes."""

    SUCCESS = 0x00
    INVALID_HANDLE = 0x01
    READ_NOT_PERM = 0x02
    WRITE_NOT_PERM = 0x03
    INVALID_PDU = 0x04
    AUTHENTICATION = 0x05
    REQ_NOT_SUPP = 0x06
    INVALID_OFFSET = 0x07
    AUTHORIZATION = 0x08
    PREP_QUEUE_FULL = 0x09
    ATTR_NOT_FOUND = 0x0A
    ATTR_NOT_LONG = 0x0B
    INSUFF_ENCR_KEY_SIZE = 0x0C
    INVAL_ATTR_VALUE_LEN = 0x0D
    UNLIKELY = 0x0E
    INSUFF_ENC = 0x0F
    UNSUPP_GRP_TYPE = 0x10
    INSUFF_RESOURCES = 0x11


_ECODE_NAMES = {
    AttEcode.SUCCESS: "success",
    AttEcode.INVALID_HANDLE: "invalid handle",
    AttEcode.READ_NOT_PERM: "read not permitted",
    AttEcode.WRITE_NOT_PERM: "write not permitted",
    AttEcode.INVALID_PDU: "invalid PDU",
    AttEcode.AUTHENTICATION: "insufficient authentication",
    AttEcode.REQ_NOT_SUPP: "request not supported",
    AttEcode.INVALID_OFFSET: "invalid offset",
    AttEcode.AUTHORIZATION: "insufficient authorization",
    AttEcode.PREP_QUEUE_FULL: "prepare queue full",
    AttEcode.ATTR_NOT_FOUND: "attribute not found",
    AttEcode.ATTR_NOT_LONG: "attribute not long",
    AttEcode.INSUFF_ENCR_KEY_SIZE: "insufficient encryption key size",
    AttEcode.INVAL_ATTR_VALUE_LEN: "invalid attribute value length",
    AttEcode.UNLIKELY: "unlikely error",
    AttEcode.INSUFF_ENC: "insufficient encryption",
    AttEcode.UNSUPP_GRP_TYPE: "unsupported group type",
    AttEcode.INSUFF_RESOURCES: "insufficient resources",
}


def ecode_message(code: int) -> str:
    """Return a human-readable description of an ATT error code."""
    i = int(code)
    if 0 <= i < 0x11:
        return _ECODE_NAMES[AttEcode(i)]
    if 0x12 <= i <= 0xDF:
        return "reserved error code"
    if 0xE0 <= i <= 0xFF:
        return "profile or service error"
    return "unknown error"


@dataclass(frozen=True)
class AttError:
    """An ATT error response for a request opcode and attribute handle."""

    opcode: int
    handle: int
    status: AttEcode

    def marshal(self) -> bytes:
        """Encode the error response PDU; the handle is little-endian."""
        return bytes(
            [
                ATT_OP_ERROR,
                self.opcode & 0xFF,
                self.handle & 0xFF,
                (self.handle >> 8) & 0xFF,
                int(self.status) & 0xFF,
            ]
        )


def att_error_rsp(opcode: int, handle: int, status: AttEcode) -> bytes:
    """Build the encoded ATT error response."""
    return AttError(opcode, handle, status).marshal()