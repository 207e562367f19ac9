# blegatt

Building blocks for a Bluetooth Low Energy GATT server (peripheral), in
plain Python with no runtime dependencies.

## What is in it

- `blegatt.att`: the `UUID` type (little-endian on-air bytes, printed as
  big-endian hex), `uuid16()` and `parse_uuid()`, ATT opcodes, the
  `AttEcode` error codes with `ecode_message()`, and `AttError` /
  `att_error_rsp()` for encoding error responses.
- `blegatt.known`: `service_name()`, `characteristic_name()`,
  `descriptor_name()` and `attribute_name()` return the assigned name of a
  UUID, or `""` when it is not known.
- `blegatt.model`: `Service`, `Characteristic` and `Descriptor`, with
  static values or read, write and notify handlers; `Property` flags;
  `Request` and `ReadRequest`.
- `blegatt.handlers`: `ResponseWriter`, handed to read handlers, and
  `Notifier`, handed to notify handlers.
- `blegatt.attrs`: `generate_attributes()` numbers the attributes of a
  list of services and returns an `AttributeRange`.
- `blegatt.l2cap`: `L2capWriter`, a size-limited response builder.
- `blegatt.central`: `Central`, which answers ATT requests from one
  connected central.
- `blegatt.adv`: `AdvPacket` for building advertising and scan-response
  data, and `Advertisement` for parsing it.
- `blegatt.device`: the `State` enum and `DeviceHandlers`, a set of event
  callbacks registered with `central_connected()`,
  `central_disconnected()`, `peripheral_discovered()`,
  `peripheral_connected()` and `peripheral_disconnected()`.
- `blegatt.services`: sample services from `new_gap_service(name)`,
  `new_gatt_service()`, `new_battery_service()` and `new_count_service()`.

## Installation

```
pip install blegatt
```

## Defining services

```python
from blegatt.att import parse_uuid, uuid16
from blegatt.model import Service

svc = Service(parse_uuid("09fc95c0-c111-11e3-9904-0002a5d5c51b"))

svc.add_characteristic(uuid16(0x2A19)).set_value(b"\x64")

def on_read(resp, req):
    resp.write(b"hello")

svc.add_characteristic(parse_uuid("11fac9e0-c111-11e3-9246-0002a5d5c51b")).handle_read(on_read)

def on_write(req, data):
    print("written:", data)
    return 0

svc.add_characteristic(parse_uuid("16fe0d80-c111-11e3-b8c8-0002a5d5c51b")).handle_write(on_write)
```

Adding a second characteristic (or descriptor) with the same UUID raises
`ValueError`. A characteristic has either a static value or a read
handler; setting the other afterwards raises `RuntimeError`.

A read handler receives a `ResponseWriter` and a `ReadRequest`
(`cap` is the maximum reply length, `offset` the requested offset).
Writing more than the writer's capacity raises `ValueError`.

`handle_notify(handler)` adds a Client Characteristic Configuration
descriptor. When a central subscribes, the handler runs in its own thread
with the request and a `Notifier`; it writes with `notifier.write(data)`
until `notifier.done()` is true. Writing after the central unsubscribed
raises `NotificationsStoppedError`.

## Serving requests

```python
from blegatt.attrs import generate_attributes
from blegatt.central import Central
from blegatt.services import new_gap_service, new_gatt_service

attrs = generate_attributes([new_gap_service("Gopher"), new_gatt_service(), svc], 1)
central = Central(attrs, bytes(6), conn)  # conn has read(size), write(data), close()
central.loop()
```

`loop()` reads requests from the connection and writes the responses
until a read returns nothing or fails, then closes the central (stopping
its notifiers). `Central.handle_req(request)` can also be called directly
with one ATT PDU; it returns the response PDU, or `None` for a write
command. Supported requests are MTU exchange (clamped to 23..256), find
information, find by type value and read by group type (primary services
only), read by type, read, read blob, write and write command. Other
opcodes get a "request not supported" error response; requests too short
for their opcode get an "invalid PDU" error response.

## Advertising packets

```python
from blegatt.adv import AdvPacket, Advertisement

pkt = AdvPacket(b"")
pkt.append_flags(0x06)
pkt.append_uuid_fit([svc.uuid])
pkt.append_name("Gopher")
payload = pkt.to_bytes()   # always 31 bytes, zero padded
length = len(pkt)

adv = Advertisement()
adv.unmarshal(payload[:length])
print(adv.local_name, adv.services)
```

Fields are truncated to fit the 31-byte limit; `append_name` uses the
shortened-name type when the name does not fit whole, and
`append_uuid_fit` reports whether every UUID fit. Malformed advertising
data, or a field that cannot fit at all, raises `AdvertisingDataError`.

## What it does not do

The package does not talk to a Bluetooth controller: there is no HCI
access, no way to start advertising or scanning, and no client (central)
role for discovering and reading remote devices. `DeviceHandlers` only
holds callbacks; you supply the connection to a `Central` and send the
advertising bytes yourself.

## Running the tests

```
pip install -e ".[test]"
pytest
```